"""Database module for certmint.

This module provides SQLAlchemy ORM models and session management for
users, certificates and the verification log.
"""

from certmint.db.models import (
    Base,
    Certificate,
    CertificateStatus,
    LogStatus,
    LogStep,
    User,
    VerificationLog,
)
from certmint.db.session import (
    create_db_engine,
    create_session_factory,
    init_database,
    session_scope,
)

__all__ = [
    "Base",
    "Certificate",
    "CertificateStatus",
    "LogStatus",
    "LogStep",
    "User",
    "VerificationLog",
    "create_db_engine",
    "create_session_factory",
    "init_database",
    "session_scope",
]
