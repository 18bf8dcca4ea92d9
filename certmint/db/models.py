"""SQLAlchemy ORM models for certmint.

This module defines the database schema for:
- Users (identities anchored to a wallet public key)
- Certificates (the subject of verification and minting)
- Verification logs (append-only audit trail of every transition attempt)
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are stored without timezone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CertificateStatus(str, Enum):
    """Verification status of a certificate.

    ``pending`` is the only non-terminal state. A certificate leaves it
    exactly once, to either ``verified`` or ``rejected``.
    """

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not CertificateStatus.PENDING


class LogStep(str, Enum):
    """Coordinator steps recorded in the verification log."""

    EXTERNAL_VERIFICATION = "external_verification"
    NFT_MINTING = "nft_minting"


class LogStatus(str, Enum):
    """Generic outcome tags for log entries (oracle verdicts are stored as-is)."""

    SUCCESS = "success"
    ERROR = "error"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class User(Base):
    """User identity anchored to a wallet public key.

    Created exactly once, on the first successful signature login from an
    unseen wallet. The wallet address is unique and never changes.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    wallet_address = Column(String(64), nullable=False, unique=True)  # base58 Ed25519 key
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    profile_photo_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    certificates = relationship("Certificate", back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, wallet_address={self.wallet_address!r})>"


class Certificate(Base):
    """An issued academic/professional certificate.

    Invariants (enforced by the coordinators' conditional updates):
    - verification_status moves pending -> verified|rejected at most once
    - mint_id is only ever set while verification_status is verified
    - ledger_address is written once and never overwritten
    """

    __tablename__ = "certificates"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    institution_name = Column(String(200), nullable=False)
    program_name = Column(String(200), nullable=False)
    issue_date = Column(Date, nullable=False)
    document_key = Column(String(512), nullable=False)  # object store key
    certificate_url = Column(String(1024), nullable=False)
    verification_url = Column(String(1024), nullable=False)
    verification_status = Column(
        String(16), default=CertificateStatus.PENDING.value, nullable=False
    )
    verification_details = Column(JSON, nullable=True)
    ledger_address = Column(String(1024), nullable=True)
    mint_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="certificates")
    logs = relationship(
        "VerificationLog",
        back_populates="certificate",
        cascade="all, delete-orphan",
        order_by="VerificationLog.created_at",
    )

    __table_args__ = (Index("ix_certificates_user_created", "user_id", "created_at"),)

    @property
    def status(self) -> CertificateStatus:
        return CertificateStatus(self.verification_status)

    def __repr__(self) -> str:
        return (
            f"<Certificate(id={self.id!r}, user_id={self.user_id!r}, "
            f"status={self.verification_status!r})>"
        )


class VerificationLog(Base):
    """Immutable audit record of one coordinator invocation."""

    __tablename__ = "verification_logs"

    id = Column(String(36), primary_key=True)  # UUID
    certificate_id = Column(
        String(36), ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    verification_step = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False)
    details = Column(JSON, nullable=True)  # structured payload or error text
    created_at = Column(DateTime, default=utcnow, nullable=False)

    certificate = relationship("Certificate", back_populates="logs")

    def __repr__(self) -> str:
        return (
            f"<VerificationLog(certificate_id={self.certificate_id!r}, "
            f"step={self.verification_step!r}, status={self.status!r})>"
        )
