"""Verification log: append-only history of coordinator invocations."""

import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from certmint.db.models import LogStep, VerificationLog
from certmint.db.session import session_scope

log = logging.getLogger(__name__)


class VerificationLogStore:
    """Session-scoped reads and appends on the verification_logs table."""

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        certificate_id: str,
        step: LogStep,
        status: str,
        details: Any = None,
    ) -> VerificationLog:
        entry = VerificationLog(
            id=str(uuid.uuid4()),
            certificate_id=certificate_id,
            verification_step=step.value,
            status=status,
            details=details,
        )
        self.db.add(entry)
        self.db.commit()
        return entry

    def list_for_certificate(self, certificate_id: str) -> list[VerificationLog]:
        """Entries for a certificate, oldest first."""
        return (
            self.db.query(VerificationLog)
            .filter(VerificationLog.certificate_id == certificate_id)
            .order_by(VerificationLog.created_at, VerificationLog.id)
            .all()
        )


class VerificationLogWriter:
    """Writes one entry per coordinator invocation in its own transaction.

    A failed write is reported through the service log and otherwise
    ignored, so it can never replace the error being recorded nor roll back
    a status update that already committed.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def record(
        self,
        certificate_id: str,
        step: LogStep,
        status: str,
        details: Any = None,
    ) -> VerificationLog | None:
        try:
            with session_scope(self._session_factory) as db:
                return VerificationLogStore(db).append(certificate_id, step, status, details)
        except Exception:
            log.error(
                f"Failed to write verification log {step.value}/{status} for {certificate_id}",
                exc_info=True,
                extra={"certificate_id": certificate_id},
            )
            return None
