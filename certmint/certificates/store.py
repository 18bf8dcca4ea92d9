"""Certificate store: CRUD plus the guarded field updates.

The three mutations the coordinators perform are single-statement
conditional updates (compare-and-set). Each returns True only if the row
still matched its guard at write time.
"""

import logging
import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from certmint.db.models import Certificate, CertificateStatus, VerificationLog, utcnow

log = logging.getLogger(__name__)


class CertificateStore:
    """Store for certificate rows, scoped to one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        title: str,
        institution_name: str,
        program_name: str,
        issue_date: date,
        document_key: str,
        certificate_url: str,
        verification_url: str,
        certificate_id: Optional[str] = None,
    ) -> Certificate:
        """Create a certificate at status pending."""
        cert = Certificate(
            id=certificate_id or str(uuid.uuid4()),
            user_id=user_id,
            title=title,
            institution_name=institution_name,
            program_name=program_name,
            issue_date=issue_date,
            document_key=document_key,
            certificate_url=certificate_url,
            verification_url=verification_url,
            verification_status=CertificateStatus.PENDING.value,
        )
        self.db.add(cert)
        self.db.commit()
        self.db.refresh(cert)
        log.info(f"Created certificate {cert.id} for user {user_id}")
        return cert

    def get(self, certificate_id: str) -> Optional[Certificate]:
        return self.db.query(Certificate).filter(Certificate.id == certificate_id).first()

    def get_owned(self, certificate_id: str, user_id: str) -> Optional[Certificate]:
        """Get a certificate only if it belongs to user_id."""
        return (
            self.db.query(Certificate)
            .filter(Certificate.id == certificate_id, Certificate.user_id == user_id)
            .first()
        )

    def list_for_user(self, user_id: str) -> list[Certificate]:
        """All of a user's certificates, newest first."""
        return (
            self.db.query(Certificate)
            .filter(Certificate.user_id == user_id)
            .order_by(Certificate.created_at.desc(), Certificate.id)
            .all()
        )

    def delete(self, cert: Certificate) -> None:
        """Delete a certificate and its verification history."""
        self.db.query(VerificationLog).filter(
            VerificationLog.certificate_id == cert.id
        ).delete(synchronize_session=False)
        self.db.delete(cert)
        self.db.commit()
        log.info(f"Deleted certificate {cert.id}")

    # -------------------------------------------------------------------------
    # Guarded updates
    # -------------------------------------------------------------------------

    def _guarded_update(self, certificate_id: str, guards: list, values: dict[str, Any]) -> bool:
        stmt = (
            update(Certificate)
            .where(Certificate.id == certificate_id, *guards)
            .values(**values, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def compare_and_set_status(
        self,
        certificate_id: str,
        expected: CertificateStatus,
        new_status: CertificateStatus,
        details: Any,
    ) -> bool:
        """Move status from expected to new_status, storing the detail payload.

        Returns False if the stored status no longer equals expected.
        """
        applied = self._guarded_update(
            certificate_id,
            [Certificate.verification_status == expected.value],
            {"verification_status": new_status.value, "verification_details": details},
        )
        if not applied:
            log.info(
                f"Status update {expected.value}->{new_status.value} lost for {certificate_id}"
            )
        return applied

    def set_ledger_address_if_absent(self, certificate_id: str, address: str) -> bool:
        """Record the ledger address unless one is already stored."""
        return self._guarded_update(
            certificate_id,
            [Certificate.ledger_address.is_(None)],
            {"ledger_address": address},
        )

    def set_mint_id_if_verified(self, certificate_id: str, mint_id: str) -> bool:
        """Record the mint id if none is stored and the certificate is verified."""
        return self._guarded_update(
            certificate_id,
            [
                Certificate.mint_id.is_(None),
                Certificate.verification_status == CertificateStatus.VERIFIED.value,
            ],
            {"mint_id": mint_id},
        )
