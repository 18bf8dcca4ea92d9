"""Verification coordinator.

One call drives one pending certificate through the external oracle:

    pending --oracle verdict--> verified | rejected

The transition is applied with a conditional update keyed on
``status == 'pending'`` and every call that reaches the oracle ends with
exactly one verification log entry. Calls on a certificate that already
left ``pending`` return the stored state without touching the oracle.
"""

import logging
from typing import Any

from certmint.certificates.log import VerificationLogWriter
from certmint.certificates.outcomes import Outcome, VerificationResult
from certmint.certificates.store import CertificateStore
from certmint.context import ServiceContext
from certmint.core.exceptions import NotFoundError, UpstreamError
from certmint.db.models import CertificateStatus, LogStatus, LogStep

log = logging.getLogger(__name__)

# Oracle verdict tag -> terminal certificate status
VERDICTS = {
    "verified": CertificateStatus.VERIFIED,
    "rejected": CertificateStatus.REJECTED,
}


def log_status_for(status: CertificateStatus) -> str:
    """Log status recorded for a completed oracle call."""
    if status is CertificateStatus.VERIFIED:
        return LogStatus.SUCCESS.value
    return status.value


class VerificationCoordinator:
    """Applies oracle verdicts to pending certificates."""

    def __init__(self, context: ServiceContext):
        self.context = context
        self._log: VerificationLogWriter = context.verification_log

    async def request_verification(self, certificate_id: str, acting_user_id: str) -> VerificationResult:
        """Verify a certificate owned by acting_user_id.

        Returns:
            TRANSITIONED with the new status when this call applied the
            verdict; ALREADY_IN_STATE with the stored status otherwise.

        Raises:
            NotFoundError: Certificate absent or owned by another user
            UpstreamError: Oracle failed; the certificate stays pending
        """
        async with self.context.certificate_locks.hold(certificate_id):
            with self.context.session_scope() as db:
                cert = CertificateStore(db).get_owned(certificate_id, acting_user_id)
                if cert is None:
                    raise NotFoundError("Certificate not found")
                if cert.status.is_terminal:
                    log.info(
                        f"Certificate {certificate_id} already {cert.verification_status}",
                        extra={"certificate_id": certificate_id},
                    )
                    return VerificationResult(
                        certificate_id=certificate_id,
                        outcome=Outcome.ALREADY_IN_STATE,
                        status=cert.verification_status,
                        details=cert.verification_details,
                    )

            try:
                verdict = await self.context.oracle.verify(acting_user_id, certificate_id)
                new_status = VERDICTS.get(verdict.status)
                if new_status is None:
                    raise UpstreamError(
                        "oracle", f"Unexpected verification verdict: {verdict.status!r}"
                    )
            except Exception as e:
                self._record_error(certificate_id, e)
                self.context.audit.log_certificate(
                    "verify", acting_user_id, certificate_id, status="error",
                    details={"error": str(e)},
                )
                raise

            return self._apply(certificate_id, acting_user_id, new_status, verdict.details)

    def _apply(
        self,
        certificate_id: str,
        acting_user_id: str,
        new_status: CertificateStatus,
        details: Any,
    ) -> VerificationResult:
        try:
            with self.context.session_scope() as db:
                store = CertificateStore(db)
                applied = store.compare_and_set_status(
                    certificate_id, CertificateStatus.PENDING, new_status, details
                )
                current = None if applied else store.get(certificate_id)
        except Exception as e:
            self._record_error(certificate_id, e)
            raise

        if applied:
            self._log.record(
                certificate_id, LogStep.EXTERNAL_VERIFICATION, log_status_for(new_status), details
            )
            self.context.audit.log_certificate(
                "verify", acting_user_id, certificate_id, details={"status": new_status.value}
            )
            log.info(
                f"Certificate {certificate_id} -> {new_status.value}",
                extra={"certificate_id": certificate_id},
            )
            return VerificationResult(
                certificate_id=certificate_id,
                outcome=Outcome.TRANSITIONED,
                status=new_status.value,
                details=details,
            )

        if current is None:
            error = NotFoundError("Certificate not found")
            self._record_error(certificate_id, error)
            raise error

        # Another request applied a verdict between our read and our write.
        self._log.record(
            certificate_id,
            LogStep.EXTERNAL_VERIFICATION,
            log_status_for(new_status),
            {
                "superseded": True,
                "current_status": current.verification_status,
                "oracle": details,
            },
        )
        self.context.audit.log_certificate(
            "verify", acting_user_id, certificate_id, status="noop",
            details={"status": current.verification_status},
        )
        return VerificationResult(
            certificate_id=certificate_id,
            outcome=Outcome.ALREADY_IN_STATE,
            status=current.verification_status,
            details=current.verification_details,
        )

    def _record_error(self, certificate_id: str, error: Exception) -> None:
        log.warning(
            f"Verification failed for {certificate_id}: {error}",
            extra={"certificate_id": certificate_id},
        )
        self._log.record(certificate_id, LogStep.EXTERNAL_VERIFICATION, LogStatus.ERROR.value, str(error))

    def current(self, certificate_id: str, acting_user_id: str) -> VerificationResult:
        """Read the stored verification state without side effects."""
        with self.context.session_scope() as db:
            cert = CertificateStore(db).get_owned(certificate_id, acting_user_id)
            if cert is None:
                raise NotFoundError("Certificate not found")
            return VerificationResult(
                certificate_id=certificate_id,
                outcome=Outcome.ALREADY_IN_STATE,
                status=cert.verification_status,
                details=cert.verification_details,
            )
