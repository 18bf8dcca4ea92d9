"""Minting coordinator.

Anchors a verified certificate's document on the ledger and mints a token
for it. Two guarded writes, in order:

1. ``ledger_address`` is stored as soon as the upload returns (only if none
   is stored yet), so a retry after a failed mint skips re-anchoring.
2. ``mint_id`` is stored only while no mint id exists and the certificate
   is still verified.
"""

import logging

from certmint.auth.users import UserStore
from certmint.certificates.log import VerificationLogWriter
from certmint.certificates.outcomes import MintResult, Outcome
from certmint.certificates.store import CertificateStore
from certmint.clients.base import LedgerTag, MintRequest
from certmint.context import ServiceContext
from certmint.core.exceptions import InvalidStateError, NotFoundError
from certmint.db.models import Certificate, CertificateStatus, LogStatus, LogStep

log = logging.getLogger(__name__)

DOCUMENT_CONTENT_TYPE = "application/pdf"


def ledger_tags(cert: Certificate) -> list[LedgerTag]:
    return [
        LedgerTag("Content-Type", DOCUMENT_CONTENT_TYPE),
        LedgerTag("Certificate-Id", cert.id),
        LedgerTag("User-Id", cert.user_id),
        LedgerTag("Title", cert.title),
    ]


class MintingCoordinator:
    """Anchors and mints verified certificates, at most once each."""

    def __init__(self, context: ServiceContext):
        self.context = context
        self._log: VerificationLogWriter = context.verification_log

    async def mint(self, certificate_id: str, acting_user_id: str) -> MintResult:
        """Mint a token for a verified certificate owned by acting_user_id.

        Returns:
            TRANSITIONED with the new mint id, or ALREADY_IN_STATE with the
            stored one if the certificate was minted before.

        Raises:
            NotFoundError: Certificate absent or owned by another user
            InvalidStateError: Certificate not verified, or no owner wallet
            UpstreamError: Document store, ledger or minter failed
        """
        async with self.context.certificate_locks.hold(certificate_id):
            with self.context.session_scope() as db:
                cert = CertificateStore(db).get_owned(certificate_id, acting_user_id)
                if cert is None:
                    raise NotFoundError("Certificate not found")
                if cert.status is not CertificateStatus.VERIFIED:
                    raise InvalidStateError("Certificate must be verified before minting")
                if cert.mint_id:
                    return MintResult(
                        certificate_id=certificate_id,
                        outcome=Outcome.ALREADY_IN_STATE,
                        mint_id=cert.mint_id,
                        ledger_address=cert.ledger_address,
                    )
                user = UserStore(db).get(acting_user_id)
                wallet = user.wallet_address if user is not None else None

            try:
                if not wallet:
                    raise InvalidStateError("User wallet address not found")
                ledger_address = await self._anchor(cert)
                mint_id = await self.context.minter.mint(
                    MintRequest(
                        ledger_address=ledger_address,
                        title=cert.title,
                        description=f"{cert.institution_name} - {cert.program_name}",
                        owner_wallet=wallet,
                        certificate_id=certificate_id,
                        user_id=acting_user_id,
                    )
                )
                with self.context.session_scope() as db:
                    store = CertificateStore(db)
                    applied = store.set_mint_id_if_verified(certificate_id, mint_id)
                    current = None if applied else store.get(certificate_id)
            except Exception as e:
                log.warning(
                    f"Minting failed for {certificate_id}: {e}",
                    extra={"certificate_id": certificate_id},
                )
                self._log.record(certificate_id, LogStep.NFT_MINTING, LogStatus.ERROR.value, str(e))
                self.context.audit.log_certificate(
                    "mint", acting_user_id, certificate_id, status="error",
                    details={"error": str(e)},
                )
                raise

            if not applied:
                return self._lost_race(certificate_id, acting_user_id, mint_id, current)

            self._log.record(
                certificate_id,
                LogStep.NFT_MINTING,
                LogStatus.SUCCESS.value,
                {"mintId": mint_id, "ledgerAddress": ledger_address},
            )
            self.context.audit.log_certificate(
                "mint", acting_user_id, certificate_id, details={"mint_id": mint_id}
            )
            log.info(f"Minted {mint_id} for certificate {certificate_id}", extra={"certificate_id": certificate_id})
            return MintResult(
                certificate_id=certificate_id,
                outcome=Outcome.TRANSITIONED,
                mint_id=mint_id,
                ledger_address=ledger_address,
            )

    async def _anchor(self, cert: Certificate) -> str:
        """Return the certificate's ledger address, uploading the document if needed."""
        if cert.ledger_address:
            log.info(f"Reusing ledger address for {cert.id}", extra={"certificate_id": cert.id})
            return cert.ledger_address

        data = await self.context.documents.get(cert.document_key)
        address = await self.context.ledger.upload(data, ledger_tags(cert))

        with self.context.session_scope() as db:
            store = CertificateStore(db)
            if store.set_ledger_address_if_absent(cert.id, address):
                return address
            current = store.get(cert.id)
            if current is None:
                raise NotFoundError("Certificate not found")
            log.info(f"Ledger address for {cert.id} already stored, discarding {address}")
            return current.ledger_address

    def _lost_race(
        self,
        certificate_id: str,
        acting_user_id: str,
        mint_id: str,
        current: Certificate | None,
    ) -> MintResult:
        if current is None or not current.mint_id:
            # Row deleted, or it left verified while we were minting.
            error = InvalidStateError(f"Certificate changed during minting; mint {mint_id} not recorded")
            self._log.record(certificate_id, LogStep.NFT_MINTING, LogStatus.ERROR.value, str(error))
            raise error

        log.error(
            f"Mint {mint_id} for {certificate_id} orphaned: {current.mint_id} already recorded",
            extra={"certificate_id": certificate_id},
        )
        self._log.record(
            certificate_id,
            LogStep.NFT_MINTING,
            LogStatus.ERROR.value,
            {"orphanedMintId": mint_id, "mintId": current.mint_id},
        )
        self.context.audit.log_certificate(
            "mint", acting_user_id, certificate_id, status="noop",
            details={"mint_id": current.mint_id},
        )
        return MintResult(
            certificate_id=certificate_id,
            outcome=Outcome.ALREADY_IN_STATE,
            mint_id=current.mint_id,
            ledger_address=current.ledger_address,
        )
