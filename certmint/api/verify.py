"""Verification endpoints."""
import logging

from fastapi import APIRouter, Depends

from certmint.api.deps import get_context
from certmint.api.models import VerificationResponse
from certmint.auth.backend import WalletPrincipal, require_auth
from certmint.certificates.outcomes import Outcome, VerificationResult
from certmint.certificates.verification import VerificationCoordinator
from certmint.context import ServiceContext

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/verify", tags=["verify"])

ALREADY_VERIFIED_MESSAGE = "Certificate has already been verified or rejected"


def _response(result: VerificationResult, message: str | None = None) -> VerificationResponse:
    return VerificationResponse(
        id=result.certificate_id,
        status=result.status,
        details=result.details,
        outcome=result.outcome.value,
        message=message,
    )


@router.get("/{certificate_id}", response_model=VerificationResponse)
def verification_status(
    certificate_id: str,
    principal: WalletPrincipal = Depends(require_auth),
    context: ServiceContext = Depends(get_context),
) -> VerificationResponse:
    """Current verification status; never contacts the oracle."""
    return _response(VerificationCoordinator(context).current(certificate_id, principal.user_id))


@router.post("/{certificate_id}", response_model=VerificationResponse)
async def request_verification(
    certificate_id: str,
    principal: WalletPrincipal = Depends(require_auth),
    context: ServiceContext = Depends(get_context),
) -> VerificationResponse:
    """Verify a pending certificate with the external oracle."""
    result = await VerificationCoordinator(context).request_verification(
        certificate_id, principal.user_id
    )
    message = ALREADY_VERIFIED_MESSAGE if result.outcome is Outcome.ALREADY_IN_STATE else None
    return _response(result, message)
