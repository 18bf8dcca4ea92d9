"""Minting endpoint."""
import logging

from fastapi import APIRouter, Depends

from certmint.api.deps import get_context
from certmint.api.models import MintResponse
from certmint.auth.backend import WalletPrincipal, require_auth
from certmint.certificates.minting import MintingCoordinator
from certmint.certificates.outcomes import Outcome
from certmint.context import ServiceContext

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/mint", tags=["mint"])


@router.post("/{certificate_id}", response_model=MintResponse)
async def mint_certificate(
    certificate_id: str,
    principal: WalletPrincipal = Depends(require_auth),
    context: ServiceContext = Depends(get_context),
) -> MintResponse:
    """Anchor a verified certificate on the ledger and mint its token."""
    result = await MintingCoordinator(context).mint(certificate_id, principal.user_id)
    return MintResponse(
        id=result.certificate_id,
        mint_id=result.mint_id,
        ledger_address=result.ledger_address,
        outcome=result.outcome.value,
        message=(
            "Certificate has already been minted"
            if result.outcome is Outcome.ALREADY_IN_STATE
            else None
        ),
    )
