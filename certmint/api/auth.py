"""Wallet login and current-user endpoints."""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from certmint.api.deps import get_context, get_db
from certmint.api.models import LoginRequest, LoginResponse, UserResponse
from certmint.auth.backend import WalletPrincipal, require_auth
from certmint.auth.identity import IdentityBinding
from certmint.auth.users import UserStore
from certmint.context import ServiceContext
from certmint.core.exceptions import NotFoundError

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    body: LoginRequest,
    context: ServiceContext = Depends(get_context),
) -> LoginResponse:
    """Exchange a wallet-signed message for a session token.

    The user is created on the first login from an unseen wallet.
    Repeated bad signatures from one address are rate limited.
    """
    result = await IdentityBinding(context).login(
        body.message, body.signature, body.public_key, request=request
    )
    return LoginResponse(
        token=result.token,
        expires_at=result.expires_at,
        user=UserResponse.model_validate(result.user),
    )


@router.get("/me", response_model=UserResponse)
def me(
    principal: WalletPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
) -> UserResponse:
    user = UserStore(db).get(principal.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return UserResponse.model_validate(user)
