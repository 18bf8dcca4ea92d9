"""Bearer-token authentication for the HTTP surface.

BearerTokenBackend plugs into Starlette's AuthenticationMiddleware. A
request without an Authorization header passes through unauthenticated and
the route decides (require_auth); a header carrying a bad or expired
credential is rejected by the middleware with 401.
"""

import logging
from dataclasses import dataclass

from fastapi import Request
from starlette.authentication import (
    AuthCredentials,
    AuthenticationBackend,
    AuthenticationError,
    BaseUser,
)
from starlette.requests import HTTPConnection
from starlette.responses import JSONResponse

from certmint.auth.token import verify_session_token
from certmint.core.exceptions import AuthError, AuthFailure

log = logging.getLogger(__name__)


@dataclass
class WalletPrincipal(BaseUser):
    """Authenticated wallet user, as carried on request.user."""

    user_id: str
    wallet_address: str

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self.wallet_address

    @property
    def identity(self) -> str:
        return self.user_id


class BearerTokenBackend(AuthenticationBackend):
    """Authenticates ``Authorization: Bearer <session token>`` headers.

    The signing secret is read from the application's ServiceContext.
    """

    def __init__(self, exempt_paths: set[str] | None = None):
        self.exempt_paths = exempt_paths or set()

    async def authenticate(
        self, conn: HTTPConnection
    ) -> tuple[AuthCredentials, WalletPrincipal] | None:
        if conn.url.path in self.exempt_paths:
            return None

        header = conn.headers.get("Authorization")
        if not header:
            return None

        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationError("Invalid token")

        secret = conn.app.state.context.settings.jwt_secret
        try:
            claims = verify_session_token(token.strip(), secret)
        except AuthError as e:
            raise AuthenticationError(e.message)

        return AuthCredentials(["authenticated"]), WalletPrincipal(
            user_id=claims.user_id, wallet_address=claims.wallet_address
        )


def on_auth_error(conn: HTTPConnection, exc: Exception) -> JSONResponse:
    """Render middleware authentication failures in the service error shape."""
    return JSONResponse(
        status_code=401,
        content={"error": AuthFailure.INVALID_TOKEN.value, "detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_auth(request: Request) -> WalletPrincipal:
    """FastAPI dependency returning the authenticated principal.

    Raises:
        AuthError: MISSING_CREDENTIALS if the request is unauthenticated
    """
    user = request.user
    if not isinstance(user, WalletPrincipal):
        raise AuthError(AuthFailure.MISSING_CREDENTIALS, "Authentication required")
    return user
