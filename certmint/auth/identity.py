"""Identity binding: wallet signature -> user -> session credential."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from starlette.requests import Request

from certmint.auth.signature import verify_wallet_signature
from certmint.auth.token import issue_session_token, verify_session_token
from certmint.auth.users import UserStore
from certmint.context import ServiceContext
from certmint.core.exceptions import AuthError, AuthFailure, ValidationError
from certmint.db.models import User

log = logging.getLogger(__name__)


def client_address(request: Optional[Request]) -> str:
    """Client IP for rate limiting, honouring the first X-Forwarded-For hop."""
    if request is None:
        return "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


@dataclass(frozen=True)
class WalletIdentity:
    """A user resolved from a verified wallet signature."""

    user: User
    created: bool


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str
    expires_at: datetime
    created: bool


class IdentityBinding:
    """Resolves verified wallet signatures to users and issues sessions."""

    def __init__(self, context: ServiceContext):
        self.context = context

    def authenticate(self, message: str, signature: str, public_key: str) -> WalletIdentity:
        """Return the user bound to public_key, creating it on first contact.

        Raises:
            AuthError: INVALID_SIGNATURE if the signature does not verify
        """
        if not verify_wallet_signature(message, signature, public_key):
            raise AuthError(AuthFailure.INVALID_SIGNATURE, "Invalid signature")

        with self.context.session_scope() as db:
            user, created = UserStore(db).get_or_create_for_wallet(public_key)
        return WalletIdentity(user=user, created=created)

    async def login(
        self,
        message: Optional[str],
        signature: Optional[str],
        public_key: Optional[str],
        request: Optional[Request] = None,
    ) -> LoginResult:
        """Authenticate a signed message and issue a session credential.

        Failed signatures count against the caller's address; once the
        limit is reached further attempts fail with RateLimitedError.
        """
        if not message or not signature or not public_key:
            raise ValidationError("Missing required parameters: message, signature, publicKey")

        client = client_address(request)
        limiter = self.context.rate_limiter
        await limiter.ensure_allowed(client)

        try:
            identity = self.authenticate(message, signature, public_key)
        except AuthError as e:
            await limiter.record_failure(client)
            self.context.audit.log_auth_failure(e.code, request)
            raise
        await limiter.record_success(client)
        user = identity.user

        settings = self.context.settings
        session = issue_session_token(
            user.id, user.wallet_address, settings.jwt_secret, settings.session_ttl_seconds
        )
        self.context.audit.log_login(user.id, user.wallet_address, identity.created, request)
        log.info(f"Login for user {user.id}", extra={"user_id": user.id})
        return LoginResult(user=user, token=session.token, expires_at=session.expires_at, created=identity.created)

    def resolve_token(self, token: str) -> str:
        """Return the user id embedded in a session credential.

        Raises:
            AuthError: INVALID_TOKEN on a bad signature or expiry
        """
        return verify_session_token(token, self.context.settings.jwt_secret).user_id
