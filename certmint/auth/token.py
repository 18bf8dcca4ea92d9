"""Signed session credentials.

After a successful wallet login the service issues an HS256 JWT binding
the user id and wallet address, valid for a fixed period (7 days by
default). Verification is a pure function of the token and the secret.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from certmint.config import JWT_ALGORITHM
from certmint.core.exceptions import AuthError, AuthFailure

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionToken:
    """An issued session credential."""

    token: str
    expires_at: datetime


@dataclass(frozen=True)
class SessionClaims:
    """Claims recovered from a verified session credential."""

    user_id: str
    wallet_address: str
    expires_at: datetime


def issue_session_token(
    user_id: str,
    wallet_address: str,
    secret: str,
    ttl_seconds: int,
    now: datetime | None = None,
) -> SessionToken:
    """Sign a session credential for a user.

    Args:
        user_id: The authenticated user's id
        wallet_address: The wallet the user logged in with
        secret: HMAC signing secret
        ttl_seconds: Lifetime of the credential
        now: Issue time (defaults to current UTC time)
    """
    issued_at = now or datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(seconds=ttl_seconds)
    payload = {
        "sub": user_id,
        "userId": user_id,
        "walletAddress": wallet_address,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)
    return SessionToken(token=token, expires_at=expires_at)


def verify_session_token(token: str, secret: str) -> SessionClaims:
    """Verify a session credential and return its claims.

    Raises:
        AuthError: INVALID_TOKEN on a bad signature, malformed token,
            missing claims or expiry.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError(AuthFailure.INVALID_TOKEN, "Session token expired")
    except jwt.InvalidTokenError as e:
        log.debug(f"Rejected session token: {e}")
        raise AuthError(AuthFailure.INVALID_TOKEN, "Invalid token")

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise AuthError(AuthFailure.INVALID_TOKEN, "Invalid token")

    return SessionClaims(
        user_id=user_id,
        wallet_address=str(payload.get("walletAddress", "")),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
