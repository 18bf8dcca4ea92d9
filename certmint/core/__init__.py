# certmint core - shared exceptions and logging

from certmint.core.exceptions import (
    AuthError,
    AuthFailure,
    CertMintError,
    InvalidStateError,
    NotFoundError,
    RateLimitedError,
    UpstreamError,
    ValidationError,
)
from certmint.core.logging import configure_logging, JsonFormatter

__all__ = [
    "AuthError",
    "AuthFailure",
    "CertMintError",
    "InvalidStateError",
    "NotFoundError",
    "RateLimitedError",
    "UpstreamError",
    "ValidationError",
    "configure_logging",
    "JsonFormatter",
]
