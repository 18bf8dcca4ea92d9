"""Exception hierarchy for certmint.

Every error the service surfaces to a caller derives from CertMintError and
carries a stable HTTP status code and machine-readable error code. The API
layer turns these into ``{"error": code, "detail": message}`` payloads.
"""

from enum import Enum


class CertMintError(Exception):
    """Base exception for all certmint errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, str]:
        return {"error": self.code, "detail": self.message}


class NotFoundError(CertMintError):
    """Certificate or user is absent, or not owned by the acting user.

    Cross-owner access deliberately maps here (not 403) so that callers
    cannot probe for the existence of other users' certificates.
    """

    status_code = 404
    code = "not_found"


class InvalidStateError(CertMintError):
    """A status precondition for the requested transition does not hold."""

    status_code = 400
    code = "invalid_state"


class ValidationError(CertMintError):
    """Malformed client input."""

    status_code = 400
    code = "validation_error"


class RateLimitedError(CertMintError):
    """Too many failed login attempts from one client."""

    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after


class AuthFailure(str, Enum):
    """Reasons an authentication attempt can fail."""

    INVALID_SIGNATURE = "invalid_signature"
    INVALID_TOKEN = "invalid_token"
    MISSING_CREDENTIALS = "missing_credentials"


class AuthError(CertMintError):
    """Bad wallet signature, or an invalid/expired session credential."""

    status_code = 401

    def __init__(self, reason: AuthFailure, message: str):
        super().__init__(message)
        self.reason = reason

    @property
    def code(self) -> str:  # type: ignore[override]
        return self.reason.value


class UpstreamError(CertMintError):
    """An external collaborator (oracle, ledger, minter, storage) failed.

    Attributes:
        service: Short name of the failing collaborator, e.g. "oracle"
    """

    status_code = 502
    code = "upstream_error"

    def __init__(self, service: str, message: str):
        super().__init__(message)
        self.service = service
