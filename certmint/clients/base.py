"""Interfaces for the external collaborators the coordinators depend on.

Each collaborator has an HTTP/SDK-backed implementation and a
deterministic in-process fake (see certmint.clients.fakes). Coordinators
only ever see these interfaces, injected through the ServiceContext.

Implementations must report failures as UpstreamError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class OracleVerdict:
    """Verdict returned by the verification oracle.

    Attributes:
        status: Verdict tag, e.g. "verified" or "rejected"
        details: Structured detail payload (stored verbatim)
    """

    status: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LedgerTag:
    """Name/value tag attached to a ledger upload."""

    name: str
    value: str


@dataclass(frozen=True)
class MintRequest:
    """Everything the minting service needs to issue one token."""

    ledger_address: str
    title: str
    description: str
    owner_wallet: str
    certificate_id: str
    user_id: str


@dataclass(frozen=True)
class PresignedUrl:
    """A time-limited URL granting one operation on one object."""

    url: str
    expires_at: datetime


class VerificationOracle(ABC):
    """External authority that adjudicates certificate authenticity."""

    @abstractmethod
    async def verify(self, user_id: str, certificate_id: str) -> OracleVerdict:
        """Request a verdict for a certificate.

        Raises:
            UpstreamError: On network failure, non-2xx or malformed response
        """
        ...

    async def aclose(self) -> None:
        """Release any held connections."""
        return None


class LedgerUploader(ABC):
    """Permanent, content-addressed store used for anchoring documents."""

    @abstractmethod
    async def upload(self, data: bytes, tags: list[LedgerTag]) -> str:
        """Upload bytes and return their permanent address.

        Raises:
            UpstreamError: If the upload is not accepted
        """
        ...

    async def aclose(self) -> None:
        return None


class MintingService(ABC):
    """Issues a unique token record binding a ledger address to an owner."""

    @abstractmethod
    async def mint(self, request: MintRequest) -> str:
        """Mint a token and return its mint identifier.

        Raises:
            UpstreamError: If minting fails
        """
        ...

    async def aclose(self) -> None:
        return None


class DocumentStore(ABC):
    """Object storage for certificate documents and profile photos."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store an object and return its URL."""
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Fetch an object's bytes.

        Raises:
            UpstreamError: If the object is missing or the store fails
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete an object. Returns True if it existed."""
        ...

    @abstractmethod
    def presign(self, method: str, key: str, content_type: str) -> PresignedUrl:
        """Create a presigned URL for a client-side upload or download."""
        ...

    @abstractmethod
    def url_for(self, key: str) -> str:
        """Public (unsigned) URL of an object."""
        ...

    async def aclose(self) -> None:
        return None
