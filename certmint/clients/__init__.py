"""External collaborator interfaces and their implementations."""

from certmint.clients.base import (
    DocumentStore,
    LedgerTag,
    LedgerUploader,
    MintingService,
    MintRequest,
    OracleVerdict,
    PresignedUrl,
    VerificationOracle,
)
from certmint.clients.fakes import (
    FakeLedgerUploader,
    FakeMintingService,
    FakeVerificationOracle,
)
from certmint.clients.storage import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "LedgerTag",
    "LedgerUploader",
    "MintingService",
    "MintRequest",
    "OracleVerdict",
    "PresignedUrl",
    "VerificationOracle",
    "FakeLedgerUploader",
    "FakeMintingService",
    "FakeVerificationOracle",
    "InMemoryDocumentStore",
]
