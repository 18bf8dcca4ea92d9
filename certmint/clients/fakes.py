"""Deterministic in-process stand-ins for the external services.

Wired instead of the HTTP clients when CERTMINT_MOCK_SERVICES is true
(local development) and used directly by the test-suite. Every fake
records its calls and can be scripted to fail its next invocations.
"""

import hashlib
import json
import logging
from collections import deque
from typing import Any

from certmint.clients.base import (
    LedgerTag,
    LedgerUploader,
    MintingService,
    MintRequest,
    OracleVerdict,
    VerificationOracle,
)
from certmint.core.exceptions import UpstreamError

log = logging.getLogger(__name__)


class _ScriptedFailures:
    """Queue of failure messages consumed one per call."""

    def __init__(self, service: str):
        self._service = service
        self._queue: deque[str] = deque()

    def push(self, message: str, times: int = 1) -> None:
        self._queue.extend([message] * times)

    def raise_next(self) -> None:
        if self._queue:
            raise UpstreamError(self._service, self._queue.popleft())


class FakeVerificationOracle(VerificationOracle):
    """Oracle returning a fixed verdict, optionally per certificate."""

    def __init__(
        self,
        status: str = "verified",
        details: dict[str, Any] | None = None,
        verdicts: dict[str, OracleVerdict] | None = None,
    ):
        self.default = OracleVerdict(status=status, details=details if details is not None else {"score": 0.98})
        self.verdicts: dict[str, OracleVerdict] = dict(verdicts or {})
        self.calls: list[tuple[str, str]] = []
        self.failures = _ScriptedFailures("oracle")

    def fail_next(self, message: str = "Verification worker error (503): unavailable", times: int = 1) -> None:
        self.failures.push(message, times)

    async def verify(self, user_id: str, certificate_id: str) -> OracleVerdict:
        self.calls.append((user_id, certificate_id))
        self.failures.raise_next()
        return self.verdicts.get(certificate_id, self.default)


class FakeLedgerUploader(LedgerUploader):
    """Content-addressed fake ledger: address is the sha256 of data + tags."""

    def __init__(self, gateway_url: str = "https://arweave.net"):
        self.gateway_url = gateway_url.rstrip("/")
        self.uploads: list[tuple[bytes, list[LedgerTag]]] = []
        self.failures = _ScriptedFailures("ledger")

    def fail_next(self, message: str = "Failed to upload to ledger: gateway timeout", times: int = 1) -> None:
        self.failures.push(message, times)

    async def upload(self, data: bytes, tags: list[LedgerTag]) -> str:
        self.failures.raise_next()
        self.uploads.append((bytes(data), list(tags)))
        digest = hashlib.sha256()
        digest.update(data)
        digest.update(json.dumps([[t.name, t.value] for t in tags]).encode("utf-8"))
        address = f"{self.gateway_url}/{digest.hexdigest()}"
        log.info(f"Fake ledger anchored {len(data)} bytes at {address}")
        return address


class FakeMintingService(MintingService):
    """Fake minter deriving the mint id from its inputs and a call counter."""

    def __init__(self, prefix: str = "So1ana"):
        self.prefix = prefix
        self.requests: list[MintRequest] = []
        self.failures = _ScriptedFailures("minter")

    def fail_next(self, message: str = "Failed to mint NFT certificate: rpc unavailable", times: int = 1) -> None:
        self.failures.push(message, times)

    async def mint(self, request: MintRequest) -> str:
        self.failures.raise_next()
        self.requests.append(request)
        seed = "|".join([
            request.ledger_address,
            request.certificate_id,
            request.owner_wallet,
            str(len(self.requests)),
        ])
        mint_id = self.prefix + hashlib.sha256(seed.encode("utf-8")).hexdigest()[:32]
        log.info(f"Fake minted {mint_id} for certificate {request.certificate_id}")
        return mint_id
