"""Ledger anchoring through a bundler-style upload gateway.

Document bytes are POSTed to the bundler with their tags; the returned
transaction id becomes a permanent address under the ledger gateway
(``https://arweave.net/<id>``).
"""

import json
import logging
from typing import Optional

import httpx

from certmint.clients.base import LedgerTag, LedgerUploader
from certmint.core.exceptions import UpstreamError

log = logging.getLogger(__name__)

SERVICE_NAME = "ledger"
TAGS_HEADER = "X-Ledger-Tags"


class HttpLedgerUploader(LedgerUploader):
    """Uploads documents to a content-addressed ledger via HTTP."""

    def __init__(
        self,
        bundler_url: str,
        gateway_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bundler_url = bundler_url.rstrip("/")
        self.gateway_url = gateway_url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, headers=headers)

    async def upload(self, data: bytes, tags: list[LedgerTag]) -> str:
        tag_header = json.dumps([{"name": t.name, "value": t.value} for t in tags])

        try:
            response = await self._client.post(
                f"{self.bundler_url}/tx",
                content=data,
                headers={
                    "Content-Type": "application/octet-stream",
                    TAGS_HEADER: tag_header,
                },
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                SERVICE_NAME,
                f"Failed to upload to ledger ({e.response.status_code}): {e.response.text}",
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            log.error(f"Ledger upload error: {e}")
            raise UpstreamError(SERVICE_NAME, f"Failed to upload to ledger: {e}") from e

        tx_id = body.get("id") if isinstance(body, dict) else None
        if not isinstance(tx_id, str) or not tx_id:
            raise UpstreamError(SERVICE_NAME, "Ledger upload response missing transaction id")

        address = f"{self.gateway_url}/{tx_id}"
        log.info(f"Anchored {len(data)} bytes at {address}")
        return address

    async def aclose(self) -> None:
        await self._client.aclose()
