"""HTTP client for the token minting service."""

import logging
from typing import Optional

import httpx

from certmint.clients.base import MintingService, MintRequest
from certmint.core.exceptions import UpstreamError

log = logging.getLogger(__name__)

SERVICE_NAME = "minter"


class HttpMintingService(MintingService):
    """Mints certificate tokens through a remote minting API.

    The metadata sent follows the common NFT layout: the anchored document
    is the metadata URI and the certificate/user ids travel as attributes.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, headers=headers)

    async def mint(self, request: MintRequest) -> str:
        payload = {
            "uri": request.ledger_address,
            "name": request.title,
            "description": request.description,
            "owner": request.owner_wallet,
            "attributes": [
                {"trait_type": "certificate_id", "value": request.certificate_id},
                {"trait_type": "user_id", "value": request.user_id},
            ],
        }

        try:
            response = await self._client.post(f"{self.base_url}/mint", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                SERVICE_NAME,
                f"Failed to mint NFT certificate ({e.response.status_code}): {e.response.text}",
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            log.error(f"NFT minting error: {e}")
            raise UpstreamError(SERVICE_NAME, f"Failed to mint NFT certificate: {e}") from e

        mint_id = body.get("mint") if isinstance(body, dict) else None
        if not isinstance(mint_id, str) or not mint_id:
            raise UpstreamError(SERVICE_NAME, "Minting response missing mint address")

        log.info(f"Minted {mint_id} for certificate {request.certificate_id}")
        return mint_id

    async def aclose(self) -> None:
        await self._client.aclose()
