"""HTTP client for the external certificate verification oracle.

The oracle is keyed by (user id, certificate id) and authenticated with a
bearer token. A 2xx response carries ``{"status": str, "details": object}``;
anything else is an upstream failure.
"""

import logging
from typing import Optional

import httpx

from certmint.clients.base import OracleVerdict, VerificationOracle
from certmint.core.exceptions import UpstreamError

log = logging.getLogger(__name__)

SERVICE_NAME = "oracle"


class HttpVerificationOracle(VerificationOracle):
    """Verification oracle reached over HTTPS.

    Uses a persistent httpx.AsyncClient for connection reuse.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the oracle client.

        Args:
            base_url: Oracle base URL
            api_key: Bearer token for the oracle
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    async def verify(self, user_id: str, certificate_id: str) -> OracleVerdict:
        url = f"{self.base_url}/verify/{user_id}/{certificate_id}"

        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            log.error(f"Verification oracle request failed: {e}")
            raise UpstreamError(SERVICE_NAME, f"Failed to verify certificate: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            error_text = response.text or response.reason_phrase
            raise UpstreamError(
                SERVICE_NAME,
                f"Verification worker error ({response.status_code}): {error_text}",
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(SERVICE_NAME, "Verification worker returned invalid JSON") from e

        status = body.get("status") if isinstance(body, dict) else None
        details = body.get("details", {}) if isinstance(body, dict) else None
        if not isinstance(status, str) or not isinstance(details, dict):
            raise UpstreamError(
                SERVICE_NAME, "Verification worker returned a malformed verdict"
            )

        log.info(f"Oracle verdict for {certificate_id}: {status}")
        return OracleVerdict(status=status, details=details)

    async def aclose(self) -> None:
        await self._client.aclose()
