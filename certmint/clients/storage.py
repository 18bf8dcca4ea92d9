"""Document storage backends.

- AzureBlobDocumentStore: Azure Blob Storage with SAS URLs for presigning
- InMemoryDocumentStore: process-local dict, for development and tests
"""

import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import quote, urlencode

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobSasPermissions, ContentSettings, generate_blob_sas
from azure.storage.blob.aio import BlobServiceClient

from certmint.clients.base import DocumentStore, PresignedUrl
from certmint.core.exceptions import UpstreamError, ValidationError

log = logging.getLogger(__name__)

SERVICE_NAME = "storage"
PRESIGN_METHODS = {"GET", "PUT"}


def _check_method(method: str) -> str:
    method = method.upper()
    if method not in PRESIGN_METHODS:
        raise ValidationError(f"Unsupported presign method: {method}")
    return method


class AzureBlobDocumentStore(DocumentStore):
    """Azure Blob Storage document store.

    Presigned URLs are blob SAS tokens signed with the account key from the
    connection string.
    """

    def __init__(self, connection_string: str, container: str, presign_ttl_seconds: int = 3600):
        self._service = BlobServiceClient.from_connection_string(connection_string)
        self._container = container
        self._presign_ttl = presign_ttl_seconds

    def _blob(self, key: str):
        return self._service.get_blob_client(container=self._container, blob=key)

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        blob = self._blob(key)
        try:
            await blob.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        except AzureError as e:
            log.error(f"Blob upload failed for {key}: {e}")
            raise UpstreamError(SERVICE_NAME, f"Failed to store document: {e}") from e
        log.info(f"Stored {len(data)} bytes at {key}")
        return blob.url

    async def get(self, key: str) -> bytes:
        try:
            downloader = await self._blob(key).download_blob()
            return await downloader.readall()
        except ResourceNotFoundError as e:
            raise UpstreamError(SERVICE_NAME, f"Document not found: {key}") from e
        except AzureError as e:
            raise UpstreamError(SERVICE_NAME, f"Failed to fetch document: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            await self._blob(key).delete_blob()
            return True
        except ResourceNotFoundError:
            return False
        except AzureError as e:
            raise UpstreamError(SERVICE_NAME, f"Failed to delete document: {e}") from e

    def presign(self, method: str, key: str, content_type: str) -> PresignedUrl:
        method = _check_method(method)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self._presign_ttl)
        if method == "PUT":
            permission = BlobSasPermissions(create=True, write=True)
        else:
            permission = BlobSasPermissions(read=True)

        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self._container,
            blob_name=key,
            account_key=self._service.credential.account_key,
            permission=permission,
            expiry=expires_at,
            content_type=content_type,
        )
        return PresignedUrl(url=f"{self._blob(key).url}?{sas}", expires_at=expires_at)

    def url_for(self, key: str) -> str:
        return self._blob(key).url

    async def aclose(self) -> None:
        await self._service.close()


class InMemoryDocumentStore(DocumentStore):
    """Process-local document store.

    Presigned URLs are opaque ``memory://`` locations; clients "upload" by
    calling put() directly.
    """

    def __init__(self, container: str = "certificates", presign_ttl_seconds: int = 3600):
        self._container = container
        self._presign_ttl = presign_ttl_seconds
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = (bytes(data), content_type)
        return self.url_for(key)

    async def get(self, key: str) -> bytes:
        try:
            return self.objects[key][0]
        except KeyError:
            raise UpstreamError(SERVICE_NAME, f"Document not found: {key}")

    async def delete(self, key: str) -> bool:
        return self.objects.pop(key, None) is not None

    def presign(self, method: str, key: str, content_type: str) -> PresignedUrl:
        method = _check_method(method)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self._presign_ttl)
        query = urlencode({
            "method": method,
            "content_type": content_type,
            "expires": int(expires_at.timestamp()),
        })
        return PresignedUrl(url=f"{self.url_for(key)}?{query}", expires_at=expires_at)

    def url_for(self, key: str) -> str:
        return f"memory://{self._container}/{quote(key)}"
