"""Storage service for generated documents in Supabase storage."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
from urllib.parse import quote
from uuid import uuid4

import httpx

from labforms.core.config import settings
from labforms.core.exceptions import APITimeoutError, StorageError
from labforms.schemas.documents import StoredObject
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseBlobStore(ABC):
    """Key addressed object store holding generated documents."""

    @abstractmethod
    async def upload(
        self,
        content: bytes,
        file_name: str,
        idempotency_hint: str,
        content_type: str = "application/pdf",
    ) -> StoredObject:
        """Store ``content`` under a fresh key and return its reference."""
        pass

    @abstractmethod
    async def delete(self, keys: Sequence[str]) -> None:
        """Remove objects. Keys that no longer exist are ignored."""
        pass


class StorageService(BaseBlobStore):
    """Service for managing generated documents in Supabase storage.

    Every upload gets a new key, so replacing a document never overwrites the
    object that the previous version still points at.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        service_role_key: Optional[str] = None,
        bucket: Optional[str] = None,
        key_prefix: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.url = (url if url is not None else settings.supabase_url).rstrip("/")
        self.service_role_key = (
            service_role_key if service_role_key is not None else settings.supabase_service_role_key
        )
        self.bucket = bucket or settings.storage.bucket
        self.key_prefix = (key_prefix if key_prefix is not None else settings.storage.key_prefix).strip("/")
        self.timeout = timeout or settings.http_timeout
        self.base_api_url = f"{self.url}/storage/v1"
        self.headers = {
            "Authorization": f"Bearer {self.service_role_key}",
            "apikey": self.service_role_key,
        }

    def build_key(self, file_name: str, idempotency_hint: str) -> str:
        parts = [self.key_prefix, idempotency_hint, uuid4().hex, file_name]
        return "/".join(part for part in parts if part)

    def public_url(self, key: str) -> str:
        return f"{self.base_api_url}/object/public/{self.bucket}/{quote(key)}"

    async def upload(
        self,
        content: bytes,
        file_name: str,
        idempotency_hint: str,
        content_type: str = "application/pdf",
    ) -> StoredObject:
        """Upload a document to Supabase storage.

        Args:
            content: File bytes
            file_name: File name, kept as the last key segment
            idempotency_hint: Stable grouping segment such as ``tor-<booking id>``
            content_type: MIME type sent with the object

        Returns:
            StoredObject with the storage key and retrieval URL

        Raises:
            APITimeoutError: If storage does not answer in time
            StorageError: If the upload is rejected or the request fails
        """
        key = self.build_key(file_name, idempotency_hint)
        upload_url = f"{self.base_api_url}/object/{self.bucket}/{quote(key)}"

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    upload_url,
                    headers={**self.headers, "Content-Type": content_type, "x-upsert": "false"},
                    content=content,
                    timeout=self.timeout
                )
        except httpx.TimeoutException as e:
            LOGGER.error(f"Timed out uploading {file_name} to Supabase", extra={"key": key})
            raise APITimeoutError(f"Upload timed out: {file_name}", original_error=e) from e
        except httpx.HTTPError as e:
            LOGGER.error(f"Error uploading file to Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage upload error: {str(e)}", original_error=e) from e

        if response.status_code not in (200, 201):
            LOGGER.error(
                f"Failed to upload file to Supabase: {response.text}",
                extra={"bucket": self.bucket, "key": key, "status_code": response.status_code}
            )
            raise StorageError(f"Upload failed: {response.text}")

        LOGGER.info(
            f"Uploaded {file_name} ({len(content)} bytes)",
            extra={"bucket": self.bucket, "key": key}
        )
        return StoredObject(key=key, url=self.public_url(key))

    async def delete(self, keys: Sequence[str]) -> None:
        """Delete objects from the bucket in one request.

        Raises:
            StorageError: If storage rejects the request
        """
        prefixes: List[str] = [key for key in keys if key]
        if not prefixes:
            return

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    "DELETE",
                    f"{self.base_api_url}/object/{self.bucket}",
                    headers=self.headers,
                    json={"prefixes": prefixes},
                    timeout=self.timeout
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error deleting files from Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage delete error: {str(e)}", original_error=e) from e

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to delete files from Supabase: {response.text}",
                extra={"bucket": self.bucket, "keys": prefixes, "status_code": response.status_code}
            )
            raise StorageError(f"Delete failed: {response.text}")

        LOGGER.info(f"Deleted {len(prefixes)} objects", extra={"bucket": self.bucket, "keys": prefixes})
