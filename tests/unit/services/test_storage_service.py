"""Unit tests for the Supabase storage client."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from labforms.core.exceptions import APITimeoutError, StorageError
from labforms.services.storage_service import StorageService


@pytest.fixture
def storage() -> StorageService:
    return StorageService(
        url="https://storage.test/",
        service_role_key="service-role-key",
        bucket="booking-documents",
        key_prefix="forms",
        timeout=5,
    )


class TestStorageService:
    """Tests for uploads and deletes against the storage REST API."""

    @pytest.mark.asyncio
    async def test_upload_uses_fresh_key_and_returns_public_url(self, storage):
        mock_post = AsyncMock(return_value=httpx.Response(200, json={"Key": "ignored"}))

        with patch.object(httpx.AsyncClient, "post", mock_post):
            stored = await storage.upload(b"%PDF-1.4", "service-form-TOR-SF-2025-00001.pdf", "tor-123")

        parts = stored.key.split("/")
        assert parts[0] == "forms"
        assert parts[1] == "tor-123"
        assert len(parts[2]) == 32
        assert parts[3] == "service-form-TOR-SF-2025-00001.pdf"
        assert stored.url == (
            f"https://storage.test/storage/v1/object/public/booking-documents/{stored.key}"
        )

        url = mock_post.call_args.args[0]
        assert url == f"https://storage.test/storage/v1/object/booking-documents/{stored.key}"
        headers = mock_post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer service-role-key"
        assert headers["Content-Type"] == "application/pdf"
        assert headers["x-upsert"] == "false"
        assert mock_post.call_args.kwargs["content"] == b"%PDF-1.4"

    @pytest.mark.asyncio
    async def test_repeated_uploads_never_share_a_key(self, storage):
        mock_post = AsyncMock(return_value=httpx.Response(201, json={}))

        with patch.object(httpx.AsyncClient, "post", mock_post):
            first = await storage.upload(b"a", "form.pdf", "tor-123")
            second = await storage.upload(b"b", "form.pdf", "tor-123")

        assert first.key != second.key

    @pytest.mark.asyncio
    async def test_rejected_upload_raises_storage_error(self, storage):
        mock_post = AsyncMock(return_value=httpx.Response(400, text="Duplicate"))

        with patch.object(httpx.AsyncClient, "post", mock_post):
            with pytest.raises(StorageError) as exc_info:
                await storage.upload(b"a", "form.pdf", "tor-123")

        assert "Upload failed: Duplicate" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_upload_timeout(self, storage):
        mock_post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))

        with patch.object(httpx.AsyncClient, "post", mock_post):
            with pytest.raises(APITimeoutError):
                await storage.upload(b"a", "form.pdf", "tor-123")

    @pytest.mark.asyncio
    async def test_upload_transport_error(self, storage):
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with patch.object(httpx.AsyncClient, "post", mock_post):
            with pytest.raises(StorageError):
                await storage.upload(b"a", "form.pdf", "tor-123")

    @pytest.mark.asyncio
    async def test_delete_sends_prefixes(self, storage):
        mock_request = AsyncMock(return_value=httpx.Response(200, json=[]))

        with patch.object(httpx.AsyncClient, "request", mock_request):
            await storage.delete(["forms/tor-1/a/x.pdf", "", "forms/wa-1/b/y.pdf"])

        method, url = mock_request.call_args.args[:2]
        assert method == "DELETE"
        assert url == "https://storage.test/storage/v1/object/booking-documents"
        assert mock_request.call_args.kwargs["json"] == {
            "prefixes": ["forms/tor-1/a/x.pdf", "forms/wa-1/b/y.pdf"]
        }

    @pytest.mark.asyncio
    async def test_delete_nothing_makes_no_request(self, storage):
        mock_request = AsyncMock()

        with patch.object(httpx.AsyncClient, "request", mock_request):
            await storage.delete([])

        mock_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_delete_raises(self, storage):
        mock_request = AsyncMock(return_value=httpx.Response(500, text="boom"))

        with patch.object(httpx.AsyncClient, "request", mock_request):
            with pytest.raises(StorageError):
                await storage.delete(["forms/tor-1/a/x.pdf"])
