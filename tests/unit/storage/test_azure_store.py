"""
Unit tests for the Azure blob store adapter.

The SDK service client is replaced by mocks; these tests cover argument
mapping and error translation only.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from azure.core.exceptions import HttpResponseError, ResourceExistsError, ResourceNotFoundError

from imagestore.storage.azure_backend import AzureBlobStore, _translate
from imagestore.storage.exceptions import (
    BlobNotFoundError,
    BlobStoreError,
    BlockIntegrityError,
    ContainerNotFoundError,
    InvalidBlockListError,
    NoPendingCopyError,
    SnapshotNotFoundError,
)
from imagestore.storage.memory import compute_md5


def _error(cls, code):
    error = cls(message=f"{code} happened")
    error.error_code = code
    return error


@pytest.fixture
def service():
    """Mock BlobServiceClient with one shared blob and container client."""
    client = MagicMock()
    blob_client = MagicMock()
    container_client = MagicMock()
    client.get_blob_client.return_value = blob_client
    client.get_container_client.return_value = container_client
    client.close = AsyncMock()
    return client


@pytest.fixture
def store(service):
    """Azure store around the mock service client."""
    return AzureBlobStore(service_client=service)


class TestTranslate:
    """Test SDK error translation."""

    @pytest.mark.parametrize("code,expected", [
        ("ContainerNotFound", ContainerNotFoundError),
        ("BlobNotFound", BlobNotFoundError),
        ("InvalidBlockList", InvalidBlockListError),
        ("Md5Mismatch", BlockIntegrityError),
        ("NoPendingCopyOperation", NoPendingCopyError),
    ])
    def test_known_codes(self, code, expected):
        """Test known error codes map to specific errors."""
        assert isinstance(_translate(_error(HttpResponseError, code), "photos", "a.jpg"), expected)

    def test_unknown_code(self):
        """Test unknown codes fall back to BlobStoreError."""
        error = _translate(_error(HttpResponseError, "ServerBusy"), "photos", "a.jpg")
        assert type(error) is BlobStoreError
        assert "ServerBusy" in str(error)


class TestAzureContainers:
    """Test container calls."""

    def test_requires_endpoint(self):
        """Test a store needs some way to reach the account."""
        with pytest.raises(ValueError):
            AzureBlobStore()

    @pytest.mark.asyncio
    async def test_create_container(self, store, service):
        """Test created and already-existing containers."""
        container_client = service.get_container_client.return_value
        container_client.create_container = AsyncMock(return_value=None)
        assert await store.create_container_if_not_exists("photos") is True

        container_client.create_container = AsyncMock(side_effect=ResourceExistsError(message="exists"))
        assert await store.create_container_if_not_exists("photos") is False

    @pytest.mark.asyncio
    async def test_delete_missing_container(self, store, service):
        """Test deleting a missing container reports False."""
        container_client = service.get_container_client.return_value
        container_client.delete_container = AsyncMock(side_effect=ResourceNotFoundError(message="missing"))

        assert await store.delete_container_if_exists("photos") is False


class TestAzureBlocks:
    """Test block staging and commit."""

    @pytest.mark.asyncio
    async def test_md5_checked_before_staging(self, store, service):
        """Test a wrong digest never reaches the service."""
        blob_client = service.get_blob_client.return_value
        blob_client.stage_block = AsyncMock()

        with pytest.raises(BlockIntegrityError) as exc_info:
            await store.put_block("photos", "a.jpg", "00000000", b"data", content_md5=compute_md5(b"other"))

        assert exc_info.value.block_id == "00000000"
        blob_client.stage_block.assert_not_called()

    @pytest.mark.asyncio
    async def test_stage_block_with_digest(self, store, service):
        """Test a correct digest stages with content validation."""
        blob_client = service.get_blob_client.return_value
        blob_client.stage_block = AsyncMock()

        await store.put_block("photos", "a.jpg", "00000000", b"data", content_md5=compute_md5(b"data"))

        blob_client.stage_block.assert_awaited_once_with("00000000", b"data", validate_content=True)

    @pytest.mark.asyncio
    async def test_commit_unknown_block(self, store, service):
        """Test InvalidBlockList from the service becomes InvalidBlockListError."""
        blob_client = service.get_blob_client.return_value
        blob_client.get_blob_properties = AsyncMock(side_effect=ResourceNotFoundError(message="missing"))
        blob_client.commit_block_list = AsyncMock(side_effect=_error(HttpResponseError, "InvalidBlockList"))

        with pytest.raises(InvalidBlockListError):
            await store.put_block_list("photos", "a.jpg", ["00000000"], content_type="image/jpeg")


class TestAzureReads:
    """Test downloads and copies."""

    @pytest.mark.asyncio
    async def test_download_missing_snapshot(self, store, service):
        """Test a missing snapshot becomes SnapshotNotFoundError."""
        blob_client = service.get_blob_client.return_value
        blob_client.download_blob = AsyncMock(side_effect=ResourceNotFoundError(message="missing"))

        with pytest.raises(SnapshotNotFoundError):
            await store.download_blob("photos", "a.jpg", snapshot_id="2024-01-01T00:00:00.0000000Z")

    @pytest.mark.asyncio
    async def test_download(self, store, service):
        """Test downloaded bytes are returned."""
        stream = MagicMock()
        stream.readall = AsyncMock(return_value=b"jpeg")
        blob_client = service.get_blob_client.return_value
        blob_client.download_blob = AsyncMock(return_value=stream)

        assert await store.download_blob("photos", "a.jpg") == b"jpeg"

    @pytest.mark.asyncio
    async def test_start_copy_returns_copy_id(self, store, service):
        """Test start_copy returns the service's copy id."""
        blob_client = service.get_blob_client.return_value
        blob_client.url = "https://acct.blob.core.windows.net/photos/a.jpg"
        blob_client.start_copy_from_url = AsyncMock(return_value={"copy_id": "copy-1", "copy_status": "pending"})

        assert await store.start_copy("photos", "a.jpg", "album", "a.jpg") == "copy-1"
        blob_client.start_copy_from_url.assert_awaited_once_with("https://acct.blob.core.windows.net/photos/a.jpg")

    @pytest.mark.asyncio
    async def test_abort_without_pending_copy(self, store, service):
        """Test NoPendingCopyOperation becomes NoPendingCopyError."""
        blob_client = service.get_blob_client.return_value
        blob_client.abort_copy = AsyncMock(side_effect=_error(HttpResponseError, "NoPendingCopyOperation"))

        with pytest.raises(NoPendingCopyError):
            await store.abort_copy("album", "a.jpg", "copy-1")

    @pytest.mark.asyncio
    async def test_delete_includes_snapshots(self, store, service):
        """Test deleting a blob deletes its snapshots too."""
        blob_client = service.get_blob_client.return_value
        blob_client.delete_blob = AsyncMock()

        assert await store.delete_blob_if_exists("photos", "a.jpg") is True
        blob_client.delete_blob.assert_awaited_once_with(delete_snapshots="include")

    @pytest.mark.asyncio
    async def test_upload_property_lookup_failure(self, store, service):
        """Test a failed content type lookup is translated and nothing is uploaded."""
        blob_client = service.get_blob_client.return_value
        blob_client.get_blob_properties = AsyncMock(side_effect=_error(HttpResponseError, "ServerBusy"))
        blob_client.upload_blob = AsyncMock()

        with pytest.raises(BlobStoreError, match="ServerBusy"):
            await store.upload_blob("photos", "a.jpg", b"jpeg")

        blob_client.upload_blob.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close(self, store, service):
        """Test close closes the service client."""
        await store.close()
        service.close.assert_awaited_once()
