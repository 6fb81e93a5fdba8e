"""
Azure Blob Storage Client

Blob store client backed by the asynchronous Azure Storage SDK
(``azure.storage.blob.aio``).
"""

import base64
import logging
from typing import List, Optional

from azure.core.exceptions import HttpResponseError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobBlock, ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from .exceptions import (
    BlobNotFoundError,
    BlobStoreError,
    BlockIntegrityError,
    ContainerNotFoundError,
    InvalidBlockListError,
    NoPendingCopyError,
    SnapshotNotFoundError,
)
from .interface import BlobStoreClient
from .memory import compute_md5
from .models import (
    DEFAULT_CONTENT_TYPE,
    BlobItem,
    BlobProperties,
    BlobSegment,
    ContainerSegment,
    CopyProperties,
    CopyStatus,
    SnapshotInfo,
)

logger = logging.getLogger(__name__)


def _translate(error: HttpResponseError, container_name: str, blob_name: Optional[str] = None) -> BlobStoreError:
    """Map an SDK error onto the blob store exception hierarchy."""
    code = getattr(error, "error_code", None)
    if code == "ContainerNotFound":
        return ContainerNotFoundError(f"Container '{container_name}' not found")
    if code == "BlobNotFound":
        return BlobNotFoundError(f"Blob '{blob_name}' not found in container '{container_name}'")
    if code == "InvalidBlockList":
        return InvalidBlockListError([], message=f"Block list for '{blob_name}' references unknown blocks")
    if code in ("Md5Mismatch", "InvalidMd5"):
        return BlockIntegrityError("", message=f"MD5 mismatch while writing '{blob_name}'")
    if code == "NoPendingCopyOperation":
        return NoPendingCopyError(f"No pending copy for blob '{blob_name}' in container '{container_name}'")
    return BlobStoreError(f"Storage request failed ({code or error.status_code}): {error.message}")


class AzureBlobStore(BlobStoreClient):
    """
    Azure Blob Storage implementation of the blob store client.

    Block ids are passed to the SDK as plain strings; the SDK base64-encodes
    them. All ids staged for one blob must have the same length.
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        account_url: Optional[str] = None,
        credential: Optional[object] = None,
        service_client: Optional[BlobServiceClient] = None,
    ):
        """
        Initialize the Azure blob store.

        Args:
            connection_string: Azure Storage connection string
            account_url: Account endpoint, used with credential
            credential: Account key, SAS token or token credential
            service_client: Pre-built service client (takes precedence)
        """
        if service_client is not None:
            self.client = service_client
        elif connection_string:
            self.client = BlobServiceClient.from_connection_string(connection_string)
        elif account_url:
            self.client = BlobServiceClient(account_url, credential=credential)
        else:
            raise ValueError("Azure blob store requires a connection string or an account URL")

    # ========== Container Operations ==========

    async def create_container_if_not_exists(self, name: str) -> bool:
        try:
            await self.client.get_container_client(name).create_container()
            logger.debug(f"Created container '{name}'")
            return True
        except ResourceExistsError:
            return False
        except HttpResponseError as e:
            raise _translate(e, name) from e

    async def container_exists(self, name: str) -> bool:
        try:
            return await self.client.get_container_client(name).exists()
        except HttpResponseError as e:
            raise _translate(e, name) from e

    async def delete_container_if_exists(self, name: str) -> bool:
        try:
            await self.client.get_container_client(name).delete_container()
            return True
        except ResourceNotFoundError:
            return False
        except HttpResponseError as e:
            raise _translate(e, name) from e

    async def list_containers_segmented(
        self,
        continuation_token: Optional[str] = None,
    ) -> ContainerSegment:
        pages = self.client.list_containers().by_page(continuation_token=continuation_token)
        names: List[str] = []
        try:
            page = await pages.__anext__()
            async for container in page:
                names.append(container.name)
        except StopAsyncIteration:
            pass
        except HttpResponseError as e:
            raise _translate(e, "") from e
        return ContainerSegment(names=names, continuation_token=pages.continuation_token or None)

    # ========== Blob Operations ==========

    async def blob_exists(self, container_name: str, blob_name: str) -> bool:
        try:
            return await self.client.get_blob_client(container_name, blob_name).exists()
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e

    async def create_snapshot(self, container_name: str, blob_name: str) -> str:
        blob_client = self.client.get_blob_client(container_name, blob_name)
        try:
            result = await blob_client.create_snapshot()
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e
        return result["snapshot"]

    async def upload_blob(
        self,
        container_name: str,
        blob_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> BlobProperties:
        blob_client = self.client.get_blob_client(container_name, blob_name)
        content_type = content_type or await self._existing_content_type(container_name, blob_name)
        try:
            await blob_client.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e
        return await self.get_blob_properties(container_name, blob_name)

    async def put_block(
        self,
        container_name: str,
        blob_name: str,
        block_id: str,
        data: bytes,
        content_md5: Optional[str] = None,
    ) -> None:
        if content_md5 is not None and compute_md5(data) != content_md5:
            raise BlockIntegrityError(block_id)

        blob_client = self.client.get_blob_client(container_name, blob_name)
        try:
            await blob_client.stage_block(block_id, data, validate_content=content_md5 is not None)
        except HttpResponseError as e:
            error = _translate(e, container_name, blob_name)
            if isinstance(error, BlockIntegrityError):
                error = BlockIntegrityError(block_id)
            raise error from e

    async def put_block_list(
        self,
        container_name: str,
        blob_name: str,
        block_ids: List[str],
        content_type: Optional[str] = None,
    ) -> BlobProperties:
        blob_client = self.client.get_blob_client(container_name, blob_name)
        content_type = content_type or await self._existing_content_type(container_name, blob_name)
        try:
            await blob_client.commit_block_list(
                [BlobBlock(block_id=block_id) for block_id in block_ids],
                content_settings=ContentSettings(content_type=content_type),
            )
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e
        return await self.get_blob_properties(container_name, blob_name)

    async def download_blob(
        self,
        container_name: str,
        blob_name: str,
        snapshot_id: Optional[str] = None,
    ) -> bytes:
        blob_client = self.client.get_blob_client(container_name, blob_name, snapshot=snapshot_id)
        try:
            stream = await blob_client.download_blob()
            return await stream.readall()
        except ResourceNotFoundError as e:
            if snapshot_id is not None:
                raise SnapshotNotFoundError(f"Snapshot '{snapshot_id}' for blob '{blob_name}' not found") from e
            raise _translate(e, container_name, blob_name) from e
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e

    async def get_blob_properties(
        self,
        container_name: str,
        blob_name: str,
        snapshot_id: Optional[str] = None,
    ) -> BlobProperties:
        blob_client = self.client.get_blob_client(container_name, blob_name, snapshot=snapshot_id)
        try:
            props = await blob_client.get_blob_properties()
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e

        copy_state = None
        if props.copy and props.copy.id:
            copy_state = CopyProperties(
                copy_id=props.copy.id,
                status=CopyStatus(props.copy.status) if props.copy.status else CopyStatus.PENDING,
                source=props.copy.source or "",
                completion_time=props.copy.completion_time,
            )
        md5 = props.content_settings.content_md5
        return BlobProperties(
            etag=props.etag.strip('"'),
            last_modified=props.last_modified,
            creation_time=props.creation_time or props.last_modified,
            content_length=props.size,
            content_type=props.content_settings.content_type or DEFAULT_CONTENT_TYPE,
            content_md5=base64.b64encode(bytes(md5)).decode("ascii") if md5 else None,
            is_snapshot=snapshot_id is not None,
            copy_state=copy_state,
        )

    async def list_blob_snapshots(self, container_name: str, blob_name: str) -> List[SnapshotInfo]:
        container_client = self.client.get_container_client(container_name)
        snapshots: List[SnapshotInfo] = []
        try:
            async for blob in container_client.list_blobs(name_starts_with=blob_name, include=["snapshots"]):
                if blob.name == blob_name and blob.snapshot:
                    snapshots.append(SnapshotInfo(
                        snapshot_id=blob.snapshot,
                        content_length=blob.size,
                        content_type=blob.content_settings.content_type or DEFAULT_CONTENT_TYPE,
                        created_at=blob.last_modified,
                    ))
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e
        snapshots.sort(key=lambda s: s.snapshot_id)
        return snapshots

    async def list_blobs_segmented(
        self,
        container_name: str,
        prefix: Optional[str] = None,
        max_results: Optional[int] = None,
        continuation_token: Optional[str] = None,
    ) -> BlobSegment:
        container_client = self.client.get_container_client(container_name)
        pages = container_client.list_blobs(
            name_starts_with=prefix,
            results_per_page=max_results,
        ).by_page(continuation_token=continuation_token)

        items: List[BlobItem] = []
        try:
            page = await pages.__anext__()
            async for blob in page:
                blob_client = container_client.get_blob_client(blob.name)
                items.append(BlobItem(
                    container_name=container_name,
                    name=blob.name,
                    content_type=blob.content_settings.content_type or DEFAULT_CONTENT_TYPE,
                    content_length=blob.size or 0,
                    primary_uri=blob_client.url,
                    secondary_uri=self._secondary_uri(blob_client),
                ))
        except StopAsyncIteration:
            pass
        except HttpResponseError as e:
            raise _translate(e, container_name) from e
        return BlobSegment(items=items, continuation_token=pages.continuation_token or None)

    async def start_copy(
        self,
        source_container: str,
        source_blob: str,
        target_container: str,
        target_blob: str,
    ) -> str:
        source_url = self.client.get_blob_client(source_container, source_blob).url
        target_client = self.client.get_blob_client(target_container, target_blob)
        try:
            result = await target_client.start_copy_from_url(source_url)
        except HttpResponseError as e:
            raise _translate(e, target_container, target_blob) from e
        return result["copy_id"]

    async def abort_copy(self, container_name: str, blob_name: str, copy_id: str) -> None:
        blob_client = self.client.get_blob_client(container_name, blob_name)
        try:
            await blob_client.abort_copy(copy_id)
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e

    async def delete_blob_if_exists(self, container_name: str, blob_name: str) -> bool:
        blob_client = self.client.get_blob_client(container_name, blob_name)
        try:
            # Base blobs with snapshots can only be deleted together with them
            await blob_client.delete_blob(delete_snapshots="include")
            return True
        except ResourceNotFoundError:
            return False
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e

    async def close(self) -> None:
        await self.client.close()

    # ========== Helpers ==========

    async def _existing_content_type(self, container_name: str, blob_name: str) -> str:
        try:
            props = await self.client.get_blob_client(container_name, blob_name).get_blob_properties()
        except ResourceNotFoundError:
            return DEFAULT_CONTENT_TYPE
        except HttpResponseError as e:
            raise _translate(e, container_name, blob_name) from e
        return props.content_settings.content_type or DEFAULT_CONTENT_TYPE

    @staticmethod
    def _secondary_uri(blob_client) -> Optional[str]:
        try:
            return blob_client.secondary_endpoint
        except ValueError:
            return None
