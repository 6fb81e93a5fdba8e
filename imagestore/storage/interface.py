"""
Blob Store Client Interface

Defines the abstract interface every blob store client must implement.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import BlobProperties, BlobSegment, ContainerSegment, SnapshotInfo


class BlobStoreClient(ABC):
    """
    Abstract base class for block blob store clients.

    The image repository performs all of its I/O through this interface, so an
    in-memory store and the Azure SDK adapter are interchangeable.

    **Block semantics**:
    - put_block stages a block under a caller id without touching the blob
    - put_block_list atomically replaces the blob with the named blocks in order

    **Error Handling**:
    - Raise BlobStoreError subclasses for store-specific failures
    - Never swallow asyncio.CancelledError
    """

    # ========== Container Operations ==========

    @abstractmethod
    async def create_container_if_not_exists(self, name: str) -> bool:
        """
        Create a container unless it already exists.

        Returns:
            True if the container was created, False if it already existed

        Raises:
            BlobStoreError: If the container cannot be created
        """

    @abstractmethod
    async def container_exists(self, name: str) -> bool:
        """Check whether a container exists."""

    @abstractmethod
    async def delete_container_if_exists(self, name: str) -> bool:
        """
        Delete a container and its blobs.

        Returns:
            True if a container was deleted, False if none existed
        """

    @abstractmethod
    async def list_containers_segmented(
        self,
        continuation_token: Optional[str] = None,
    ) -> ContainerSegment:
        """
        Return one page of container names.

        The segment's continuation_token is None once the listing is exhausted.
        """

    # ========== Blob Operations ==========

    @abstractmethod
    async def blob_exists(self, container_name: str, blob_name: str) -> bool:
        """Check whether a base blob exists."""

    @abstractmethod
    async def create_snapshot(self, container_name: str, blob_name: str) -> str:
        """
        Create a read-only point-in-time copy of a blob.

        Returns:
            Snapshot identifier

        Raises:
            ContainerNotFoundError: If container not found
            BlobNotFoundError: If blob not found
        """

    @abstractmethod
    async def upload_blob(
        self,
        container_name: str,
        blob_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> BlobProperties:
        """
        Replace the blob body with data.

        Args:
            content_type: Content type to set; None keeps the existing value
                (or the store default for a new blob)

        Raises:
            ContainerNotFoundError: If container not found
        """

    @abstractmethod
    async def put_block(
        self,
        container_name: str,
        blob_name: str,
        block_id: str,
        data: bytes,
        content_md5: Optional[str] = None,
    ) -> None:
        """
        Stage a block. Staging the same id again replaces the staged block.

        Args:
            content_md5: Optional base64-encoded MD5 the store verifies

        Raises:
            ContainerNotFoundError: If container not found
            BlockIntegrityError: If content_md5 does not match data
        """

    @abstractmethod
    async def put_block_list(
        self,
        container_name: str,
        blob_name: str,
        block_ids: List[str],
        content_type: Optional[str] = None,
    ) -> BlobProperties:
        """
        Commit staged blocks, in the given order, as the blob's new content.

        Raises:
            ContainerNotFoundError: If container not found
            InvalidBlockListError: If any id was never staged; nothing changes
        """

    @abstractmethod
    async def download_blob(
        self,
        container_name: str,
        blob_name: str,
        snapshot_id: Optional[str] = None,
    ) -> bytes:
        """
        Read a blob, or one of its snapshots.

        Raises:
            ContainerNotFoundError: If container not found
            BlobNotFoundError: If blob not found
            SnapshotNotFoundError: If snapshot not found
        """

    @abstractmethod
    async def get_blob_properties(
        self,
        container_name: str,
        blob_name: str,
        snapshot_id: Optional[str] = None,
    ) -> BlobProperties:
        """Get blob (or snapshot) properties."""

    @abstractmethod
    async def list_blob_snapshots(self, container_name: str, blob_name: str) -> List[SnapshotInfo]:
        """List snapshots of a blob, oldest first."""

    @abstractmethod
    async def list_blobs_segmented(
        self,
        container_name: str,
        prefix: Optional[str] = None,
        max_results: Optional[int] = None,
        continuation_token: Optional[str] = None,
    ) -> BlobSegment:
        """
        Return one flat page of base blobs whose names start with prefix.

        Raises:
            ContainerNotFoundError: If container not found
        """

    @abstractmethod
    async def start_copy(
        self,
        source_container: str,
        source_blob: str,
        target_container: str,
        target_blob: str,
    ) -> str:
        """
        Start an asynchronous server-side copy without waiting for it.

        Returns:
            Copy identifier

        Raises:
            ContainerNotFoundError: If either container is missing
            BlobNotFoundError: If the source blob is missing
        """

    @abstractmethod
    async def abort_copy(self, container_name: str, blob_name: str, copy_id: str) -> None:
        """
        Abort a pending copy into the blob.

        Raises:
            NoPendingCopyError: If no matching copy is still pending
        """

    @abstractmethod
    async def delete_blob_if_exists(self, container_name: str, blob_name: str) -> bool:
        """
        Delete a base blob.

        Returns:
            True if a blob was deleted, False if none existed
        """

    async def close(self) -> None:
        """Release any resources held by the client."""
