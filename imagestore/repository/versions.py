"""
Blob Version Manager

Whole-image uploads and version reads. Any overwrite of existing content is
preceded by a snapshot of that content.
"""

import inspect
import logging
from typing import Any, List, Optional

from ..exceptions import ImageNotFoundError, InvalidArgumentError
from ..storage.exceptions import BlobNotFoundError, SnapshotNotFoundError
from ..storage.interface import BlobStoreClient
from .containers import ContainerManager
from .models import ImageContent, ImageVersion, UploadResult
from .policy import container_name, require_value, storage_errors

logger = logging.getLogger(__name__)


async def read_content(content: Any) -> bytes:
    """
    Read upload content fully into memory.

    Accepts bytes-like objects, binary file-like objects (sync or async
    ``read``) and async iterables of bytes.

    Raises:
        InvalidArgumentError: If content is None or of an unsupported type
    """
    if content is None:
        raise InvalidArgumentError("'content' is required", details={"argument": "content"})

    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)

    if hasattr(content, "read"):
        data = content.read()
        if inspect.isawaitable(data):
            data = await data
        return bytes(data)

    if hasattr(content, "__aiter__"):
        parts = []
        async for part in content:
            parts.append(bytes(part))
        return b"".join(parts)

    raise InvalidArgumentError(
        f"Unsupported content type: {type(content).__name__}",
        details={"argument": "content"},
    )


class BlobVersionManager:
    """Snapshot-before-overwrite uploads and version access."""

    def __init__(self, store: BlobStoreClient, containers: ContainerManager):
        self.store = store
        self.containers = containers

    async def preserve_existing(self, container: str, pathname: str) -> Optional[str]:
        """
        Snapshot the blob at pathname if it exists.

        Returns:
            The snapshot id, or None when there was nothing to preserve
        """
        with storage_errors("snapshot", container, pathname):
            if not await self.store.blob_exists(container, pathname):
                return None
            try:
                snapshot_id = await self.store.create_snapshot(container, pathname)
            except BlobNotFoundError:
                # Deleted between the existence check and the snapshot
                return None
        logger.info(f"Preserved '{container}/{pathname}' as snapshot '{snapshot_id}'")
        return snapshot_id

    async def upload_whole_blob(
        self,
        container: Optional[str],
        pathname: Optional[str],
        content: Any,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """
        Upload an entire image, creating the album if needed.

        The content type is applied only when the image is new; an existing
        image keeps its content type and its prior content as a snapshot.

        Raises:
            InvalidArgumentError: If container or pathname is missing
            StorageOperationFailedError: If the album cannot be created or the write fails
        """
        container = container_name(container)
        require_value(pathname, "pathname")
        data = await read_content(content)

        await self.containers.ensure_container(container)
        previous_version = await self.preserve_existing(container, pathname)

        with storage_errors("upload", container, pathname):
            properties = await self.store.upload_blob(
                container,
                pathname,
                data,
                content_type=content_type if previous_version is None else None,
            )

        logger.info(f"Uploaded '{container}/{pathname}' ({len(data)} bytes)")
        return UploadResult(
            container_name=container,
            pathname=pathname,
            content_length=properties.content_length,
            etag=properties.etag,
            previous_version=previous_version,
        )

    async def get_blob(
        self,
        container: Optional[str],
        pathname: Optional[str],
        snapshot_id: Optional[str] = None,
    ) -> ImageContent:
        """
        Read an image, or one of its preserved versions.

        Raises:
            InvalidArgumentError: If container is missing or does not exist
            ImageNotFoundError: If the image or snapshot does not exist
        """
        container = await self.containers.require_existing(container)
        require_value(pathname, "pathname")
        with storage_errors("download", container, pathname):
            try:
                properties = await self.store.get_blob_properties(container, pathname, snapshot_id)
                data = await self.store.download_blob(container, pathname, snapshot_id)
            except (BlobNotFoundError, SnapshotNotFoundError) as e:
                raise ImageNotFoundError(container, pathname, snapshot_id) from e
        return ImageContent(
            container_name=container,
            pathname=pathname,
            content=data,
            content_type=properties.content_type,
            snapshot_id=snapshot_id,
        )

    async def list_versions(self, container: Optional[str], pathname: Optional[str]) -> List[ImageVersion]:
        """List the preserved versions of an image, oldest first."""
        container = await self.containers.require_existing(container)
        require_value(pathname, "pathname")
        with storage_errors("list versions", container, pathname):
            snapshots = await self.store.list_blob_snapshots(container, pathname)
        return [ImageVersion(**snapshot.model_dump()) for snapshot in snapshots]
