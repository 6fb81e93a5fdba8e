"""
Chunked Upload Coordinator

Large images are sent as chunks that may arrive in any order:

    begin  ->  put_chunk (repeatable, any order)  ->  commit

begin snapshots any existing image so the eventual commit overwrites cleanly.
Chunks are staged without becoming visible; commit assembles them in the
order the caller lists and replaces the image atomically. A failed chunk only
needs that one chunk resent.
"""

import logging
from typing import Any, List, Optional, Sequence

from ..exceptions import (
    IntegrityCheckFailedError,
    InvalidArgumentError,
    MissingChunkError,
)
from ..storage.exceptions import BlockIntegrityError, ContainerNotFoundError, InvalidBlockListError
from ..storage.interface import BlobStoreClient
from .containers import ContainerManager
from .models import UploadResult
from .policy import container_name, require_value, storage_errors
from .versions import BlobVersionManager, read_content

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_SIZE = 1024 * 1024


class ChunkedUploadCoordinator:
    """Begin / put-chunk / commit lifecycle of chunked uploads."""

    def __init__(
        self,
        store: BlobStoreClient,
        containers: ContainerManager,
        versions: BlobVersionManager,
        max_chunk_size: Optional[int] = DEFAULT_MAX_CHUNK_SIZE,
    ):
        """
        Args:
            store: Blob store client
            containers: Album manager
            versions: Version manager used to snapshot existing images
            max_chunk_size: Largest accepted chunk in bytes; None disables the check
        """
        self.store = store
        self.containers = containers
        self.versions = versions
        self.max_chunk_size = max_chunk_size

    async def begin(self, container: Optional[str], pathname: Optional[str]) -> Optional[str]:
        """
        Open a chunked upload, creating the album if needed.

        Returns:
            Snapshot id of the image being replaced, or None for a new image

        Raises:
            InvalidArgumentError: If container or pathname is missing, or the
                album cannot be created
        """
        container = container_name(container)
        require_value(pathname, "pathname")
        await self.containers.ensure_container(container, failure=InvalidArgumentError)
        previous_version = await self.versions.preserve_existing(container, pathname)
        logger.info(f"Began chunked upload of '{container}/{pathname}'")
        return previous_version

    async def put_chunk(
        self,
        container: Optional[str],
        pathname: Optional[str],
        chunk_id: Optional[str],
        content: Any,
        digest: Optional[str] = None,
    ) -> None:
        """
        Stage one chunk. Sending the same chunk_id again replaces it.

        Args:
            digest: Optional base64-encoded MD5 of the chunk, verified by the store

        Raises:
            InvalidArgumentError: If an argument is missing, the album does not
                exist or the chunk exceeds the size limit
            IntegrityCheckFailedError: If digest does not match the chunk
        """
        container = await self.containers.require_existing(container)
        require_value(pathname, "pathname")
        require_value(chunk_id, "chunk_id")
        data = await read_content(content)

        if self.max_chunk_size is not None and len(data) > self.max_chunk_size:
            raise InvalidArgumentError(
                f"Chunk '{chunk_id}' is {len(data)} bytes; the limit is {self.max_chunk_size}",
                details={"chunk_id": chunk_id, "size": len(data), "limit": self.max_chunk_size},
            )

        with storage_errors("put chunk", container, pathname):
            try:
                await self.store.put_block(container, pathname, chunk_id, data, content_md5=digest)
            except BlockIntegrityError as e:
                logger.warning(f"Chunk '{chunk_id}' for '{container}/{pathname}' failed its integrity check")
                raise IntegrityCheckFailedError(container, pathname, chunk_id) from e
            except ContainerNotFoundError as e:
                raise InvalidArgumentError(
                    f"Container '{container}' does not exist",
                    details={"argument": "container", "container": container},
                ) from e

        logger.debug(f"Staged chunk '{chunk_id}' ({len(data)} bytes) for '{container}/{pathname}'")

    async def commit(
        self,
        container: Optional[str],
        pathname: Optional[str],
        chunk_ids: Optional[Sequence[str]],
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """
        Assemble the staged chunks, in the given order, as the image's content.

        Raises:
            InvalidArgumentError: If an argument is missing or the album does not exist
            MissingChunkError: If a chunk id was never staged; nothing is changed
        """
        container = await self.containers.require_existing(container)
        require_value(pathname, "pathname")
        if not chunk_ids:
            raise InvalidArgumentError("'chunk_ids' must name at least one chunk", details={"argument": "chunk_ids"})
        ordered: List[str] = list(chunk_ids)

        with storage_errors("commit", container, pathname):
            try:
                properties = await self.store.put_block_list(container, pathname, ordered, content_type=content_type)
            except InvalidBlockListError as e:
                missing = e.missing_block_ids[0] if e.missing_block_ids else None
                raise MissingChunkError(container, pathname, missing) from e
            except ContainerNotFoundError as e:
                raise InvalidArgumentError(
                    f"Container '{container}' does not exist",
                    details={"argument": "container", "container": container},
                ) from e

        logger.info(f"Committed {len(ordered)} chunks to '{container}/{pathname}' ({properties.content_length} bytes)")
        return UploadResult(
            container_name=container,
            pathname=pathname,
            content_length=properties.content_length,
            etag=properties.etag,
        )
