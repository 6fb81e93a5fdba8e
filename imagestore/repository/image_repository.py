"""
Image Repository

Single entry point for album and image operations. Each method validates its
arguments, dispatches to the component responsible and returns either a value
or raises an ImageStoreError subclass.

Images are stored as block blobs. An album is a container; the "default"
container is reserved for the storage account's catch-all images and is
never listed, deleted or used as a copy target. Within an album the
pathname is conventionally ``year/month/day/type/filename``.
"""

import logging
import uuid
from typing import Any, List, Optional, Sequence, Set, Union

from ..core.config_manager import ImageStoreConfig, RepositoryConfig
from ..core.logging_config import track_operation
from ..storage.factory import create_blob_store
from ..storage.interface import BlobStoreClient
from .chunked import ChunkedUploadCoordinator
from .containers import ContainerManager
from .continuation import ContinuationCache
from .copies import CopyDeleteCoordinator
from .listing import ListingPaginator
from .models import ImageContent, ImageEntryCollection, ImageVersion, UploadResult
from .policy import storage_errors
from .versions import BlobVersionManager

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Facade over the container, version, chunked upload, listing and copy
    components.

    All operations are coroutines; cancelling the awaiting task cancels the
    in-flight storage call and raises asyncio.CancelledError unchanged.

    Example:
        ```python
        repository = ImageRepository(InMemoryBlobStore())
        await repository.upload_whole("trip", "2024/06/01/raw/a.jpg", data, "image/jpeg")
        page = await repository.list_images("trip", "2024/", None, 100)
        ```
    """

    def __init__(
        self,
        store: BlobStoreClient,
        cache: Optional[ContinuationCache] = None,
        config: Optional[RepositoryConfig] = None,
    ):
        """
        Initialize the repository.

        Args:
            store: Blob store client all I/O goes through
            cache: Continuation cache (a new one is created when omitted)
            config: Repository settings (defaults when omitted)
        """
        self.config = config or RepositoryConfig()
        self.store = store
        self.cache = cache if cache is not None else ContinuationCache(ttl_seconds=self.config.continuation_ttl_seconds)

        self.containers = ContainerManager(store)
        self.versions = BlobVersionManager(store, self.containers)
        self.chunked = ChunkedUploadCoordinator(
            store,
            self.containers,
            self.versions,
            max_chunk_size=self.config.max_chunk_size,
        )
        self.listing = ListingPaginator(store, self.containers, self.cache)
        self.copies = CopyDeleteCoordinator(store, self.containers)

    @classmethod
    def from_config(cls, config: ImageStoreConfig) -> "ImageRepository":
        """
        Build a repository and its blob store from configuration.

        Raises:
            StorageOperationFailedError: If the storage section cannot produce a store
        """
        with storage_errors("configure storage"):
            store = create_blob_store(config.storage)
        return cls(store, config=config.repository)

    async def close(self) -> None:
        """Close the underlying blob store."""
        await self.store.close()

    async def __aenter__(self) -> "ImageRepository":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ========== Albums ==========

    @track_operation(logger, "list_containers")
    async def list_containers(self) -> Set[str]:
        return await self.containers.list_containers()

    @track_operation(logger, "delete_container")
    async def delete_container(self, name: Optional[str]) -> None:
        await self.containers.delete_container(name)

    # ========== Uploads ==========

    @track_operation(logger, "upload_whole")
    async def upload_whole(
        self,
        container: Optional[str],
        pathname: Optional[str],
        content: Any,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        return await self.versions.upload_whole_blob(container, pathname, content, content_type)

    @track_operation(logger, "begin_chunked")
    async def begin_chunked(self, container: Optional[str], pathname: Optional[str]) -> Optional[str]:
        return await self.chunked.begin(container, pathname)

    @track_operation(logger, "put_chunk")
    async def put_chunk(
        self,
        container: Optional[str],
        pathname: Optional[str],
        chunk_id: Optional[str],
        content: Any,
        digest: Optional[str] = None,
    ) -> None:
        await self.chunked.put_chunk(container, pathname, chunk_id, content, digest)

    @track_operation(logger, "commit_chunked")
    async def commit_chunked(
        self,
        container: Optional[str],
        pathname: Optional[str],
        chunk_ids: Optional[Sequence[str]],
        content_type: Optional[str] = None,
    ) -> UploadResult:
        return await self.chunked.commit(container, pathname, chunk_ids, content_type)

    # ========== Reads ==========

    @track_operation(logger, "list_images")
    async def list_images(
        self,
        container: Optional[str],
        prefix: Optional[str] = None,
        continuation_id: Optional[Union[str, uuid.UUID]] = None,
        page_size: Optional[int] = None,
    ) -> ImageEntryCollection:
        if page_size is None:
            page_size = self.config.default_page_size
        return await self.listing.list_images(container, prefix, continuation_id, page_size)

    @track_operation(logger, "get_image")
    async def get_image(
        self,
        container: Optional[str],
        pathname: Optional[str],
        snapshot_id: Optional[str] = None,
    ) -> ImageContent:
        return await self.versions.get_blob(container, pathname, snapshot_id)

    @track_operation(logger, "list_image_versions")
    async def list_image_versions(self, container: Optional[str], pathname: Optional[str]) -> List[ImageVersion]:
        return await self.versions.list_versions(container, pathname)

    # ========== Copy / delete ==========

    @track_operation(logger, "copy_image")
    async def copy_image(
        self,
        source_container: Optional[str],
        pathname: Optional[str],
        target_container: Optional[str],
    ) -> str:
        return await self.copies.copy_image(source_container, pathname, target_container)

    @track_operation(logger, "abort_copy")
    async def abort_copy(self, container: Optional[str], pathname: Optional[str], copy_id: Optional[str]) -> None:
        await self.copies.abort_copy(container, pathname, copy_id)

    @track_operation(logger, "delete_image")
    async def delete_image(self, container: Optional[str], pathname: Optional[str]) -> None:
        await self.copies.delete_image(container, pathname)
