"""
Listing Paginator

Pages through the images of an album. The blob store's own continuation
token never reaches the caller: it is parked in the ContinuationCache under
a generated continuation id, and that id is what the caller passes back.
"""

import logging
import uuid
from typing import Optional, Union

from ..core.logging_config import log_with_context
from ..exceptions import InvalidArgumentError
from ..storage.interface import BlobStoreClient
from ..storage.models import BlobItem
from .containers import ContainerManager
from .continuation import ContinuationCache
from .models import ImageEntry, ImageEntryCollection
from .policy import storage_errors

logger = logging.getLogger(__name__)


def parent_prefix(name: str) -> str:
    """Return the virtual directory of a blob name, e.g. '2024/06/01/raw/' for '2024/06/01/raw/a.jpg'."""
    head, sep, _ = name.rpartition("/")
    return f"{head}{sep}" if sep else ""


def to_image_entry(item: BlobItem) -> ImageEntry:
    """Convert a store listing item to an ImageEntry."""
    return ImageEntry(
        container_name=item.container_name,
        name=item.name,
        parent_prefix=parent_prefix(item.name),
        primary_uri=item.primary_uri,
        secondary_uri=item.secondary_uri,
        content_type=item.content_type,
    )


class ListingPaginator:
    """One segmented listing call per page, resumable by continuation id."""

    def __init__(self, store: BlobStoreClient, containers: ContainerManager, cache: ContinuationCache):
        self.store = store
        self.containers = containers
        self.cache = cache

    async def list_images(
        self,
        container: Optional[str],
        prefix: Optional[str],
        continuation_id: Optional[Union[str, uuid.UUID]],
        page_size: int,
    ) -> ImageEntryCollection:
        """
        Return one page of images under prefix (flat, not recursive).

        Args:
            container: Album name
            prefix: Name prefix to list under; None or '' lists everything
            continuation_id: None/'' to start, otherwise the id from the previous page
            page_size: Maximum number of images to return

        Returns:
            The page; its continuation_id is None when no pages remain

        Raises:
            InvalidArgumentError: If container is missing or does not exist,
                or page_size is not positive
        """
        container = await self.containers.require_existing(container)
        if page_size is None or page_size <= 0:
            raise InvalidArgumentError(
                f"'page_size' must be positive, got {page_size}",
                details={"argument": "page_size"},
            )

        if continuation_id:
            session_id = str(continuation_id)
            cursor = await self.cache.get(session_id)
        else:
            session_id = str(uuid.uuid4())
            cursor = None

        with storage_errors("list images", container, prefix):
            segment = await self.store.list_blobs_segmented(
                container,
                prefix=prefix or None,
                max_results=page_size,
                continuation_token=cursor,
            )

        next_id: Optional[str]
        if segment.continuation_token:
            await self.cache.set(session_id, segment.continuation_token)
            next_id = session_id
        else:
            await self.cache.remove(session_id)
            next_id = None

        log_with_context(
            logger,
            logging.DEBUG,
            f"Listed {len(segment.items)} images in '{container}'",
            container=container,
            prefix=prefix,
            continuation_id=session_id,
            has_more=next_id is not None,
        )
        return ImageEntryCollection(
            continuation_id=next_id,
            images=[to_image_entry(item) for item in segment.items],
        )
