"""
Image repository: albums, versioned uploads, chunked uploads, paginated
listings and cross-album copies.
"""

from .policy import DEFAULT_CONTAINER, is_reserved_container
from .continuation import ContinuationCache
from .containers import ContainerManager
from .versions import BlobVersionManager
from .chunked import ChunkedUploadCoordinator
from .listing import ListingPaginator
from .copies import CopyDeleteCoordinator
from .models import ImageContent, ImageEntry, ImageEntryCollection, ImageVersion, UploadResult
from .image_repository import ImageRepository

__all__ = [
    "DEFAULT_CONTAINER",
    "is_reserved_container",
    "ContinuationCache",
    "ContainerManager",
    "BlobVersionManager",
    "ChunkedUploadCoordinator",
    "ListingPaginator",
    "CopyDeleteCoordinator",
    "ImageContent",
    "ImageEntry",
    "ImageEntryCollection",
    "ImageVersion",
    "UploadResult",
    "ImageRepository",
]
