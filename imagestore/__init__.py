"""
ImageStore: chunked, versioned image upload and retrieval over block blob storage.

Albums map to storage containers. Uploads may be sent whole or in chunks that
arrive in any order, every overwrite is preceded by a snapshot, and listings
are paginated through server-side continuation ids.
"""

__version__ = "0.1.0"

from .exceptions import (
    ImageStoreError,
    InvalidArgumentError,
    StorageOperationFailedError,
    IntegrityCheckFailedError,
    MissingChunkError,
    ImageNotFoundError,
)
from .repository import ImageRepository

__all__ = [
    "ImageRepository",
    "ImageStoreError",
    "InvalidArgumentError",
    "StorageOperationFailedError",
    "IntegrityCheckFailedError",
    "MissingChunkError",
    "ImageNotFoundError",
    "__version__",
]
