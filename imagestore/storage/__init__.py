"""
Blob store clients.

The image repository performs all storage I/O through ``BlobStoreClient``.
``InMemoryBlobStore`` keeps everything in process memory; ``AzureBlobStore``
(in ``azure_backend``) wraps the Azure Storage SDK.
"""

from .exceptions import (
    BlobStoreError,
    InvalidContainerNameError,
    ContainerNotFoundError,
    BlobNotFoundError,
    SnapshotNotFoundError,
    BlockIntegrityError,
    InvalidBlockListError,
    NoPendingCopyError,
)
from .interface import BlobStoreClient
from .memory import InMemoryBlobStore, compute_md5
from .models import (
    BlobItem,
    BlobProperties,
    BlobSegment,
    ContainerSegment,
    CopyStatus,
    SnapshotInfo,
)
from .factory import create_blob_store

__all__ = [
    "BlobStoreClient",
    "InMemoryBlobStore",
    "create_blob_store",
    "compute_md5",
    "BlobItem",
    "BlobProperties",
    "BlobSegment",
    "ContainerSegment",
    "CopyStatus",
    "SnapshotInfo",
    "BlobStoreError",
    "InvalidContainerNameError",
    "ContainerNotFoundError",
    "BlobNotFoundError",
    "SnapshotNotFoundError",
    "BlockIntegrityError",
    "InvalidBlockListError",
    "NoPendingCopyError",
]
