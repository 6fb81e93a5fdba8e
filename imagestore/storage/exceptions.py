"""
Blob Store Exceptions.

Failures raised by blob store clients. The image repository translates these
into its own typed errors.
"""

from typing import List, Optional


class BlobStoreError(Exception):
    """Base exception for all blob store errors."""

    pass


class InvalidContainerNameError(BlobStoreError):
    """Raised when a container name is rejected by the store."""

    pass


class ContainerNotFoundError(BlobStoreError):
    """Raised when a container is not found."""

    pass


class BlobNotFoundError(BlobStoreError):
    """Raised when a blob is not found."""

    pass


class SnapshotNotFoundError(BlobStoreError):
    """Raised when a blob snapshot is not found."""

    pass


class BlockIntegrityError(BlobStoreError):
    """Raised when a staged block does not match its Content-MD5."""

    def __init__(self, block_id: str, message: Optional[str] = None):
        super().__init__(message or f"MD5 mismatch for block '{block_id}'")
        self.block_id = block_id


class InvalidBlockListError(BlobStoreError):
    """Raised when a block list references blocks that were never staged."""

    def __init__(self, missing_block_ids: List[str], message: Optional[str] = None):
        super().__init__(message or f"Blocks not found: {', '.join(missing_block_ids)}")
        self.missing_block_ids = missing_block_ids


class NoPendingCopyError(BlobStoreError):
    """Raised when aborting a copy that is no longer pending."""

    pass
