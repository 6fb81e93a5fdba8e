"""
ImageStore Exception Hierarchy

Typed failures surfaced by the image repository, each with a machine-readable
error code and structured details.

Cancellation is not part of this hierarchy: ``asyncio.CancelledError`` is left
to propagate untouched so callers can tell "I cancelled this" from "it broke".
"""

from typing import Any, Dict, Optional


class ImageStoreError(Exception):
    """
    Base exception for all image repository errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., 'InvalidArgument')
        details: Additional context (container, pathname, chunk_id, etc.)
    """

    error_code: str = "ImageStoreError"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for API responses."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


class InvalidArgumentError(ImageStoreError):
    """
    Raised for a missing required value, a reserved-name violation,
    a self-copy or a reference to a container that does not exist.
    """
    error_code = "InvalidArgument"


class StorageOperationFailedError(ImageStoreError):
    """Raised when the underlying blob store call fails."""
    error_code = "StorageOperationFailed"


class IntegrityCheckFailedError(ImageStoreError):
    """Raised when a chunk does not match the digest supplied with it."""
    error_code = "IntegrityCheckFailed"

    def __init__(self, container: str, pathname: str, chunk_id: str, message: Optional[str] = None):
        message = message or f"Chunk '{chunk_id}' for '{container}/{pathname}' failed its integrity check"
        details = {"container": container, "pathname": pathname, "chunk_id": chunk_id}
        super().__init__(message, details=details)


class MissingChunkError(ImageStoreError):
    """Raised when a commit references a chunk id that was never staged."""
    error_code = "MissingChunk"

    def __init__(self, container: str, pathname: str, chunk_id: Optional[str] = None, message: Optional[str] = None):
        if message is None:
            if chunk_id:
                message = f"Chunk '{chunk_id}' was never staged for '{container}/{pathname}'"
            else:
                message = f"Commit for '{container}/{pathname}' references a chunk that was never staged"
        details = {"container": container, "pathname": pathname}
        if chunk_id:
            details["chunk_id"] = chunk_id
        super().__init__(message, details=details)


class ImageNotFoundError(ImageStoreError):
    """Raised when reading an image or snapshot that does not exist."""
    error_code = "ImageNotFound"

    def __init__(self, container: str, pathname: str, snapshot_id: Optional[str] = None):
        if snapshot_id:
            message = f"Snapshot '{snapshot_id}' of '{container}/{pathname}' not found"
        else:
            message = f"Image '{container}/{pathname}' not found"
        details = {"container": container, "pathname": pathname}
        if snapshot_id:
            details["snapshot_id"] = snapshot_id
        super().__init__(message, details=details)
