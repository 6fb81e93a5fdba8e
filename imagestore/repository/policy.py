"""
Album naming policy and storage error translation.

Every repository operation validates its container arguments through the
helpers here, so the reserved ``default`` album is enforced in one place.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from ..exceptions import ImageStoreError, InvalidArgumentError, StorageOperationFailedError
from ..storage.exceptions import BlobStoreError

logger = logging.getLogger(__name__)

# Catch-all album holding every uploaded image; always present, never listed.
DEFAULT_CONTAINER = "default"


def is_reserved_container(name: Optional[str]) -> bool:
    """Return True if name is the reserved default album (case-insensitive)."""
    return bool(name) and name.lower() == DEFAULT_CONTAINER


def require_value(value: Optional[str], argument: str) -> str:
    """
    Ensure a required string argument is present.

    Raises:
        InvalidArgumentError: If value is None or empty
    """
    if not value:
        raise InvalidArgumentError(
            f"'{argument}' is required",
            details={"argument": argument},
        )
    return value


def container_name(name: Optional[str], argument: str = "container") -> str:
    """
    Return the canonical (lower-case) form of a required album name.

    Album names are unique regardless of case; every container argument
    passes through here before it reaches the store.

    Raises:
        InvalidArgumentError: If name is None or empty
    """
    return require_value(name, argument).lower()


def require_regular_container(name: Optional[str], argument: str = "container") -> str:
    """
    Ensure name is present and is not the reserved default album.

    Returns:
        The canonical album name

    Raises:
        InvalidArgumentError: If name is missing or reserved
    """
    name = container_name(name, argument)
    if is_reserved_container(name):
        raise InvalidArgumentError(
            f"The '{DEFAULT_CONTAINER}' album is reserved and cannot be used as '{argument}'",
            details={"argument": argument, "container": name},
        )
    return name


@contextmanager
def storage_errors(operation: str, container: Optional[str] = None, pathname: Optional[str] = None) -> Iterator[None]:
    """
    Translate blob store failures raised inside the block.

    BlobStoreError becomes StorageOperationFailedError with the original
    chained. Repository errors and cancellation pass through untouched.
    """
    try:
        yield
    except ImageStoreError:
        raise
    except BlobStoreError as e:
        logger.error(f"Storage failure during {operation} on '{container}/{pathname or ''}': {e}")
        details = {"operation": operation}
        if container is not None:
            details["container"] = container
        if pathname is not None:
            details["pathname"] = pathname
        raise StorageOperationFailedError(f"{operation} failed: {e}", details=details) from e
