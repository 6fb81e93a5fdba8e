"""
Container Manager

Lists, creates and deletes albums (blob containers).
"""

import logging
from typing import Optional, Set, Type

from ..exceptions import ImageStoreError, InvalidArgumentError, StorageOperationFailedError
from ..storage.exceptions import BlobStoreError
from ..storage.interface import BlobStoreClient
from .policy import container_name, is_reserved_container, require_regular_container, storage_errors

logger = logging.getLogger(__name__)


class ContainerManager:
    """Album lifecycle on top of a blob store client."""

    def __init__(self, store: BlobStoreClient):
        self.store = store

    async def list_containers(self) -> Set[str]:
        """
        Return every album name except the reserved default album.

        All listing segments are drained before returning.
        """
        names: Set[str] = set()
        token: Optional[str] = None
        with storage_errors("list containers"):
            while True:
                segment = await self.store.list_containers_segmented(token)
                names.update(n for n in segment.names if not is_reserved_container(n))
                token = segment.continuation_token
                if not token:
                    break
        logger.debug(f"Listed {len(names)} albums")
        return names

    async def delete_container(self, name: Optional[str]) -> None:
        """
        Delete an album and its images. Deleting a missing album is not an error.

        Raises:
            InvalidArgumentError: If name is empty or the default album
        """
        name = require_regular_container(name, "name")
        with storage_errors("delete container", name):
            deleted = await self.store.delete_container_if_exists(name)
        if deleted:
            logger.info(f"Deleted album '{name}'")
        else:
            logger.debug(f"Album '{name}' did not exist")

    async def ensure_container(
        self,
        name: Optional[str],
        failure: Type[ImageStoreError] = StorageOperationFailedError,
    ) -> bool:
        """
        Create an album unless it already exists.

        Args:
            name: Album name
            failure: Error raised when the store cannot create the album

        Returns:
            True if the album was created by this call

        Raises:
            InvalidArgumentError: If name is missing
        """
        name = container_name(name)
        try:
            created = await self.store.create_container_if_not_exists(name)
        except BlobStoreError as e:
            logger.error(f"Failed to create album '{name}': {e}")
            raise failure(
                f"Failed to create container '{name}': {e}",
                details={"container": name},
            ) from e
        if created:
            logger.info(f"Created album '{name}'")
        return created

    async def require_existing(self, name: Optional[str], argument: str = "container") -> str:
        """
        Ensure an album name is present and the album exists.

        Returns:
            The canonical album name

        Raises:
            InvalidArgumentError: If name is missing or the album does not exist
        """
        name = container_name(name, argument)
        with storage_errors("check container", name):
            exists = await self.store.container_exists(name)
        if not exists:
            raise InvalidArgumentError(
                f"Container '{name}' does not exist",
                details={"argument": argument, "container": name},
            )
        return name
