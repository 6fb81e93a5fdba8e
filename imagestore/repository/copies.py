"""
Copy/Delete Coordinator

Cross-album copies are started server-side and not awaited; the returned
copy id can be used to abort them while they are still pending.
"""

import logging
from typing import Optional

from ..exceptions import ImageNotFoundError, InvalidArgumentError
from ..storage.exceptions import BlobNotFoundError, NoPendingCopyError
from ..storage.interface import BlobStoreClient
from .containers import ContainerManager
from .policy import container_name, require_regular_container, require_value, storage_errors

logger = logging.getLogger(__name__)


class CopyDeleteCoordinator:
    """Copy, abort-copy and delete of individual images."""

    def __init__(self, store: BlobStoreClient, containers: ContainerManager):
        self.store = store
        self.containers = containers

    async def copy_image(
        self,
        source_container: Optional[str],
        pathname: Optional[str],
        target_container: Optional[str],
    ) -> str:
        """
        Start copying an image into another album under the same pathname.

        Returns:
            Copy id for tracking or aborting the copy

        Raises:
            InvalidArgumentError: If a name is missing, the copy targets its own
                album or the default album, the source album does not exist or
                the target album cannot be created
            ImageNotFoundError: If the source image does not exist
        """
        source_container = container_name(source_container, "source_container")
        target_container = container_name(target_container, "target_container")
        require_value(pathname, "pathname")
        if source_container == target_container:
            raise InvalidArgumentError(
                f"Cannot copy '{pathname}' from album '{source_container}' into itself",
                details={"source_container": source_container, "target_container": target_container},
            )
        require_regular_container(target_container, "target_container")

        await self.containers.require_existing(source_container, "source_container")
        await self.containers.ensure_container(target_container, failure=InvalidArgumentError)

        with storage_errors("copy", source_container, pathname):
            try:
                copy_id = await self.store.start_copy(source_container, pathname, target_container, pathname)
            except BlobNotFoundError as e:
                raise ImageNotFoundError(source_container, pathname) from e

        logger.info(f"Started copy '{copy_id}' of '{pathname}' from '{source_container}' to '{target_container}'")
        return copy_id

    async def abort_copy(self, container: Optional[str], pathname: Optional[str], copy_id: Optional[str]) -> None:
        """
        Abort a pending copy into container. A copy that already finished is left alone.

        Raises:
            InvalidArgumentError: If an argument is missing, container is the
                default album or does not exist
        """
        container = require_regular_container(container)
        require_value(pathname, "pathname")
        require_value(copy_id, "copy_id")
        container = await self.containers.require_existing(container)

        with storage_errors("abort copy", container, pathname):
            try:
                await self.store.abort_copy(container, pathname, copy_id)
            except NoPendingCopyError:
                logger.debug(f"Copy '{copy_id}' into '{container}/{pathname}' is no longer pending")
                return

        logger.info(f"Aborted copy '{copy_id}' into '{container}/{pathname}'")

    async def delete_image(self, container: Optional[str], pathname: Optional[str]) -> None:
        """
        Delete an image and its versions. Deleting a missing image is not an error.

        Raises:
            InvalidArgumentError: If an argument is missing or the album does not exist
        """
        container = await self.containers.require_existing(container)
        require_value(pathname, "pathname")

        with storage_errors("delete", container, pathname):
            deleted = await self.store.delete_blob_if_exists(container, pathname)

        if deleted:
            logger.info(f"Deleted '{container}/{pathname}'")
        else:
            logger.debug(f"'{container}/{pathname}' did not exist")
