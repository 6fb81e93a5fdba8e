"""
Blob Store Factory

Creates the blob store client selected by configuration.
"""

import logging

from ..core.config_manager import StorageConfig, StorageType
from .exceptions import BlobStoreError
from .interface import BlobStoreClient
from .memory import InMemoryBlobStore

logger = logging.getLogger(__name__)


def create_blob_store(config: StorageConfig) -> BlobStoreClient:
    """
    Factory function to create a blob store client based on configuration.

    Args:
        config: Storage configuration

    Returns:
        Blob store client instance

    Raises:
        BlobStoreError: If the storage type is unknown or misconfigured

    Example:
        ```python
        config = StorageConfig(type=StorageType.AZURE, connection_string="...")
        store = create_blob_store(config)
        ```
    """
    if config.type == StorageType.MEMORY:
        logger.info("Using in-memory blob store")
        return InMemoryBlobStore(
            account_name=config.account_name,
            copy_delay=config.copy_delay,
        )

    elif config.type == StorageType.AZURE:
        if not config.connection_string and not config.account_url:
            raise BlobStoreError(
                "Azure storage requires 'connection_string' or 'account_url'"
            )
        # Imported here so the SDK is only loaded when Azure storage is selected
        from .azure_backend import AzureBlobStore

        logger.info("Using Azure blob store")
        return AzureBlobStore(
            connection_string=config.connection_string,
            account_url=config.account_url,
            credential=config.account_key,
        )

    else:
        raise BlobStoreError(
            f"Unknown storage type: {config.type}. "
            f"Supported types: {[t.value for t in StorageType]}"
        )
