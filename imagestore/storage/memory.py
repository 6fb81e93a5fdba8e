"""
In-Memory Blob Store

Block blob store held in process memory. Used for development, tests and the
CLI's ``memory`` storage type.
"""

import asyncio
import base64
import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from .exceptions import (
    BlobNotFoundError,
    BlockIntegrityError,
    ContainerNotFoundError,
    InvalidBlockListError,
    InvalidContainerNameError,
    NoPendingCopyError,
    SnapshotNotFoundError,
)
from .interface import BlobStoreClient
from .models import (
    DEFAULT_CONTENT_TYPE,
    BlobItem,
    BlobProperties,
    BlobSegment,
    Block,
    ContainerNameValidator,
    ContainerSegment,
    CopyProperties,
    CopyStatus,
    SnapshotInfo,
    StoredBlob,
)

logger = logging.getLogger(__name__)


def compute_md5(data: bytes) -> str:
    """Return the base64-encoded MD5 digest of data, as used by Content-MD5."""
    return base64.b64encode(hashlib.md5(data).digest()).decode("ascii")


class InMemoryBlobStore(BlobStoreClient):
    """
    In-memory storage backend for containers and block blobs.

    Staged blocks are kept apart from base blobs, so staging never makes a
    blob visible. Every mutation validates its inputs before it changes
    state, under a single asyncio lock.

    Copies run as asyncio tasks that complete after ``copy_delay`` seconds,
    which leaves a window in which they can be aborted.
    """

    def __init__(
        self,
        account_name: str = "imagestore",
        list_page_size: int = 5000,
        copy_delay: float = 0.0,
    ):
        """
        Initialize the in-memory store.

        Args:
            account_name: Account name used to build primary/secondary URIs
            list_page_size: Page size for segmented container listings
            copy_delay: Seconds before a started copy completes
        """
        self.account_name = account_name
        self.list_page_size = list_page_size
        self.copy_delay = copy_delay
        self._containers: Dict[str, datetime] = {}
        self._blobs: Dict[str, Dict[str, StoredBlob]] = {}  # container -> {blob -> StoredBlob}
        self._snapshots: Dict[str, Dict[str, Dict[str, StoredBlob]]] = {}  # container -> {blob -> {snapshot_id -> StoredBlob}}
        self._staged: Dict[str, Dict[str, Dict[str, Block]]] = {}  # container -> {blob -> {block_id -> Block}}
        self._copies: Dict[Tuple[str, str], Tuple[str, asyncio.Task]] = {}  # (container, blob) -> (copy_id, task)
        self._lock = asyncio.Lock()

    # ============================================================================
    # Container Operations
    # ============================================================================

    async def create_container_if_not_exists(self, name: str) -> bool:
        is_valid, error = ContainerNameValidator.validate(name)
        if not is_valid:
            raise InvalidContainerNameError(error)

        async with self._lock:
            if name in self._containers:
                return False
            self._containers[name] = datetime.now(timezone.utc)
            self._blobs[name] = {}
            logger.debug(f"Created container '{name}'")
            return True

    async def container_exists(self, name: str) -> bool:
        async with self._lock:
            return name in self._containers

    async def delete_container_if_exists(self, name: str) -> bool:
        async with self._lock:
            if name not in self._containers:
                return False
            del self._containers[name]
            self._blobs.pop(name, None)
            self._snapshots.pop(name, None)
            self._staged.pop(name, None)
            for key in [k for k in self._copies if k[0] == name]:
                _, task = self._copies.pop(key)
                task.cancel()
            logger.debug(f"Deleted container '{name}'")
            return True

    async def list_containers_segmented(
        self,
        continuation_token: Optional[str] = None,
    ) -> ContainerSegment:
        async with self._lock:
            names = sorted(self._containers)

        # The token is the last name of the previous page
        if continuation_token:
            names = [n for n in names if n > continuation_token]

        next_token = None
        if len(names) > self.list_page_size:
            names = names[:self.list_page_size]
            next_token = names[-1]

        return ContainerSegment(names=names, continuation_token=next_token)

    # ============================================================================
    # Blob Operations
    # ============================================================================

    async def blob_exists(self, container_name: str, blob_name: str) -> bool:
        async with self._lock:
            return blob_name in self._blobs.get(container_name, {})

    async def create_snapshot(self, container_name: str, blob_name: str) -> str:
        async with self._lock:
            base_blob = self._get_base_blob(container_name, blob_name)
            blob_snapshots = self._snapshots.setdefault(container_name, {}).setdefault(blob_name, {})

            snapshot_time = datetime.now(timezone.utc)
            snapshot_id = snapshot_time.strftime('%Y-%m-%dT%H:%M:%S.%fZ')
            # Snapshot ids must stay unique even within one clock tick
            while snapshot_id in blob_snapshots:
                snapshot_time += timedelta(microseconds=1)
                snapshot_id = snapshot_time.strftime('%Y-%m-%dT%H:%M:%S.%fZ')

            properties = base_blob.properties.model_copy(deep=True)
            properties.etag = self._generate_etag()
            properties.last_modified = snapshot_time
            properties.is_snapshot = True
            properties.snapshot_time = snapshot_time

            blob_snapshots[snapshot_id] = StoredBlob(
                name=blob_name,
                container_name=container_name,
                content=base_blob.content,
                properties=properties,
                snapshot_id=snapshot_id,
            )
            logger.debug(f"Created snapshot '{snapshot_id}' of '{container_name}/{blob_name}'")
            return snapshot_id

    async def upload_blob(
        self,
        container_name: str,
        blob_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> BlobProperties:
        async with self._lock:
            self._require_container(container_name)
            blob = self._write_blob(container_name, blob_name, data, content_type, committed_blocks={})
            return blob.properties

    async def put_block(
        self,
        container_name: str,
        blob_name: str,
        block_id: str,
        data: bytes,
        content_md5: Optional[str] = None,
    ) -> None:
        if content_md5 is not None and compute_md5(data) != content_md5:
            raise BlockIntegrityError(block_id)

        async with self._lock:
            self._require_container(container_name)
            blocks = self._staged.setdefault(container_name, {}).setdefault(blob_name, {})
            blocks[block_id] = Block(block_id=block_id, size=len(data), content=data)

    async def put_block_list(
        self,
        container_name: str,
        blob_name: str,
        block_ids: List[str],
        content_type: Optional[str] = None,
    ) -> BlobProperties:
        async with self._lock:
            self._require_container(container_name)
            staged = self._staged.get(container_name, {}).get(blob_name, {})
            existing = self._blobs[container_name].get(blob_name)
            committed = existing.committed_blocks if existing else {}

            # Resolve every block before touching the blob (latest wins)
            final_blocks: List[Block] = []
            missing: List[str] = []
            for block_id in block_ids:
                block = staged.get(block_id) or committed.get(block_id)
                if block is None:
                    missing.append(block_id)
                else:
                    final_blocks.append(block)
            if missing:
                raise InvalidBlockListError(missing)

            content = b"".join(block.content for block in final_blocks)
            blob = self._write_blob(
                container_name,
                blob_name,
                content,
                content_type,
                committed_blocks={block.block_id: block for block in final_blocks},
            )
            self._staged.get(container_name, {}).pop(blob_name, None)
            return blob.properties

    async def download_blob(
        self,
        container_name: str,
        blob_name: str,
        snapshot_id: Optional[str] = None,
    ) -> bytes:
        async with self._lock:
            return self._get_blob_or_snapshot(container_name, blob_name, snapshot_id).content

    async def get_blob_properties(
        self,
        container_name: str,
        blob_name: str,
        snapshot_id: Optional[str] = None,
    ) -> BlobProperties:
        async with self._lock:
            blob = self._get_blob_or_snapshot(container_name, blob_name, snapshot_id)
            return blob.properties.model_copy(deep=True)

    async def list_blob_snapshots(self, container_name: str, blob_name: str) -> List[SnapshotInfo]:
        async with self._lock:
            self._require_container(container_name)
            snapshots = self._snapshots.get(container_name, {}).get(blob_name, {})
            return [
                SnapshotInfo(
                    snapshot_id=snapshot_id,
                    content_length=snapshot.properties.content_length,
                    content_type=snapshot.properties.content_type,
                    created_at=snapshot.properties.snapshot_time or snapshot.properties.last_modified,
                )
                for snapshot_id, snapshot in sorted(snapshots.items())
            ]

    async def list_blobs_segmented(
        self,
        container_name: str,
        prefix: Optional[str] = None,
        max_results: Optional[int] = None,
        continuation_token: Optional[str] = None,
    ) -> BlobSegment:
        async with self._lock:
            self._require_container(container_name)
            blobs = list(self._blobs[container_name].values())

        if prefix:
            blobs = [b for b in blobs if b.name.startswith(prefix)]

        blobs.sort(key=lambda b: b.name)

        # Continue after the last name of the previous page
        if continuation_token:
            blobs = [b for b in blobs if b.name > continuation_token]

        next_token = None
        if max_results and len(blobs) > max_results:
            blobs = blobs[:max_results]
            next_token = blobs[-1].name

        items = [
            BlobItem(
                container_name=container_name,
                name=blob.name,
                content_type=blob.properties.content_type,
                content_length=blob.properties.content_length,
                primary_uri=self.blob_uri(container_name, blob.name),
                secondary_uri=self.blob_uri(container_name, blob.name, secondary=True),
            )
            for blob in blobs
        ]
        return BlobSegment(items=items, continuation_token=next_token)

    async def delete_blob_if_exists(self, container_name: str, blob_name: str) -> bool:
        async with self._lock:
            blobs = self._blobs.get(container_name, {})
            if blob_name not in blobs:
                return False
            # A base blob cannot outlive its snapshots in block blob storage
            del blobs[blob_name]
            self._snapshots.get(container_name, {}).pop(blob_name, None)
            return True

    # ============================================================================
    # Copy Operations
    # ============================================================================

    async def start_copy(
        self,
        source_container: str,
        source_blob: str,
        target_container: str,
        target_blob: str,
    ) -> str:
        async with self._lock:
            source = self._get_base_blob(source_container, source_blob)
            self._require_container(target_container)

            copy_id = str(uuid.uuid4())
            copy_properties = CopyProperties(
                copy_id=copy_id,
                source=self.blob_uri(source_container, source_blob),
            )
            content = source.content
            content_type = source.properties.content_type

            previous = self._copies.pop((target_container, target_blob), None)
            if previous:
                previous[1].cancel()

            task = asyncio.create_task(
                self._complete_copy(target_container, target_blob, content, content_type, copy_properties)
            )
            self._copies[(target_container, target_blob)] = (copy_id, task)
            logger.debug(f"Started copy '{copy_id}' to '{target_container}/{target_blob}'")
            return copy_id

    async def abort_copy(self, container_name: str, blob_name: str, copy_id: str) -> None:
        async with self._lock:
            self._require_container(container_name)
            pending = self._copies.get((container_name, blob_name))
            if pending is None or pending[0] != copy_id or pending[1].done():
                raise NoPendingCopyError(
                    f"No pending copy '{copy_id}' for blob '{blob_name}' in container '{container_name}'"
                )
            del self._copies[(container_name, blob_name)]
            pending[1].cancel()
            logger.debug(f"Aborted copy '{copy_id}' to '{container_name}/{blob_name}'")

    async def drain_copies(self) -> None:
        """Wait for every pending copy to finish or be cancelled."""
        tasks = [task for _, task in self._copies.values()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Cancel pending copies."""
        for _, task in self._copies.values():
            task.cancel()
        await self.drain_copies()
        self._copies.clear()

    async def _complete_copy(
        self,
        container_name: str,
        blob_name: str,
        content: bytes,
        content_type: str,
        copy_properties: CopyProperties,
    ) -> None:
        await asyncio.sleep(self.copy_delay)
        async with self._lock:
            if container_name not in self._containers:
                return
            blob = self._write_blob(container_name, blob_name, content, content_type, committed_blocks={})
            copy_properties.status = CopyStatus.SUCCESS
            copy_properties.completion_time = blob.properties.last_modified
            blob.properties.copy_state = copy_properties
            self._copies.pop((container_name, blob_name), None)

    # ============================================================================
    # Helpers
    # ============================================================================

    def blob_uri(self, container_name: str, blob_name: str, secondary: bool = False) -> str:
        """Build the primary (or secondary replica) URI of a blob."""
        host = f"{self.account_name}-secondary" if secondary else self.account_name
        return f"https://{host}.blob.core.windows.net/{container_name}/{quote(blob_name)}"

    def _require_container(self, container_name: str) -> None:
        if container_name not in self._containers:
            raise ContainerNotFoundError(f"Container '{container_name}' not found")

    def _get_base_blob(self, container_name: str, blob_name: str) -> StoredBlob:
        self._require_container(container_name)
        blob = self._blobs[container_name].get(blob_name)
        if blob is None:
            raise BlobNotFoundError(f"Blob '{blob_name}' not found in container '{container_name}'")
        return blob

    def _get_blob_or_snapshot(
        self,
        container_name: str,
        blob_name: str,
        snapshot_id: Optional[str],
    ) -> StoredBlob:
        if snapshot_id is None:
            return self._get_base_blob(container_name, blob_name)

        self._require_container(container_name)
        snapshot = self._snapshots.get(container_name, {}).get(blob_name, {}).get(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFoundError(f"Snapshot '{snapshot_id}' for blob '{blob_name}' not found")
        return snapshot

    def _write_blob(
        self,
        container_name: str,
        blob_name: str,
        content: bytes,
        content_type: Optional[str],
        committed_blocks: Dict[str, Block],
    ) -> StoredBlob:
        """Replace (or create) a base blob. Caller holds the lock."""
        now = datetime.now(timezone.utc)
        existing = self._blobs[container_name].get(blob_name)
        if content_type is None:
            content_type = existing.properties.content_type if existing else DEFAULT_CONTENT_TYPE

        properties = BlobProperties(
            etag=self._generate_etag(),
            last_modified=now,
            creation_time=existing.properties.creation_time if existing else now,
            content_length=len(content),
            content_type=content_type,
            content_md5=compute_md5(content),
        )
        blob = StoredBlob(
            name=blob_name,
            container_name=container_name,
            content=content,
            properties=properties,
            committed_blocks=committed_blocks,
        )
        self._blobs[container_name][blob_name] = blob
        return blob

    def _generate_etag(self) -> str:
        """Generate a unique ETag."""
        return hashlib.md5(uuid.uuid4().bytes).hexdigest()
