"""
Blob Store Models

Pydantic models for containers, block blobs, snapshots, copy state and
segmented listing results.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ContainerNameValidator:
    """
    Validates block blob container names.

    Rules:
    - 3-63 characters
    - Lowercase letters, numbers, hyphens only
    - Must start and end with letter or number
    - No consecutive hyphens
    """

    PATTERN = re.compile(r'^[a-z0-9]([a-z0-9-]*[a-z0-9])?$')
    MIN_LENGTH = 3
    MAX_LENGTH = 63

    @classmethod
    def validate(cls, name: str) -> tuple[bool, Optional[str]]:
        """
        Validate a container name.

        Args:
            name: Container name to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not name:
            return False, "Container name cannot be empty"

        if len(name) < cls.MIN_LENGTH:
            return False, f"Container name must be at least {cls.MIN_LENGTH} characters"

        if len(name) > cls.MAX_LENGTH:
            return False, f"Container name must be at most {cls.MAX_LENGTH} characters"

        if not cls.PATTERN.match(name):
            return False, "Container name must contain only lowercase letters, numbers, and hyphens, and must start/end with letter or number"

        if '--' in name:
            return False, "Container name cannot contain consecutive hyphens"

        return True, None


class CopyStatus(str, Enum):
    """State of an asynchronous server-side copy."""
    PENDING = "pending"
    SUCCESS = "success"
    ABORTED = "aborted"
    FAILED = "failed"


class CopyProperties(BaseModel):
    """Copy state recorded on the destination blob."""

    copy_id: str
    status: CopyStatus = CopyStatus.PENDING
    source: str = Field(description="Source blob URI")
    completion_time: Optional[datetime] = None


class Block(BaseModel):
    """A staged or committed block of a block blob."""

    block_id: str
    size: int
    content: bytes


class BlobProperties(BaseModel):
    """Blob properties shared by base blobs and snapshots."""

    etag: str
    last_modified: datetime
    content_length: int
    content_type: str = Field(default=DEFAULT_CONTENT_TYPE)
    content_md5: Optional[str] = Field(default=None, description="Base64-encoded MD5 of the whole blob")
    creation_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_snapshot: bool = False
    snapshot_time: Optional[datetime] = None
    copy_state: Optional[CopyProperties] = None


class StoredBlob(BaseModel):
    """A base blob or snapshot held by the in-memory store."""

    name: str
    container_name: str
    content: bytes
    properties: BlobProperties
    snapshot_id: Optional[str] = None
    committed_blocks: Dict[str, Block] = Field(default_factory=dict)

    model_config = ConfigDict(arbitrary_types_allowed=True)


class BlobItem(BaseModel):
    """A blob as reported by a segmented listing."""

    container_name: str
    name: str
    content_type: str = Field(default=DEFAULT_CONTENT_TYPE)
    content_length: int = 0
    primary_uri: str
    secondary_uri: Optional[str] = None


class SnapshotInfo(BaseModel):
    """A point-in-time version of a blob."""

    snapshot_id: str
    content_length: int
    content_type: str
    created_at: datetime


class ContainerSegment(BaseModel):
    """One page of a segmented container listing."""

    names: List[str] = Field(default_factory=list)
    continuation_token: Optional[str] = None


class BlobSegment(BaseModel):
    """One page of a segmented blob listing."""

    items: List[BlobItem] = Field(default_factory=list)
    continuation_token: Optional[str] = None
