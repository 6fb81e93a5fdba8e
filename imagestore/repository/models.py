"""
Image Repository Models

Pydantic models returned by the image repository.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class ImageEntry(BaseModel):
    """An image reported by a listing."""

    container_name: str
    name: str
    parent_prefix: str = Field(default="", description="Virtual directory holding the image, '' at the root")
    primary_uri: str
    secondary_uri: Optional[str] = None
    content_type: Optional[str] = None


class ImageEntryCollection(BaseModel):
    """
    One page of images.

    continuation_id is None once the listing is complete; otherwise pass it
    back to fetch the next page.
    """

    continuation_id: Optional[str] = None
    images: List[ImageEntry] = Field(default_factory=list)


class ImageContent(BaseModel):
    """The bytes of an image (or one of its versions) and its content type."""

    container_name: str
    pathname: str
    content: bytes
    content_type: str
    snapshot_id: Optional[str] = None


class ImageVersion(BaseModel):
    """A preserved prior version of an image."""

    snapshot_id: str
    content_length: int
    content_type: str
    created_at: datetime


class UploadResult(BaseModel):
    """Outcome of a whole or chunked upload."""

    container_name: str
    pathname: str
    content_length: int
    etag: str
    previous_version: Optional[str] = Field(
        default=None,
        description="Snapshot id preserving the content that was replaced"
    )
