"""Data models for the photos album uploader."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class Album:
    """A remote album, identified by the id the service assigned to it."""

    id: str
    title: str
    product_url: str | None = None
    media_items_count: int = 0

    def __post_init__(self) -> None:
        """Validate album data."""
        if not self.id:
            raise ValueError("Album id cannot be empty")

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Album":
        """Build an album from its Photos Library API representation.

        Args:
            data: Album resource as returned by the API

        Returns:
            Album instance
        """
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            product_url=data.get("productUrl"),
            media_items_count=int(data.get("mediaItemsCount", 0)),
        )


@dataclass(frozen=True)
class MediaItem:
    """A media item stored in the photo library."""

    id: str
    filename: str
    mime_type: str | None = None
    product_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "MediaItem":
        return cls(
            id=data["id"],
            filename=data.get("filename", ""),
            mime_type=data.get("mimeType"),
            product_url=data.get("productUrl"),
        )


@dataclass(frozen=True)
class UploadTicket:
    """A local file paired with the upload token the service returned for it."""

    path: Path
    upload_token: str

    def __post_init__(self) -> None:
        if not self.upload_token:
            raise ValueError("Upload token cannot be empty")


@dataclass(frozen=True)
class NewMediaItemResult:
    """Outcome of linking one upload token into the library."""

    upload_token: str
    status_code: int = 0
    status_message: str = ""
    media_item: MediaItem | None = None

    @property
    def ok(self) -> bool:
        return self.status_code == 0 and self.media_item is not None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "NewMediaItemResult":
        # A missing status code means OK (google.rpc.Status omits zero values)
        status = data.get("status", {})
        media_item = data.get("mediaItem")
        return cls(
            upload_token=data.get("uploadToken", ""),
            status_code=int(status.get("code", 0)),
            status_message=status.get("message", ""),
            media_item=MediaItem.from_api(media_item) if media_item else None,
        )


@dataclass(frozen=True)
class UploadResult:
    """Result of uploading one file and linking it into an album."""

    photo_path: Path
    album_title: str
    success: bool
    media_item_id: str | None = None
    upload_token: str | None = None
    error_message: str | None = None

    def __post_init__(self) -> None:
        """Validate upload result."""
        if self.success and not self.media_item_id:
            raise ValueError("Successful upload must have a media_item_id")
        if not self.success and not self.error_message:
            raise ValueError("Failed upload must have an error_message")

    @property
    def orphaned(self) -> bool:
        """True when the bytes were uploaded but never linked to a media item."""
        return not self.success and self.upload_token is not None
