"""Pytest configuration and shared fixtures."""

import asyncio
from pathlib import Path

import pytest
from tenacity import wait_none

from photos_album_uploader.api_client import PhotosAPIError, PhotosLibraryClient, ServerError, UploadError
from photos_album_uploader.models import Album, MediaItem, NewMediaItemResult, UploadTicket

RETRIED_METHODS = (
    "list_albums",
    "create_album",
    "upload_bytes",
    "batch_create_media_items",
    "search_media_items",
)


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch: pytest.MonkeyPatch) -> None:
    """Retry immediately instead of backing off."""
    for name in RETRIED_METHODS:
        method = getattr(PhotosLibraryClient, name)
        monkeypatch.setattr(method.retry, "wait", wait_none())


@pytest.fixture
def temp_photos_dir(tmp_path: Path) -> Path:
    """Create a temporary directory structure with test photos.

    Structure:
        temp_dir/
            album1/
                photo1.jpg
                photo2.png
            album2/
                photo3.jpg
                2021/
                    photo4.JPG
            empty_album/
            notes.txt
    """
    album1 = tmp_path / "album1"
    album1.mkdir()
    (album1 / "photo1.jpg").write_text("fake jpg content")
    (album1 / "photo2.png").write_text("fake png content")

    album2 = tmp_path / "album2"
    album2.mkdir()
    (album2 / "photo3.jpg").write_text("fake jpg content")

    nested = album2 / "2021"
    nested.mkdir()
    (nested / "photo4.JPG").write_text("fake jpg content")

    (tmp_path / "empty_album").mkdir()
    (tmp_path / "notes.txt").write_text("not a photo")

    return tmp_path


@pytest.fixture
def access_token() -> str:
    """Return a fake access token for testing."""
    return "test_access_token_123"


class FakePhotosService:
    """In-memory stand-in for PhotosLibraryClient that records every call."""

    def __init__(
        self,
        albums: list[Album] | None = None,
        pages: dict[str | None, tuple[list[Album], str | None]] | None = None,
    ) -> None:
        self.albums = list(albums or [])
        self.pages = pages
        self.list_calls: list[str | None] = []
        self.created: list[str] = []
        self.uploaded: list[Path] = []
        self.linked: list[tuple[str | None, list[str]]] = []
        self.fail_list = False
        self.fail_create: set[str] = set()
        self.fail_upload: set[str] = set()
        self.fail_link: set[str] = set()
        self.reject_link: set[str] = set()

    async def list_albums(
        self,
        page_token: str | None = None,
        exclude_non_app_created: bool = False,
        page_size: int = 50,
    ) -> tuple[list[Album], str | None]:
        self.list_calls.append(page_token)
        if self.fail_list:
            raise ServerError("listing unavailable")
        if self.pages is not None:
            return self.pages[page_token]
        return list(self.albums), None

    async def create_album(self, title: str) -> Album:
        self.created.append(title)
        # Let other workers run while the album is being created
        await asyncio.sleep(0.01)
        if title in self.fail_create:
            raise PhotosAPIError(f"cannot create {title}")
        album = Album(id=f"album-{len(self.created)}", title=title)
        self.albums.append(album)
        return album

    async def upload_bytes(self, photo_path: Path) -> str:
        if not photo_path.exists():
            raise FileNotFoundError(f"Photo file not found: {photo_path}")
        if photo_path.name in self.fail_upload:
            raise UploadError(f"upload of {photo_path.name} rejected")
        self.uploaded.append(photo_path)
        return f"token-{photo_path.name}"

    async def batch_create_media_items(
        self, tickets: list[UploadTicket], album_id: str | None = None
    ) -> list[NewMediaItemResult]:
        self.linked.append((album_id, [t.upload_token for t in tickets]))
        if any(t.path.name in self.fail_link for t in tickets):
            raise ServerError("batch create unavailable")
        results = []
        for ticket in tickets:
            if ticket.path.name in self.reject_link:
                results.append(
                    NewMediaItemResult(
                        upload_token=ticket.upload_token,
                        status_code=3,
                        status_message="Failed: There was an error while trying to create this media item.",
                    )
                )
            else:
                results.append(
                    NewMediaItemResult(
                        upload_token=ticket.upload_token,
                        status_message="Success",
                        media_item=MediaItem(id=f"item-{ticket.path.name}", filename=ticket.path.name),
                    )
                )
        return results

    def album_ids_linked(self) -> list[str | None]:
        return [album_id for album_id, _ in self.linked]


@pytest.fixture
def fake_service() -> FakePhotosService:
    """Return an empty in-memory photo service."""
    return FakePhotosService()
