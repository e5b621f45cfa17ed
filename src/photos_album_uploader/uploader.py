"""Media uploader: byte upload followed by linking into an album."""

import asyncio
import logging
from pathlib import Path

from photos_album_uploader.api_client import PhotosLibraryClient
from photos_album_uploader.models import Album, UploadResult, UploadTicket

logger = logging.getLogger(__name__)

DRY_RUN_MEDIA_ITEM_ID = "dry_run_media_item_id"


class MediaUploader:
    """Uploads local files and links them into albums."""

    def __init__(
        self,
        api_client: PhotosLibraryClient,
        max_concurrent_uploads: int = 1,
        dry_run: bool = False,
    ) -> None:
        """Initialize media uploader.

        Args:
            api_client: Photos Library API client instance
            max_concurrent_uploads: Maximum number of concurrent uploads
            dry_run: If True, simulate uploads without making API calls
        """
        self.api_client = api_client
        self.max_concurrent_uploads = max_concurrent_uploads
        self.dry_run = dry_run
        self._semaphore = asyncio.Semaphore(max_concurrent_uploads)

    async def upload_files(
        self, album: Album | None, photo_paths: list[Path]
    ) -> list[UploadResult]:
        """Upload files into one album.

        Args:
            album: Album to link the files into, None for the library only
            photo_paths: Files to upload

        Returns:
            One upload result per file, in input order
        """
        tasks = [
            self._upload_with_semaphore(photo_path, album) for photo_path in photo_paths
        ]
        results = await asyncio.gather(*tasks)
        return list(results)

    async def _upload_with_semaphore(
        self, photo_path: Path, album: Album | None
    ) -> UploadResult:
        async with self._semaphore:
            return await self.upload_to_album(photo_path, album)

    async def upload_to_album(
        self, photo_path: Path, album: Album | None
    ) -> UploadResult:
        """Upload a single file and link it into an album.

        Failures are reported in the result, never raised. A failed link
        keeps the upload token in the result so the upload is not lost.

        Args:
            photo_path: Path to the photo file
            album: Album to link into, None for the library only

        Returns:
            Upload result
        """
        album_title = album.title if album else ""
        label = _album_label(album_title)

        if self.dry_run:
            logger.info(f"[DRY RUN] Would upload {photo_path.name} to {label}")
            return UploadResult(
                photo_path=photo_path,
                album_title=album_title,
                success=True,
                media_item_id=DRY_RUN_MEDIA_ITEM_ID,
            )

        try:
            upload_token = await self.api_client.upload_bytes(photo_path)
        except OSError as e:
            logger.error(f"Cannot read image {photo_path.name} for {label}: {e}")
            return UploadResult(
                photo_path=photo_path,
                album_title=album_title,
                success=False,
                error_message=f"File unreadable: {e}",
            )
        except Exception as e:
            logger.error(f"Error uploading image {photo_path.name} for {label}: {e}")
            return UploadResult(
                photo_path=photo_path,
                album_title=album_title,
                success=False,
                error_message=f"Upload failed: {e}",
            )

        logger.info(f"Uploaded image: {photo_path}")
        return await self._link(UploadTicket(photo_path, upload_token), album)

    async def _link(self, ticket: UploadTicket, album: Album | None) -> UploadResult:
        """Exchange an upload token for a media item in the album."""
        album_title = album.title if album else ""
        label = _album_label(album_title)

        try:
            results = await self.api_client.batch_create_media_items(
                [ticket], album_id=album.id if album else None
            )
        except Exception as e:
            logger.error(
                f"Failed to add {ticket.path.name} to {label}, "
                f"orphaned upload token {ticket.upload_token}: {e}"
            )
            return UploadResult(
                photo_path=ticket.path,
                album_title=album_title,
                success=False,
                upload_token=ticket.upload_token,
                error_message=f"Link failed: {e}",
            )

        item = results[0] if results else None
        if item is None or not item.ok:
            reason = item.status_message if item else "no media item result returned"
            logger.error(
                f"Service rejected {ticket.path.name} for {label}, "
                f"orphaned upload token {ticket.upload_token}: {reason}"
            )
            return UploadResult(
                photo_path=ticket.path,
                album_title=album_title,
                success=False,
                upload_token=ticket.upload_token,
                error_message=f"Link failed: {reason or 'unknown error'}",
            )

        logger.info(f"Added to {label}: {ticket.path.name}")
        return UploadResult(
            photo_path=ticket.path,
            album_title=album_title,
            success=True,
            media_item_id=item.media_item.id,
        )


def _album_label(album_title: str) -> str:
    return f"album '{album_title}'" if album_title else "library"
