"""Folder-to-album synchronization task."""

import asyncio
import logging
from pathlib import Path

from photos_album_uploader.album_index import AlbumIndex
from photos_album_uploader.api_client import PhotosAPIError, PhotosLibraryClient
from photos_album_uploader.models import Album, UploadResult
from photos_album_uploader.uploader import MediaUploader
from photos_album_uploader.utils import paginate, scan_images

logger = logging.getLogger(__name__)


class AlbumIndexError(Exception):
    """Exception raised when the existing albums cannot be loaded."""

    pass


async def fetch_all_albums(api_client: PhotosLibraryClient) -> list[Album]:
    """List every album of the library, including albums not created by this app.

    Args:
        api_client: Photos Library API client instance

    Returns:
        Albums in listing order

    Raises:
        PhotosAPIError: If any page cannot be fetched
    """

    async def fetch_page(page_token: str | None) -> tuple[list[Album], str | None]:
        return await api_client.list_albums(
            page_token=page_token, exclude_non_app_created=False
        )

    albums: list[Album] = []
    async for page in paginate(fetch_page):
        logger.debug(f"Fetched page of {len(page)} album(s)")
        albums.extend(page)
    return albums


class AlbumSyncTask:
    """Uploads a local folder tree into albums named after its folders.

    Images in ``root/a/b`` go to the album ``a-b``. Albums that already exist
    in the library are reused; missing ones are created once per run.
    Images directly under the root are added to the library without an album.
    """

    def __init__(
        self,
        api_client: PhotosLibraryClient,
        max_concurrent_uploads: int = 1,
        dry_run: bool = False,
    ) -> None:
        """Initialize the sync task.

        Args:
            api_client: Photos Library API client instance
            max_concurrent_uploads: Maximum number of images processed at once
            dry_run: If True, simulate album creation and uploads
        """
        self.api_client = api_client
        self.max_concurrent_uploads = max_concurrent_uploads
        self.dry_run = dry_run
        self.index = AlbumIndex()
        self.uploader = MediaUploader(api_client, dry_run=dry_run)
        self._semaphore = asyncio.Semaphore(max_concurrent_uploads)

    async def run(self, root_dir: Path) -> list[UploadResult]:
        """Synchronize root_dir to the photo library.

        Args:
            root_dir: Root of the local folder tree

        Returns:
            One upload result per image found

        Raises:
            AlbumIndexError: If the existing albums cannot be listed
            FileNotFoundError: If root_dir doesn't exist
            NotADirectoryError: If root_dir is not a directory
        """
        images = scan_images(root_dir)
        if not images:
            logger.warning(f"No images found under {root_dir}")
            return []

        await self._bootstrap_index()

        tasks = [
            self._process_image_with_semaphore(photo_path, album_title)
            for photo_path, album_title in images
        ]
        results = list(await asyncio.gather(*tasks))

        failed = sum(1 for r in results if not r.success)
        logger.info(
            f"Synchronized {len(results) - failed} of {len(results)} image(s) "
            f"into {len(self.index)} known album(s)"
        )
        return results

    async def _bootstrap_index(self) -> None:
        """Load every album of the library, app-created or not, into the index."""
        if self.dry_run:
            logger.info("[DRY RUN] Skipping album listing, every album will be simulated")
            return

        try:
            albums = await fetch_all_albums(self.api_client)
        except PhotosAPIError as e:
            raise AlbumIndexError(f"Failed to list existing albums: {e}") from e

        self.index.load(albums)
        logger.info(f"Album fetch finished: {len(self.index)} existing album(s)")

    async def _create_album(self, title: str) -> Album:
        if self.dry_run:
            logger.info(f"[DRY RUN] Would create album: {title}")
            return Album(id=f"dry_run_album:{title}", title=title)
        return await self.api_client.create_album(title)

    async def _process_image_with_semaphore(
        self, photo_path: Path, album_title: str
    ) -> UploadResult:
        async with self._semaphore:
            return await self._process_image(photo_path, album_title)

    async def _process_image(self, photo_path: Path, album_title: str) -> UploadResult:
        """Resolve the target album of one image, then upload and link it."""
        album: Album | None = None
        if album_title:
            try:
                album = await self.index.resolve_or_create(album_title, self._create_album)
            except Exception as e:
                logger.error(
                    f"Failed to create album '{album_title}' for {photo_path.name}: {e}"
                )
                return UploadResult(
                    photo_path=photo_path,
                    album_title=album_title,
                    success=False,
                    error_message=f"Album creation failed: {e}",
                )

        return await self.uploader.upload_to_album(photo_path, album)
