"""Command-line interface for the photos album uploader."""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from photos_album_uploader.album_index import AlbumIndex
from photos_album_uploader.api_client import DEFAULT_TIMEOUT, PhotosLibraryClient
from photos_album_uploader.models import Album, MediaItem, UploadResult
from photos_album_uploader.syncer import AlbumSyncTask, fetch_all_albums
from photos_album_uploader.uploader import MediaUploader
from photos_album_uploader.utils import paginate

app = typer.Typer(
    name="photos-album-uploader",
    help="Upload local folders and photos to Google Photos albums",
    add_completion=False,
)
console = Console()

ACCESS_TOKEN_OPTION = typer.Option(
    None,
    "--access-token",
    "-t",
    envvar="PHOTOS_ACCESS_TOKEN",
    help="Photos Library API access token (or set PHOTOS_ACCESS_TOKEN env var)",
)
TIMEOUT_OPTION = typer.Option(
    DEFAULT_TIMEOUT,
    "--timeout",
    min=1.0,
    help="Deadline in seconds for each remote call",
)
MAX_CONCURRENT_OPTION = typer.Option(
    1,
    "--max-concurrent",
    "-c",
    min=1,
    max=20,
    help="Maximum number of concurrent uploads",
)
VERBOSE_OPTION = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable verbose logging",
)


def setup_logging(verbose: bool) -> None:
    """Configure logging with Rich handler.

    Args:
        verbose: Enable verbose (DEBUG) logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def require_access_token(access_token: str | None) -> str:
    if not access_token:
        console.print(
            "[red]Error: Photos Library access token is required. "
            "Provide via --access-token or PHOTOS_ACCESS_TOKEN environment variable.[/red]"
        )
        raise typer.Exit(1)
    return access_token


def print_summary(results: list[UploadResult]) -> int:
    """Print the outcome of an upload run.

    Returns:
        Exit code (0 if every file was uploaded and linked, 1 otherwise)
    """
    successful = sum(1 for r in results if r.success)
    failed = len(results) - successful

    console.print("\n[bold]Upload Summary:[/bold]")
    console.print(f"  Total photos: {len(results)}")
    console.print(f"  [green]Successful: {successful}[/green]")
    console.print(f"  [red]Failed: {failed}[/red]")

    if failed == 0:
        return 0

    console.print("\n[bold red]Failed uploads:[/bold red]")
    for result in results:
        if not result.success:
            console.print(
                f"  - {result.photo_path} ({result.album_title or 'no album'}): "
                f"{result.error_message}",
                markup=False,
            )

    orphaned = [r for r in results if r.orphaned]
    if orphaned:
        console.print("\n[bold yellow]Uploaded but not added to an album:[/bold yellow]")
        for result in orphaned:
            console.print(
                f"  - {result.photo_path}: upload token {result.upload_token}",
                markup=False,
            )
    return 1


async def async_sync(
    root_dir: Path,
    access_token: str,
    dry_run: bool,
    max_concurrent: int,
    timeout: float,
) -> int:
    """Async folder synchronization.

    Args:
        root_dir: Root of the folder tree to synchronize
        access_token: Photos Library API access token
        dry_run: If True, simulate uploads without API calls
        max_concurrent: Maximum concurrent uploads
        timeout: Deadline in seconds for each remote call

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    logger = logging.getLogger(__name__)

    try:
        logger.info(f"Synchronizing folder tree: {root_dir}")
        async with PhotosLibraryClient(access_token, timeout=timeout) as api_client:
            task = AlbumSyncTask(
                api_client,
                max_concurrent_uploads=max_concurrent,
                dry_run=dry_run,
            )
            results = await task.run(root_dir)

        return print_summary(results)

    except Exception as e:
        logger.error(f"Synchronization failed: {e}", exc_info=True)
        return 1


async def async_list_albums(access_token: str, timeout: float) -> int:
    logger = logging.getLogger(__name__)

    try:
        async with PhotosLibraryClient(access_token, timeout=timeout) as api_client:
            albums = await fetch_all_albums(api_client)
    except Exception as e:
        logger.error(f"Listing albums failed: {e}", exc_info=True)
        return 1

    table = Table(title=f"Albums ({len(albums)})")
    table.add_column("Title")
    table.add_column("Items", justify="right")
    table.add_column("ID", overflow="fold")
    for album in albums:
        table.add_row(album.title or "(untitled)", str(album.media_items_count), album.id)
    console.print(table)
    return 0


async def async_list_items(album_title: str, access_token: str, timeout: float) -> int:
    logger = logging.getLogger(__name__)

    try:
        async with PhotosLibraryClient(access_token, timeout=timeout) as api_client:
            album = await find_album(api_client, album_title)
            if album is None:
                console.print(f"[red]Album not found: {album_title}[/red]")
                return 1

            async def fetch_page(
                page_token: str | None,
            ) -> tuple[list[MediaItem], str | None]:
                return await api_client.search_media_items(album.id, page_token=page_token)

            items: list[MediaItem] = []
            async for page in paginate(fetch_page):
                items.extend(page)
    except Exception as e:
        logger.error(f"Listing media items failed: {e}", exc_info=True)
        return 1

    table = Table(title=f"{album.title} ({len(items)} item(s))")
    table.add_column("File name")
    table.add_column("Type")
    table.add_column("ID", overflow="fold")
    for item in items:
        table.add_row(item.filename, item.mime_type or "", item.id)
    console.print(table)
    return 0


async def async_create_album(title: str, access_token: str, timeout: float) -> int:
    logger = logging.getLogger(__name__)

    try:
        async with PhotosLibraryClient(access_token, timeout=timeout) as api_client:
            album = await api_client.create_album(title)
    except Exception as e:
        logger.error(f"Creating album failed: {e}", exc_info=True)
        return 1

    console.print(f"Created album [bold]{album.title}[/bold] ({album.id})")
    return 0


async def async_upload_files(
    album_title: str,
    photo_paths: list[Path],
    access_token: str,
    create: bool,
    max_concurrent: int,
    timeout: float,
) -> int:
    logger = logging.getLogger(__name__)

    try:
        async with PhotosLibraryClient(access_token, timeout=timeout) as api_client:
            album = await find_album(api_client, album_title)
            if album is None:
                if not create:
                    console.print(
                        f"[red]Album not found: {album_title} "
                        "(use --create to create it)[/red]"
                    )
                    return 1
                album = await api_client.create_album(album_title)

            uploader = MediaUploader(api_client, max_concurrent_uploads=max_concurrent)
            # Spinner stays up until every file is uploaded and linked or has failed
            with console.status(f"Uploading {len(photo_paths)} file(s) to '{album.title}'..."):
                results = await uploader.upload_files(album, photo_paths)
    except Exception as e:
        logger.error(f"Upload failed: {e}", exc_info=True)
        return 1

    return print_summary(results)


async def find_album(api_client: PhotosLibraryClient, title: str) -> Album | None:
    """Return the album titled ``title``, or None if the library has none."""
    index = AlbumIndex()
    index.load(await fetch_all_albums(api_client))
    return index.get(title)


@app.command()
def sync(
    root_dir: Path = typer.Argument(
        ...,
        help="Root directory of the folder tree to upload",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    access_token: str = ACCESS_TOKEN_OPTION,
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Simulate album creation and uploads without making API calls",
    ),
    max_concurrent: int = MAX_CONCURRENT_OPTION,
    timeout: float = TIMEOUT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Upload a folder tree into albums named after its folders.

    Every image below ROOT_DIR is uploaded to the album named after the path
    of its folder relative to ROOT_DIR, with segments joined by hyphens
    (ROOT_DIR/2020/summer/a.jpg goes to album "2020-summer"). Existing albums
    are reused; missing ones are created. Images directly in ROOT_DIR are
    added to the library without an album.
    """
    setup_logging(verbose)

    if dry_run and not access_token:
        access_token = "dry_run_token"
    access_token = require_access_token(access_token)

    exit_code = asyncio.run(
        async_sync(root_dir, access_token, dry_run, max_concurrent, timeout)
    )
    raise typer.Exit(exit_code)


@app.command()
def albums(
    access_token: str = ACCESS_TOKEN_OPTION,
    timeout: float = TIMEOUT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """List every album in the library."""
    setup_logging(verbose)
    access_token = require_access_token(access_token)
    raise typer.Exit(asyncio.run(async_list_albums(access_token, timeout)))


@app.command()
def items(
    album_title: str = typer.Argument(..., help="Title of the album to list"),
    access_token: str = ACCESS_TOKEN_OPTION,
    timeout: float = TIMEOUT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """List the media items of an album."""
    setup_logging(verbose)
    access_token = require_access_token(access_token)
    raise typer.Exit(asyncio.run(async_list_items(album_title, access_token, timeout)))


@app.command("create-album")
def create_album(
    title: str = typer.Argument(..., help="Title of the new album"),
    access_token: str = ACCESS_TOKEN_OPTION,
    timeout: float = TIMEOUT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Create an empty album."""
    setup_logging(verbose)
    access_token = require_access_token(access_token)
    raise typer.Exit(asyncio.run(async_create_album(title, access_token, timeout)))


@app.command()
def upload(
    album_title: str = typer.Argument(..., help="Title of the album to upload to"),
    files: list[Path] = typer.Argument(
        ...,
        help="Files to upload",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    access_token: str = ACCESS_TOKEN_OPTION,
    create: bool = typer.Option(
        False,
        "--create",
        help="Create the album if it does not exist",
    ),
    max_concurrent: int = MAX_CONCURRENT_OPTION,
    timeout: float = TIMEOUT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Upload files into an album."""
    setup_logging(verbose)
    access_token = require_access_token(access_token)

    exit_code = asyncio.run(
        async_upload_files(
            album_title, files, access_token, create, max_concurrent, timeout
        )
    )
    raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
