"""Utility functions for the photos album uploader."""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".gif", ".jpeg", ".jpg"}

ALBUM_NAME_SEPARATOR = "-"


def is_image_file(path: Path) -> bool:
    """Check if a file is a supported image format.

    Args:
        path: Path to the file to check

    Returns:
        True if the file is a supported image format, False otherwise
    """
    return path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS


def child_album_name(prefix: str, folder_name: str) -> str:
    """Derive the album name of a subfolder from its parent's album name.

    The root folder has the empty name, so its direct children are named
    after themselves.
    """
    return f"{prefix}{ALBUM_NAME_SEPARATOR}{folder_name}" if prefix else folder_name


def walk_images(
    folder: Path, prefix: str = "", visited: set[Path] | None = None
) -> Iterator[tuple[Path, str]]:
    """Visit a folder tree depth-first, yielding images with their album name.

    Subfolders that cannot be listed are logged and skipped. Errors listing
    ``folder`` itself propagate. A folder reached a second time, through a
    symlink, is skipped so every folder is visited once.

    Args:
        folder: Folder to visit
        prefix: Album name derived for ``folder``
        visited: Resolved folders already visited in this walk

    Yields:
        (image path, album name) pairs in directory listing order
    """
    if visited is None:
        visited = {folder.resolve()}

    for entry in folder.iterdir():
        if is_image_file(entry):
            yield entry, prefix
        elif entry.is_dir():
            resolved = entry.resolve()
            if resolved in visited:
                logger.warning(f"Skipping already visited folder {entry} -> {resolved}")
                continue
            visited.add(resolved)
            try:
                yield from walk_images(
                    entry, child_album_name(prefix, entry.name), visited
                )
            except PermissionError as e:
                logger.warning(f"Skipping unreadable folder {entry}: {e}")
        else:
            logger.debug(f"Skipping non-image file: {entry}")


def scan_images(root_dir: Path) -> list[tuple[Path, str]]:
    """Collect every image under root_dir with the album name it maps to.

    Args:
        root_dir: Root directory to scan

    Returns:
        List of (image path, album name) pairs; root-level images have
        the empty album name

    Raises:
        FileNotFoundError: If root_dir doesn't exist
        NotADirectoryError: If root_dir is not a directory
    """
    if not root_dir.exists():
        raise FileNotFoundError(f"Root directory does not exist: {root_dir}")

    if not root_dir.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {root_dir}")

    images = list(walk_images(root_dir))
    logger.info(f"Found {len(images)} image(s) under {root_dir}")
    return images


def derive_album_names(root_dir: Path) -> set[str]:
    """Return the album names of every folder holding at least one image."""
    return {album_name for _, album_name in scan_images(root_dir) if album_name}


async def paginate(
    fetch_page: Callable[[str | None], Awaitable[tuple[list[T], str | None]]],
) -> AsyncIterator[list[T]]:
    """Iterate over the pages of a token-paginated listing.

    ``fetch_page`` is called with None for the first page and then with each
    returned next-page token. Iteration stops when no token is returned, or
    when the service hands back a token that was already consumed.

    Args:
        fetch_page: Coroutine function returning (items, next page token)

    Yields:
        The items of each page
    """
    seen_tokens: set[str] = set()
    page_token: str | None = None

    while True:
        if page_token is not None:
            seen_tokens.add(page_token)

        items, page_token = await fetch_page(page_token)
        yield items

        if not page_token:
            break
        if page_token in seen_tokens:
            logger.warning(f"Page token {page_token!r} was already consumed, stopping")
            break
