"""Index of remote albums keyed by title."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from photos_album_uploader.models import Album

logger = logging.getLogger(__name__)


class AlbumIndex:
    """Maps album titles to albums, creating missing ones at most once.

    Writes go through ``load`` (bootstrap) and ``resolve_or_create``. Creation
    is serialized per title, so concurrent workers missing on the same title
    issue a single create call and share its result.
    """

    def __init__(self) -> None:
        self._albums: dict[str, Album] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._albums)

    def __contains__(self, title: object) -> bool:
        return title in self._albums

    def get(self, title: str) -> Album | None:
        return self._albums.get(title)

    def titles(self) -> list[str]:
        return list(self._albums)

    def load(self, albums: Iterable[Album]) -> None:
        """Insert existing albums; a later album wins over an earlier one with the same title."""
        for album in albums:
            if not album.title:
                logger.debug(f"Skipping untitled album {album.id}")
                continue
            if album.title in self._albums:
                logger.warning(
                    f"Duplicate album title '{album.title}', using album {album.id}"
                )
            self._albums[album.title] = album
            logger.debug(f"Loaded existing album '{album.title}'")

    async def resolve_or_create(
        self, title: str, create: Callable[[str], Awaitable[Album]]
    ) -> Album:
        """Return the album titled ``title``, creating it if the index has none.

        Args:
            title: Album title to resolve
            create: Coroutine function creating an album with the given title

        Returns:
            The existing or newly created album

        Raises:
            Whatever ``create`` raises; the index is left unchanged
        """
        album = self._albums.get(title)
        if album is not None:
            return album

        lock = self._locks.setdefault(title, asyncio.Lock())
        async with lock:
            # Another worker may have created it while we waited
            album = self._albums.get(title)
            if album is not None:
                return album

            logger.info(f"Creating album: {title}")
            album = await create(title)
            self._albums[title] = album
            return album
