"""Photos Library API client with retry logic using httpx for async HTTP calls."""

import logging
import mimetypes
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from photos_album_uploader.models import Album, MediaItem, NewMediaItemResult, UploadTicket

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Photos Library API endpoints
PHOTOS_API_BASE_URL = "https://photoslibrary.googleapis.com/v1"
ALBUMS_URL = f"{PHOTOS_API_BASE_URL}/albums"
UPLOADS_URL = f"{PHOTOS_API_BASE_URL}/uploads"
BATCH_CREATE_URL = f"{PHOTOS_API_BASE_URL}/mediaItems:batchCreate"
SEARCH_URL = f"{PHOTOS_API_BASE_URL}/mediaItems:search"

# Maximum page sizes accepted by the API
ALBUMS_PAGE_SIZE = 50
MEDIA_ITEMS_PAGE_SIZE = 100

DEFAULT_TIMEOUT = 60.0


class PhotosAPIError(Exception):
    """Base exception for Photos Library API errors."""

    pass


class RateLimitError(PhotosAPIError):
    """Exception raised when hitting rate limits."""

    pass


class ServerError(PhotosAPIError):
    """Exception raised for 5xx server errors and network failures."""

    pass


class DeadlineExceededError(PhotosAPIError):
    """Exception raised when a remote call does not finish within its deadline."""

    pass


class UploadError(PhotosAPIError):
    """Exception raised when the upload endpoint does not return a token."""

    pass


class PhotosLibraryClient:
    """Client for interacting with the Photos Library API using httpx."""

    def __init__(self, access_token: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize Photos Library API client.

        Args:
            access_token: OAuth 2.0 access token with photoslibrary scopes
            timeout: Deadline in seconds for every remote call
        """
        self.access_token = access_token
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "PhotosLibraryClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.access_token}"},
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
        self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the httpx AsyncClient instance.

        Returns:
            The httpx.AsyncClient instance

        Raises:
            RuntimeError: If client is used outside of async context manager
        """
        if self._client is None:
            raise RuntimeError("Client must be used within async context manager")
        return self._client

    @retry(
        retry=retry_if_exception_type((RateLimitError, ServerError)),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    async def list_albums(
        self,
        page_token: str | None = None,
        exclude_non_app_created: bool = False,
        page_size: int = ALBUMS_PAGE_SIZE,
    ) -> tuple[list[Album], str | None]:
        """Fetch one page of the library's albums.

        Args:
            page_token: Cursor returned by the previous page, None for the first
            exclude_non_app_created: Only list albums created by this app
            page_size: Number of albums to request

        Returns:
            Albums on the page and the next page token (None on the last page)

        Raises:
            PhotosAPIError: If the listing fails
        """
        params = {
            "pageSize": str(page_size),
            "excludeNonAppCreatedData": "true" if exclude_non_app_created else "false",
        }
        if page_token:
            params["pageToken"] = page_token

        result = await self._request_json("GET", ALBUMS_URL, "listing albums", params=params)

        albums = self._parse_resources(Album.from_api, result.get("albums", []), "listing albums")
        next_page_token = result.get("nextPageToken") or None
        logger.debug(f"Listed {len(albums)} album(s), next page token: {next_page_token}")
        return albums, next_page_token

    @retry(
        retry=retry_if_exception_type((RateLimitError, ServerError)),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    async def create_album(self, title: str) -> Album:
        """Create a new album.

        Args:
            title: Album title

        Returns:
            The created album

        Raises:
            PhotosAPIError: If album creation fails
            RateLimitError: If rate limit is exceeded
            ServerError: If server error occurs
        """
        result = await self._request_json(
            "POST",
            ALBUMS_URL,
            f"creating album '{title}'",
            json={"album": {"title": title}},
        )

        album = self._parse_resources(Album.from_api, [result], f"creating album '{title}'")[0]
        logger.info(f"Created album '{album.title}' with ID: {album.id}")
        return album

    @retry(
        retry=retry_if_exception_type((RateLimitError, ServerError)),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    async def upload_bytes(self, photo_path: Path) -> str:
        """Upload the raw bytes of a file.

        The file is opened read-only for the duration of the request only.

        Args:
            photo_path: Path to the photo file

        Returns:
            Upload token to exchange for a media item

        Raises:
            UploadError: If the service returns no upload token
            RateLimitError: If rate limit is exceeded
            ServerError: If server error occurs
            FileNotFoundError: If photo file doesn't exist
        """
        if not photo_path.exists():
            raise FileNotFoundError(f"Photo file not found: {photo_path}")

        context = f"uploading {photo_path.name}"
        mime_type = mimetypes.guess_type(photo_path)[0] or "application/octet-stream"
        headers = {
            "Content-Type": "application/octet-stream",
            "X-Goog-Upload-Content-Type": mime_type,
            "X-Goog-Upload-File-Name": photo_path.name,
            "X-Goog-Upload-Protocol": "raw",
        }

        with photo_path.open("rb") as photo_file:
            response = await self._send(
                "POST", UPLOADS_URL, context, content=photo_file.read(), headers=headers
            )

        if response.status_code >= 400:
            result = self._parse_json_response(response, context)
            self._handle_error_response(response.status_code, result, context)

        upload_token = response.text.strip()
        if not upload_token:
            raise UploadError(f"No upload token returned while {context}")

        logger.debug(f"Uploaded {photo_path.name}, upload token: {upload_token[:16]}...")
        return upload_token

    # Only rate limits are retried: a 5xx may come after the items were created
    @retry(
        retry=retry_if_exception_type(RateLimitError),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    async def batch_create_media_items(
        self, tickets: list[UploadTicket], album_id: str | None = None
    ) -> list[NewMediaItemResult]:
        """Exchange upload tokens for media items, optionally inside an album.

        Args:
            tickets: Uploaded files with their upload tokens
            album_id: Album to add the new media items to, None for the library only

        Returns:
            One result per upload token

        Raises:
            PhotosAPIError: If the request fails as a whole
        """
        body: dict[str, Any] = {
            "newMediaItems": [
                {
                    "simpleMediaItem": {
                        "uploadToken": ticket.upload_token,
                        "fileName": ticket.path.name,
                    }
                }
                for ticket in tickets
            ]
        }
        if album_id:
            body["albumId"] = album_id

        result = await self._request_json(
            "POST",
            BATCH_CREATE_URL,
            f"creating {len(tickets)} media item(s) in album {album_id}",
            json=body,
        )
        return self._parse_resources(
            NewMediaItemResult.from_api,
            result.get("newMediaItemResults", []),
            f"creating media items in album {album_id}",
        )

    @retry(
        retry=retry_if_exception_type((RateLimitError, ServerError)),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    async def search_media_items(
        self,
        album_id: str,
        page_token: str | None = None,
        page_size: int = MEDIA_ITEMS_PAGE_SIZE,
    ) -> tuple[list[MediaItem], str | None]:
        """Fetch one page of the media items in an album."""
        body: dict[str, Any] = {"albumId": album_id, "pageSize": page_size}
        if page_token:
            body["pageToken"] = page_token

        result = await self._request_json(
            "POST", SEARCH_URL, f"listing media items of album {album_id}", json=body
        )

        items = self._parse_resources(
            MediaItem.from_api, result.get("mediaItems", []), f"listing media items of album {album_id}"
        )
        return items, result.get("nextPageToken") or None

    async def _send(
        self, method: str, url: str, context: str, **kwargs: Any
    ) -> httpx.Response:
        """Send a request, mapping transport failures to API errors.

        Args:
            method: HTTP method
            url: Request URL
            context: Description of the operation, used in errors and logs
            **kwargs: Passed through to httpx

        Returns:
            The httpx Response object

        Raises:
            DeadlineExceededError: If the call exceeds the client timeout
            ServerError: On any other network error
        """
        try:
            return await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Deadline of {self.timeout}s exceeded while {context}")
            raise DeadlineExceededError(f"Deadline exceeded while {context}: {e}") from e
        except httpx.RequestError as e:
            logger.warning(f"Network error while {context}: {e}")
            raise ServerError(f"Network error: {e}") from e

    async def _request_json(
        self, method: str, url: str, context: str, **kwargs: Any
    ) -> dict[str, Any]:
        response = await self._send(method, url, context, **kwargs)
        result = self._parse_json_response(response, context)

        if response.status_code >= 400:
            self._handle_error_response(response.status_code, result, context)

        return result

    def _parse_resources(
        self, parse: Callable[[dict[str, Any]], T], resources: list[Any], context: str
    ) -> list[T]:
        """Build models from API resources, treating malformed ones as API errors.

        Raises:
            PhotosAPIError: If a resource lacks required fields or has invalid values
        """
        try:
            return [parse(resource) for resource in resources]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed response while {context}: {e!r}")
            raise PhotosAPIError(f"Malformed response while {context}: {e!r}") from e

    def _parse_json_response(
        self, response: httpx.Response, context: str
    ) -> dict[str, Any]:
        """Parse JSON response, handling non-JSON responses gracefully.

        Args:
            response: The httpx Response object
            context: Description of what operation was attempted

        Returns:
            Parsed JSON as a dictionary

        Raises:
            RateLimitError: If response is 429 with non-JSON body
            ServerError: If response is 5xx with non-JSON body
            PhotosAPIError: If response has invalid JSON for other statuses
        """
        try:
            return response.json()
        except ValueError:
            # Non-JSON response (e.g., HTML error page during outages)
            if response.status_code == 429:
                logger.warning(f"Rate limit exceeded while {context}, will retry")
                raise RateLimitError(f"Rate limit exceeded: {response.text[:200]}")
            if response.status_code >= 500:
                logger.warning(f"Server returned non-JSON response while {context}, will retry")
                raise ServerError(
                    f"Server error {response.status_code}: {response.text[:200]}"
                )
            raise PhotosAPIError(
                f"Invalid API response while {context}: {response.text[:200]}"
            )

    def _handle_error_response(
        self, status_code: int, result: dict[str, Any], context: str
    ) -> None:
        """Handle error responses from the Photos Library API.

        Args:
            status_code: HTTP status code
            result: Response JSON body
            context: Description of what operation failed

        Raises:
            RateLimitError: If rate limit is exceeded
            ServerError: If server error occurs
            PhotosAPIError: For other API errors
        """
        error = result.get("error", {})
        if not isinstance(error, dict):
            error = {"message": str(error)}
        error_status = error.get("status", "")
        error_message = error.get("message", str(result))

        if status_code == 429 or error_status == "RESOURCE_EXHAUSTED":
            logger.warning(f"Rate limit exceeded while {context}, will retry")
            raise RateLimitError(f"Photos API rate limit exceeded: {error_message}")

        if status_code >= 500:
            logger.warning(f"Server error while {context}")
            raise ServerError(f"Photos API server error: {error_message}")

        # Other errors - don't retry
        error_msg = f"Photos API error while {context}: {error_message}"
        logger.error(error_msg)
        raise PhotosAPIError(error_msg)
