"""Photos Album Uploader - Upload local folder trees to Google Photos albums."""

__version__ = "0.1.0"

from photos_album_uploader.album_index import AlbumIndex
from photos_album_uploader.api_client import PhotosLibraryClient
from photos_album_uploader.models import Album, UploadResult
from photos_album_uploader.syncer import AlbumSyncTask
from photos_album_uploader.uploader import MediaUploader
from photos_album_uploader.utils import scan_images, walk_images

__all__ = [
    "PhotosLibraryClient",
    "Album",
    "AlbumIndex",
    "AlbumSyncTask",
    "UploadResult",
    "MediaUploader",
    "scan_images",
    "walk_images",
]
