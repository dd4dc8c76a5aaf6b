"""Object storage backends for uploaded images."""

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import StorageConfig
from ..exceptions import ConfigurationError, StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    """Operations the API needs from object storage."""

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        ...

    def delete(self, url: str) -> None:
        ...

    def key_from_url(self, url: str) -> str:
        ...


def _key_from_path(url: str) -> str:
    return urlparse(url).path.lstrip("/")


@dataclass
class InMemoryObjectStorage:
    """Storage kept in a dictionary, used for tests and local development."""

    base_url: str = "https://storage.example.test"
    objects: dict[str, tuple[bytes, str]] = field(default_factory=dict)

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = (data, content_type)
        return f"{self.base_url.rstrip('/')}/{key}"

    def delete(self, url: str) -> None:
        self.objects.pop(self.key_from_url(url), None)

    def key_from_url(self, url: str) -> str:
        return _key_from_path(url)


class FilesystemObjectStorage:
    """Stores objects as files below a directory served from a public URL."""

    def __init__(self, directory: str, public_base_url: str | None = None):
        """Initialize filesystem storage.

        Args:
            directory: Directory that receives uploaded objects
            public_base_url: URL prefix the directory is served from
        """
        self.storage_dir = Path(directory)
        self.public_base_url = (public_base_url or "/static").rstrip("/")

        self.storage_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Filesystem storage initialized - Directory: {self.storage_dir}")

    def _path_for(self, key: str) -> Path:
        path = (self.storage_dir / key).resolve()
        if not path.is_relative_to(self.storage_dir.resolve()):
            raise StorageError(f"Key escapes storage directory: {key}")
        return path

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Filesystem upload failed: {e}") from e
        logger.debug(f"Stored {len(data)} bytes ({content_type}) at {path}")
        return f"{self.public_base_url}/{key}"

    def delete(self, url: str) -> None:
        path = self._path_for(self.key_from_url(url))
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Filesystem delete failed: {e}") from e
        logger.debug(f"Deleted stored file: {path}")

    def key_from_url(self, url: str) -> str:
        if url.startswith(self.public_base_url + "/"):
            return url[len(self.public_base_url) + 1 :]
        return _key_from_path(url)

    def get_storage_stats(self) -> dict[str, Any]:
        """Get storage statistics.

        Returns:
            Dictionary with storage stats
        """
        stats: dict[str, Any] = {
            "total_files": 0,
            "total_size_bytes": 0,
            "total_size_mb": 0.0,
            "by_folder": {},
        }

        for file_path in self.storage_dir.rglob("*"):
            if file_path.is_file():
                file_size = file_path.stat().st_size
                stats["total_files"] += 1
                stats["total_size_bytes"] += file_size
                stats["total_size_mb"] += file_size / (1024 * 1024)

                parts = file_path.relative_to(self.storage_dir).parts
                folder = parts[0] if len(parts) > 1 else ""
                stats["by_folder"][folder] = stats["by_folder"].get(folder, 0) + 1

        return stats


class S3ObjectStorage:
    """S3 (or S3-compatible) storage with public object URLs."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        public_base_url: str | None = None,
        cache_control: str = "max-age=31536000",
        client: Any = None,
    ):
        """Initialize S3 storage.

        Args:
            bucket: Bucket name
            region: Bucket region
            endpoint_url: Custom endpoint for S3-compatible services
            access_key_id: Access key (falls back to the default AWS chain)
            secret_access_key: Secret key (falls back to the default AWS chain)
            public_base_url: URL prefix for objects; virtual-hosted S3 URL if None
            cache_control: Cache-Control header stored with each object
            client: Pre-built boto3 S3 client
        """
        self.bucket = bucket
        self.region = region
        self.cache_control = cache_control
        self.public_base_url = (
            public_base_url or f"https://{bucket}.s3.{region}.amazonaws.com"
        ).rstrip("/")
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=BotoConfig(signature_version="s3v4"),
        )

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl=self.cache_control,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 upload failed: {e}") from e
        return f"{self.public_base_url}/{key}"

    def delete(self, url: str) -> None:
        key = self.key_from_url(url)
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to delete S3 object: {url}: {e}")
            raise StorageError(f"S3 delete failed: {e}") from e

    def key_from_url(self, url: str) -> str:
        return _key_from_path(url)


@dataclass
class ImageUrls:
    """Public URLs of an uploaded image pair."""

    image_url: str
    thumbnail_url: str


def upload_image_pair(
    storage: ObjectStorage,
    thumbnail: bytes,
    large: bytes,
    large_content_type: str = "image/webp",
    folder: str = "images",
    thumbnail_folder: str = "thumbnails",
) -> ImageUrls:
    """Upload the thumbnail and large versions of one image.

    Args:
        storage: Target object storage
        thumbnail: WebP thumbnail bytes
        large: Large image bytes
        large_content_type: MIME type of the large image (WebP or GIF)
        folder: Key prefix for the large image
        thumbnail_folder: Key prefix for the thumbnail

    Returns:
        ImageUrls for both uploaded objects
    """
    file_id = uuid.uuid4()
    extension = "gif" if large_content_type == "image/gif" else "webp"

    thumbnail_url = storage.upload(
        f"{thumbnail_folder}/{file_id}-thumb.webp", thumbnail, "image/webp"
    )
    try:
        image_url = storage.upload(
            f"{folder}/{file_id}-large.{extension}", large, large_content_type
        )
    except StorageError:
        delete_images(storage, thumbnail_url)
        raise

    logger.info(f"Uploaded image pair {file_id} to {folder}/")
    return ImageUrls(image_url=image_url, thumbnail_url=thumbnail_url)


def upload_loss_gif_image_pair(
    storage: ObjectStorage,
    thumbnail: bytes,
    large: bytes,
    large_content_type: str = "image/webp",
) -> ImageUrls:
    """Upload a loss GIF image pair to its dedicated folders."""
    return upload_image_pair(
        storage,
        thumbnail,
        large,
        large_content_type,
        folder="loss-gifs",
        thumbnail_folder="loss-gifs-thumbnails",
    )


def delete_images(storage: ObjectStorage, *urls: str | None) -> None:
    """Delete stored images, logging rather than raising on failure."""
    for url in urls:
        if not url:
            continue
        try:
            storage.delete(url)
        except Exception as e:
            logger.error(f"Failed to cleanup stored image {url}: {e}")


def create_storage(config: StorageConfig) -> ObjectStorage:
    """Create the storage backend selected in configuration.

    Args:
        config: Storage configuration

    Returns:
        ObjectStorage implementation

    Raises:
        ConfigurationError: If the S3 backend is selected without a bucket
    """
    if config.backend == "memory":
        return InMemoryObjectStorage(
            base_url=config.public_base_url or InMemoryObjectStorage.base_url
        )

    if config.backend == "s3":
        if not config.bucket:
            raise ConfigurationError("S3 storage requires a bucket name")
        return S3ObjectStorage(
            bucket=config.bucket,
            region=config.region,
            endpoint_url=config.endpoint_url,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            public_base_url=config.public_base_url,
            cache_control=config.cache_control,
        )

    return FilesystemObjectStorage(config.directory, config.public_base_url)
