"""
Image upload collaborators.

file:// stores images in a local directory.
http(s):// posts images to a media service that answers with ``{"url": ...}``.

The engine only relies on ``ImageUploader.upload`` returning a stable media
reference or raising.
"""
from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import httpx
import structlog

from .schemas import RawImage

logger = structlog.get_logger(__name__)


class ImageUploadError(Exception):
    """Raised by an uploader when an image could not be stored."""


class ImageUploader(ABC):
    """Abstract base class for image storage."""

    @abstractmethod
    async def upload(self, image: RawImage) -> str:
        """Store one image and return its media reference."""
        pass

    async def aclose(self) -> None:
        """Release any held resources."""
        return None


class LocalImageUploader(ImageUploader):
    """Local filesystem image store (file:// URIs)."""

    def __init__(self, base_path: Path, public_base_url: Optional[str] = None):
        self.base_path = base_path
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _write(self, name: str, content: bytes) -> Path:
        full_path = self.base_path / name
        full_path.write_bytes(content)
        return full_path

    async def upload(self, image: RawImage) -> str:
        name = f"{uuid.uuid4().hex}{Path(image.filename).suffix.lower()}"
        try:
            full_path = await asyncio.to_thread(self._write, name, image.content)
        except OSError as e:
            raise ImageUploadError(f"Could not store {image.filename}: {e}") from e

        if self.public_base_url:
            return f"{self.public_base_url}/{name}"
        return full_path.resolve().as_uri()


class HttpImageUploader(ImageUploader):
    """Uploads images to a remote media service."""

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"} if api_key else {},
        )

    async def upload(self, image: RawImage) -> str:
        files = {
            "file": (
                image.filename,
                image.content,
                image.content_type or "application/octet-stream",
            )
        }
        try:
            response = await self.client.post(self.endpoint, files=files)
            response.raise_for_status()
            return str(response.json()["url"])
        except httpx.HTTPError as e:
            logger.error("image_service_request_failed", filename=image.filename, error=str(e))
            raise ImageUploadError(f"Media service rejected {image.filename}: {e}") from e
        except (KeyError, ValueError) as e:
            raise ImageUploadError(
                f"Media service returned no url for {image.filename}"
            ) from e

    async def aclose(self) -> None:
        await self.client.aclose()


def create_image_uploader(
    uri: str,
    public_base_url: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: float = 30.0,
) -> ImageUploader:
    """Factory function to create the uploader for a storage URI.

    Args:
        uri: "file:///srv/media", "file://./media" or "https://media.example/upload"
        public_base_url: URL prefix for locally stored images
        api_key: Bearer token for the media service
        timeout: HTTP timeout for the media service

    Raises:
        ValueError: If URI scheme is not supported
    """
    parsed = urlparse(uri)

    if parsed.scheme == "file":
        # file://./media keeps the relative part in netloc
        return LocalImageUploader(Path(parsed.netloc + parsed.path), public_base_url)

    elif parsed.scheme in ("http", "https"):
        return HttpImageUploader(uri, api_key=api_key, timeout=timeout)

    else:
        raise ValueError(
            f"Unsupported image storage scheme: {parsed.scheme}. "
            f"Supported: file://, http://, https://"
        )


_image_uploader: Optional[ImageUploader] = None


def get_image_uploader() -> ImageUploader:
    """Get the process-wide uploader, creating it from settings on first use."""
    global _image_uploader
    if _image_uploader is None:
        from ..config import get_settings

        settings = get_settings()
        _image_uploader = create_image_uploader(
            settings.image_store_uri,
            public_base_url=settings.image_public_base_url,
            api_key=settings.image_service_api_key,
            timeout=settings.upload_timeout_seconds,
        )
    return _image_uploader


async def close_image_uploader() -> None:
    """Close and forget the process-wide uploader."""
    global _image_uploader
    if _image_uploader is not None:
        await _image_uploader.aclose()
        _image_uploader = None
