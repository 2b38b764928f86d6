"""
Source image loading for Postcrop.

A SourceImage wraps whatever the editor was given (http(s) URL, data URL,
filesystem path or raw bytes) and decodes it once. Decoding runs in a worker
thread so the event loop suspends instead of blocking; everything after the
decode is synchronous.
"""

import asyncio
import base64
import binascii
import io
import uuid
from pathlib import Path

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from ..core.config import settings
from ..core.logging import get_logger
from ..observability.metrics import metrics
from .platforms import Size

logger = get_logger("media.image_source")


class ImageLoadError(Exception):
    """Raised when a source image cannot be fetched or decoded."""

    pass


class SourceImage:
    """The single image being cropped in an editing session."""

    def __init__(self, source: str | bytes | Path, client: httpx.AsyncClient | None = None):
        """
        Args:
            source: http(s) URL, ``data:`` URL, filesystem path or encoded bytes
            client: Optional shared HTTP client for URL sources
        """
        self.source = source
        self.token = uuid.uuid4().hex
        self._client = client
        self._image: Image.Image | None = None

    @property
    def kind(self) -> str:
        if isinstance(self.source, (bytes, bytearray)):
            return "bytes"
        if isinstance(self.source, Path):
            return "path"
        if self.source.startswith(("http://", "https://")):
            return "url"
        if self.source.startswith("data:"):
            return "data_url"
        return "path"

    @property
    def is_loaded(self) -> bool:
        return self._image is not None

    @property
    def size(self) -> Size | None:
        if self._image is None:
            return None
        return Size(*self._image.size)

    async def load(self) -> Image.Image:
        """
        Fetch and decode the image; later calls return the cached bitmap.

        Raises:
            ImageLoadError: on fetch, size-limit or decode failure
        """
        if self._image is not None:
            return self._image

        kind = self.kind
        try:
            data = await self._read_bytes(kind)
            if len(data) > settings.image.max_image_bytes:
                raise ImageLoadError(
                    f"Image is {len(data)} bytes, limit is {settings.image.max_image_bytes}"
                )
            image = await asyncio.get_event_loop().run_in_executor(None, _decode, data)
        except ImageLoadError as e:
            metrics.track_image_load(kind, False)
            logger.warning("Source image load failed", source_kind=kind, error=str(e))
            raise

        metrics.track_image_load(kind, True)
        logger.info("Source image loaded", source_kind=kind, width=image.width, height=image.height)
        self._image = image
        return image

    async def _read_bytes(self, kind: str) -> bytes:
        if kind == "bytes":
            return bytes(self.source)

        if kind == "data_url":
            return _decode_data_url(self.source)

        if kind == "url":
            return await self._fetch(self.source)

        path = Path(self.source)
        try:
            return await asyncio.get_event_loop().run_in_executor(None, path.read_bytes)
        except OSError as e:
            raise ImageLoadError(f"Cannot read image file {path}: {e}") from e

    async def _fetch(self, url: str) -> bytes:
        headers = {"User-Agent": settings.image.user_agent}
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=settings.image.http_timeout) as client:
                    response = await client.get(url, headers=headers, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ImageLoadError(f"Cannot fetch image {url}: {e}") from e

        return response.content


def _decode_data_url(url: str) -> bytes:
    header, _, payload = url.partition(",")
    if not payload:
        raise ImageLoadError("Malformed data URL")
    if not header.endswith(";base64"):
        raise ImageLoadError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageLoadError(f"Invalid base64 payload: {e}") from e


def _decode(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageLoadError(f"Cannot decode image: {e}") from e

    # Match browser rendering of EXIF-rotated photos
    image = ImageOps.exif_transpose(image)
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")
    return image
