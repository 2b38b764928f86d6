"""
Unit tests for source image loading.

Tests for:
- Raw bytes, data URL, filesystem and http(s) sources
- Decode caching
- Fetch, size-limit and decode failures
"""

import base64
import io
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from PIL import Image

from postcrop.core.config import settings
from postcrop.media.image_source import ImageLoadError, SourceImage
from postcrop.media.platforms import Size


def png_transport(payload: bytes, status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=payload, headers={"Content-Type": "image/png"})

    return httpx.MockTransport(handler)


class TestSourceKinds:
    """Test source type detection and decoding."""

    @pytest.mark.asyncio
    async def test_bytes_source(self, split_png):
        source = SourceImage(split_png)

        image = await source.load()

        assert source.kind == "bytes"
        assert image.size == (200, 100)
        assert source.is_loaded
        assert source.size == Size(200, 100)

    @pytest.mark.asyncio
    async def test_decode_cached(self, split_png):
        source = SourceImage(split_png)

        first = await source.load()
        second = await source.load()

        assert first is second

    @pytest.mark.asyncio
    async def test_data_url_source(self, split_png):
        url = "data:image/png;base64," + base64.b64encode(split_png).decode("ascii")
        source = SourceImage(url)

        image = await source.load()

        assert source.kind == "data_url"
        assert image.size == (200, 100)

    @pytest.mark.asyncio
    async def test_path_source(self, split_png, tmp_path):
        path = tmp_path / "photo.png"
        path.write_bytes(split_png)

        from_str = SourceImage(str(path))
        from_path = SourceImage(Path(path))

        assert from_str.kind == "path"
        assert from_path.kind == "path"
        assert (await from_str.load()).size == (200, 100)
        assert (await from_path.load()).size == (200, 100)

    @pytest.mark.asyncio
    async def test_url_source(self, split_png):
        async with httpx.AsyncClient(transport=png_transport(split_png)) as client:
            source = SourceImage("https://cdn.example.com/photo.png", client=client)

            image = await source.load()

        assert source.kind == "url"
        assert image.size == (200, 100)

    @pytest.mark.asyncio
    async def test_grayscale_converted(self):
        buffer = io.BytesIO()
        Image.new("L", (10, 10), 128).save(buffer, format="PNG")

        image = await SourceImage(buffer.getvalue()).load()

        assert image.mode == "RGBA"

    def test_tokens_unique(self, split_png):
        assert SourceImage(split_png).token != SourceImage(split_png).token

    def test_size_unknown_before_load(self, split_png):
        source = SourceImage(split_png)

        assert source.is_loaded is False
        assert source.size is None


class TestLoadFailures:
    """Test load errors."""

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        async with httpx.AsyncClient(transport=png_transport(b"", status_code=404)) as client:
            source = SourceImage("https://cdn.example.com/missing.png", client=client)

            with pytest.raises(ImageLoadError, match="Cannot fetch"):
                await source.load()

        assert source.is_loaded is False

    @pytest.mark.asyncio
    async def test_network_error(self):
        client = httpx.AsyncClient()
        source = SourceImage("https://cdn.example.com/photo.png", client=client)

        with patch.object(client, "get", side_effect=httpx.RequestError("Network error")):
            with pytest.raises(ImageLoadError, match="Network error"):
                await source.load()

        await client.aclose()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        source = SourceImage(tmp_path / "nope.png")

        with pytest.raises(ImageLoadError, match="Cannot read"):
            await source.load()

    @pytest.mark.asyncio
    async def test_undecodable_bytes(self):
        with pytest.raises(ImageLoadError, match="Cannot decode"):
            await SourceImage(b"definitely not a png").load()

    @pytest.mark.asyncio
    async def test_oversized_pixel_count(self, split_png, monkeypatch):
        # 200x100 is more than twice this limit, which Pillow refuses outright
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 5000)
        source = SourceImage(split_png)

        with pytest.raises(ImageLoadError, match="Cannot decode"):
            await source.load()

        assert source.is_loaded is False

    @pytest.mark.asyncio
    async def test_size_limit(self, split_png, monkeypatch):
        monkeypatch.setattr(settings.image, "max_image_bytes", 16)

        with pytest.raises(ImageLoadError, match="limit"):
            await SourceImage(split_png).load()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url",
        [
            "data:image/png;base64",
            "data:image/png,rawpixels",
            "data:image/png;base64,@@not-base64@@",
        ],
    )
    async def test_malformed_data_url(self, url):
        with pytest.raises(ImageLoadError):
            await SourceImage(url).load()
