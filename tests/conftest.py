"""Pytest fixtures shared by the crop engine tests."""

import io

import pytest
from PIL import Image

from postcrop.media.crop_state import CropStateStore
from postcrop.media.platforms import Size

RED = (255, 0, 0)
BLUE = (0, 0, 255)


def make_png(width: int, height: int, split: bool = True) -> bytes:
    """PNG with a red left half and a blue right half."""
    image = Image.new("RGB", (width, height), RED)
    if split:
        image.paste(BLUE, (width // 2, 0, width, height))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def split_png() -> bytes:
    """200x100 red/blue image."""
    return make_png(200, 100)


@pytest.fixture
def square_store() -> CropStateStore:
    """Store whose platforms all preview in a 100x100 container."""
    store = CropStateStore(lambda platform: Size(100, 100))
    store.reset(["instagram", "facebook"])
    return store


@pytest.fixture
def wide_png() -> bytes:
    """2000x1000 red/blue image."""
    return make_png(2000, 1000)
