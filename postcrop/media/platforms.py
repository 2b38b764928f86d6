"""
Platform geometry table for Postcrop.

Maps a platform identifier to the dimensions of its preview/publish frame
and scales that frame down to the on-screen preview container.
"""

import math
from dataclasses import dataclass

from ..core.config import settings


class UnknownPlatformError(Exception):
    """Raised for a platform identifier missing from the geometry table."""

    pass


@dataclass(frozen=True)
class Size:
    """Width/height pair in pixels."""
    width: float
    height: float

    @property
    def aspect(self) -> float:
        return self.width / self.height if self.height else 0.0


@dataclass(frozen=True)
class PlatformSpec:
    """Preview frame of one publishing platform."""
    platform: str
    width: int
    height: int
    label: str            # aspect label, e.g. "4:5"
    description: str
    background_color: str = "#0F0F0F"


PLATFORM_SPECS: dict[str, PlatformSpec] = {
    "facebook": PlatformSpec("facebook", 1200, 630, "1.91:1", "Link preview"),
    "instagram": PlatformSpec("instagram", 1080, 1350, "4:5", "Feed portrait"),
    "twitter": PlatformSpec("twitter", 1200, 675, "16:9", "Media tweet"),
    "linkedin": PlatformSpec("linkedin", 1200, 627, "1.91:1", "Share card"),
    "youtube": PlatformSpec("youtube", 1280, 720, "16:9", "Thumbnail", background_color="#000000"),
    "tiktok": PlatformSpec("tiktok", 1080, 1920, "9:16", "In-feed vertical", background_color="#000000"),
    "pinterest": PlatformSpec("pinterest", 1000, 1500, "2:3", "Standard pin"),
}

PLATFORM_LABELS = {
    "facebook": "Facebook",
    "instagram": "Instagram",
    "twitter": "X (Twitter)",
    "linkedin": "LinkedIn",
    "youtube": "YouTube",
    "tiktok": "TikTok",
    "pinterest": "Pinterest",
}

CROPPABLE_MEDIA_TYPES = frozenset({"image"})


def get_platform_spec(platform: str) -> PlatformSpec:
    """Get the geometry entry for a platform."""
    spec = PLATFORM_SPECS.get(platform.lower())
    if spec is None:
        raise UnknownPlatformError(f"Unknown platform: {platform}")
    return spec


def get_all_platforms() -> list[str]:
    """Identifiers of every platform in the table, in display order."""
    return list(PLATFORM_SPECS)


def platform_label(platform: str) -> str:
    """Human label for a platform; falls back to the identifier."""
    return PLATFORM_LABELS.get(platform, platform)


def platform_dimensions(platform: str) -> Size:
    """Native frame dimensions of a platform."""
    spec = get_platform_spec(platform)
    return Size(spec.width, spec.height)


def display_size(platform: str, max_width: int | None = None) -> Size:
    """
    Scale a platform frame to the preview container.

    Args:
        platform: Platform identifier
        max_width: Requested max preview width, clamped to [200, 800];
            defaults to the configured display width

    Returns:
        Container size. Frames narrower than max_width are returned unscaled.
    """
    spec = get_platform_spec(platform)
    clamped = settings.clamp_display_width(max_width)

    if spec.width <= clamped:
        return Size(spec.width, spec.height)

    ratio = spec.height / spec.width
    # half-up rounding, matching the preview renderer
    return Size(clamped, math.floor(clamped * ratio + 0.5))


def supports_crop(media_type: str | None) -> bool:
    """Videos and unknown media pass through uncropped."""
    return (media_type or "").lower() in CROPPABLE_MEDIA_TYPES
