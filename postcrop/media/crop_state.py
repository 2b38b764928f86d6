"""
Crop state store for Postcrop.

Holds one PlatformCropState per selected platform for the image being
edited. States are frozen: every setter replaces the platform's entry and
leaves the other platforms untouched, then notifies invalidation listeners
so any cached raster for that platform is dropped.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from ..core.config import settings
from ..core.logging import get_logger
from .geometry import (
    IDENTITY_TRANSFORM,
    CropBox,
    CropTransform,
    clamp_offset,
    clamp_transform,
    clamp_zoom,
)
from .platforms import Size, display_size

logger = get_logger("media.crop_state")

OFFSET_AXES = ("offset_x", "offset_y")

# Draft payloads use the camelCase axis names
_AXIS_ALIASES = {"offsetX": "offset_x", "offsetY": "offset_y"}


class CropStateError(Exception):
    """Raised when a platform has no registered crop state."""

    pass


@dataclass(frozen=True)
class AccountRef:
    """Social account bound to a platform."""
    id: str
    platform: str
    name: str = ""
    status: str = "connected"

    @property
    def is_connected(self) -> bool:
        return self.status == "connected"


@dataclass(frozen=True)
class PlatformCropState:
    """Crop settings of one platform."""
    platform: str
    transform: CropTransform
    crop_box: CropBox
    is_connected: bool = False
    account: AccountRef | None = None


def default_crop_box(container: Size) -> CropBox:
    """Centred box at 80% of the container, capped at 280x300."""
    crop = settings.crop
    width = min(container.width * crop.default_box_ratio, crop.default_box_max_width)
    height = min(container.height * crop.default_box_ratio, crop.default_box_max_height)
    return CropBox(
        width=width,
        height=height,
        left=(container.width - width) / 2,
        top=(container.height - height) / 2,
    )


class CropStateStore:
    """Per-platform crop states of one editing session."""

    def __init__(self, display_size_fn: Callable[[str], Size] = display_size):
        self._display_size = display_size_fn
        self._states: dict[str, PlatformCropState] = {}
        self._listeners: list[Callable[[str], None]] = []

    def __contains__(self, platform: str) -> bool:
        return platform in self._states

    def __len__(self) -> int:
        return len(self._states)

    @property
    def platforms(self) -> list[str]:
        return list(self._states)

    def add_invalidation_listener(self, listener: Callable[[str], None]):
        """Register a callback invoked with the platform on every mutation."""
        self._listeners.append(listener)

    def container_for(self, platform: str) -> Size:
        return self._display_size(platform)

    def default_state(self, platform: str, account: AccountRef | None = None) -> PlatformCropState:
        connected = account is not None and account.is_connected
        return PlatformCropState(
            platform=platform,
            transform=IDENTITY_TRANSFORM,
            crop_box=default_crop_box(self._display_size(platform)),
            is_connected=connected,
            account=account if connected else None,
        )

    def peek(self, platform: str) -> PlatformCropState | None:
        return self._states.get(platform)

    def get_state(self, platform: str) -> PlatformCropState:
        """Get the registered state, or a fresh default that is not stored."""
        state = self._states.get(platform)
        if state is None:
            state = self.default_state(platform)
        return state

    def require(self, platform: str) -> PlatformCropState:
        state = self._states.get(platform)
        if state is None:
            raise CropStateError(f"No crop state registered for platform '{platform}'")
        return state

    def reset(self, platforms: Iterable[str],
              connected_account: Callable[[str], AccountRef | None] | None = None):
        """
        Re-seed the collection for the selected platforms.

        Every selected platform gets a default state; entries for platforms
        that are no longer selected are discarded.
        """
        previous = set(self._states)
        states = {}
        for platform in platforms:
            account = connected_account(platform) if connected_account else None
            states[platform] = self.default_state(platform, account)

        self._states = states
        logger.info("Crop states reset", platforms=list(states), dropped=sorted(previous - set(states)))

        for platform in previous | set(states):
            self._notify(platform)

    def clear(self):
        platforms = list(self._states)
        self._states = {}
        for platform in platforms:
            self._notify(platform)

    def set_zoom(self, platform: str, value: float) -> PlatformCropState:
        state = self.require(platform)
        transform = replace(state.transform, zoom=clamp_zoom(value))
        return self._store(replace(state, transform=transform))

    def set_offset(self, platform: str, axis: str, value: float) -> PlatformCropState:
        axis = _AXIS_ALIASES.get(axis, axis)
        if axis not in OFFSET_AXES:
            raise ValueError(f"Unknown offset axis: {axis}")
        state = self.require(platform)
        transform = replace(state.transform, **{axis: clamp_offset(value)})
        return self._store(replace(state, transform=transform))

    def set_transform(self, platform: str, transform: CropTransform) -> PlatformCropState:
        state = self.require(platform)
        return self._store(replace(state, transform=clamp_transform(transform)))

    def set_crop_box(self, platform: str, box: CropBox) -> PlatformCropState:
        """Store the box as given; the controller enforces the size floor."""
        state = self.require(platform)
        return self._store(replace(state, crop_box=box))

    def snapshot(self) -> dict[str, dict[str, dict[str, float]]]:
        """Serialisable platformCropConfigs payload."""
        return {
            platform: {"crop": state.transform.to_dict(), "cropBox": state.crop_box.to_dict()}
            for platform, state in self._states.items()
        }

    def restore(self, configs: Mapping[str, Mapping[str, Any]]) -> list[str]:
        """
        Apply a saved platformCropConfigs payload to registered platforms.

        Returns:
            Platforms that were restored. Unregistered platforms are skipped.
        """
        restored = []
        for platform, config in configs.items():
            state = self._states.get(platform)
            if state is None:
                logger.debug("Skipping crop config for unselected platform", platform=platform)
                continue

            transform = state.transform
            crop_box = state.crop_box
            if config.get("crop"):
                transform = clamp_transform(CropTransform.from_dict(config["crop"]))
            if config.get("cropBox"):
                crop_box = CropBox.from_dict(config["cropBox"])

            self._store(replace(state, transform=transform, crop_box=crop_box))
            restored.append(platform)

        return restored

    def _store(self, state: PlatformCropState) -> PlatformCropState:
        self._states[state.platform] = state
        self._notify(state.platform)
        return state

    def _notify(self, platform: str):
        for listener in self._listeners:
            listener(platform)
