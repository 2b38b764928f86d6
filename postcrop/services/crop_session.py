"""
Crop editing session for Postcrop.

Ties the crop engine together for one post draft: the attached source image,
the selected platforms, the per-platform crop states, the two interactive
controllers and the rasterizer. Collaborators subscribe to two outputs:

- crop configs (platform -> {crop, cropBox}), emitted on every commit and
  consumed by draft persistence
- cropped images (platform -> PNG data URL), emitted when generate_all()
  completes and consumed by the publish pipeline
"""

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import httpx

from ..core.config import settings
from ..core.logging import create_session_id, get_logger, with_logging_context
from ..media.controller import CropBoxController, ImagePanController, ResizeHandle
from ..media.crop_state import AccountRef, CropStateStore, PlatformCropState
from ..media.geometry import CropBox, CropTransform
from ..media.image_source import SourceImage
from ..media.platforms import Size, display_size, get_platform_spec, supports_crop
from ..media.rasterizer import CropRasterizer, RasterResult
from ..observability.metrics import MetricsCollector

logger = get_logger("services.crop_session")

CropConfigs = dict[str, dict[str, dict[str, float]]]


class CropSession:
    """One image, several platforms, independent crops."""

    def __init__(self, display_max_width: int | None = None, collector: MetricsCollector | None = None):
        self.session_id = create_session_id()
        self.display_max_width = settings.clamp_display_width(display_max_width)

        self.store = CropStateStore(self.display_size)
        self.rasterizer = CropRasterizer(self.store, collector)
        self.box_controller = CropBoxController(self.store)
        self.pan_controller = ImagePanController(self.store)

        self.source: SourceImage | None = None
        self.media_type: str | None = None
        self.selected_platforms: list[str] = []
        self.active_platform: str | None = None
        self.accounts: list[AccountRef] = []

        self._config_listeners: list[Callable[[CropConfigs], None]] = []
        self._image_listeners: list[Callable[[dict[str, str]], None]] = []

    # ------------------------------------------------------------------
    # Collaborator wiring
    # ------------------------------------------------------------------

    def on_crop_configs(self, listener: Callable[[CropConfigs], None]):
        self._config_listeners.append(listener)

    def on_cropped_images(self, listener: Callable[[dict[str, str]], None]):
        self._image_listeners.append(listener)

    def display_size(self, platform: str) -> Size:
        return display_size(platform, self.display_max_width)

    def connected_account(self, platform: str) -> AccountRef | None:
        """First connected account for a platform, if any."""
        for account in self.accounts:
            if account.platform == platform and account.is_connected:
                return account
        return None

    @property
    def crop_enabled(self) -> bool:
        return self.source is not None and supports_crop(self.media_type)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def attach_image(self, source: SourceImage | str | bytes | Path, media_type: str = "image",
                     client: httpx.AsyncClient | None = None):
        """
        Attach a new source image; every platform state is reset.

        Videos are attached as passthrough media and never rasterized.
        """
        if not isinstance(source, SourceImage):
            source = SourceImage(source, client=client)

        self.source = source
        self.media_type = media_type

        with with_logging_context(self.session_id):
            self.box_controller.cancel()
            self.pan_controller.end()
            self.store.reset(self.selected_platforms, self.connected_account)

            if supports_crop(media_type):
                self.rasterizer.attach(source)
            else:
                self.rasterizer.detach()
                logger.info("Media attached as passthrough", media_type=media_type)

            if self.active_platform:
                self.box_controller.load(self.active_platform)

        self._emit_configs()

    def select_platforms(self, platforms: Iterable[str], accounts: Iterable[AccountRef] | None = None):
        """
        Set the platforms selected for the post.

        Raises:
            UnknownPlatformError: a platform is not in the geometry table
        """
        selected = []
        for platform in platforms:
            platform = get_platform_spec(platform).platform
            if platform not in selected:
                selected.append(platform)

        if accounts is not None:
            self.accounts = list(accounts)
        self.selected_platforms = selected

        with with_logging_context(self.session_id):
            self.box_controller.cancel()
            self.pan_controller.end()
            self.store.reset(selected, self.connected_account)

            if self.active_platform not in selected:
                self.active_platform = selected[0] if selected else None
            if self.active_platform:
                self.box_controller.load(self.active_platform)
            logger.info("Platforms selected", platforms=selected, active=self.active_platform)

        self._emit_configs()

    async def select_platform(self, platform: str) -> RasterResult | None:
        """
        Switch the platform being edited.

        Any gesture in progress is committed first and the previous platform
        is regenerated, since a switch is a commit point.

        Returns:
            The regenerated raster of the previous platform, if any.
        """
        self.store.require(platform)
        previous = self.active_platform

        if self.box_controller.is_active:
            self.box_controller.release()
            self._emit_configs()
        self.pan_controller.end()

        self.active_platform = platform
        self.box_controller.load(platform)

        if previous and previous != platform and previous in self.store:
            return await self.generate(previous)
        return None

    def discard(self):
        """Drop the draft's crop data entirely."""
        self.box_controller.cancel()
        self.pan_controller.end()
        self.rasterizer.detach()
        self.store.clear()
        self.source = None
        self.media_type = None
        self.selected_platforms = []
        self.active_platform = None

    # ------------------------------------------------------------------
    # Crop box gestures (wizard editor)
    # ------------------------------------------------------------------

    def pointer_down(self, x: float, y: float) -> bool:
        if not self.crop_enabled:
            return False
        return self.box_controller.begin_drag(x, y)

    def pointer_down_handle(self, handle: ResizeHandle | str, x: float, y: float) -> bool:
        if not self.crop_enabled:
            return False
        return self.box_controller.begin_resize(handle, x, y)

    def pointer_move(self, x: float, y: float) -> CropBox | CropTransform | None:
        if self.pan_controller.is_active:
            return self.pan_controller.move(x, y)
        return self.box_controller.move(x, y)

    async def pointer_up(self) -> RasterResult | None:
        """Commit the gesture and regenerate that platform's raster."""
        if self.pan_controller.is_active:
            self.pan_controller.end()
            self._emit_configs()
            return await self.generate(self.active_platform)

        event = self.box_controller.release()
        if event is None:
            return None

        self._emit_configs()
        return await self.generate(event.platform)

    # ------------------------------------------------------------------
    # Image pan and sliders (modal editor)
    # ------------------------------------------------------------------

    def pan_start(self, x: float, y: float) -> bool:
        if not self.crop_enabled or self.active_platform is None:
            return False
        self.pan_controller.begin(self.active_platform, x, y)
        return True

    def set_zoom(self, platform: str, value: float) -> PlatformCropState:
        state = self.store.set_zoom(platform, value)
        self._emit_configs()
        return state

    def set_offset(self, platform: str, axis: str, value: float) -> PlatformCropState:
        state = self.store.set_offset(platform, axis, value)
        self._emit_configs()
        return state

    def image_style(self, platform: str) -> dict[str, str]:
        """CSS style of the preview image."""
        return {
            "transform": self.store.get_state(platform).transform.css(),
            "transformOrigin": "center center",
            "willChange": "transform",
        }

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    async def generate(self, platform: str) -> RasterResult | None:
        """Rasterize one platform of the attached image."""
        if not self.crop_enabled:
            return None
        with with_logging_context(self.session_id, platform):
            return await self.rasterizer.crop_for_platform(platform)

    async def generate_all(self) -> dict[str, str]:
        """
        Rasterize every selected platform.

        Returns:
            Platform -> PNG data URL. Failed platforms are missing and
            reported as not ready by readiness().
        """
        if not self.crop_enabled:
            return {}

        with with_logging_context(self.session_id):
            results = await self.rasterizer.crop_all(self.selected_platforms)

        images = {platform: result.data_url for platform, result in results.items()}
        for listener in self._image_listeners:
            listener(images)
        return images

    def platform_crop_configs(self) -> CropConfigs:
        return self.store.snapshot()

    def restore_configs(self, configs: Mapping[str, Mapping[str, Any]]) -> list[str]:
        """Apply crop configs saved with a draft."""
        restored = self.store.restore(configs)
        if self.active_platform in restored:
            self.box_controller.load(self.active_platform)
        self._emit_configs()
        return restored

    def readiness(self) -> dict[str, bool]:
        """Platform -> True when its published image is available."""
        if self.source is not None and not supports_crop(self.media_type):
            # Passthrough media is published as-is
            return {platform: True for platform in self.selected_platforms}

        not_ready = set(self.rasterizer.not_ready(self.selected_platforms))
        return {platform: platform not in not_ready for platform in self.selected_platforms}

    def _emit_configs(self):
        configs = self.store.snapshot()
        for listener in self._config_listeners:
            listener(configs)
