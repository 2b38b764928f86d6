"""
Rasterizer and multi-platform orchestrator for Postcrop.

For each platform the rasterizer reverse-maps the crop state to a source
rectangle, samples that rectangle into a buffer the size of the platform's
preview container and encodes it as PNG. Results are cached per platform until
the platform's state or the source image changes.

Only the image decode suspends. Every call captures the image identity and
the platform state before awaiting it and re-checks them afterwards, so a
result that resolves after the user replaced the image or kept editing never
lands in the cache.
"""

import base64
import io
from dataclasses import dataclass

from PIL import Image

from ..core.config import settings
from ..core.logging import get_logger
from ..observability.metrics import MetricsCollector, metrics, track_processing_time
from .crop_state import CropStateError, CropStateStore, PlatformCropState
from .geometry import SourceRect, preview_rect
from .image_source import ImageLoadError, SourceImage
from .platforms import Size

logger = get_logger("media.rasterizer")

RESAMPLE_FILTERS = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}


@dataclass(frozen=True)
class RasterResult:
    """Encoded crop of one platform."""
    platform: str
    encoded_image: bytes  # PNG
    width: int
    height: int
    region: SourceRect | None = None  # sampled source pixels

    @property
    def base64(self) -> str:
        return base64.b64encode(self.encoded_image).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:image/png;base64,{self.base64}"


def render_crop(image: Image.Image, rect: SourceRect, output: Size, platform: str) -> RasterResult:
    """Sample ``rect`` from ``image`` into an ``output``-sized PNG."""
    out_w = max(1, int(round(output.width)))
    out_h = max(1, int(round(output.height)))
    resample = RESAMPLE_FILTERS[settings.crop.resample_filter]

    # box= samples the float rectangle directly, no intermediate integer crop
    cropped = image.resize((out_w, out_h), resample=resample, box=rect.as_box())

    buffer = io.BytesIO()
    cropped.save(buffer, format="PNG")
    return RasterResult(
        platform=platform, encoded_image=buffer.getvalue(), width=out_w, height=out_h, region=rect
    )


class CropRasterizer:
    """Rasterizes and caches per-platform crops of the attached image."""

    def __init__(self, store: CropStateStore, collector: MetricsCollector | None = None):
        self.store = store
        self.metrics = collector or metrics
        self.source: SourceImage | None = None
        self.failures: dict[str, str] = {}
        self._cache: dict[str, tuple[tuple, RasterResult]] = {}
        store.add_invalidation_listener(self.invalidate)

    def attach(self, source: SourceImage):
        """Swap the source image; every cached result is dropped."""
        self.source = source
        self._cache.clear()
        self.failures.clear()
        logger.info("Source image attached", source_kind=source.kind, image_id=source.token)

    def detach(self):
        self.source = None
        self._cache.clear()
        self.failures.clear()

    def invalidate(self, platform: str):
        self._cache.pop(platform, None)

    def cached(self, platform: str) -> RasterResult | None:
        """Cached result, only if it still matches the platform's state."""
        entry = self._cache.get(platform)
        state = self.store.peek(platform)
        if entry is None or state is None or self.source is None:
            return None
        key, result = entry
        return result if key == self._cache_key(platform, state) else None

    @property
    def results(self) -> dict[str, RasterResult]:
        results = {}
        for platform in self.store.platforms:
            result = self.cached(platform)
            if result is not None:
                results[platform] = result
        return results

    def not_ready(self, platforms: list[str]) -> list[str]:
        """Platforms without a current raster."""
        return [platform for platform in platforms if self.cached(platform) is None]

    async def crop_for_platform(self, platform: str) -> RasterResult | None:
        """
        Rasterize one platform.

        Returns:
            RasterResult, or None when no image is attached, the image fails
            to load, or the image was replaced while decoding.

        Raises:
            CropStateError: no crop state is registered for the platform
        """
        state = self.store.require(platform)
        source = self.source
        if source is None:
            logger.debug("No source image attached", platform=platform)
            return None

        key = self._cache_key(platform, state)
        entry = self._cache.get(platform)
        if settings.crop.cache_enabled and entry is not None and entry[0] == key:
            self.metrics.track_cache_operation("hit")
            return entry[1]
        self.metrics.track_cache_operation("miss")

        container = self.store.container_for(platform)
        with track_processing_time(platform, self.metrics) as outcome:
            try:
                image = await source.load()
            except ImageLoadError as e:
                self.failures[platform] = str(e)
                logger.warning("Rasterization skipped, image failed to load", platform=platform, error=str(e))
                return None

            if self.source is not source:
                self.metrics.track_stale_result("image_changed")
                logger.info("Dropping rasterization for replaced image", platform=platform)
                return None

            # The crop box only drives the transform; the output is the whole preview
            rect = preview_rect(Size(*image.size), container, state.transform)
            result = render_crop(image, rect, container, platform)
            outcome["success"] = True
            outcome["output_bytes"] = len(result.encoded_image)

        if self.store.peek(platform) is not state:
            # Edited while suspended; the caller still gets what it asked for
            self.metrics.track_stale_result("state_changed")
            logger.debug("Not caching rasterization for edited state", platform=platform)
            return result

        self._cache[platform] = (key, result)
        self.failures.pop(platform, None)
        logger.debug(
            "Platform rasterized",
            platform=platform,
            source_rect=[round(v, 3) for v in rect.as_box()],
            width=result.width,
            height=result.height,
        )
        return result

    async def crop_all(self, platforms: list[str]) -> dict[str, RasterResult]:
        """
        Rasterize several platforms in order.

        A platform that fails has no entry in the returned mapping and is
        recorded in ``failures``; the remaining platforms still run.
        """
        results = {}
        for platform in platforms:
            try:
                result = await self.crop_for_platform(platform)
            except CropStateError as e:
                self.failures[platform] = str(e)
                logger.error("Rasterization failed, no crop state", platform=platform)
                continue
            except (OSError, ValueError) as e:
                self.failures[platform] = str(e)
                logger.error("Rasterization failed", platform=platform, error=str(e))
                continue

            if result is None:
                self.failures.setdefault(platform, "not rasterized")
                continue
            results[platform] = result

        failed = [platform for platform in platforms if platform not in results]
        if failed:
            logger.warning("Some platforms are not ready", platforms=failed)
        return results

    def _cache_key(self, platform: str, state: PlatformCropState) -> tuple:
        return (
            self.source.token if self.source else None,
            state.transform,
            state.crop_box,
            self.store.container_for(platform),
        )
