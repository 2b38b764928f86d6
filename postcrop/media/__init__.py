"""
Media cropping module for Postcrop.

This module provides the per-platform crop engine:
- Platform geometry table and preview container sizing
- Coordinate transform engine (object-cover, CSS transform, source pixels)
- Crop state store and interactive controllers
- Rasterizer producing one PNG per platform
"""

from .platforms import (
    PLATFORM_SPECS,
    PlatformSpec,
    Size,
    UnknownPlatformError,
    display_size,
    get_platform_spec,
    platform_dimensions,
    supports_crop,
)

from .geometry import (
    CoverFit,
    CropBox,
    CropTransform,
    SourceRect,
    cover_fit,
    preview_rect,
    source_rect,
    transform_from_box,
    viewport_box,
)

from .crop_state import (
    AccountRef,
    CropStateError,
    CropStateStore,
    PlatformCropState,
)

from .controller import (
    CommitEvent,
    CropBoxController,
    ImagePanController,
    ResizeHandle,
)

from .image_source import (
    ImageLoadError,
    SourceImage,
)

from .rasterizer import (
    CropRasterizer,
    RasterResult,
)


__all__ = [
    # Platform geometry
    "PLATFORM_SPECS",
    "PlatformSpec",
    "Size",
    "UnknownPlatformError",
    "display_size",
    "get_platform_spec",
    "platform_dimensions",
    "supports_crop",
    # Transform engine
    "CoverFit",
    "CropBox",
    "CropTransform",
    "SourceRect",
    "cover_fit",
    "preview_rect",
    "source_rect",
    "transform_from_box",
    "viewport_box",
    # State
    "AccountRef",
    "CropStateError",
    "CropStateStore",
    "PlatformCropState",
    # Controllers
    "CommitEvent",
    "CropBoxController",
    "ImagePanController",
    "ResizeHandle",
    # Rasterizer
    "ImageLoadError",
    "SourceImage",
    "CropRasterizer",
    "RasterResult",
]
