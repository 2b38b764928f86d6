"""
Coordinate transform engine for Postcrop.

Four coordinate spaces are involved when a platform preview is edited:

- container space: the on-screen preview rectangle (W, H) of a platform
- displayed-image space: where the source image lands inside the container
  under an object-cover fit
- CSS-transform space: display space after ``translate(X%, Y%) scale(Z)``
  with the transform origin at the container centre
- source-pixel space: the native pixel grid of the source image

``transform_from_box`` is the forward direction used for live feedback while
the crop box is dragged. ``source_rect`` is the reverse direction used by the
rasterizer to find exactly which source pixels to sample. Both are pure and
never raise for finite input; degenerate sizes are clamped to ``EPSILON``.
"""

from dataclasses import dataclass

from ..core.config import settings
from .platforms import Size

EPSILON = 1e-6


@dataclass(frozen=True)
class CropTransform:
    """Zoom/pan applied to the preview image."""
    zoom: float = 1.0
    offset_x: float = 0.0  # % of displayed width
    offset_y: float = 0.0  # % of displayed height

    def css(self) -> str:
        """CSS transform string for the preview renderer."""
        return f"translate({self.offset_x:g}%, {self.offset_y:g}%) scale({self.zoom:g})"

    def to_dict(self) -> dict[str, float]:
        return {"zoom": self.zoom, "offsetX": self.offset_x, "offsetY": self.offset_y}

    @classmethod
    def from_dict(cls, data: dict) -> "CropTransform":
        return cls(
            zoom=float(data.get("zoom", 1.0)),
            offset_x=float(data.get("offsetX", 0.0)),
            offset_y=float(data.get("offsetY", 0.0)),
        )


IDENTITY_TRANSFORM = CropTransform()


@dataclass(frozen=True)
class CropBox:
    """Kept region in container pixels."""
    width: float
    height: float
    left: float
    top: float

    @property
    def center(self) -> tuple[float, float]:
        return self.left + self.width / 2, self.top + self.height / 2

    def to_dict(self) -> dict[str, float]:
        return {"width": self.width, "height": self.height, "left": self.left, "top": self.top}

    @classmethod
    def from_dict(cls, data: dict) -> "CropBox":
        return cls(
            width=float(data["width"]),
            height=float(data["height"]),
            left=float(data.get("left", 0.0)),
            top=float(data.get("top", 0.0)),
        )


@dataclass(frozen=True)
class SourceRect:
    """Rectangle in source-pixel space (floats, sub-pixel exact)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def as_box(self) -> tuple[float, float, float, float]:
        """(left, upper, right, lower) as used by Pillow."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass(frozen=True)
class CoverFit:
    """Object-cover placement of an image inside a container."""
    displayed_width: float
    displayed_height: float
    image_offset_x: float
    image_offset_y: float
    scale_x: float  # source px per displayed px
    scale_y: float


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def clamp_zoom(value: float) -> float:
    return clamp(value, settings.crop.min_zoom, settings.crop.max_zoom)


def clamp_offset(value: float) -> float:
    limit = settings.crop.max_offset
    return clamp(value, -limit, limit)


def clamp_transform(transform: CropTransform) -> CropTransform:
    return CropTransform(
        zoom=clamp_zoom(transform.zoom),
        offset_x=clamp_offset(transform.offset_x),
        offset_y=clamp_offset(transform.offset_y),
    )


def viewport_box(container: Size) -> CropBox:
    """Box covering the whole container."""
    return CropBox(width=container.width, height=container.height, left=0.0, top=0.0)


def cover_fit(image: Size, container: Size) -> CoverFit:
    """
    Place an image in a container with object-fit: cover.

    The image is scaled so its shorter side (relative to the container
    aspect) fills the container, and centred; the overflow is cropped.
    """
    container_w = max(container.width, EPSILON)
    container_h = max(container.height, EPSILON)
    image_w = max(image.width, 0.0)
    image_h = max(image.height, 0.0)

    image_aspect = image_w / max(image_h, EPSILON)
    container_aspect = container_w / container_h

    if image_aspect > container_aspect:
        displayed_h = container_h
        displayed_w = image_w * container_h / max(image_h, EPSILON)
    else:
        displayed_w = container_w
        displayed_h = image_h * container_w / max(image_w, EPSILON)

    return CoverFit(
        displayed_width=displayed_w,
        displayed_height=displayed_h,
        image_offset_x=(container_w - displayed_w) / 2,
        image_offset_y=(container_h - displayed_h) / 2,
        scale_x=image_w / max(displayed_w, EPSILON),
        scale_y=image_h / max(displayed_h, EPSILON),
    )


def transform_from_box(box: CropBox, container: Size) -> CropTransform:
    """
    Forward mapping: derive the preview transform from a crop box.

    Zoom makes the box area fill the container; the offsets pan the image so
    the box centre lands on the container centre. Moving the box right shifts
    the image left, hence the negated delta.
    """
    container_w = max(container.width, EPSILON)
    container_h = max(container.height, EPSILON)

    zoom = clamp_zoom(max(
        container_w / max(box.width, EPSILON),
        container_h / max(box.height, EPSILON),
        1.0,
    ))

    box_cx, box_cy = box.center
    delta_x = box_cx - container_w / 2
    delta_y = box_cy - container_h / 2

    return CropTransform(
        zoom=zoom,
        offset_x=clamp_offset(-(delta_x / container_w) * 100 * zoom),
        offset_y=clamp_offset(-(delta_y / container_h) * 100 * zoom),
    )


def source_rect(image: Size, container: Size, transform: CropTransform, box: CropBox) -> SourceRect:
    """
    Reverse mapping: the source-pixel rectangle under a crop box.

    Args:
        image: Native size of the decoded source image
        container: Preview container size
        transform: Preview transform the box is drawn over
        box: Crop box in container pixels

    Returns:
        Rectangle clamped to the image bounds. It is shifted back inside the
        image, and only shrunk when it is larger than the image.
    """
    fit = cover_fit(image, container)
    container_w = max(container.width, EPSILON)
    container_h = max(container.height, EPSILON)
    zoom = max(transform.zoom, EPSILON)

    # Box centre relative to the container centre, in transformed space
    box_cx, box_cy = box.center
    rel_x = box_cx - container_w / 2
    rel_y = box_cy - container_h / 2

    # Undo translate, then scale
    rel_x = (rel_x - transform.offset_x * container_w / 100) / zoom
    rel_y = (rel_y - transform.offset_y * container_h / 100) / zoom

    # Back to container coordinates, then through the cover fit
    center_x = (rel_x + container_w / 2 - fit.image_offset_x) * fit.scale_x
    center_y = (rel_y + container_h / 2 - fit.image_offset_y) * fit.scale_y

    width = box.width * fit.scale_x / zoom
    height = box.height * fit.scale_y / zoom

    return _clamp_to_image(center_x, center_y, width, height, image)


def preview_rect(image: Size, container: Size, transform: CropTransform) -> SourceRect:
    """Source-pixel rectangle the transformed preview shows across the whole container."""
    return source_rect(image, container, transform, viewport_box(container))


def _clamp_to_image(center_x: float, center_y: float, width: float, height: float,
                    image: Size) -> SourceRect:
    image_w = max(image.width, 0.0)
    image_h = max(image.height, 0.0)

    # Never sample less than one pixel, never more than the image
    width = min(max(width, 1.0), max(image_w, 1.0))
    height = min(max(height, 1.0), max(image_h, 1.0))

    x = clamp(center_x - width / 2, 0.0, max(image_w - width, 0.0))
    y = clamp(center_y - height / 2, 0.0, max(image_h - height, 0.0))

    return SourceRect(x=x, y=y, width=width, height=height)
