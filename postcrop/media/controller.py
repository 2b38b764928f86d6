"""
Interactive manipulation controllers for Postcrop.

CropBoxController drives the wizard editor: the crop box is dragged and
resized over the preview, and on every pointer tick the preview transform is
recomputed from the box so the preview follows in real time. Nothing is
rasterized here; release() commits the box and hands a CommitEvent back to
the caller, which decides when to regenerate the platform image.

ImagePanController drives the simpler modal editor, where the image itself is
dragged under the preview and only the offsets change.
"""

from dataclasses import dataclass, replace
from enum import Enum

from ..core.config import settings
from ..core.logging import get_logger
from ..observability.metrics import metrics
from .crop_state import CropStateStore
from .geometry import CropBox, CropTransform, transform_from_box

logger = get_logger("media.controller")


class Gesture(Enum):
    """Active pointer gesture."""
    IDLE = "idle"
    DRAG = "drag"
    RESIZE = "resize"


class ResizeHandle(Enum):
    """Crop box resize handles."""
    LEFT = "l"
    RIGHT = "r"
    TOP = "t"
    BOTTOM = "b"
    BOTTOM_RIGHT = "br"


@dataclass(frozen=True)
class PointerEvent:
    """Pointer position in client pixels (mouse or first touch point)."""
    x: float
    y: float


@dataclass(frozen=True)
class CommitEvent:
    """Box and transform persisted on pointer release."""
    platform: str
    crop_box: CropBox
    transform: CropTransform


def resize_box(initial: CropBox, handle: ResizeHandle, dx: float, dy: float,
               min_size: float | None = None) -> CropBox:
    """
    Apply a handle drag to the box captured at gesture start.

    Left and top handles keep the opposite edge fixed.
    """
    floor = settings.crop.min_box_size if min_size is None else min_size

    if handle is ResizeHandle.RIGHT:
        return replace(initial, width=max(floor, initial.width + dx))

    if handle is ResizeHandle.LEFT:
        width = max(floor, initial.width - dx)
        return replace(initial, width=width, left=initial.left + (initial.width - width))

    if handle is ResizeHandle.BOTTOM:
        return replace(initial, height=max(floor, initial.height + dy))

    if handle is ResizeHandle.TOP:
        height = max(floor, initial.height - dy)
        return replace(initial, height=height, top=initial.top + (initial.height - height))

    # bottom-right corner
    return replace(
        initial,
        width=max(floor, initial.width + dx),
        height=max(floor, initial.height + dy),
    )


class CropBoxController:
    """Drag-to-move and handle-resize of one platform's crop box."""

    def __init__(self, store: CropStateStore):
        self.store = store
        self.platform: str | None = None
        self.box: CropBox | None = None
        self.gesture = Gesture.IDLE
        self.handle: ResizeHandle | None = None
        self._start = PointerEvent(0.0, 0.0)
        self._initial: CropBox | None = None

    @property
    def is_active(self) -> bool:
        return self.gesture is not Gesture.IDLE

    def load(self, platform: str) -> CropBox:
        """Switch the working box to a platform's stored box."""
        self.cancel()
        self.platform = platform
        self.box = self.store.get_state(platform).crop_box
        return self.box

    def begin_drag(self, x: float, y: float) -> bool:
        if self.box is None or self.gesture is Gesture.RESIZE:
            return False
        self.gesture = Gesture.DRAG
        self._start = PointerEvent(x, y)
        self._initial = self.box
        return True

    def begin_resize(self, handle: ResizeHandle | str, x: float, y: float) -> bool:
        if self.box is None or self.gesture is Gesture.DRAG:
            return False
        self.gesture = Gesture.RESIZE
        self.handle = ResizeHandle(handle)
        self._start = PointerEvent(x, y)
        self._initial = self.box
        return True

    def move(self, x: float, y: float) -> CropBox | None:
        """
        Pointer-move tick.

        Returns:
            The updated working box, or None when no gesture is active.
        """
        if not self.is_active:
            return None

        dx = x - self._start.x
        dy = y - self._start.y

        if self.gesture is Gesture.DRAG:
            self.box = replace(self._initial, left=self._initial.left + dx, top=self._initial.top + dy)
        else:
            self.box = resize_box(self._initial, self.handle, dx, dy)

        self._sync_transform()
        return self.box

    def release(self) -> CommitEvent | None:
        """Pointer-up: persist the working box and report the commit."""
        if not self.is_active:
            return None

        self.gesture = Gesture.IDLE
        self.handle = None
        self._initial = None

        if self.platform not in self.store:
            logger.warning("Dropping crop commit for unregistered platform", platform=self.platform)
            return None

        self.store.set_crop_box(self.platform, self.box)
        state = self._sync_transform()
        metrics.track_commit(self.platform)

        logger.debug("Crop box committed", platform=self.platform, crop_box=self.box.to_dict(),
                     transform=state.transform.to_dict())
        return CommitEvent(platform=self.platform, crop_box=self.box, transform=state.transform)

    def cancel(self):
        """Abort the gesture and restore the box it started from."""
        if self.is_active and self._initial is not None:
            self.box = self._initial
        self.gesture = Gesture.IDLE
        self.handle = None
        self._initial = None

    def _sync_transform(self):
        if self.platform not in self.store:
            return None
        container = self.store.container_for(self.platform)
        return self.store.set_transform(self.platform, transform_from_box(self.box, container))


class ImagePanController:
    """Drag-to-pan of the preview image (modal editor)."""

    def __init__(self, store: CropStateStore, sensitivity: float | None = None):
        self.store = store
        self.sensitivity = settings.crop.pan_sensitivity if sensitivity is None else sensitivity
        self.platform: str | None = None
        self._last: PointerEvent | None = None

    @property
    def is_active(self) -> bool:
        return self._last is not None

    def begin(self, platform: str, x: float, y: float):
        self.platform = platform
        self._last = PointerEvent(x, y)

    def move(self, x: float, y: float) -> CropTransform | None:
        if self._last is None or self.platform is None:
            return None

        dx = x - self._last.x
        dy = y - self._last.y
        # Re-base on every tick; deltas are incremental
        self._last = PointerEvent(x, y)

        current = self.store.require(self.platform).transform
        self.store.set_offset(self.platform, "offset_x", current.offset_x + dx * self.sensitivity)
        state = self.store.set_offset(self.platform, "offset_y", current.offset_y + dy * self.sensitivity)
        return state.transform

    def end(self):
        self._last = None
