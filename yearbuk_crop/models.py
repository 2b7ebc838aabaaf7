"""
Data models and crop-geometry utilities.

``CropGeometry`` is the single coordinate engine shared by the live preview,
the thumbnail and the final raster.  It maps between three spaces:

* source pixels: the decoded image at full resolution;
* display pixels: the source fitted into the working canvas (``base_scale``);
* canvas pixels: the zoomed and panned image as drawn on screen.

The crop region is always centred on the working canvas; pan offsets are
measured from that centre and clamped symmetrically.  Circle and rectangle
crops differ only in their ``CropShape``; nothing in here branches on it.
"""

from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image

from yearbuk_crop.config import (
    CIRCLE_CROP_SIZE, RECT_CROP_WIDTH, WORKING_CANVAS_SIZE, MAX_ZOOM,
    DEFAULT_OUTPUT_WIDTH, DEFAULT_OUTPUT_HEIGHT,
)

MIME_PNG = "image/png"
MIME_JPEG = "image/jpeg"


# =============================================================================
# Data classes
# =============================================================================
@dataclass(frozen=True)
class CropShape:
    """Crop region size on the working canvas."""
    kind: str
    width: float
    height: float

    CIRCLE = "circle"
    RECTANGLE = "rectangle"

    @classmethod
    def circle(cls, diameter: float = CIRCLE_CROP_SIZE) -> "CropShape":
        return cls(cls.CIRCLE, diameter, diameter)

    @classmethod
    def rectangle(cls, width: float, height: float) -> "CropShape":
        return cls(cls.RECTANGLE, width, height)

    @classmethod
    def for_aspect_ratio(cls, aspect_ratio: float | None) -> "CropShape":
        """Circle when *aspect_ratio* is None, else a fixed-width rectangle."""
        if aspect_ratio is None:
            return cls.circle()
        return cls.rectangle(RECT_CROP_WIDTH, RECT_CROP_WIDTH / aspect_ratio)

    @property
    def is_circular(self) -> bool:
        return self.kind == self.CIRCLE


@dataclass(frozen=True)
class OutputSpec:
    """Caller-supplied output configuration.  No aspect ratio means circular."""
    aspect_ratio: float | None = None
    min_width: int | None = None
    min_height: int | None = None

    def __post_init__(self):
        if self.aspect_ratio is not None and self.aspect_ratio <= 0:
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio!r}")
        for name in ("min_width", "min_height"):
            val = getattr(self, name)
            if val is not None and (not isinstance(val, int) or val <= 0):
                raise ValueError(f"{name} must be a positive integer, got {val!r}")

    @property
    def is_circular(self) -> bool:
        return self.aspect_ratio is None

    def shape(self) -> CropShape:
        return CropShape.for_aspect_ratio(self.aspect_ratio)

    def resolve(self) -> tuple[int, int]:
        """Pixel size of the final raster."""
        width = self.min_width or DEFAULT_OUTPUT_WIDTH
        if self.min_height:
            height = self.min_height
        elif self.is_circular:
            height = DEFAULT_OUTPUT_HEIGHT
        else:
            height = max(1, int(round(width / self.aspect_ratio)))
        return width, height


@dataclass
class SourceImage:
    """Decoded source raster.  Owns the Pillow image until ``release()``."""
    image: Image.Image
    name: str = ""
    released: bool = field(default=False, compare=False)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def release(self):
        if self.released:
            return
        self.image.close()
        self.released = True


@dataclass(frozen=True)
class ViewportState:
    """Zoom factor and pan offset (canvas pixels, relative to the crop centre)."""
    zoom: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0


@dataclass(frozen=True)
class CanvasRect:
    """Axis-aligned rectangle in canvas coordinates."""
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.w / 2, self.y + self.h / 2

    def box(self) -> tuple[float, float, float, float]:
        return self.x, self.y, self.right, self.bottom


@dataclass
class FinalRaster:
    """Encoded output of a committed crop."""
    data: bytes
    mime_type: str
    width: int
    height: int

    @property
    def extension(self) -> str:
        return ".png" if self.mime_type == MIME_PNG else ".jpg"

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.write_bytes(self.data)
        return path


@dataclass
class PreviewComposite:
    """Rendered canvas plus the small thumbnail of the crop region."""
    canvas: Image.Image
    thumbnail: Image.Image
    geometry: "CropGeometry"
    viewport: ViewportState


# =============================================================================
# Crop geometry
# =============================================================================
def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


@dataclass(frozen=True)
class CropGeometry:
    """Coordinate mapping for one source image and one crop shape."""
    source_width: int
    source_height: int
    shape: CropShape
    canvas_size: int = WORKING_CANVAS_SIZE
    zoom_limit: float = MAX_ZOOM

    # --- Fitting ---

    @property
    def base_scale(self) -> float:
        """Scale that fits the source inside the working canvas."""
        return min(self.canvas_size / self.source_width, self.canvas_size / self.source_height)

    @property
    def display_width(self) -> float:
        return self.source_width * self.base_scale

    @property
    def display_height(self) -> float:
        return self.source_height * self.base_scale

    @property
    def canvas_pixel_size(self) -> tuple[int, int]:
        return max(1, int(round(self.display_width))), max(1, int(round(self.display_height)))

    # --- Zoom range ---

    @property
    def min_zoom(self) -> float:
        """Smallest zoom at which the crop region is fully covered by the image."""
        return max(self.shape.width / self.display_width, self.shape.height / self.display_height)

    @property
    def max_zoom(self) -> float:
        # Very thin images can need more than the zoom limit just to cover the crop
        return max(self.zoom_limit, self.min_zoom)

    @property
    def initial_zoom(self) -> float:
        return (self.min_zoom + self.max_zoom) / 2

    def clamp_zoom(self, zoom: float) -> float:
        return _clamp(zoom, self.min_zoom, self.max_zoom)

    # --- Pan bounds ---

    def max_offset(self, zoom: float) -> tuple[float, float]:
        """Largest pan offset (each axis, symmetric) keeping the crop inside the image."""
        max_x = max(0.0, (self.display_width * zoom - self.shape.width) / 2)
        max_y = max(0.0, (self.display_height * zoom - self.shape.height) / 2)
        return max_x, max_y

    def clamp_offset(self, x: float, y: float, zoom: float) -> tuple[float, float]:
        max_x, max_y = self.max_offset(zoom)
        return _clamp(x, -max_x, max_x), _clamp(y, -max_y, max_y)

    def clamp_viewport(self, viewport: ViewportState) -> ViewportState:
        zoom = self.clamp_zoom(viewport.zoom)
        x, y = self.clamp_offset(viewport.offset_x, viewport.offset_y, zoom)
        return ViewportState(zoom, x, y)

    def initial_viewport(self) -> ViewportState:
        return ViewportState(self.initial_zoom, 0.0, 0.0)

    # --- Canvas placement ---

    @property
    def crop_rect(self) -> CanvasRect:
        """Crop region on the canvas, always centred."""
        return CanvasRect(
            (self.display_width - self.shape.width) / 2,
            (self.display_height - self.shape.height) / 2,
            self.shape.width,
            self.shape.height,
        )

    def image_rect(self, viewport: ViewportState) -> CanvasRect:
        """Zoomed source image on the canvas, centred on crop centre + offset."""
        view = self.clamp_viewport(viewport)
        w = self.display_width * view.zoom
        h = self.display_height * view.zoom
        cx, cy = self.crop_rect.center
        return CanvasRect(cx + view.offset_x - w / 2, cy + view.offset_y - h / 2, w, h)

    # --- Inverse mapping ---

    def canvas_to_source(self, x: float, y: float, viewport: ViewportState) -> tuple[float, float]:
        """Map a canvas point to source-pixel coordinates."""
        img = self.image_rect(viewport)
        return (
            (x - img.x) * (self.source_width / img.w),
            (y - img.y) * (self.source_height / img.h),
        )

    def source_box(self, viewport: ViewportState) -> tuple[float, float, float, float]:
        """Crop region in source pixels as ``(left, top, right, bottom)``."""
        crop = self.crop_rect
        left, top = self.canvas_to_source(crop.x, crop.y, viewport)
        right, bottom = self.canvas_to_source(crop.right, crop.bottom, viewport)
        # Clamp away float noise at the image edges
        return (
            _clamp(left, 0.0, self.source_width),
            _clamp(top, 0.0, self.source_height),
            _clamp(right, 0.0, self.source_width),
            _clamp(bottom, 0.0, self.source_height),
        )
