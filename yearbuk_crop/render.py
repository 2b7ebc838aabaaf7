"""
Pillow rasterization for crop sessions (Qt-free).

Three rasters come out of one routine, ``resample_region``, which pulls a
canvas-space box out of the source through ``CropGeometry.canvas_to_source``:

* the working canvas with its dimmed overlay and crop indicators,
* the small thumbnail of the crop region,
* the full-resolution final raster.

Circle and rectangle crops differ only in ``mask_image`` and ``encoder_for``.
"""

import io
import logging
import math

from PIL import Image, ImageChops, ImageDraw

from yearbuk_crop.config import (
    OVERLAY_COLOR, BORDER_COLOR, BORDER_WIDTH, CORNER_SIZE,
    INDICATOR_RADIUS, INDICATOR_INSET, PREVIEW_RECT_WIDTH, PREVIEW_CIRCLE_SIZE,
    JPEG_QUALITY, JPEG_SUBSAMPLING_DEFAULT, JPEG_SUBSAMPLING_MAP, PNG_COMPRESS_LEVEL,
)
from yearbuk_crop.errors import EncodeError
from yearbuk_crop.models import (
    MIME_JPEG, MIME_PNG, CanvasRect, CropGeometry, CropShape, FinalRaster,
    PreviewComposite, SourceImage, ViewportState,
)

logger = logging.getLogger(__name__)

_TRANSPARENT = (0, 0, 0, 0)


# =============================================================================
# Shape-specific seams
# =============================================================================
def mask_image(shape: CropShape, region: CanvasRect, size: tuple[int, int]) -> Image.Image:
    """8-bit mask of *size* that is opaque inside *shape* drawn over *region*."""
    mask = Image.new("L", size, 0)
    draw = ImageDraw.Draw(mask)
    if shape.is_circular:
        d = min(region.w, region.h)
        x0 = region.x + (region.w - d) / 2
        y0 = region.y + (region.h - d) / 2
        draw.ellipse((x0, y0, x0 + d - 1, y0 + d - 1), fill=255)
    else:
        draw.rectangle((region.x, region.y, region.right - 1, region.bottom - 1), fill=255)
    return mask


def encoder_for(shape: CropShape) -> tuple[str, int | None]:
    """``(mime_type, jpeg_quality)``; PNG keeps the transparency around a disc."""
    if shape.is_circular:
        return MIME_PNG, None
    return MIME_JPEG, JPEG_QUALITY


# =============================================================================
# Shared resampling
# =============================================================================
def resample_region(
    source: SourceImage,
    geometry: CropGeometry,
    viewport: ViewportState,
    canvas_box: tuple[float, float, float, float],
    size: tuple[int, int],
) -> Image.Image:
    """Resample the source pixels under a canvas-space box into *size*."""
    x0, y0, x1, y1 = canvas_box
    left, top = geometry.canvas_to_source(x0, y0, viewport)
    right, bottom = geometry.canvas_to_source(x1, y1, viewport)
    # Callers pass boxes inside the image; this only absorbs float noise
    box = (
        max(0.0, left), max(0.0, top),
        min(float(source.width), right), min(float(source.height), bottom),
    )
    return source.image.resize(size, Image.Resampling.LANCZOS, box=box)


def _apply_mask(img: Image.Image, mask: Image.Image) -> Image.Image:
    """Multiply the alpha channel by *mask*."""
    out = img.convert("RGBA")
    out.putalpha(ImageChops.multiply(out.getchannel("A"), mask))
    return out


# =============================================================================
# Live preview
# =============================================================================
def _draw_indicators(draw: ImageDraw.ImageDraw, shape: CropShape, crop: CanvasRect):
    """Crop border plus corner brackets (rectangle) or four dots (circle)."""
    if shape.is_circular:
        cx, cy = crop.center
        r = crop.w / 2
        draw.ellipse((cx - r, cy - r, cx + r, cy + r), outline=BORDER_COLOR, width=BORDER_WIDTH)
        for angle in (0, math.pi / 2, math.pi, 3 * math.pi / 2):
            dx = cx + math.cos(angle) * (r - INDICATOR_INSET)
            dy = cy + math.sin(angle) * (r - INDICATOR_INSET)
            ir = INDICATOR_RADIUS
            draw.ellipse((dx - ir, dy - ir, dx + ir, dy + ir), fill=BORDER_COLOR)
        return

    draw.rectangle(crop.box(), outline=BORDER_COLOR, width=BORDER_WIDTH)
    cs = CORNER_SIZE
    x, y, r, b = crop.x, crop.y, crop.right, crop.bottom
    brackets = [
        (x - 1, y - 1, cs, 2), (x - 1, y - 1, 2, cs),
        (r - cs + 1, y - 1, cs, 2), (r - 1, y - 1, 2, cs),
        (x - 1, b - 1, cs, 2), (x - 1, b - cs + 1, 2, cs),
        (r - cs + 1, b - 1, cs, 2), (r - 1, b - cs + 1, 2, cs),
    ]
    for bx, by, bw, bh in brackets:
        draw.rectangle((bx, by, bx + bw - 1, by + bh - 1), fill=BORDER_COLOR)


def render_canvas(source: SourceImage, geometry: CropGeometry, viewport: ViewportState) -> Image.Image:
    """Working canvas: zoomed source, dimmed outside the crop, with indicators."""
    size = geometry.canvas_pixel_size
    cw, ch = size
    img = geometry.image_rect(viewport)

    base = Image.new("RGBA", size, _TRANSPARENT)
    # Whole canvas pixels fully covered by the image; a partly covered edge
    # pixel stays empty so the layer keeps the exact zoom scale
    vx0 = max(0, math.ceil(round(img.x, 6)))
    vy0 = max(0, math.ceil(round(img.y, 6)))
    vx1 = min(cw, math.floor(round(img.right, 6)))
    vy1 = min(ch, math.floor(round(img.bottom, 6)))
    if vx1 > vx0 and vy1 > vy0:
        layer = resample_region(source, geometry, viewport, (vx0, vy0, vx1, vy1), (vx1 - vx0, vy1 - vy0))
        base.paste(layer, (vx0, vy0))

    canvas = Image.alpha_composite(base, Image.new("RGBA", size, OVERLAY_COLOR))
    crop = geometry.crop_rect
    canvas.paste(base, (0, 0), mask_image(geometry.shape, crop, size))
    _draw_indicators(ImageDraw.Draw(canvas), geometry.shape, crop)
    return canvas


def thumbnail_size(shape: CropShape) -> tuple[int, int]:
    if shape.is_circular:
        return PREVIEW_CIRCLE_SIZE, PREVIEW_CIRCLE_SIZE
    return PREVIEW_RECT_WIDTH, max(1, int(round(PREVIEW_RECT_WIDTH * shape.height / shape.width)))


def render_thumbnail(source: SourceImage, geometry: CropGeometry, viewport: ViewportState) -> Image.Image:
    """Crop-region pixels at thumbnail size, disc-masked for circles, with a border."""
    size = thumbnail_size(geometry.shape)
    w, h = size
    thumb = resample_region(source, geometry, viewport, geometry.crop_rect.box(), size)
    full = CanvasRect(0, 0, w, h)
    thumb = _apply_mask(thumb, mask_image(geometry.shape, full, size))

    draw = ImageDraw.Draw(thumb)
    if geometry.shape.is_circular:
        draw.ellipse((1, 1, w - 2, h - 2), outline=BORDER_COLOR, width=BORDER_WIDTH)
    else:
        draw.rectangle((0, 0, w - 1, h - 1), outline=BORDER_COLOR, width=BORDER_WIDTH)
    return thumb


def render_preview(source: SourceImage, geometry: CropGeometry, viewport: ViewportState) -> PreviewComposite:
    return PreviewComposite(
        canvas=render_canvas(source, geometry, viewport),
        thumbnail=render_thumbnail(source, geometry, viewport),
        geometry=geometry,
        viewport=viewport,
    )


# =============================================================================
# Final raster
# =============================================================================
def render_final(
    source: SourceImage,
    geometry: CropGeometry,
    viewport: ViewportState,
    size: tuple[int, int],
) -> Image.Image:
    """Crop region resampled to *size*; transparent outside the disc for circles."""
    out = resample_region(source, geometry, viewport, geometry.crop_rect.box(), size)
    if geometry.shape.is_circular:
        w, h = size
        return _apply_mask(out, mask_image(geometry.shape, CanvasRect(0, 0, w, h), size))
    return out.convert("RGB")


def encode(img: Image.Image, shape: CropShape) -> FinalRaster:
    """Encode the final raster; PNG for circles, JPEG for rectangles."""
    mime_type, quality = encoder_for(shape)
    buf = io.BytesIO()
    try:
        if mime_type == MIME_PNG:
            img.save(buf, "PNG", compress_level=PNG_COMPRESS_LEVEL)
        else:
            img.convert("RGB").save(
                buf, "JPEG",
                quality=quality,
                optimize=True,
                subsampling=JPEG_SUBSAMPLING_MAP[JPEG_SUBSAMPLING_DEFAULT],
            )
    except (OSError, ValueError) as exc:
        logger.error("Encoding %s failed: %s", mime_type, exc)
        raise EncodeError() from exc
    data = buf.getvalue()
    logger.debug("Encoded %dx%d %s (%d bytes)", img.width, img.height, mime_type, len(data))
    return FinalRaster(data, mime_type, img.width, img.height)
