"""Crop geometry: zoom range, pan clamping, and the inverse mapping to source pixels."""

from __future__ import annotations

import pytest

from yearbuk_crop.models import CropGeometry, CropShape, OutputSpec, ViewportState


def _geometry(w: int, h: int, aspect_ratio: float | None = None) -> CropGeometry:
    return CropGeometry(w, h, CropShape.for_aspect_ratio(aspect_ratio))


def test_crop_shape_sizes():
    circle = CropShape.for_aspect_ratio(None)
    assert circle.is_circular
    assert (circle.width, circle.height) == (300, 300)

    banner = CropShape.for_aspect_ratio(3)
    assert not banner.is_circular
    assert (banner.width, banner.height) == (450, 150)


@pytest.mark.parametrize(
    "size, ratio",
    [
        ((1000, 1000), None),  # square
        ((2000, 1000), 3),     # wide
        ((1000, 2000), None),  # tall
        ((800, 1600), 3),
        ((4000, 300), None),
    ],
)
def test_min_zoom_uses_fitted_display_size(size, ratio):
    w, h = size
    geo = _geometry(w, h, ratio)
    base = min(500 / w, 500 / h)
    expected = max(geo.shape.width / (w * base), geo.shape.height / (h * base))
    assert geo.base_scale == pytest.approx(base)
    assert geo.min_zoom == pytest.approx(expected)


def test_square_circle_zoom_range():
    geo = _geometry(1000, 1000)
    assert (geo.display_width, geo.display_height) == (500, 500)
    assert geo.min_zoom == pytest.approx(0.6)
    assert geo.max_zoom == 4.0
    assert geo.initial_zoom == pytest.approx(2.3)
    view = geo.initial_viewport()
    assert view.zoom == pytest.approx(2.3)
    assert (view.offset_x, view.offset_y) == (0.0, 0.0)


def test_wide_banner_zoom_range():
    geo = _geometry(2000, 1000, 3)
    assert geo.base_scale == pytest.approx(0.25)
    assert (geo.display_width, geo.display_height) == (500, 250)
    assert geo.min_zoom == pytest.approx(0.9)
    assert geo.canvas_pixel_size == (500, 250)


def test_max_zoom_never_below_min_zoom():
    geo = _geometry(200, 2500)
    assert geo.min_zoom == pytest.approx(7.5)
    assert geo.max_zoom == pytest.approx(7.5)
    assert geo.clamp_zoom(1.0) == pytest.approx(7.5)


def test_pan_clamps_at_max_zoom():
    geo = _geometry(1000, 1000)
    assert geo.max_offset(4.0) == (850, 850)
    assert geo.clamp_offset(10_000, 0, 4.0) == (850, 0)
    assert geo.clamp_offset(-10_000, -10_000, 4.0) == (-850, -850)


def test_pan_bounds_hold_across_zoom_range():
    geo = _geometry(1600, 900, 3)
    steps = 12
    for i in range(steps + 1):
        zoom = geo.min_zoom + (geo.max_zoom - geo.min_zoom) * i / steps
        max_x, max_y = geo.max_offset(zoom)
        for ox in (-5000, -max_x - 1, -3.5, 0, 17, max_x + 1, 5000):
            for oy in (-5000, -max_y - 1, 0, 2.25, max_y + 1, 5000):
                x, y = geo.clamp_offset(ox, oy, zoom)
                assert abs(x) <= max_x
                assert abs(y) <= max_y


def test_min_zoom_has_no_pan_room_on_limiting_axis():
    geo = _geometry(2000, 1000, 3)
    max_x, max_y = geo.max_offset(geo.min_zoom)
    assert max_x == pytest.approx(0)
    assert max_y > 0


def test_crop_rect_is_centred():
    geo = _geometry(2000, 1000, 3)
    crop = geo.crop_rect
    assert (crop.x, crop.y, crop.w, crop.h) == (25, 50, 450, 150)
    assert crop.center == (250, 125)


def test_source_box_centred_by_default():
    geo = _geometry(1000, 1000)
    left, top, right, bottom = geo.source_box(geo.initial_viewport())
    assert (left + right) / 2 == pytest.approx(500)
    assert (top + bottom) / 2 == pytest.approx(500)
    # 300 canvas px at 0.5 * 2.3 canvas px per source px
    assert right - left == pytest.approx(300 / (0.5 * 2.3))


def test_source_box_covers_whole_source_at_min_zoom():
    geo = _geometry(400, 400)
    box = geo.source_box(ViewportState(geo.min_zoom, 0, 0))
    assert box == pytest.approx((0, 0, 400, 400))


def test_pan_right_reveals_left_edge():
    geo = _geometry(1000, 1000)
    left, _, _, _ = geo.source_box(ViewportState(4.0, 850, 0))
    assert left == pytest.approx(0)


def test_image_rect_clamps_stale_offset():
    geo = _geometry(1000, 1000)
    # Offset valid at zoom 4 but not at min zoom
    img = geo.image_rect(ViewportState(geo.min_zoom, 850, 0))
    crop = geo.crop_rect
    assert img.x <= crop.x
    assert img.right >= crop.right


def test_output_spec_defaults():
    assert OutputSpec().resolve() == (1200, 1200)
    assert OutputSpec(aspect_ratio=3).resolve() == (1200, 400)
    assert OutputSpec(aspect_ratio=3, min_width=900).resolve() == (900, 300)
    assert OutputSpec(aspect_ratio=3, min_width=1200, min_height=400).resolve() == (1200, 400)
    assert OutputSpec().is_circular
    assert not OutputSpec(aspect_ratio=2.5).is_circular


@pytest.mark.parametrize(
    "kwargs",
    [{"aspect_ratio": 0}, {"aspect_ratio": -1}, {"min_width": 0}, {"min_height": -5}, {"min_width": 1.5}],
)
def test_output_spec_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        OutputSpec(**kwargs)
