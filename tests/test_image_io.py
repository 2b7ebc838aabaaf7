"""Decoding sources from paths, bytes and streams."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from yearbuk_crop.errors import DecodeError, ImageTooSmall
from yearbuk_crop.image_io import decode_source, unique_path

from conftest import make_image


def test_decode_from_path(image_file):
    path = image_file(640, 480, name="school.png")
    source = decode_source(path)
    assert (source.width, source.height) == (640, 480)
    assert source.name == "school.png"
    assert source.image.mode == "RGBA"


def test_decode_from_stream(image_file):
    path = image_file(300, 300, name="stream.png")
    with open(path, "rb") as f:
        source = decode_source(f)
    assert source.name == "stream.png"
    assert source.width == 300


def test_decode_keeps_transparency(tmp_path):
    img = Image.new("RGBA", (300, 300), (10, 20, 30, 0))
    path = tmp_path / "clear.png"
    img.save(path)
    source = decode_source(path)
    assert source.image.getpixel((0, 0))[3] == 0


def test_decode_applies_exif_orientation():
    img = make_image(300, 220)
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 CW on display
    buf = io.BytesIO()
    img.save(buf, "JPEG", exif=exif.tobytes())
    source = decode_source(buf.getvalue())
    assert (source.width, source.height) == (220, 300)


def test_truncated_file_is_decode_error(png_bytes):
    data = png_bytes(400, 400)[:60]
    with pytest.raises(DecodeError):
        decode_source(data)


def test_missing_file_is_decode_error(tmp_path):
    with pytest.raises(DecodeError):
        decode_source(tmp_path / "nope.png")


def test_large_images_are_not_capped():
    assert Image.MAX_IMAGE_PIXELS is None


def test_pixel_limit_overflow_is_decode_error(png_bytes, monkeypatch):
    data = png_bytes(400, 400)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10_000)
    with pytest.raises(DecodeError) as excinfo:
        decode_source(data)
    assert isinstance(excinfo.value.__cause__, Image.DecompressionBombError)


def test_too_small_reports_dimensions(png_bytes):
    with pytest.raises(ImageTooSmall) as excinfo:
        decode_source(png_bytes(640, 120))
    err = excinfo.value
    assert (err.width, err.height) == (640, 120)
    assert err.user_message == "Image is too small. Minimum size is 200x200 pixels."


def test_release_is_idempotent(png_bytes):
    source = decode_source(png_bytes(300, 300))
    source.release()
    source.release()
    assert source.released


def test_unique_path(tmp_path):
    target = tmp_path / "logo-cropped.png"
    assert unique_path(target) == target
    target.write_bytes(b"x")
    assert unique_path(target) == tmp_path / "logo-cropped-01.png"
    (tmp_path / "logo-cropped-01.png").write_bytes(b"x")
    assert unique_path(target) == tmp_path / "logo-cropped-02.png"
