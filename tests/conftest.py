"""Shared fixtures: in-memory source images and an isolated config directory."""

from __future__ import annotations

import io
import os
import sys
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Qt widgets need a platform plugin even when nothing is shown
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


def make_image(width: int, height: int, color=(200, 120, 40)) -> Image.Image:
    return Image.new("RGB", (width, height), color)


def split_image(width: int, height: int, left=(255, 0, 0), right=(0, 0, 255)) -> Image.Image:
    """Left half one colour, right half another."""
    img = make_image(width, height, right)
    ImageDraw.Draw(img).rectangle((0, 0, width // 2 - 1, height - 1), fill=left)
    return img


def encode(img: Image.Image, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    img.save(buf, fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    def _make(width: int, height: int, color=(200, 120, 40)) -> bytes:
        return encode(make_image(width, height, color))
    return _make


@pytest.fixture
def image_file(tmp_path):
    def _make(width: int, height: int, name: str = "source.png", img: Image.Image | None = None) -> Path:
        path = tmp_path / name
        (img or make_image(width, height)).save(path)
        return path
    return _make


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    config = tmp_path / "config"
    config.mkdir()
    monkeypatch.setattr("yearbuk_crop.presets.config_dir", lambda: config)
    return config
