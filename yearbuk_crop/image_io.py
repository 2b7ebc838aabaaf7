"""
Qt-free image I/O utilities.

Decodes user-selected files (Pillow formats plus PSD via psd-tools) into a
``SourceImage`` ready for cropping, and generates unique output paths.
Safe to import in worker processes.
"""

import io
import logging
from pathlib import Path
from typing import BinaryIO

from PIL import Image, ImageOps, UnidentifiedImageError
from psd_tools import PSDImage

from yearbuk_crop.config import MIN_IMAGE_SIZE
from yearbuk_crop.errors import DecodeError, ImageTooSmall
from yearbuk_crop.models import SourceImage

logger = logging.getLogger(__name__)

# Allow very large images (Pillow's default limit is ~178MP)
Image.MAX_IMAGE_PIXELS = None

# psd-tools raises a mix of these on truncated or unsupported files;
# the bomb check still fires if a caller restores a pixel limit
_DECODE_ERRORS = (
    UnidentifiedImageError, Image.DecompressionBombError,
    OSError, ValueError, SyntaxError, EOFError,
)

_PSD_SIGNATURE = b"8BPS"


def _is_psd(data: bytes) -> bool:
    return data[:4] == _PSD_SIGNATURE


def open_image(path: Path) -> Image.Image:
    """Open an image file, using psd-tools for PSD and Pillow for the rest."""
    if path.suffix.lower() == ".psd":
        psd = PSDImage.open(str(path))
        return psd.composite()
    return Image.open(path)


def _open_bytes(data: bytes) -> Image.Image:
    if _is_psd(data):
        psd = PSDImage.open(io.BytesIO(data))
        return psd.composite()
    return Image.open(io.BytesIO(data))


def decode_source(
    file: Path | str | bytes | BinaryIO,
    name: str = "",
    min_size: int = MIN_IMAGE_SIZE,
) -> SourceImage:
    """
    Decode *file* into an RGBA ``SourceImage``.

    *file* may be a path, raw bytes, or a binary file object.  EXIF
    orientation is applied so the user crops what they see.

    Raises ``DecodeError`` if the data is not a readable image, and
    ``ImageTooSmall`` if either side is below *min_size*.
    """
    try:
        if isinstance(file, (str, Path)):
            path = Path(file)
            name = name or path.name
            img = open_image(path)
        elif isinstance(file, (bytes, bytearray)):
            img = _open_bytes(bytes(file))
        else:
            name = name or Path(getattr(file, "name", "") or "").name
            img = _open_bytes(file.read())
        img.load()
        img = ImageOps.exif_transpose(img)
        rgba = img.convert("RGBA")
    except _DECODE_ERRORS as exc:
        logger.warning("Could not decode %s: %s", name or "<stream>", exc)
        raise DecodeError() from exc

    if rgba.width < min_size or rgba.height < min_size:
        width, height = rgba.size
        rgba.close()
        logger.info("Rejected %s: %dx%d is below %dpx", name or "<stream>", width, height, min_size)
        raise ImageTooSmall(min_size, width, height)

    logger.info("Decoded %s (%dx%d)", name or "<stream>", rgba.width, rgba.height)
    return SourceImage(rgba, name=name)


def unique_path(out_path: Path) -> Path:
    """Return a unique path by appending -01, -02, etc. if file already exists."""
    if not out_path.exists():
        return out_path
    stem = out_path.stem
    suffix = out_path.suffix
    parent = out_path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}-{counter:02d}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1
