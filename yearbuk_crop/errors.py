"""
Error types raised by the crop engine.

Every error carries a ``user_message`` suitable for showing in the dialog.
``ImageTooSmall``, ``DecodeError`` and ``EncodeError`` are terminal for the
current file: the caller lets the user pick another file (or, for
``EncodeError``, press save again) rather than retrying automatically.
"""

from yearbuk_crop.config import MIN_IMAGE_SIZE


class CropError(Exception):
    """Base class for crop-session failures."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)


class ImageTooSmall(CropError):
    """Decoded image has a side below the minimum dimension."""

    def __init__(self, min_dimension: int = MIN_IMAGE_SIZE, width: int = 0, height: int = 0):
        self.min_dimension = min_dimension
        self.width = width
        self.height = height
        self.user_message = (
            f"Image is too small. Minimum size is {min_dimension}x{min_dimension} pixels."
        )
        super().__init__(f"{self.user_message} Got {width}x{height}.")


class DecodeError(CropError):
    """File could not be decoded as an image."""

    user_message = "Failed to load image. Please try a different image."


class EncodeError(CropError):
    """Final raster could not be produced or encoded."""

    user_message = "Failed to crop image. Please try again."


class SessionStateError(CropError):
    """Operation is not valid in the engine's current state."""
