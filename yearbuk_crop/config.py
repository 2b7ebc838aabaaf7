"""
Application constants and configuration.

Geometry constants describe the working canvas the crop dialog draws on;
output constants control the final raster and its encoding.  DEFAULT_PRESETS
provides the built-in fallback presets.  Runtime presets are loaded from
presets.json via the presets module.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is shared by all persistence modules.
"""

import os
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "yearbuk-crop"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# DEFAULT PRESETS: built-in fallback when presets.json is missing or corrupt
# =============================================================================
DEFAULT_PRESETS = [
    {
        "name": "logo",
        "aspect_ratio": None,
        "min_width": 1200,
        "min_height": 1200,
    },
    {
        "name": "banner",
        "aspect_ratio": 3,
        "min_width": 1200,
        "min_height": 400,
    },
]

# =============================================================================
# WORKING CANVAS & ZOOM
# =============================================================================
# Source images are fitted into this box (pixels) for on-screen editing
WORKING_CANVAS_SIZE = 500

# Either source dimension below this is rejected
MIN_IMAGE_SIZE = 200

MAX_ZOOM = 4.0
ZOOM_BUTTON_STEP = 0.2
ZOOM_SLIDER_STEP = 0.1

# Crop region size on the working canvas
CIRCLE_CROP_SIZE = 300
RECT_CROP_WIDTH = 450

# Nudge amounts (canvas pixels)
NUDGE_SMALL = 1
NUDGE_LARGE = 10

# =============================================================================
# OVERLAY DRAWING
# =============================================================================
OVERLAY_COLOR = (0, 0, 0, 128)
BORDER_COLOR = (255, 255, 255, 255)
BORDER_WIDTH = 2
CORNER_SIZE = 15
INDICATOR_RADIUS = 3
INDICATOR_INSET = 10

# Thumbnail preview next to the canvas
PREVIEW_RECT_WIDTH = 150
PREVIEW_CIRCLE_SIZE = 100

# =============================================================================
# OUTPUT
# =============================================================================
DEFAULT_OUTPUT_WIDTH = 1200
DEFAULT_OUTPUT_HEIGHT = 1200

# PNG compression level (0-9, 9 = maximum compression)
PNG_COMPRESS_LEVEL = 9

# JPEG export defaults
JPEG_QUALITY = 95
JPEG_SUBSAMPLING_DEFAULT = "4:4:4"

# Map subsampling labels to Pillow integer values
JPEG_SUBSAMPLING_MAP = {"4:4:4": 0, "4:2:2": 1, "4:2:0": 2}

# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".tif", ".webp", ".psd"}
