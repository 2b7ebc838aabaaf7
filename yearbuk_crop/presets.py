"""
Presets persistence: load, save, and validate named output presets.

A preset names an ``OutputSpec`` (e.g. the circular school logo or the 3:1
banner).  Runtime presets are stored in a JSON file in the user's config
directory (provided by ``config.config_dir()``).  On first launch (or if the
file is missing/corrupt), the file is created from DEFAULT_PRESETS.  This
module is Qt-free and safe for worker import.

The on-disk format uses a versioned envelope::

    {"version": 1, "presets": [ ... ]}
"""

import json
import logging
from copy import deepcopy
from pathlib import Path

from yearbuk_crop.config import DEFAULT_PRESETS, config_dir
from yearbuk_crop.models import OutputSpec

logger = logging.getLogger(__name__)

_PRESETS_FILENAME = "presets.json"
_FORMAT_VERSION = 1

_REQUIRED_KEYS = {"name", "aspect_ratio"}
_OPTIONAL_INT_KEYS = ("min_width", "min_height")


def _presets_path() -> Path:
    """Return the full path to presets.json."""
    return config_dir() / _PRESETS_FILENAME


# =============================================================================
# Validation
# =============================================================================
def validate_presets(data: object) -> list[str]:
    """
    Validate a presets data structure.

    Returns a list of error strings (empty means valid).
    """
    errors: list[str] = []

    if not isinstance(data, list):
        errors.append("Presets data must be a list")
        return errors

    names_seen: set[str] = set()

    for i, preset in enumerate(data):
        prefix = f"Preset #{i + 1}"

        if not isinstance(preset, dict):
            errors.append(f"{prefix}: must be a dict")
            continue

        missing = _REQUIRED_KEYS - preset.keys()
        if missing:
            errors.append(f"{prefix}: missing keys: {', '.join(sorted(missing))}")
            continue

        name = preset.get("name", "")
        if not isinstance(name, str) or not name.strip():
            errors.append(f"{prefix}: name must be a non-empty string")
        elif name in names_seen:
            errors.append(f"{prefix}: duplicate name '{name}'")
        else:
            names_seen.add(name)

        # bool is an int subclass; reject it explicitly
        ratio = preset.get("aspect_ratio")
        if ratio is not None and (
            isinstance(ratio, bool) or not isinstance(ratio, (int, float)) or ratio <= 0
        ):
            errors.append(f"{prefix}: aspect_ratio must be null or a positive number, got {ratio!r}")

        for key in _OPTIONAL_INT_KEYS:
            val = preset.get(key)
            if val is not None and (isinstance(val, bool) or not isinstance(val, int) or val <= 0):
                errors.append(f"{prefix}: {key} must be null or a positive integer, got {val!r}")

    return errors


# =============================================================================
# Load / Save
# =============================================================================
def load_presets() -> list[dict]:
    """
    Load presets from presets.json.

    If the file is missing, corrupt, or fails validation, writes the
    defaults and returns them.
    """
    path = _presets_path()

    if not path.exists():
        logger.info("presets.json not found, creating with defaults at %s", path)
        _write_defaults(path)
        return deepcopy(DEFAULT_PRESETS)

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read presets.json (%s), restoring defaults", exc)
        _write_defaults(path)
        return deepcopy(DEFAULT_PRESETS)

    if not isinstance(raw, dict) or raw.get("version") != _FORMAT_VERSION or "presets" not in raw:
        logger.warning("presets.json missing version envelope, restoring defaults")
        _write_defaults(path)
        return deepcopy(DEFAULT_PRESETS)

    data = raw["presets"]
    errors = validate_presets(data)
    if errors:
        logger.warning(
            "presets.json validation failed:\n  %s\nRestoring defaults.",
            "\n  ".join(errors),
        )
        _write_defaults(path)
        return deepcopy(DEFAULT_PRESETS)

    return data


def save_presets(presets: list[dict]) -> None:
    """
    Validate and write presets to presets.json in versioned envelope.

    Raises ValueError if validation fails.
    Raises OSError if the file cannot be written.
    """
    errors = validate_presets(presets)
    if errors:
        raise ValueError("Invalid presets data:\n  " + "\n  ".join(errors))

    envelope = {"version": _FORMAT_VERSION, "presets": presets}
    path = _presets_path()
    path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Saved %d preset(s) to %s", len(presets), path)


def _write_defaults(path: Path) -> None:
    """Write DEFAULT_PRESETS to the given path in versioned envelope."""
    try:
        envelope = {"version": _FORMAT_VERSION, "presets": deepcopy(DEFAULT_PRESETS)}
        path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        logger.error("Could not write default presets to %s: %s", path, exc)


# =============================================================================
# Lookup
# =============================================================================
def preset_names(presets: list[dict]) -> list[str]:
    return [p["name"] for p in presets]


def output_spec_for(presets: list[dict], name: str) -> OutputSpec:
    """Build the ``OutputSpec`` for preset *name*.  Raises KeyError if unknown."""
    for preset in presets:
        if preset["name"] == name:
            return OutputSpec(
                aspect_ratio=preset.get("aspect_ratio"),
                min_width=preset.get("min_width"),
                min_height=preset.get("min_height"),
            )
    raise KeyError(name)


def upsert_preset(name: str, spec: OutputSpec) -> list[dict]:
    """Store *spec* under *name*, replacing a preset of the same name in place."""
    entry = {
        "name": name,
        "aspect_ratio": spec.aspect_ratio,
        "min_width": spec.min_width,
        "min_height": spec.min_height,
    }
    presets = load_presets()
    for i, preset in enumerate(presets):
        if preset["name"] == name:
            presets[i] = entry
            break
    else:
        presets.append(entry)
    save_presets(presets)
    return presets
