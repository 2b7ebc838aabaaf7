"""
Crop session engine (Qt-free).

``ImageTransformEngine`` holds one crop session: the decoded source, the
crop shape derived from the ``OutputSpec``, and the interactive zoom/pan
state.  Every viewport change goes through ``CropGeometry`` so the offset is
re-clamped on each zoom as well as each drag.

Session states::

    EMPTY -> LOADING -> ERROR | READY -> COMMITTED

``load_image`` may be called from any state and starts a fresh session,
releasing the previous source.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable

from yearbuk_crop.config import NUDGE_SMALL, ZOOM_BUTTON_STEP
from yearbuk_crop.errors import CropError, DecodeError, EncodeError, SessionStateError
from yearbuk_crop.image_io import decode_source
from yearbuk_crop.models import (
    CropGeometry, FinalRaster, OutputSpec, PreviewComposite, SourceImage, ViewportState,
)
from yearbuk_crop import render

logger = logging.getLogger(__name__)


class SessionState(Enum):
    EMPTY = "empty"
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"
    COMMITTED = "committed"


class ImageTransformEngine:
    """Zoom/pan state for one source image, with preview and commit rendering."""

    def __init__(self, output_spec: OutputSpec | None = None):
        self.output_spec = output_spec or OutputSpec()
        self.shape = self.output_spec.shape()

        self._state = SessionState.EMPTY
        self._source: SourceImage | None = None
        self._geometry: CropGeometry | None = None
        self._viewport = ViewportState()
        self._drag_origin: tuple[float, float] | None = None
        self._error: CropError | None = None
        self._listeners: list[Callable[[ViewportState], None]] = []

    # --- Context management ---

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Release the current source image, if any."""
        self._release_source()
        self._state = SessionState.EMPTY

    # --- Read-only state ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> CropError | None:
        return self._error

    @property
    def source(self) -> SourceImage | None:
        return self._source

    @property
    def geometry(self) -> CropGeometry | None:
        return self._geometry

    @property
    def viewport(self) -> ViewportState:
        return self._viewport

    @property
    def is_circular(self) -> bool:
        return self.shape.is_circular

    @property
    def min_zoom(self) -> float:
        return self._require_geometry().min_zoom

    @property
    def max_zoom(self) -> float:
        return self._require_geometry().max_zoom

    @property
    def can_zoom_in(self) -> bool:
        return self._geometry is not None and self._viewport.zoom < self._geometry.max_zoom

    @property
    def can_zoom_out(self) -> bool:
        return self._geometry is not None and self._viewport.zoom > self._geometry.min_zoom

    @property
    def is_dragging(self) -> bool:
        return self._drag_origin is not None

    def add_listener(self, callback: Callable[[ViewportState], None]):
        """Register *callback* to be called after every viewport change."""
        self._listeners.append(callback)

    # --- Loading ---

    def begin_load(self):
        """Enter LOADING; the previous source is released."""
        self._release_source()
        self._error = None
        self._state = SessionState.LOADING

    def install(self, source: SourceImage) -> SourceImage:
        """Install a decoded source and reset the viewport to its centred default."""
        if self._state is not SessionState.LOADING:
            self.begin_load()
        self._source = source
        self._geometry = CropGeometry(source.width, source.height, self.shape)
        self._viewport = self._geometry.initial_viewport()
        self._drag_origin = None
        self._state = SessionState.READY
        logger.info(
            "Loaded %s %dx%d: zoom %.3f in [%.3f, %.3f]",
            source.name or "image", source.width, source.height,
            self._viewport.zoom, self._geometry.min_zoom, self._geometry.max_zoom,
        )
        self._notify()
        return source

    def fail(self, error: CropError):
        """Enter ERROR with no source installed."""
        self._release_source()
        self._error = error
        self._state = SessionState.ERROR
        logger.info("Crop session failed: %s", error)

    def load_image(self, file: Path | str | bytes | BinaryIO, name: str = "") -> SourceImage:
        """Decode *file* and install it.  Raises ``ImageTooSmall`` or ``DecodeError``."""
        self.begin_load()
        try:
            source = decode_source(file, name=name)
        except CropError as exc:
            self.fail(exc)
            raise
        except Exception as exc:
            logger.exception("Unexpected failure decoding %s", name or "image")
            error = DecodeError(str(exc))
            self.fail(error)
            raise error from exc
        return self.install(source)

    # --- Viewport ---

    def set_zoom(self, zoom: float) -> ViewportState:
        """Clamp *zoom* to the allowed range and re-clamp the pan offset."""
        geometry = self._require_ready()
        vp = self._viewport
        self._apply(ViewportState(geometry.clamp_zoom(zoom), vp.offset_x, vp.offset_y))
        return self._viewport

    def zoom_in(self) -> ViewportState:
        return self.set_zoom(self._viewport.zoom + ZOOM_BUTTON_STEP)

    def zoom_out(self) -> ViewportState:
        return self.set_zoom(self._viewport.zoom - ZOOM_BUTTON_STEP)

    def begin_drag(self):
        self._require_ready()
        self._drag_origin = (self._viewport.offset_x, self._viewport.offset_y)

    def end_drag(self):
        self._drag_origin = None

    def pan(self, dx: float, dy: float) -> ViewportState:
        """Move the image by (*dx*, *dy*) from the drag origin (or current offset)."""
        self._require_ready()
        ox, oy = self._drag_origin or (self._viewport.offset_x, self._viewport.offset_y)
        self._apply(ViewportState(self._viewport.zoom, ox + dx, oy + dy))
        return self._viewport

    def nudge(self, dx: float = 0, dy: float = 0, amount: float = NUDGE_SMALL) -> ViewportState:
        """Keyboard pan relative to the current offset."""
        self._require_ready()
        vp = self._viewport
        self._apply(ViewportState(vp.zoom, vp.offset_x + dx * amount, vp.offset_y + dy * amount))
        return self._viewport

    def reset_view(self) -> ViewportState:
        geometry = self._require_ready()
        self._apply(geometry.initial_viewport())
        return self._viewport

    # --- Rendering ---

    def render_preview(self) -> PreviewComposite:
        """Working-canvas composite and thumbnail for the current viewport."""
        geometry = self._require_geometry()
        return render.render_preview(self._source, geometry, self._viewport)

    def commit(self) -> FinalRaster:
        """
        Render and encode the crop at ``OutputSpec`` resolution.

        On ``EncodeError`` the session stays READY so the user can retry.
        """
        geometry = self._require_ready()
        size = self.output_spec.resolve()
        try:
            img = render.render_final(self._source, geometry, self._viewport, size)
        except (OSError, ValueError, MemoryError) as exc:
            logger.error("Rendering final raster failed: %s", exc)
            raise EncodeError() from exc
        result = render.encode(img, self.shape)
        self._state = SessionState.COMMITTED
        self._drag_origin = None
        logger.info(
            "Committed %dx%d %s from source box %s",
            result.width, result.height, result.mime_type,
            tuple(round(v, 2) for v in geometry.source_box(self._viewport)),
        )
        return result

    # --- Internals ---

    def _apply(self, viewport: ViewportState):
        clamped = self._geometry.clamp_viewport(viewport)
        if clamped == self._viewport:
            return
        self._viewport = clamped
        logger.debug(
            "Viewport zoom=%.3f offset=(%.1f, %.1f)",
            clamped.zoom, clamped.offset_x, clamped.offset_y,
        )
        self._notify()

    def _notify(self):
        for callback in self._listeners:
            callback(self._viewport)

    def _require_geometry(self) -> CropGeometry:
        if self._geometry is None or self._source is None:
            raise SessionStateError("No image loaded")
        return self._geometry

    def _require_ready(self) -> CropGeometry:
        geometry = self._require_geometry()
        if self._state is not SessionState.READY:
            raise SessionStateError(f"Operation not allowed in state {self._state.value}")
        return geometry

    def _release_source(self):
        if self._source is not None:
            self._source.release()
        self._source = None
        self._geometry = None
        self._viewport = ViewportState()
        self._drag_origin = None
