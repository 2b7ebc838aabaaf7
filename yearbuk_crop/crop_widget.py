"""
Interactive crop canvas widget and Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, the background ``ImageLoaderThread``, and the
``CropCanvasWidget`` that shows the engine's composite and turns drags,
wheel steps and arrow keys into engine calls.
"""

import logging
from pathlib import Path

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QRectF, QPointF, pyqtSignal, QThread
from PyQt6.QtGui import (
    QPainter, QPixmap, QColor, QImage,
    QKeyEvent, QMouseEvent, QPaintEvent, QResizeEvent, QWheelEvent,
)

from yearbuk_crop.config import NUDGE_SMALL, NUDGE_LARGE, ZOOM_SLIDER_STEP
from yearbuk_crop.engine import ImageTransformEngine, SessionState
from yearbuk_crop.errors import CropError, DecodeError
from yearbuk_crop.image_io import decode_source

logger = logging.getLogger(__name__)


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgba = pil_img.convert("RGBA")
    data = img_rgba.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgba.width, img_rgba.height, QImage.Format.Format_RGBA8888)
    # QImage does not own *data*; copy before it goes out of scope
    return QPixmap.fromImage(qimg.copy())


# =============================================================================
# Background image loader
# =============================================================================

class ImageLoaderThread(QThread):
    """Background thread for decoding the selected file."""
    finished = pyqtSignal(object)  # SourceImage
    error = pyqtSignal(object)     # CropError

    def __init__(self, path: Path, parent=None):
        super().__init__(parent)
        self._path = path

    def run(self):
        try:
            source = decode_source(self._path)
            self.finished.emit(source)
        except CropError as e:
            self.error.emit(e)
        except Exception as e:
            logger.exception("Loader thread failed on %s", self._path)
            self.error.emit(DecodeError(str(e)))


# =============================================================================
# Crop canvas widget
# =============================================================================

class CropCanvasWidget(QWidget):
    """Displays the engine's working canvas and forwards interaction to it."""

    def __init__(self, engine: ImageTransformEngine, parent=None):
        super().__init__(parent)
        self.setMinimumSize(400, 400)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self._engine = engine
        self._pixmap: QPixmap | None = None

        # Display mapping (canvas pixels -> widget pixels)
        self._scale = 1.0
        self._offset_x = 0.0
        self._offset_y = 0.0

        self._drag_start: QPointF | None = None

    def refresh(self, pixmap: QPixmap | None):
        """Show a freshly rendered canvas (or nothing)."""
        self._pixmap = pixmap
        self._update_display_mapping()
        self.update()

    def has_image(self) -> bool:
        return self._pixmap is not None and self._engine.state is SessionState.READY

    # --- Coordinate mapping ---

    def _update_display_mapping(self):
        """Calculate scale and offset to fit the canvas in the widget, never upscaling."""
        if not self._pixmap or self._pixmap.width() == 0 or self._pixmap.height() == 0:
            return
        ww, wh = self.width(), self.height()
        pw, ph = self._pixmap.width(), self._pixmap.height()
        self._scale = min(1.0, ww / pw, wh / ph)
        self._offset_x = (ww - pw * self._scale) / 2
        self._offset_y = (wh - ph * self._scale) / 2

    def _canvas_dest_rect(self) -> QRectF:
        return QRectF(
            self._offset_x, self._offset_y,
            self._pixmap.width() * self._scale, self._pixmap.height() * self._scale,
        )

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor(31, 41, 55))

        if not self._pixmap:
            painter.setPen(QColor(156, 163, 175))
            loading = self._engine.state is SessionState.LOADING
            msg = "Loading image..." if loading else "No image loaded"
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, msg)
            painter.end()
            return

        painter.drawPixmap(self._canvas_dest_rect().toRect(), self._pixmap)
        painter.end()

    def resizeEvent(self, event: QResizeEvent):
        self._update_display_mapping()
        super().resizeEvent(event)

    # --- Mouse interaction ---

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton or not self.has_image():
            return
        self._drag_start = event.position()
        self._engine.begin_drag()
        self.setCursor(Qt.CursorShape.ClosedHandCursor)

    def mouseMoveEvent(self, event: QMouseEvent):
        if not self.has_image():
            return
        if self._drag_start is None:
            self.setCursor(Qt.CursorShape.OpenHandCursor)
            return
        # Widget delta back to canvas pixels
        delta = event.position() - self._drag_start
        self._engine.pan(delta.x() / self._scale, delta.y() / self._scale)

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            self._end_drag()

    def leaveEvent(self, event):
        self._end_drag()
        super().leaveEvent(event)

    def _end_drag(self):
        if self._drag_start is not None:
            self._drag_start = None
            self._engine.end_drag()
            self.setCursor(Qt.CursorShape.OpenHandCursor)

    def wheelEvent(self, event: QWheelEvent):
        if not self.has_image():
            return
        steps = event.angleDelta().y() / 120
        if steps:
            self._engine.set_zoom(self._engine.viewport.zoom + steps * ZOOM_SLIDER_STEP)

    # --- Keyboard nudge ---

    def keyPressEvent(self, event: QKeyEvent):
        if not self.has_image():
            super().keyPressEvent(event)
            return
        amount = NUDGE_LARGE if event.modifiers() & Qt.KeyboardModifier.ShiftModifier else NUDGE_SMALL
        moves = {
            Qt.Key.Key_Left: (-1, 0),
            Qt.Key.Key_Right: (1, 0),
            Qt.Key.Key_Up: (0, -1),
            Qt.Key.Key_Down: (0, 1),
        }
        move = moves.get(event.key())
        if move is None:
            super().keyPressEvent(event)
            return
        self._engine.nudge(move[0], move[1], amount=amount)
