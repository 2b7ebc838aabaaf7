"""
Crop dialog.

Wires an ``ImageTransformEngine`` to the canvas widget, the thumbnail
preview, the zoom slider and buttons, and save/cancel.  Decoding runs on an
``ImageLoaderThread``; every viewport change re-renders the preview.
"""

import logging
from pathlib import Path

from PyQt6.QtWidgets import (
    QDialog, QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton,
    QSlider, QStackedWidget, QFileDialog, QMessageBox, QApplication,
)
from PyQt6.QtCore import Qt, pyqtSignal

from yearbuk_crop.config import IMAGE_EXTENSIONS, ZOOM_SLIDER_STEP
from yearbuk_crop.crop_widget import CropCanvasWidget, ImageLoaderThread, pil_to_qpixmap
from yearbuk_crop.engine import ImageTransformEngine, SessionState
from yearbuk_crop.errors import CropError, EncodeError
from yearbuk_crop.models import FinalRaster, OutputSpec, SourceImage, ViewportState

logger = logging.getLogger(__name__)


class CropDialog(QDialog):
    """Modal crop dialog for a logo (circular) or banner (rectangular) image."""

    saved = pyqtSignal(object)  # FinalRaster

    def __init__(self, output_spec: OutputSpec | None = None, parent=None):
        super().__init__(parent)
        self._engine = ImageTransformEngine(output_spec)
        self._engine.add_listener(self._on_viewport_changed)
        self._loader: ImageLoaderThread | None = None
        self._result: FinalRaster | None = None
        self._closing = False
        self._source_path: Path | None = None

        circular = self._engine.is_circular
        self.setWindowTitle("Crop Logo Image" if circular else "Crop Banner Image")
        self.setMinimumSize(720, 600)

        self._build_ui()
        self._update_controls()

    @property
    def engine(self) -> ImageTransformEngine:
        return self._engine

    @property
    def source_path(self) -> Path | None:
        return self._source_path

    @property
    def result_raster(self) -> FinalRaster | None:
        return self._result

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        layout = QVBoxLayout(self)

        ratio = self._engine.output_spec.aspect_ratio
        if self._engine.is_circular:
            desc = ("Adjust the position and zoom of your logo to create a circular crop. "
                    "Use the controls below to position your image perfectly.")
        else:
            desc = (f"Adjust the position and zoom of your banner to create a {ratio:g}:1 crop. "
                    "Use the controls below to position your image perfectly.")
        description = QLabel(desc)
        description.setWordWrap(True)
        description.setStyleSheet("color: #ccc;")
        layout.addWidget(description)

        self._stack = QStackedWidget()
        self._stack.addWidget(self._build_editor_page())
        self._stack.addWidget(self._build_error_page())
        layout.addWidget(self._stack, stretch=1)

        layout.addLayout(self._build_button_row())

    def _build_editor_page(self) -> QWidget:
        page = QWidget()
        page_layout = QVBoxLayout(page)
        page_layout.setContentsMargins(0, 0, 0, 0)

        canvas_row = QHBoxLayout()
        self._canvas = CropCanvasWidget(self._engine)
        canvas_row.addWidget(self._canvas, stretch=1)

        preview_col = QVBoxLayout()
        preview_title = QLabel("Preview")
        preview_title.setAlignment(Qt.AlignmentFlag.AlignHCenter)
        preview_col.addWidget(preview_title)
        self._preview_label = QLabel()
        self._preview_label.setAlignment(Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop)
        preview_col.addWidget(self._preview_label)
        preview_col.addStretch()
        canvas_row.addLayout(preview_col)
        page_layout.addLayout(canvas_row, stretch=1)

        # Zoom controls
        zoom_row = QHBoxLayout()
        self._btn_zoom_out = QPushButton("−")
        self._btn_zoom_out.setToolTip("Zoom out")
        self._btn_zoom_out.clicked.connect(self._zoom_out)
        zoom_row.addWidget(self._btn_zoom_out)

        self._slider = QSlider(Qt.Orientation.Horizontal)
        self._slider.valueChanged.connect(self._on_slider_changed)
        zoom_row.addWidget(self._slider, stretch=1)

        self._btn_zoom_in = QPushButton("+")
        self._btn_zoom_in.setToolTip("Zoom in")
        self._btn_zoom_in.clicked.connect(self._zoom_in)
        zoom_row.addWidget(self._btn_zoom_in)
        page_layout.addLayout(zoom_row)

        target = "Circular area will be saved as logo" if self._engine.is_circular \
            else "Rectangular area will be saved as banner"
        hint = QLabel(f"Drag to reposition • Zoom out to fit more, zoom in for details • {target}")
        hint.setAlignment(Qt.AlignmentFlag.AlignHCenter)
        hint.setStyleSheet("color: #999; font-size: 8pt;")
        page_layout.addWidget(hint)
        return page

    def _build_error_page(self) -> QWidget:
        page = QWidget()
        page_layout = QVBoxLayout(page)
        page_layout.addStretch()
        self._error_label = QLabel()
        self._error_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._error_label.setWordWrap(True)
        self._error_label.setStyleSheet("color: #f87171;")
        page_layout.addWidget(self._error_label)
        btn_retry = QPushButton("Try Different Image")
        btn_retry.clicked.connect(self.choose_file)
        page_layout.addWidget(btn_retry, alignment=Qt.AlignmentFlag.AlignHCenter)
        page_layout.addStretch()
        return page

    def _build_button_row(self) -> QHBoxLayout:
        row = QHBoxLayout()
        row.addStretch()
        btn_cancel = QPushButton("Cancel")
        btn_cancel.clicked.connect(self.reject)
        row.addWidget(btn_cancel)

        label = "Save Logo" if self._engine.is_circular else "Save Banner"
        self._btn_save = QPushButton(label)
        self._btn_save.setDefault(True)
        self._btn_save.clicked.connect(self._save)
        row.addWidget(self._btn_save)
        self._save_label = label
        return row

    # =========================================================================
    # Loading
    # =========================================================================

    def open_file(self, path: Path):
        """Decode *path* in the background and start a new crop session."""
        self._source_path = Path(path)
        self._engine.begin_load()
        self._stack.setCurrentIndex(0)
        self._canvas.refresh(None)
        self._preview_label.clear()
        self._update_controls()

        loader = ImageLoaderThread(Path(path), parent=self)
        loader.finished.connect(self._on_image_loaded)
        loader.error.connect(self._on_image_load_error)
        self._loader = loader
        loader.start()

    def choose_file(self):
        patterns = " ".join(f"*{ext}" for ext in sorted(IMAGE_EXTENSIONS))
        path, _ = QFileDialog.getOpenFileName(self, "Choose Image", "", f"Images ({patterns})")
        if path:
            self.open_file(Path(path))

    def _on_image_loaded(self, source: SourceImage):
        if self._closing or self.sender() is not self._loader:
            # Dialog dismissed or superseded while decoding
            source.release()
            return
        self._engine.install(source)
        self._update_controls()

    def _on_image_load_error(self, error: CropError):
        if self._closing or self.sender() is not self._loader:
            return
        self._engine.fail(error)
        self._show_error(error.user_message)

    def _show_error(self, message: str):
        self._error_label.setText(message)
        self._stack.setCurrentIndex(1)
        self._canvas.refresh(None)
        self._update_controls()

    # =========================================================================
    # Viewport
    # =========================================================================

    def _on_viewport_changed(self, viewport: ViewportState):
        if self._engine.state is not SessionState.READY:
            return
        composite = self._engine.render_preview()
        self._canvas.refresh(pil_to_qpixmap(composite.canvas))
        self._preview_label.setPixmap(pil_to_qpixmap(composite.thumbnail))
        self._sync_slider()
        self._update_controls()

    def _sync_slider(self):
        engine = self._engine
        self._slider.blockSignals(True)
        self._slider.setRange(
            int(round(engine.min_zoom / ZOOM_SLIDER_STEP)),
            int(round(engine.max_zoom / ZOOM_SLIDER_STEP)),
        )
        self._slider.setValue(int(round(engine.viewport.zoom / ZOOM_SLIDER_STEP)))
        self._slider.blockSignals(False)

    def _on_slider_changed(self, value: int):
        if self._engine.state is SessionState.READY:
            self._engine.set_zoom(value * ZOOM_SLIDER_STEP)

    def _zoom_in(self):
        if self._engine.state is SessionState.READY:
            self._engine.zoom_in()

    def _zoom_out(self):
        if self._engine.state is SessionState.READY:
            self._engine.zoom_out()

    def _update_controls(self):
        ready = self._engine.state is SessionState.READY
        self._slider.setEnabled(ready)
        self._btn_zoom_in.setEnabled(ready and self._engine.can_zoom_in)
        self._btn_zoom_out.setEnabled(ready and self._engine.can_zoom_out)
        self._btn_save.setEnabled(ready)

    # =========================================================================
    # Save / close
    # =========================================================================

    def _save(self):
        if self._engine.state is not SessionState.READY:
            return
        self._btn_save.setEnabled(False)
        self._btn_save.setText("Saving...")
        QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        try:
            result = self._engine.commit()
        except EncodeError as exc:
            logger.error("Error creating crop: %s", exc)
            QMessageBox.warning(self, "Crop Failed", exc.user_message)
            return
        finally:
            QApplication.restoreOverrideCursor()
            self._btn_save.setText(self._save_label)
            self._update_controls()

        self._result = result
        self.saved.emit(result)
        self.accept()

    def done(self, result: int):
        self._closing = True
        if self._loader is not None and self._loader.isRunning():
            self._loader.wait()
        self._engine.close()
        super().done(result)
