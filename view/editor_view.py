from PySide6.QtWidgets import (
    QMainWindow, QGraphicsView, QGraphicsScene, QGraphicsPixmapItem, QGraphicsProxyWidget,
    QLineEdit, QLabel, QStatusBar, QToolBar, QFileDialog,
)
from PySide6.QtGui import QAction, QFont, QPixmap
from PySide6.QtCore import Signal, QRectF
from typing import List, Optional, Tuple

from model.coordinate_mapper import EditorGeometry

EDIT_MODE_PAGE_OPACITY = 0.6


class EditorView(QMainWindow):
    sig_open_pdf = Signal(str)
    sig_save_as = Signal(str)
    sig_page_changed = Signal(int)  # 1-based
    sig_zoom_in = Signal()
    sig_zoom_out = Signal()
    sig_zoom_reset = Signal()
    sig_edit_mode_toggled = Signal(bool)
    sig_run_text_changed = Signal(str, str)  # run_id, text

    def __init__(self):
        super().__init__()
        self.setWindowTitle("PDF Editor")
        self.setMinimumSize(900, 700)
        self.controller = None
        self.current_page = 1
        self.total_pages = 0
        self.page_item: Optional[QGraphicsPixmapItem] = None
        self.run_editors: dict[str, QGraphicsProxyWidget] = {}

        self.graphics_view = QGraphicsView(self)
        self.scene = QGraphicsScene(self)
        self.graphics_view.setScene(self.scene)
        self.setCentralWidget(self.graphics_view)

        self._build_toolbar()
        self.status_bar = QStatusBar(self)
        self.setStatusBar(self.status_bar)
        self.set_document("", 0)
        self.setStyleSheet("""
            QMainWindow { background: #F8FAFC; }
            QToolBar { spacing: 6px; padding: 4px; }
        """)
        self.graphics_view.setStyleSheet("QGraphicsView { background: #F1F5F9; border: none; }")

    def _build_toolbar(self):
        toolbar = QToolBar("Main", self)
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        self.action_open = QAction("Open PDF", self)
        self.action_open.triggered.connect(self._open_file)
        toolbar.addAction(self.action_open)

        self.action_edit_mode = QAction("Edit Mode", self)
        self.action_edit_mode.setCheckable(True)
        self.action_edit_mode.toggled.connect(self._on_edit_mode_toggled)
        toolbar.addAction(self.action_edit_mode)

        self.action_save = QAction("Download Edited PDF", self)
        self.action_save.triggered.connect(self._save)
        toolbar.addAction(self.action_save)
        toolbar.addSeparator()

        self.action_prev = QAction("Previous", self)
        self.action_prev.triggered.connect(lambda: self.sig_page_changed.emit(self.current_page - 1))
        toolbar.addAction(self.action_prev)
        self.page_label = QLabel("", self)
        toolbar.addWidget(self.page_label)
        self.action_next = QAction("Next", self)
        self.action_next.triggered.connect(lambda: self.sig_page_changed.emit(self.current_page + 1))
        toolbar.addAction(self.action_next)
        toolbar.addSeparator()

        self.action_zoom_out = QAction("Zoom Out", self)
        self.action_zoom_out.triggered.connect(self.sig_zoom_out.emit)
        toolbar.addAction(self.action_zoom_out)
        self.action_zoom_reset = QAction("100%", self)
        self.action_zoom_reset.triggered.connect(self.sig_zoom_reset.emit)
        toolbar.addAction(self.action_zoom_reset)
        self.action_zoom_in = QAction("Zoom In", self)
        self.action_zoom_in.triggered.connect(self.sig_zoom_in.emit)
        toolbar.addAction(self.action_zoom_in)

    # --- document state ---

    def set_document(self, name: str, total_pages: int):
        self.total_pages = total_pages
        self.current_page = 1 if total_pages else 0
        loaded = total_pages > 0
        self.action_edit_mode.setEnabled(loaded)
        self.action_save.setEnabled(loaded)
        self.setWindowTitle(f"PDF Editor - {name}" if name else "PDF Editor")
        self.set_page_counter(self.current_page, total_pages)

    def set_page_counter(self, page: int, total: int):
        self.current_page = page
        self.total_pages = total
        self.page_label.setText(f"Page {page} of {total}" if total else "")
        self.action_prev.setEnabled(page > 1)
        self.action_next.setEnabled(0 < page < total)

    def set_zoom_label(self, zoom: float):
        self.action_zoom_reset.setText(f"{int(round(zoom * 100))}%")

    def set_edit_mode(self, enabled: bool):
        if self.action_edit_mode.isChecked() != enabled:
            self.action_edit_mode.blockSignals(True)
            self.action_edit_mode.setChecked(enabled)
            self.action_edit_mode.blockSignals(False)
        self.action_edit_mode.setText("View Mode" if enabled else "Edit Mode")

    def set_busy(self, busy: bool, message: str = ""):
        self.action_open.setEnabled(not busy)
        self.action_save.setEnabled(not busy and self.total_pages > 0)
        if busy:
            self.status_bar.showMessage(message)
        else:
            self.status_bar.clearMessage()

    def show_status(self, message: str):
        self.status_bar.showMessage(message, 8000)

    # --- page + overlay ---

    def display_page(self, pix: QPixmap, dimmed: bool = False):
        self.clear_run_editors()
        self.scene.clear()
        self.page_item = self.scene.addPixmap(pix)
        self.page_item.setOpacity(EDIT_MODE_PAGE_OPACITY if dimmed else 1.0)
        self.scene.setSceneRect(QRectF(0, 0, pix.width(), pix.height()))

    def show_run_editors(self, editors: List[Tuple[str, str, EditorGeometry]]):
        """Place one line editor per run; geometry is already in viewport space."""
        self.clear_run_editors()
        for run_id, text, geom in editors:
            editor = QLineEdit(text)
            editor.setFont(QFont("Helvetica", max(1, int(round(geom.font_px)))))
            editor.setStyleSheet(
                "QLineEdit { background-color: rgba(255, 255, 255, 0.8); border: 2px solid transparent; color: #000000; }"
                "QLineEdit:hover { border: 2px solid #D1D5DB; }"
                "QLineEdit:focus { background-color: white; border: 2px solid #3B82F6; }"
            )
            editor.setFixedSize(int(round(geom.width)), max(1, int(round(geom.height))))
            editor.textChanged.connect(lambda t, rid=run_id: self.sig_run_text_changed.emit(rid, t))
            proxy = self.scene.addWidget(editor)
            proxy.setPos(geom.x, geom.y)
            self.run_editors[run_id] = proxy

    def clear_run_editors(self):
        for proxy in self.run_editors.values():
            self.scene.removeItem(proxy)
            proxy.deleteLater()
        self.run_editors.clear()

    # --- user actions ---

    def _on_edit_mode_toggled(self, checked: bool):
        self.action_edit_mode.setText("View Mode" if checked else "Edit Mode")
        self.sig_edit_mode_toggled.emit(checked)

    def _open_file(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open PDF", "", "PDF (*.pdf)")
        if path:
            self.sig_open_pdf.emit(path)

    def _save(self):
        default_name = self.controller.suggested_filename() if self.controller else "edited-document.pdf"
        path, _ = QFileDialog.getSaveFileName(self, "Save Edited PDF", default_name, "PDF (*.pdf)")
        if path:
            self.sig_save_as.emit(path)
