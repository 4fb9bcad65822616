from PySide6.QtCore import QTimer
from model.edit_session import EditSession, LoadJob
from model.coordinate_mapper import (
    DEFAULT_ZOOM,
    clamp_zoom,
    editor_geometry,
    map_doc_to_viewport,
    zoom_in,
    zoom_out,
)
from model.errors import LoadFailed, ReconstructFailed
from model.page_reconstructor import ReconstructionJob
from view.editor_view import EditorView
from typing import Optional
from utils.helpers import pixmap_to_qpixmap, show_error
from pathlib import Path
import logging

EXTRACT_BATCH_INTERVAL_MS = 0
RECONSTRUCT_PAGE_INTERVAL_MS = 0

logger = logging.getLogger(__name__)


class EditorController:
    def __init__(self, session: EditSession, view: EditorView):
        self.session = session
        self.view = view
        self.current_page = 1
        self.zoom = DEFAULT_ZOOM
        self.edit_mode = False
        self._pending_job: Optional[LoadJob] = None
        self._pending_save: Optional[ReconstructionJob] = None
        self._load_timer = QTimer()
        self._load_timer.setSingleShot(True)
        self._load_timer.timeout.connect(self._on_load_timeout)
        self._connect_signals()

    def _connect_signals(self):
        self.view.sig_open_pdf.connect(self.open_pdf)
        self.view.sig_save_as.connect(self.save_as)
        self.view.sig_page_changed.connect(self.change_page)
        self.view.sig_zoom_in.connect(self.zoom_in)
        self.view.sig_zoom_out.connect(self.zoom_out)
        self.view.sig_zoom_reset.connect(self.reset_zoom)
        self.view.sig_edit_mode_toggled.connect(self.set_edit_mode)
        self.view.sig_run_text_changed.connect(self.update_run_text)

    @property
    def is_loading(self) -> bool:
        return self._pending_job is not None

    @property
    def is_saving(self) -> bool:
        return self._pending_save is not None

    # ── loading ──────────────────────────────────────────────────────────

    def open_pdf(self, path: str):
        src_path = Path(path)
        try:
            data = src_path.read_bytes()
        except OSError as e:
            logger.error(f"cannot read {path}: {e}")
            show_error(self.view, f"Cannot read file: {e}")
            return
        self.open_bytes(data, src_path.name)

    def open_bytes(self, data: bytes, filename: Optional[str] = None):
        try:
            job = self.session.begin_load(data, filename)
        except LoadFailed as e:
            logger.error(f"failed to load PDF: {e}")
            if self._pending_job is not None and self._pending_job.is_stale():
                self._abandon_pending_load()
            show_error(self.view, f"Failed to load PDF: {e}")
            return

        if self._pending_job is not None:
            self._pending_job.discard()
        if self._pending_save is not None:
            self._pending_save.abort()
            self._pending_save = None
        self._pending_job = job
        self.view.set_busy(True, "Loading PDF...")
        timeout_ms = self.session.load_settings.load_timeout_ms
        if timeout_ms > 0:
            self._load_timer.start(timeout_ms)
        QTimer.singleShot(0, lambda j=job: self._schedule_extract_batch(j))

    def _schedule_extract_batch(self, job: LoadJob):
        if job is not self._pending_job or job.is_stale():
            job.discard()
            return
        done = job.extract_next(self.session.load_settings.extract_batch_size)
        if not done:
            QTimer.singleShot(
                EXTRACT_BATCH_INTERVAL_MS,
                lambda j=job: self._schedule_extract_batch(j),
            )
            return
        self._finish_load(job)

    def _finish_load(self, job: LoadJob):
        result = self.session.commit(job)
        if not result.committed:
            return
        self._pending_job = None
        self._load_timer.stop()
        self.current_page = 1
        self.edit_mode = False
        self.view.set_busy(False)
        self.view.set_edit_mode(False)
        self.view.set_document(self.session.filename or "", self.session.page_count)
        self.render_current_page()
        message = f"Extracted {result.run_count} text runs from {result.page_count} pages"
        if result.failed_pages:
            message += f" (unreadable pages: {', '.join(map(str, result.failed_pages))})"
        self.view.show_status(message)

    def _abandon_pending_load(self):
        job = self._pending_job
        self._pending_job = None
        self._load_timer.stop()
        if job is not None:
            job.discard()
        self.view.set_busy(False)

    def _on_load_timeout(self):
        if self._pending_job is None:
            return
        logger.warning("PDF loading timeout")
        self.session.cancel_load()
        self._abandon_pending_load()
        show_error(self.view, "PDF loading timed out. Please try again or choose a different file.")

    # ── navigation / zoom ────────────────────────────────────────────────

    def change_page(self, page: int):
        if not self.session.is_loaded:
            return
        target = max(1, min(int(page), self.session.page_count))
        if target == self.current_page:
            return
        self.current_page = target
        self.render_current_page()

    def next_page(self):
        self.change_page(self.current_page + 1)

    def prev_page(self):
        self.change_page(self.current_page - 1)

    def _apply_zoom(self, zoom: float):
        self.zoom = clamp_zoom(zoom)
        self.view.set_zoom_label(self.zoom)
        if self.session.is_loaded:
            self.render_current_page()

    def zoom_in(self):
        self._apply_zoom(zoom_in(self.zoom))

    def zoom_out(self):
        self._apply_zoom(zoom_out(self.zoom))

    def reset_zoom(self):
        self._apply_zoom(DEFAULT_ZOOM)

    # ── editing ──────────────────────────────────────────────────────────

    def set_edit_mode(self, enabled: bool):
        self.edit_mode = bool(enabled)
        if self.session.is_loaded:
            self.render_current_page()

    def update_run_text(self, run_id: str, text: str):
        self.session.set_run_text(run_id, text)

    def suggested_filename(self) -> str:
        return self.session.output_filename()

    def save_as(self, path: str):
        if not self.session.is_loaded:
            show_error(self.view, "No PDF loaded. Please open a PDF first.")
            return
        if self._pending_save is not None:
            self._pending_save.abort()
            self._pending_save = None
        try:
            job = self.session.begin_reconstruct()
        except ReconstructFailed as e:
            logger.error(f"failed to generate edited PDF: {e}")
            show_error(self.view, f"Failed to generate edited PDF: {e}")
            return
        self._pending_save = job
        self.view.set_busy(True, "Processing...")
        QTimer.singleShot(0, lambda j=job, p=path: self._schedule_reconstruct_page(j, p))

    def _schedule_reconstruct_page(self, job: ReconstructionJob, path: str):
        if job is not self._pending_save or job.generation != self.session.generation:
            job.abort()
            if job is self._pending_save:
                self._pending_save = None
                self.view.set_busy(False)
            logger.info("discarding stale save job")
            return
        try:
            done = job.step()
        except ReconstructFailed as e:
            self._pending_save = None
            self.view.set_busy(False)
            logger.error(f"failed to generate edited PDF: {e}")
            show_error(self.view, f"Failed to generate edited PDF: {e}")
            return
        if not done:
            self.view.set_busy(True, f"Processing page {job.next_page} of {job.limit}...")
            QTimer.singleShot(
                RECONSTRUCT_PAGE_INTERVAL_MS,
                lambda j=job, p=path: self._schedule_reconstruct_page(j, p),
            )
            return
        self._finish_save(job, path)

    def _finish_save(self, job: ReconstructionJob, path: str):
        self._pending_save = None
        try:
            self.session.finish_save(job, path)
        except ReconstructFailed as e:
            logger.error(f"failed to generate edited PDF: {e}")
            show_error(self.view, f"Failed to generate edited PDF: {e}")
            return
        finally:
            self.view.set_busy(False)
        report = self.session.last_report
        if report is not None and (report.draw_failures or report.lost_runs):
            self.view.show_status(
                f"Saved {path}; {len(report.draw_failures)} run(s) replaced by a placeholder"
            )
        else:
            self.view.show_status(f"Saved {path}")

    # ── rendering ────────────────────────────────────────────────────────

    def render_current_page(self):
        page = self.current_page
        pix = self.session.render_page(page, self.zoom)
        self.view.display_page(pixmap_to_qpixmap(pix), dimmed=self.edit_mode)
        if self.edit_mode:
            page_height = self.session.page_height(page)
            editors = []
            for run in self.session.runs_for_page(page):
                vp = map_doc_to_viewport(run, self.zoom, page_height)
                editors.append((run.run_id, run.text, editor_geometry(vp, self.zoom)))
            self.view.show_run_editors(editors)
        self.view.set_page_counter(page, self.session.page_count)
        self.view.set_zoom_label(self.zoom)
