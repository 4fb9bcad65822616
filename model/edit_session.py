import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import fitz

from model.coordinate_mapper import (
    ViewportRect,
    ViewportTransformState,
    map_doc_to_viewport,
)
from model.errors import LoadFailed, ReconstructFailed
from model.page_reconstructor import PageReconstructor, ReconstructionJob, ReconstructionReport
from model.pdf_parser import PdfSource
from model.run_store import PageRuns, RunModelStore
from model.settings import LoadSettings, ReconstructionSettings
from model.text_run import GlyphTransformDecoder, TextRun

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
# Readers tolerate leading junk before the header; so do we, within this window.
PDF_MAGIC_WINDOW = 1024


@dataclass(slots=True)
class LoadResult:
    generation: int
    committed: bool
    run_count: int = 0
    page_count: int = 0
    failed_pages: list[int] = field(default_factory=list)


class LoadJob:
    """One document load in flight.

    Extraction can be driven in batches from an event loop; the job never
    touches the session until ``EditSession.commit`` accepts it.
    """

    def __init__(
        self,
        session: "EditSession",
        generation: int,
        data: bytes,
        source: PdfSource,
        decoder: GlyphTransformDecoder,
        filename: Optional[str] = None,
    ):
        self.session = session
        self.generation = generation
        self.data = data
        self.source = source
        self.filename = filename
        self._decoder = decoder
        self.page_count = source.page_count
        self.next_page = 1
        self.runs: list[TextRun] = []
        self.failed_pages: list[int] = []

    @property
    def finished(self) -> bool:
        return self.next_page > self.page_count

    def is_stale(self) -> bool:
        return self.session.generation != self.generation

    def extract_next(self, batch_size: int = 1) -> bool:
        """Decode up to ``batch_size`` pages; return True once every page is done."""
        end = min(self.next_page + max(1, batch_size), self.page_count + 1)
        for page_index in range(self.next_page, end):
            runs = self._decoder.try_decode_source_page(self.source, page_index)
            if runs is None:
                self.failed_pages.append(page_index)
            else:
                self.runs.extend(runs)
        self.next_page = end
        return self.finished

    def run(self) -> "LoadJob":
        while not self.extract_next(self.page_count):
            pass
        return self

    def discard(self) -> None:
        self.source.close()


class EditSession:
    """
    Explicit editing session: pristine source bytes, page geometry and the
    run store, with load / commit / close transitions.

    Every ``begin_load`` bumps the generation; a job whose generation is no
    longer current is discarded at commit instead of merged, so a slow load
    can never overwrite a newer one.
    """

    def __init__(
        self,
        load_settings: Optional[LoadSettings] = None,
        reconstruction_settings: Optional[ReconstructionSettings] = None,
        reconstructor: Optional[PageReconstructor] = None,
    ):
        self.load_settings = (load_settings or LoadSettings()).normalized()
        self.reconstruction_settings = (reconstruction_settings or ReconstructionSettings()).normalized()
        self.decoder = GlyphTransformDecoder(self.reconstruction_settings)
        self.reconstructor = reconstructor or PageReconstructor(self.reconstruction_settings)
        self.store = RunModelStore()
        self._lock = threading.RLock()
        self._generation = 0
        self._source_bytes: Optional[bytes] = None
        self._source: Optional[PdfSource] = None
        self._page_sizes: list[tuple[float, float]] = []
        self.filename: Optional[str] = None
        self.failed_pages: list[int] = []
        self.last_report: Optional[ReconstructionReport] = None

    # ── state ────────────────────────────────────────────────────────────

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def is_loaded(self) -> bool:
        return self._source_bytes is not None

    @property
    def page_count(self) -> int:
        return len(self._page_sizes)

    @property
    def source_bytes(self) -> Optional[bytes]:
        return self._source_bytes

    def page_size(self, page_index: int) -> tuple[float, float]:
        if page_index < 1 or page_index > len(self._page_sizes):
            raise IndexError(f"page {page_index} out of range 1..{len(self._page_sizes)}")
        return self._page_sizes[page_index - 1]

    def page_height(self, page_index: int) -> float:
        return self.page_size(page_index)[1]

    # ── loading ──────────────────────────────────────────────────────────

    def _validate(self, data: bytes) -> None:
        if not data:
            raise LoadFailed("document is empty")
        limit = self.load_settings.max_file_bytes
        if len(data) > limit:
            raise LoadFailed(f"document is {len(data)} bytes, limit is {limit} bytes")
        if PDF_MAGIC not in bytes(data[:PDF_MAGIC_WINDOW]):
            raise LoadFailed("not a PDF document (missing %PDF- header)")

    def begin_load(self, data: bytes, filename: Optional[str] = None) -> LoadJob:
        """Start a load; any job started earlier becomes stale immediately."""
        with self._lock:
            self._generation += 1
            generation = self._generation
        data = bytes(data or b"")
        self._validate(data)
        source = PdfSource.open(data)
        logger.debug(f"load generation {generation} started: {source.page_count} pages")
        return LoadJob(self, generation, data, source, self.decoder, filename)

    def commit(self, job: LoadJob) -> LoadResult:
        if not job.finished and not job.is_stale():
            job.run()
        with self._lock:
            if job.generation != self._generation:
                logger.info(f"discarding stale load generation {job.generation} (current {self._generation})")
                job.discard()
                return LoadResult(generation=job.generation, committed=False, page_count=job.page_count)
            sizes = [job.source.page_size(i) for i in range(1, job.page_count + 1)]
            self.store.replace_all(job.runs)
            if self._source is not None and self._source is not job.source:
                self._source.close()
            self._source = job.source
            self._source_bytes = job.data
            self._page_sizes = sizes
            self.filename = job.filename
            self.failed_pages = list(job.failed_pages)
            self.last_report = None
        logger.info(
            f"loaded {len(job.runs)} runs from {job.page_count} pages "
            f"(generation {job.generation}, failed pages: {job.failed_pages})"
        )
        return LoadResult(
            generation=job.generation,
            committed=True,
            run_count=len(job.runs),
            page_count=job.page_count,
            failed_pages=list(job.failed_pages),
        )

    def cancel_load(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def load_document(self, data: bytes, filename: Optional[str] = None) -> RunModelStore:
        job = self.begin_load(data, filename)
        result = self.commit(job.run())
        if not result.committed:
            raise LoadFailed("load superseded by a newer document")
        return self.store

    def load_file(self, path: str) -> RunModelStore:
        src_path = Path(path)
        try:
            data = src_path.read_bytes()
        except OSError as exc:
            raise LoadFailed(f"cannot read {path}: {exc}") from exc
        return self.load_document(data, filename=src_path.name)

    # ── editing ──────────────────────────────────────────────────────────

    def set_run_text(self, run_id: str, text: str) -> bool:
        return self.store.set_text(run_id, text)

    def runs_for_page(self, page_index: int) -> PageRuns:
        return self.store.all_for_page(page_index)

    def viewport_state(self, page_index: int, zoom: float) -> ViewportTransformState:
        return ViewportTransformState(zoom_factor=zoom, page_height=self.page_height(page_index))

    def map_doc_to_viewport(self, run_id: str, zoom: float) -> Optional[ViewportRect]:
        run = self.store.get(run_id)
        if run is None:
            return None
        return map_doc_to_viewport(run, zoom, self.page_height(run.page_index))

    def run_at_viewport_point(self, page_index: int, x: float, y: float, zoom: float) -> Optional[TextRun]:
        """Topmost run on the page whose footprint contains the viewport point."""
        state = self.viewport_state(page_index, zoom)
        doc_x, doc_y = state.point_to_document(x, y)
        hit = None
        for run in self.store.all_for_page(page_index):
            if run.origin_x <= doc_x <= run.origin_x + run.width and run.origin_y <= doc_y <= run.origin_y + run.height:
                hit = run
        return hit

    # ── output ───────────────────────────────────────────────────────────

    def begin_reconstruct(self, page_count: Optional[int] = None) -> ReconstructionJob:
        """Start a page-by-page reconstruction of the current document.

        The job is tagged with the current generation; loading or closing
        another document makes it stale.
        """
        with self._lock:
            if self._source_bytes is None:
                raise ReconstructFailed("no document loaded")
            source_bytes = self._source_bytes
            generation = self._generation
            limit = self.page_count if page_count is None else page_count
        job = self.reconstructor.begin(source_bytes, self.store, limit)
        job.generation = generation
        return job

    def finish_reconstruct(self, job: ReconstructionJob) -> bytes:
        if job.generation != self.generation:
            job.abort()
            raise ReconstructFailed("document changed while the edited PDF was being generated")
        result = job.finish()
        self.last_report = result.report
        return result.data

    def finish_save(self, job: ReconstructionJob, path: str) -> None:
        """Serialize ``job`` and write it; nothing is written if the job fails."""
        data = self.finish_reconstruct(job)
        try:
            Path(path).write_bytes(data)
        except OSError as exc:
            raise ReconstructFailed(f"cannot write {path}: {exc}") from exc
        logger.info(f"saved edited document: {path}")

    def reconstruct(self, page_count: Optional[int] = None) -> bytes:
        return self.finish_reconstruct(self.begin_reconstruct(page_count))

    def save_as(self, path: str, page_count: Optional[int] = None) -> None:
        self.finish_save(self.begin_reconstruct(page_count), path)

    def output_filename(self) -> str:
        return f"edited-{self.filename or 'document.pdf'}"

    def render_page(self, page_index: int, zoom: float = 1.0) -> fitz.Pixmap:
        if self._source is None:
            raise LoadFailed("no document loaded")
        return self._source.render_page(page_index, zoom)

    def close(self) -> None:
        with self._lock:
            self._generation += 1
            if self._source is not None:
                self._source.close()
            self._source = None
            self._source_bytes = None
            self._page_sizes = []
            self.filename = None
            self.failed_pages = []
            self.last_report = None
            self.store.clear()
