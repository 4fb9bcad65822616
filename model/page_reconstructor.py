import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from model.errors import DrawFailed, ParseFailed, ReconstructFailed
from model.pdf_writer import PdfWriter
from model.run_store import RunModelStore
from model.settings import ReconstructionSettings
from model.text_normalizer import normalize
from model.text_run import DocRect, TextRun

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconstructionReport:
    pages_processed: int = 0
    runs_drawn: int = 0
    draw_failures: list[str] = field(default_factory=list)
    lost_runs: list[str] = field(default_factory=list)
    skipped_runs: list[str] = field(default_factory=list)
    errors: list[DrawFailed] = field(default_factory=list)


@dataclass(slots=True)
class ReconstructionResult:
    data: bytes
    report: ReconstructionReport


class ReconstructionJob:
    """One reconstruction in flight: an open writer, a frozen copy of the runs
    and the report so far.

    ``step`` rebuilds one page so an event loop can interleave other work;
    ``finish`` rebuilds whatever is left and serializes. The writer is closed
    on completion, on failure and on ``abort``.
    """

    def __init__(
        self,
        reconstructor: "PageReconstructor",
        writer: PdfWriter,
        store: RunModelStore,
        limit: int,
    ):
        self._reconstructor = reconstructor
        self._writer = writer
        # edits made while the job runs do not leak into half-built output
        self._store = RunModelStore(store.snapshot())
        self.limit = limit
        self.next_page = 1
        self.report = ReconstructionReport()
        self.generation: Optional[int] = None
        self._closed = False

    @property
    def finished(self) -> bool:
        return self.next_page > self.limit

    @property
    def closed(self) -> bool:
        return self._closed

    def step(self) -> bool:
        """Rebuild the next page; return True once every page is done."""
        if self._closed:
            raise ReconstructFailed("reconstruction job already closed")
        if self.finished:
            return True
        page_index = self.next_page
        try:
            for run in self._store.all_for_page(page_index):
                self._reconstructor._rebuild_run(self._writer, run, self.report)
        except ReconstructFailed as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            self._fail(exc)
            raise ReconstructFailed(f"reconstruction failed on page {page_index}: {exc}") from exc
        self.report.pages_processed += 1
        self.next_page += 1
        return self.finished

    def finish(self) -> ReconstructionResult:
        while not self.step():
            pass
        report = self.report
        for run in self._store:
            if run.page_index < 1 or run.page_index > self.limit:
                report.skipped_runs.append(run.run_id)
        if report.skipped_runs:
            logger.warning(
                f"{len(report.skipped_runs)} run(s) skipped: page beyond document page count {self.limit}"
            )
        try:
            data = self._writer.to_bytes()
        except ReconstructFailed as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            self._fail(exc)
            raise ReconstructFailed(f"reconstruction failed: {exc}") from exc
        self.abort()
        logger.info(
            f"reconstructed {report.pages_processed} pages: {report.runs_drawn} runs drawn, "
            f"{len(report.draw_failures)} placeholders, {len(report.lost_runs)} lost"
        )
        return ReconstructionResult(data=data, report=report)

    def _fail(self, exc: Exception) -> None:
        logger.error(f"reconstruction aborted: {exc}")
        self.abort()

    def abort(self) -> None:
        if not self._closed:
            self._closed = True
            self._writer.close()


class PageReconstructor:
    """
    Rebuild a document from pristine source bytes and the run store.

    Per run, in store order:
      1. paint the occlusion rect opaque white (assumes a white background);
      2. draw the normalized text at the run origin with the fixed font;
      3. if the font still rejects it, draw the placeholder in red instead.

    A bad run never fails the page; writer-level failures abort the whole
    operation with ``ReconstructFailed``.
    """

    def __init__(
        self,
        settings: Optional[ReconstructionSettings] = None,
        normalizer: Callable[[str], str] = normalize,
        writer_factory: Callable[[bytes], PdfWriter] = PdfWriter.open,
    ):
        self.settings = (settings or ReconstructionSettings()).normalized()
        self.normalizer = normalizer
        self.writer_factory = writer_factory

    def occlusion_rect(self, run: TextRun) -> DocRect:
        s = self.settings
        return DocRect(
            x=run.origin_x - s.occlusion_pad_left,
            y=run.origin_y - run.font_size * s.occlusion_descent_factor,
            width=run.width + s.occlusion_pad_width,
            height=run.font_size * s.occlusion_height_factor,
        )

    def begin(
        self,
        source_bytes: bytes,
        store: RunModelStore,
        page_count: Optional[int] = None,
    ) -> ReconstructionJob:
        """Open the writer and embed the font; pages are rebuilt by the job."""
        try:
            writer = self.writer_factory(source_bytes)
        except ParseFailed as exc:
            logger.error(f"reconstruction aborted, source unreadable: {exc}")
            raise ReconstructFailed(f"source document unreadable: {exc}") from exc

        try:
            limit = writer.page_count if page_count is None else min(int(page_count), writer.page_count)
            writer.embed_font(self.settings.font_name)
        except Exception as exc:
            writer.close()
            logger.error(f"reconstruction aborted: {exc}")
            if isinstance(exc, ReconstructFailed):
                raise
            raise ReconstructFailed(f"reconstruction failed: {exc}") from exc
        return ReconstructionJob(self, writer, store, max(0, limit))

    def reconstruct(
        self,
        source_bytes: bytes,
        store: RunModelStore,
        page_count: Optional[int] = None,
    ) -> ReconstructionResult:
        return self.begin(source_bytes, store, page_count).finish()

    def _rebuild_run(self, writer: PdfWriter, run: TextRun, report: ReconstructionReport) -> None:
        s = self.settings
        writer.fill_rect(run.page_index, self.occlusion_rect(run), s.occlusion_color)
        text = self.normalizer(run.text)
        try:
            writer.draw_text(run.page_index, text, run.origin_x, run.origin_y, run.font_size, s.text_color)
            report.runs_drawn += 1
            return
        except DrawFailed as exc:
            exc.run_id = run.run_id
            logger.warning(f"draw failed for run {exc.run_id}, using placeholder: {exc}")
            report.draw_failures.append(exc.run_id)
            report.errors.append(exc)

        try:
            writer.draw_text(
                run.page_index,
                s.placeholder_text,
                run.origin_x,
                run.origin_y,
                run.font_size,
                s.placeholder_color,
            )
        except DrawFailed as exc:
            exc.run_id = run.run_id
            logger.error(f"placeholder draw failed for run {exc.run_id}: {exc}")
            report.lost_runs.append(exc.run_id)
            report.errors.append(exc)
