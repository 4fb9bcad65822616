# -*- coding: utf-8 -*-
"""Page reconstruction: occlusion, redraw and per-run fallback."""

from __future__ import annotations

import fitz
import pytest

from conftest import PAGE_HEIGHT, build_pdf, norm
from model.errors import DrawFailed, ReconstructFailed
from model.page_reconstructor import PageReconstructor
from model.run_store import RunModelStore
from model.settings import RED, WHITE
from model.text_run import TextRun


class _RecordingWriter:
    """Stands in for PdfWriter and records every call."""

    def __init__(self, page_count=1, reject=(), fail_save=False):
        self.page_count = page_count
        self.reject = set(reject)
        self.fail_save = fail_save
        self.calls = []
        self.closed = False

    def embed_font(self, font_name="helv"):
        self.calls.append(("font", font_name))
        return font_name

    def fill_rect(self, page_index, rect, color):
        self.calls.append(("rect", page_index, rect, color))

    def draw_text(self, page_index, text, x, y, size, color):
        if text in self.reject:
            raise DrawFailed(f"rejected {text!r}")
        self.calls.append(("text", page_index, text, x, y, size, color))

    def to_bytes(self):
        if self.fail_save:
            raise ReconstructFailed("disk full")
        return b"%PDF-fake"

    def close(self):
        self.closed = True


def _run(run_id, page, text, x=50.0, y=700.0, width=109.0, size=12.0):
    return TextRun(run_id, page, text, x, y, width, size * 1.2, size)


def _reconstructor(writer, **kwargs):
    return PageReconstructor(writer_factory=lambda data: writer, **kwargs)


def test_cafe_example_occludes_then_draws_normalized_text():
    writer = _RecordingWriter()
    store = RunModelStore([_run("1-0", 1, "Café")])
    store.set_text("1-0", "Café Bar")

    result = _reconstructor(writer).reconstruct(b"%PDF-", store)

    assert writer.calls[0] == ("font", "helv")
    kind, page, rect, color = writer.calls[1]
    assert (kind, page, color) == ("rect", 1, WHITE)
    assert rect.x == pytest.approx(48)
    assert rect.y == pytest.approx(697.6)
    assert rect.width == pytest.approx(119)
    assert rect.height == pytest.approx(16.8)
    assert writer.calls[2] == ("text", 1, "Cafe Bar", 50.0, 700.0, 12.0, (0.0, 0.0, 0.0))
    assert result.data == b"%PDF-fake"
    assert result.report.runs_drawn == 1
    assert result.report.draw_failures == []
    assert writer.closed


def test_each_run_painted_before_its_text_in_store_order():
    writer = _RecordingWriter(page_count=2)
    store = RunModelStore([_run("1-0", 1, "a"), _run("2-0", 2, "b"), _run("1-3", 1, "c")])
    _reconstructor(writer).reconstruct(b"%PDF-", store)
    sequence = [(c[0], c[1]) for c in writer.calls[1:]]
    assert sequence == [("rect", 1), ("text", 1), ("rect", 1), ("text", 1), ("rect", 2), ("text", 2)]
    texts = [c[2] for c in writer.calls if c[0] == "text"]
    assert texts == ["a", "c", "b"]


def test_rejected_run_gets_placeholder_and_others_survive():
    writer = _RecordingWriter(reject={"bad"})
    store = RunModelStore([_run("1-0", 1, "one"), _run("1-1", 1, "bad", x=80, y=600), _run("1-2", 1, "two")])
    result = _reconstructor(writer).reconstruct(b"%PDF-", store)

    texts = [c for c in writer.calls if c[0] == "text"]
    assert [t[2] for t in texts] == ["one", "[TEXT ERROR]", "two"]
    placeholder = texts[1]
    assert placeholder[3:6] == (80, 600, 12.0)
    assert placeholder[6] == RED
    assert result.report.draw_failures == ["1-1"]
    assert result.report.runs_drawn == 2
    (error,) = result.report.errors
    assert isinstance(error, DrawFailed)
    assert error.run_id == "1-1"


def test_placeholder_failure_is_recorded_not_raised():
    writer = _RecordingWriter(reject={"bad", "[TEXT ERROR]"})
    store = RunModelStore([_run("1-0", 1, "bad"), _run("1-1", 1, "fine")])
    result = _reconstructor(writer).reconstruct(b"%PDF-", store)
    assert result.report.lost_runs == ["1-0"]
    assert result.report.runs_drawn == 1
    assert [e.run_id for e in result.report.errors] == ["1-0", "1-0"]


def test_job_rebuilds_one_page_per_step():
    writer = _RecordingWriter(page_count=3)
    store = RunModelStore([_run("1-0", 1, "a"), _run("2-0", 2, "b"), _run("3-0", 3, "c")])
    job = _reconstructor(writer).begin(b"%PDF-", store)

    assert writer.calls == [("font", "helv")]
    assert job.step() is False
    assert [c[2] for c in writer.calls if c[0] == "text"] == ["a"]
    assert job.report.pages_processed == 1
    assert job.step() is False
    assert job.step() is True
    assert [c[2] for c in writer.calls if c[0] == "text"] == ["a", "b", "c"]
    assert not writer.closed

    result = job.finish()
    assert result.data == b"%PDF-fake"
    assert result.report.pages_processed == 3
    assert writer.closed


def test_job_ignores_edits_made_after_it_started():
    writer = _RecordingWriter(page_count=2)
    store = RunModelStore([_run("1-0", 1, "a"), _run("2-0", 2, "b")])
    job = _reconstructor(writer).begin(b"%PDF-", store)
    job.step()
    store.set_text("2-0", "late edit")
    job.finish()
    assert [c[2] for c in writer.calls if c[0] == "text"] == ["a", "b"]


def test_aborted_job_closes_writer_and_refuses_more_work():
    writer = _RecordingWriter(page_count=2)
    job = _reconstructor(writer).begin(b"%PDF-", RunModelStore([_run("1-0", 1, "a")]))
    job.abort()
    assert writer.closed
    with pytest.raises(ReconstructFailed):
        job.step()


def test_runs_beyond_page_count_are_skipped():
    writer = _RecordingWriter(page_count=3)
    store = RunModelStore([_run("1-0", 1, "a"), _run("3-0", 3, "c"), _run("5-0", 5, "e")])
    result = _reconstructor(writer).reconstruct(b"%PDF-", store, page_count=2)
    texts = [c[2] for c in writer.calls if c[0] == "text"]
    assert texts == ["a"]
    assert result.report.skipped_runs == ["3-0", "5-0"]
    assert result.report.pages_processed == 2


def test_serialization_failure_is_fatal():
    writer = _RecordingWriter(fail_save=True)
    with pytest.raises(ReconstructFailed):
        _reconstructor(writer).reconstruct(b"%PDF-", RunModelStore([_run("1-0", 1, "a")]))
    assert writer.closed


def test_unparsable_source_is_fatal():
    with pytest.raises(ReconstructFailed) as info:
        PageReconstructor().reconstruct(b"definitely not a pdf", RunModelStore())
    assert "unreadable" in str(info.value)


def test_pymupdf_end_to_end_cafe(cafe_pdf):
    store = RunModelStore([_run("1-0", 1, "Café Bar")])
    result = PageReconstructor().reconstruct(cafe_pdf, store)

    doc = fitz.open(stream=result.data, filetype="pdf")
    try:
        page = doc[0]
        assert "cafebar" in norm(page.get_text("text"))
        fills = [d for d in page.get_drawings() if d.get("fill") is not None]
        expected = fitz.Rect(48, PAGE_HEIGHT - 697.6 - 16.8, 48 + 119, PAGE_HEIGHT - 697.6)
        assert any(
            abs(d["rect"].x0 - expected.x0) < 0.5
            and abs(d["rect"].y0 - expected.y0) < 0.5
            and abs(d["rect"].x1 - expected.x1) < 0.5
            and abs(d["rect"].y1 - expected.y1) < 0.5
            and tuple(round(c, 3) for c in d["fill"]) == (1.0, 1.0, 1.0)
            for d in fills
        ), fills
    finally:
        doc.close()


def test_pymupdf_emoji_run_becomes_placeholder():
    source = build_pdf([[(72, 720, "First"), (72, 690, "Smile"), (72, 660, "Last")]])
    store = RunModelStore([
        _run("1-0", 1, "First", x=72, y=720, width=30),
        _run("1-1", 1, "Smile 😀", x=72, y=690, width=30),
        _run("1-2", 1, "Last", x=72, y=660, width=30),
    ])
    # Identity normalizer lets the emoji reach the WinAnsi font check.
    result = PageReconstructor(normalizer=lambda s: s).reconstruct(source, store)

    assert result.report.draw_failures == ["1-1"]
    assert result.report.runs_drawn == 2
    doc = fitz.open(stream=result.data, filetype="pdf")
    try:
        text = doc[0].get_text("text")
        # the original "Smile" stays in the content stream; no redraw of it
        assert text.count("First") >= 1
        assert text.count("Last") >= 1
        assert text.count("Smile") == 1
        assert "[TEXT ERROR]" in text
    finally:
        doc.close()
