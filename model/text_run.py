"""Text runs and the decoder that builds them from glyph-run records."""

import logging
import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Iterable, Mapping, Optional, Protocol

from model.errors import PageDecodeFailed
from model.settings import ReconstructionSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DocRect:
    """Axis-aligned box in document space (origin bottom-left)."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class TextRun:
    run_id: str
    page_index: int          # 1-based
    text: str
    origin_x: float
    origin_y: float          # baseline, bottom-left origin
    width: float
    height: float            # font_size * line-height factor, not ink extents
    font_size: float

    @property
    def doc_rect(self) -> DocRect:
        return DocRect(self.origin_x, self.origin_y, self.width, self.height)


class GlyphSource(Protocol):
    @property
    def page_count(self) -> int: ...

    def glyph_records(self, page_index: int) -> list: ...


@dataclass(slots=True)
class DecodedDocument:
    runs: list[TextRun] = field(default_factory=list)
    page_count: int = 0
    failed_pages: list[int] = field(default_factory=list)


def make_run_id(page_index: int, sequence: int) -> str:
    return f"{page_index}-{sequence}"


def _finite(value, page_index: int, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise PageDecodeFailed(page_index, f"{what} is not a number: {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise PageDecodeFailed(page_index, f"{what} is not finite: {value!r}")
    return number


class GlyphTransformDecoder:
    """Turn loosely-typed glyph-run records into validated ``TextRun`` objects.

    Font size is the norm of the transform's first basis vector, which is
    exact for uniform scale and rotation and approximate under skew. The
    vertical origin is taken as-is: records are already bottom-left.
    """

    def __init__(self, settings: Optional[ReconstructionSettings] = None):
        self.settings = (settings or ReconstructionSettings()).normalized()

    def decode_record(self, page_index: int, sequence: int, record: Mapping) -> Optional[TextRun]:
        if not isinstance(record, Mapping):
            raise PageDecodeFailed(page_index, f"record {sequence} is not a mapping")
        text = record.get("text")
        if not isinstance(text, str):
            raise PageDecodeFailed(page_index, f"record {sequence} has no text string")
        if not text.strip():
            return None

        transform = record.get("transform")
        if not isinstance(transform, (list, tuple)) or len(transform) != 6:
            raise PageDecodeFailed(page_index, f"record {sequence} transform must have 6 coefficients")
        a, b, _c, _d, e, f = (_finite(v, page_index, "transform coefficient") for v in transform)

        advance = record.get("advanceWidth")
        width = self.settings.default_run_width
        if advance is not None:
            advance = _finite(advance, page_index, "advanceWidth")
            if advance < 0:
                raise PageDecodeFailed(page_index, f"record {sequence} has negative advanceWidth")
            if advance > 0:
                width = advance

        font_size = math.hypot(a, b)
        return TextRun(
            run_id=make_run_id(page_index, sequence),
            page_index=page_index,
            text=text,
            origin_x=e,
            origin_y=f,
            width=width,
            height=font_size * self.settings.line_height_factor,
            font_size=font_size,
        )

    def decode_page(self, page_index: int, records: Iterable) -> list[TextRun]:
        runs: list[TextRun] = []
        for sequence, record in enumerate(records):
            run = self.decode_record(page_index, sequence, record)
            if run is not None:
                runs.append(run)
        return runs

    def try_decode_source_page(self, source: GlyphSource, page_index: int) -> Optional[list[TextRun]]:
        """Decode one page; return None (and log) when the page is unreadable."""
        try:
            records = source.glyph_records(page_index)
            runs = self.decode_page(page_index, records)
        except PageDecodeFailed as exc:
            logger.warning(f"page decode failed, page yields no runs: {exc}")
            return None
        except Exception as exc:
            logger.warning(f"page decode failed, page yields no runs: page {page_index}: {exc}")
            return None
        logger.debug(f"page {page_index}: {len(runs)} runs")
        return runs

    def decode_document(self, source: GlyphSource) -> DecodedDocument:
        result = DecodedDocument(page_count=source.page_count)
        for page_index in range(1, source.page_count + 1):
            runs = self.try_decode_source_page(source, page_index)
            if runs is None:
                result.failed_pages.append(page_index)
                continue
            result.runs.extend(runs)
        logger.info(
            f"decoded {len(result.runs)} runs from {result.page_count} pages "
            f"({len(result.failed_pages)} failed)"
        )
        return result
