"""Read-only PyMuPDF view of a source document.

Glyph records are emitted in bottom-left document space so the decoder never
has to know that PyMuPDF reports top-left coordinates.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import fitz

from model.errors import ParseFailed

logger = logging.getLogger(__name__)


def open_pdf_bytes(data: bytes) -> fitz.Document:
    """Open an in-memory PDF; ``ParseFailed`` if it is empty, unreadable, encrypted or has no pages."""
    if not data:
        raise ParseFailed("document is empty")
    try:
        doc = fitz.open(stream=bytes(data), filetype="pdf")
    except Exception as exc:
        raise ParseFailed(f"unable to parse PDF: {exc}") from exc
    if doc.needs_pass:
        doc.close()
        raise ParseFailed("document is encrypted")
    if doc.page_count == 0:
        doc.close()
        raise ParseFailed("document has no pages")
    return doc


class PdfSource:
    """Parser collaborator: page sizes, glyph-run records and page images."""

    def __init__(self, doc: fitz.Document):
        self._doc = doc

    @classmethod
    def open(cls, data: bytes) -> "PdfSource":
        return cls(open_pdf_bytes(data))

    def __enter__(self) -> "PdfSource":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._doc is None or self._doc.is_closed

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def _page(self, page_index: int) -> fitz.Page:
        if page_index < 1 or page_index > self.page_count:
            raise IndexError(f"page {page_index} out of range 1..{self.page_count}")
        return self._doc[page_index - 1]

    def page_size(self, page_index: int) -> Tuple[float, float]:
        rect = self._page(page_index).rect
        return float(rect.width), float(rect.height)

    def glyph_records(self, page_index: int) -> list[dict]:
        """Return ``{text, transform, advanceWidth}`` records for one page.

        One record per PyMuPDF span, in extraction order. The transform is
        ``[a, b, c, d, e, f]`` with ``(a, b)`` the scaled baseline direction and
        ``(e, f)`` the baseline origin, both in y-up document space.
        """
        page = self._page(page_index)
        height = float(page.rect.height)
        records: list[dict] = []
        data = page.get_text("dict", flags=0)
        for block in data.get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                dx, dy = line.get("dir", (1.0, 0.0))
                for span in line.get("spans", []):
                    size = float(span.get("size", 0.0))
                    ox, oy = span.get("origin", (0.0, 0.0))
                    bbox = fitz.Rect(span.get("bbox", (0, 0, 0, 0)))
                    advance = bbox.width if abs(dx) >= abs(dy) else bbox.height
                    # PyMuPDF's dir is y-down; flip the sine for y-up space.
                    records.append({
                        "text": span.get("text", ""),
                        "transform": [
                            size * dx,
                            -size * dy,
                            size * dy,
                            size * dx,
                            float(ox),
                            height - float(oy),
                        ],
                        "advanceWidth": float(advance),
                    })
        logger.debug(f"page {page_index}: {len(records)} glyph records")
        return records

    def render_page(self, page_index: int, zoom: float = 1.0, annots: bool = True) -> fitz.Pixmap:
        matrix = fitz.Matrix(zoom, zoom)
        return self._page(page_index).get_pixmap(matrix=matrix, annots=annots)

    def close(self) -> None:
        doc: Optional[fitz.Document] = self._doc
        if doc is not None and not doc.is_closed:
            doc.close()
