"""PyMuPDF-backed writer used to rebuild edited pages.

Callers speak bottom-left document space; conversion to PyMuPDF's top-left
page space happens here and nowhere else.
"""

from __future__ import annotations

import io
import logging
from typing import Tuple

import fitz

from model.errors import DrawFailed, ReconstructFailed
from model.pdf_parser import open_pdf_bytes
from model.settings import BLACK, Color
from model.text_run import DocRect

logger = logging.getLogger(__name__)

# Base-14 fonts draw through WinAnsiEncoding.
FONT_ENCODING = "cp1252"


class PdfWriter:
    """Writer collaborator: pages, one font, filled rects, text, serialization."""

    def __init__(self, doc: fitz.Document):
        self._doc = doc
        self._font_name: str | None = None
        self._font_pages: set[int] = set()

    @classmethod
    def open(cls, data: bytes) -> "PdfWriter":
        return cls(open_pdf_bytes(data))

    def __enter__(self) -> "PdfWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

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

    def embed_font(self, font_name: str = "helv") -> str:
        """Select the single font used by every later ``draw_text`` call."""
        try:
            fitz.Font(font_name)
        except Exception as exc:
            raise ReconstructFailed(f"cannot load font {font_name!r}: {exc}") from exc
        self._font_name = font_name
        self._font_pages.clear()
        return font_name

    def _ensure_font_on_page(self, page_index: int, page: fitz.Page) -> None:
        if page_index in self._font_pages:
            return
        try:
            page.insert_font(fontname=self._font_name)
        except Exception as exc:
            raise ReconstructFailed(f"cannot embed font {self._font_name!r} on page {page_index}: {exc}") from exc
        self._font_pages.add(page_index)

    def _to_page_rect(self, page: fitz.Page, rect: DocRect) -> fitz.Rect:
        height = page.rect.height
        return fitz.Rect(rect.x, height - rect.y - rect.height, rect.x + rect.width, height - rect.y)

    def fill_rect(self, page_index: int, rect: DocRect, color: Color) -> None:
        page = self._page(page_index)
        page.draw_rect(self._to_page_rect(page, rect), color=None, fill=color, width=0, overlay=True)

    def draw_text(
        self,
        page_index: int,
        text: str,
        x: float,
        y: float,
        size: float,
        color: Color = BLACK,
    ) -> None:
        """Draw ``text`` with its baseline origin at document-space ``(x, y)``."""
        if self._font_name is None:
            raise ReconstructFailed("draw_text called before embed_font")
        if not text:
            return
        try:
            text.encode(FONT_ENCODING)
        except UnicodeEncodeError as exc:
            raise DrawFailed(f"text not encodable in {FONT_ENCODING}: {exc.object[exc.start:exc.end]!r}") from exc
        if "\n" in text or "\r" in text:
            raise DrawFailed("text contains line breaks")
        if not size or size <= 0:
            raise DrawFailed(f"invalid font size: {size}")

        page = self._page(page_index)
        self._ensure_font_on_page(page_index, page)
        point = fitz.Point(x, page.rect.height - y)
        try:
            page.insert_text(point, text, fontsize=size, fontname=self._font_name, color=color)
        except Exception as exc:
            raise DrawFailed(f"insert_text rejected text: {exc}") from exc

    def to_bytes(self) -> bytes:
        try:
            stream = io.BytesIO()
            self._doc.save(stream, garbage=3, deflate=True)
            return stream.getvalue()
        except Exception as exc:
            raise ReconstructFailed(f"failed to serialize PDF: {exc}") from exc

    def close(self) -> None:
        if self._doc is not None and not self._doc.is_closed:
            self._doc.close()
