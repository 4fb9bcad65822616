import os
import sys
from pathlib import Path

import fitz
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

PAGE_WIDTH = 612.0
PAGE_HEIGHT = 792.0


def build_pdf(pages: list[list[tuple[float, float, str]]], fontsize: float = 12) -> bytes:
    """Build a PDF; each page lists (doc_x, doc_y, text) with bottom-left origin."""
    doc = fitz.open()
    try:
        for items in pages:
            page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
            for x, y, text in items:
                page.insert_text((x, PAGE_HEIGHT - y), text, fontsize=fontsize, fontname="helv")
        return doc.tobytes()
    finally:
        doc.close()


def norm(text: str) -> str:
    return "".join((text or "").split()).lower()


@pytest.fixture()
def three_page_pdf() -> bytes:
    return build_pdf([
        [(72, 720, "Hello"), (72, 690, "World")],
        [(72, 720, "Second page")],
        [(100, 500, "Third"), (100, 470, "page"), (100, 440, "runs")],
    ])


@pytest.fixture()
def cafe_pdf() -> bytes:
    return build_pdf([[(50, 700, "Café")]])
