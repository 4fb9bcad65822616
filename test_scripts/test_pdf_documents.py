import fitz
import pytest

from conftest import PAGE_HEIGHT, PAGE_WIDTH
from model.errors import ParseFailed
from model.pdf_parser import PdfSource, open_pdf_bytes
from model.pdf_writer import PdfWriter


def _encrypted_pdf() -> bytes:
    doc = fitz.open()
    try:
        doc.new_page()
        return doc.tobytes(encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw="user")
    finally:
        doc.close()


@pytest.mark.parametrize("opener", [open_pdf_bytes, PdfSource.open, PdfWriter.open])
@pytest.mark.parametrize("data", [b"", b"no pdf here at all"], ids=["empty", "garbage"])
def test_unreadable_bytes_raise_parse_failed(opener, data):
    with pytest.raises(ParseFailed):
        opener(data)


@pytest.mark.parametrize("opener", [open_pdf_bytes, PdfSource.open, PdfWriter.open])
def test_encrypted_document_is_rejected(opener):
    with pytest.raises(ParseFailed) as info:
        opener(_encrypted_pdf())
    assert "encrypted" in str(info.value)


def test_source_and_writer_agree_on_geometry(three_page_pdf):
    with PdfSource.open(three_page_pdf) as source, PdfWriter.open(three_page_pdf) as writer:
        assert source.page_count == writer.page_count == 3
        assert source.page_size(2) == writer.page_size(2) == (PAGE_WIDTH, PAGE_HEIGHT)
    assert source.closed
