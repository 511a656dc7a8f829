import fitz
import pytest
import requests

from rexai.services.documents import extraction
from rexai.services.documents.extraction import (
    DocumentFetcher,
    DownloadFailure,
    ExtractionFailure,
    ImageExtractor,
    PDFExtractor,
    PlainTextExtractor,
    get_extractor,
    normalize_text,
)


def test_normalize_text_cleans_whitespace_and_control_characters():
    raw = "  Patient:\x00 John\t\tDoe  \r\n\r\n\r\n\r\nRx:   Ibuprofen 200 mg \rEnd\x07"

    assert normalize_text(raw) == "Patient: John Doe\n\nRx: Ibuprofen 200 mg\nEnd"


def test_get_extractor_matches_normalized_mime_types():
    assert isinstance(get_extractor("application/pdf; charset=binary"), PDFExtractor)
    assert isinstance(get_extractor("IMAGE/PNG"), ImageExtractor)
    assert isinstance(get_extractor("text/plain"), PlainTextExtractor)
    assert get_extractor("application/zip") is None
    assert get_extractor("") is None


def test_get_extractor_reuses_instances():
    assert get_extractor("image/png") is get_extractor("image/jpeg")
    assert get_extractor("application/pdf") is get_extractor("application/pdf")


@pytest.mark.anyio
async def test_plain_text_extractor_decodes_bytes():
    result = await PlainTextExtractor().extract("Dose: 5 ml".encode(), "text/plain")

    assert result.text == "Dose: 5 ml"
    assert result.page_count == 1


def test_pdf_extractor_reads_text_layer():
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Amoxicillin 500 mg three times daily")
    data = doc.tobytes()
    doc.close()

    result = PDFExtractor(ocr_fallback=False).extract_sync(data, "application/pdf")

    assert "Amoxicillin 500 mg" in result.text
    assert result.page_count == 1
    assert result.used_ocr is False


def test_unreadable_files_raise_extraction_failure():
    with pytest.raises(ExtractionFailure):
        PDFExtractor().extract_sync(b"not a pdf", "application/pdf")
    with pytest.raises(ExtractionFailure):
        ImageExtractor().extract_sync(b"not an image", "image/png")


def test_encrypted_pdf_raises_extraction_failure():
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "Lisinopril 10 mg")
    data = doc.tobytes(
        encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw="user"
    )
    doc.close()

    with pytest.raises(ExtractionFailure, match="password"):
        PDFExtractor(ocr_fallback=False).extract_sync(data, "application/pdf")


class FakeStreamResponse:
    def __init__(self, blocks, status_error=None):
        self.blocks = blocks
        self.status_error = status_error

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        return False

    def raise_for_status(self):
        if self.status_error is not None:
            raise self.status_error

    def iter_content(self, chunk_size=None):
        yield from self.blocks


def test_fetcher_downloads_and_enforces_size_limit(monkeypatch):
    monkeypatch.setattr(
        extraction.requests,
        "get",
        lambda url, timeout=None, stream=False: FakeStreamResponse([b"abc", b"def"]),
    )

    assert DocumentFetcher(timeout=1, max_size=10).fetch_sync("https://x/doc.txt") == b"abcdef"
    with pytest.raises(DownloadFailure, match="maximum size"):
        DocumentFetcher(timeout=1, max_size=4).fetch_sync("https://x/doc.txt")


@pytest.mark.anyio
async def test_fetcher_wraps_http_errors(monkeypatch):
    monkeypatch.setattr(
        extraction.requests,
        "get",
        lambda url, timeout=None, stream=False: FakeStreamResponse(
            [], status_error=requests.HTTPError("404 Not Found")
        ),
    )

    with pytest.raises(DownloadFailure, match="404"):
        await DocumentFetcher(timeout=1).fetch("https://x/missing.pdf")
