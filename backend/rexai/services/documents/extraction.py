"""Document text extraction (PDF, images, plain text).

Extraction engines are treated as black boxes that turn file bytes into a
string. Any engine error is reported as ``ExtractionFailure``; the ingestion
pipeline decides what happens next.
"""

import asyncio
import io
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache

import fitz  # PyMuPDF
import requests
from PIL import Image, ImageOps

from rexai.config import settings

logger = logging.getLogger("rexai.extraction")

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


class ExtractionFailure(Exception):
    """Raised when document bytes cannot be read."""


class DownloadFailure(Exception):
    """Raised when a source document cannot be downloaded."""


@dataclass
class ExtractionResult:
    """Result of document text extraction."""

    text: str
    page_count: int
    confidence: float | None = None
    used_ocr: bool = False


def normalize_text(text: str) -> str:
    """Normalize extracted text before chunking.

    Strips control characters, unifies line endings, collapses runs of blank
    lines and spaces, and trims every line.
    """
    text = _CONTROL_CHARS.sub("", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    lines = [line.strip() for line in text.split("\n")]
    return "\n".join(lines).strip()


class DocumentExtractor(ABC):
    """Base class for document text extraction."""

    SUPPORTED_TYPES: list[str] = []

    def supports(self, mime_type: str) -> bool:
        """Check if this extractor supports the given MIME type."""
        return mime_type in self.SUPPORTED_TYPES

    async def extract(self, data: bytes, mime_type: str) -> ExtractionResult:
        """Extract text from file bytes in a worker thread."""
        return await asyncio.to_thread(self.extract_sync, data, mime_type)

    @abstractmethod
    def extract_sync(self, data: bytes, mime_type: str) -> ExtractionResult:
        """Extract text from file bytes.

        Raises:
            ExtractionFailure: If the bytes cannot be parsed at all
        """


class PlainTextExtractor(DocumentExtractor):
    SUPPORTED_TYPES = ["text/plain"]

    def extract_sync(self, data: bytes, mime_type: str) -> ExtractionResult:
        return ExtractionResult(text=data.decode("utf-8", errors="replace"), page_count=1)


@lru_cache(maxsize=1)
def tesseract_available() -> bool:
    """Whether the Tesseract binary can be run; checked once per process."""
    import pytesseract

    try:
        pytesseract.get_tesseract_version()
    except (pytesseract.TesseractNotFoundError, OSError):
        return False
    return True


class ImageExtractor(DocumentExtractor):
    """Extract text from images using OCR (Tesseract)."""

    SUPPORTED_TYPES = [
        "image/png",
        "image/jpeg",
        "image/jpg",
        "image/tiff",
    ]

    def __init__(self, language: str = "eng"):
        self.language = language

    def extract_sync(self, data: bytes, mime_type: str) -> ExtractionResult:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except Exception as exc:
            raise ExtractionFailure(f"Unreadable image ({mime_type}): {exc}") from exc

        if not tesseract_available():
            logger.warning(
                "Tesseract OCR not available. Cannot extract text from image. "
                "Install Tesseract: apt-get install tesseract-ocr"
            )
            return ExtractionResult(text="", page_count=1, confidence=0.0, used_ocr=True)

        text, confidence = self._ocr(image)
        return ExtractionResult(
            text=text,
            page_count=1,
            confidence=confidence,
            used_ocr=True,
        )

    def _ocr(self, image: Image.Image) -> tuple[str, float]:
        import pytesseract

        try:
            prepared = ImageOps.exif_transpose(image).convert("L")
            data = pytesseract.image_to_data(
                prepared,
                lang=self.language,
                output_type=pytesseract.Output.DICT,
            )
            text = pytesseract.image_to_string(prepared, lang=self.language)
        except (pytesseract.TesseractError, RuntimeError, OSError, ValueError) as exc:
            raise ExtractionFailure(f"OCR failed: {exc}") from exc

        confidences = [
            float(conf) for conf, word in zip(data["conf"], data["text"])
            if word.strip() and float(conf) >= 0
        ]
        confidence = sum(confidences) / len(confidences) / 100 if confidences else 0.0
        return text, confidence


class PDFExtractor(DocumentExtractor):
    """Extract text from PDF documents using PyMuPDF.

    Pages without a text layer (scans) are rendered and passed through OCR
    when ``ocr_fallback`` is enabled. Encrypted files and page-level parser
    errors raise ``ExtractionFailure``.
    """

    SUPPORTED_TYPES = ["application/pdf"]

    def __init__(self, ocr_fallback: bool = True):
        self.ocr_fallback = ocr_fallback
        self._image_extractor = ImageExtractor()

    def extract_sync(self, data: bytes, mime_type: str) -> ExtractionResult:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionFailure(f"Unreadable PDF: {exc}") from exc

        try:
            if doc.needs_pass:
                raise ExtractionFailure("PDF is password protected")
            pages_text = []
            used_ocr = False
            try:
                for page in doc:
                    text = page.get_text("text")
                    if not text.strip() and self.ocr_fallback:
                        text = self._ocr_page(page)
                        used_ocr = used_ocr or bool(text.strip())
                    if text.strip():
                        pages_text.append(text)
                page_count = len(doc)
            except (RuntimeError, ValueError) as exc:
                raise ExtractionFailure(f"PDF parsing failed: {exc}") from exc

            return ExtractionResult(
                text="\n\n".join(pages_text),
                page_count=page_count,
                used_ocr=used_ocr,
            )
        finally:
            doc.close()

    def _ocr_page(self, page: "fitz.Page") -> str:
        pix = page.get_pixmap(dpi=300)
        try:
            return self._image_extractor.extract_sync(pix.tobytes("png"), "image/png").text
        except ExtractionFailure:
            logger.warning("OCR failed for PDF page %d", page.number + 1)
            return ""


_EXTRACTORS: tuple[DocumentExtractor, ...] = (
    PDFExtractor(),
    ImageExtractor(),
    PlainTextExtractor(),
)


def get_extractor(mime_type: str) -> DocumentExtractor | None:
    """Get the extractor for a MIME type, or None if unsupported."""
    normalized = (mime_type or "").split(";")[0].strip().lower()
    for extractor in _EXTRACTORS:
        if extractor.supports(normalized):
            return extractor
    return None


class DocumentFetcher:
    """Downloads source files referenced by URI."""

    def __init__(
        self,
        timeout: float | None = None,
        max_size: int | None = None,
    ):
        self.timeout = timeout or settings.download_timeout_seconds
        self.max_size = max_size or settings.max_download_size

    async def fetch(self, source_uri: str) -> bytes:
        return await asyncio.to_thread(self.fetch_sync, source_uri)

    def fetch_sync(self, source_uri: str) -> bytes:
        try:
            with requests.get(source_uri, timeout=self.timeout, stream=True) as response:
                response.raise_for_status()
                buffer = io.BytesIO()
                for block in response.iter_content(chunk_size=64 * 1024):
                    buffer.write(block)
                    if buffer.tell() > self.max_size:
                        raise DownloadFailure(
                            f"File exceeds maximum size of {self.max_size} bytes"
                        )
                return buffer.getvalue()
        except requests.RequestException as exc:
            raise DownloadFailure(f"Failed to download {source_uri}: {exc}") from exc
