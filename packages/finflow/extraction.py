"""PDF to text adapter with an OCR fallback.

Direct extraction uses ``pdfplumber``. When it yields fewer than
``MIN_DIRECT_TEXT_CHARS`` characters (typical of scanned statements) the
document is rasterized with ``pdf2image`` and read with Tesseract through
``pytesseract``. The whole call runs on a daemon worker thread under a
deadline; the time left is passed on to poppler and Tesseract, which kill
their child processes when it runs out.

Little text after OCR is not an error here; the statement parsers report what
they could (not) find.
"""

from __future__ import annotations

import io
import re
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError

import pdfplumber
import pytesseract
from pdf2image import convert_from_bytes

from . import config
from .logging_setup import get_logger

logger = get_logger("finflow.extraction")

MIN_DIRECT_TEXT_CHARS = 100


class ExtractionError(RuntimeError):
    """The PDF could not be read (corrupt file, missing OCR engine, ...)."""


class ExtractionTimeoutError(ExtractionError):
    """Extraction did not finish before the configured deadline."""


_BAR_RE = re.compile(r"\|")
_HSPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def clean_ocr_text(text: str) -> str:
    """Normalize common OCR artifacts while keeping line structure.

    Vertical bars become ``I``, horizontal whitespace runs collapse to one
    space, three or more newlines collapse to a blank line, and the result is
    stripped. Lines themselves are kept because the parsers are line-oriented.
    """

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _BAR_RE.sub("I", text)
    text = _HSPACE_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def _remaining(deadline: float | None) -> float | None:
    """Seconds left before ``deadline`` (a ``time.monotonic()`` value)."""

    if deadline is None:
        return None
    left = deadline - time.monotonic()
    if left <= 0:
        raise ExtractionTimeoutError("Text extraction deadline passed before OCR finished")
    return left


def extract_direct_text(buffer: bytes) -> str:
    """Return the embedded text layer of every page, joined with newlines."""

    with pdfplumber.open(io.BytesIO(buffer)) as pdf:
        return "\n".join((page.extract_text() or "") for page in pdf.pages)


def extract_ocr_text(
    buffer: bytes, *, dpi: int, lang: str, deadline: float | None = None
) -> str:
    """Rasterize each page and run Tesseract over it.

    With a ``deadline`` the remaining time is handed to poppler and Tesseract,
    which kill their child processes when it runs out.
    """

    images = convert_from_bytes(buffer, dpi=dpi, timeout=_remaining(deadline))
    pages = []
    for image in images:
        # pytesseract treats 0 as "no timeout".
        left = _remaining(deadline)
        pages.append(pytesseract.image_to_string(image, lang=lang, timeout=left or 0))
    return "\n".join(pages)


class TextExtractor:
    """Turn a PDF byte buffer into text.

    Parameters
    ----------
    ocr_fallback:
        When ``False`` only the text layer is used (statements from banks
        that always ship text PDFs).
    timeout_sec, dpi, lang:
        Override ``FINFLOW_EXTRACTION_TIMEOUT_SEC``, ``FINFLOW_OCR_DPI`` and
        ``FINFLOW_OCR_LANG``.
    """

    def __init__(
        self,
        *,
        ocr_fallback: bool = True,
        timeout_sec: float | None = None,
        dpi: int | None = None,
        lang: str | None = None,
    ) -> None:
        self.ocr_fallback = ocr_fallback
        self._timeout_sec = timeout_sec
        self._dpi = dpi
        self._lang = lang

    @property
    def timeout_sec(self) -> float:
        return self._timeout_sec if self._timeout_sec is not None else config.extraction_timeout_sec()

    def extract_text(self, buffer: bytes) -> str:
        if not buffer:
            raise ExtractionError("Empty PDF buffer")

        timeout = self.timeout_sec
        deadline = time.monotonic() + timeout
        future: Future[str] = Future()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._extract(buffer, deadline))
            except Exception as exc:
                future.set_exception(exc)

        # Daemon: never joined at interpreter exit.
        threading.Thread(target=_run, name="finflow-extract", daemon=True).start()
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise ExtractionTimeoutError(
                f"Text extraction exceeded {timeout:g}s deadline"
            ) from exc
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"Failed to extract text from PDF: {exc}") from exc

    def _extract(self, buffer: bytes, deadline: float | None = None) -> str:
        text = extract_direct_text(buffer)
        if not self.ocr_fallback or len(text.strip()) >= MIN_DIRECT_TEXT_CHARS:
            return text

        dpi = self._dpi if self._dpi is not None else config.ocr_dpi()
        lang = self._lang or config.ocr_lang()
        logger.info(
            "Direct text too short (%d chars); running OCR at %d dpi (%s)",
            len(text.strip()),
            dpi,
            lang,
        )
        return extract_ocr_text(buffer, dpi=dpi, lang=lang, deadline=deadline)


__all__ = [
    "MIN_DIRECT_TEXT_CHARS",
    "ExtractionError",
    "ExtractionTimeoutError",
    "TextExtractor",
    "clean_ocr_text",
    "extract_direct_text",
    "extract_ocr_text",
]
