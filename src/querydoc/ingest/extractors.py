"""PDF text extraction with positioned fragments and an OCR fallback."""
from __future__ import annotations

import io
import logging
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from querydoc.errors import ExtractionError, OCRUnavailableError
from querydoc.telemetry import traced_duration

from .models import PageText, TextItem
from .normalization import normalize_fragment, normalize_text

LOGGER = logging.getLogger(__name__)

# Average glyph advance relative to font size, used to estimate fragment widths.
_GLYPH_WIDTH_RATIO = 0.5
_DEFAULT_FONT_SIZE = 10.0


@dataclass(slots=True)
class PDFExtractionResult:
    pages: List[PageText]
    total_pages: int
    ocr_performed: bool


def _multiply(tm: Sequence[float], cm: Sequence[float]) -> List[float]:
    """Multiply two PDF affine matrices given as six-element sequences."""

    a, b, c, d, e, f = (float(value) for value in tm)
    g, h, i, j, k, l = (float(value) for value in cm)
    return [
        a * g + b * i,
        a * h + b * j,
        c * g + d * i,
        c * h + d * j,
        e * g + f * i + k,
        e * h + f * j + l,
    ]


# Text-showing operators; the quote forms move to the next line first.
_SHOW_OPERATORS = frozenset({b"Tj", b"TJ", b"'", b'"'})
_NEXT_LINE_SHOW_OPERATORS = frozenset({b"'", b'"'})

_Position = Tuple[List[float], List[float]]


class _FragmentCollector:
    """Visitor turning PyPDF2 text callbacks into :class:`TextItem` objects.

    PyPDF2 buffers shown text and reports it only when the buffer is flushed,
    usually by the next line-moving operator, so the matrices handed to
    ``visitor_text`` already point at the following line. The position of
    each show operator is captured in :meth:`before_operator` instead and
    attached to the next flushed fragment.
    """

    def __init__(self, page_height: float) -> None:
        self.page_height = page_height
        self.items: List[TextItem] = []
        self._leading = 0.0
        self._pending: Optional[_Position] = None
        self._next_line: Optional[_Position] = None

    def before_operator(self, operator: bytes, operands: Any, cm: Any, tm: Any) -> None:
        try:
            if operator == b"TL":
                self._leading = float(operands[0])
            elif operator == b"TD":
                self._leading = -float(operands[1])
            elif operator in _SHOW_OPERATORS:
                self._record(operator, cm, tm)
        except (IndexError, TypeError, ValueError):
            LOGGER.debug("Ignoring malformed %r operands: %r", operator, operands)

    def _record(self, operator: bytes, cm: Any, tm: Any) -> None:
        text_matrix = [float(value) for value in tm]
        position = ([float(value) for value in cm], text_matrix)
        if operator in _NEXT_LINE_SHOW_OPERATORS:
            text_matrix[5] -= self._leading
            if self._pending is not None:
                # the implicit T* flushes the current line before this text
                self._next_line = position
                return
        if self._pending is None:
            self._pending = position

    def __call__(self, text: str, cm: Any, tm: Any, font_dict: Any, font_size: Any) -> None:
        position = self._pending
        self._pending, self._next_line = self._next_line, None
        if not text:
            return
        if position is not None:
            cm, tm = position
        for line in text.split("\n"):
            fragment = normalize_fragment(line)
            if not fragment.strip():
                continue
            self._add(fragment, cm, tm, font_size)

    def _add(self, fragment: str, cm: Any, tm: Any, font_size: Any) -> None:
        try:
            matrix = _multiply(tm, cm)
        except (TypeError, ValueError):
            return
        scale = abs(matrix[3]) or 1.0
        size = float(font_size or 0.0) or _DEFAULT_FONT_SIZE
        height = size * scale
        width = len(fragment) * height * _GLYPH_WIDTH_RATIO
        top = self.page_height - matrix[5] - height
        self.items.append(
            TextItem(text=fragment, left=matrix[4], top=top, width=width, height=height)
        )


class PDFExtractor:
    """Extract text from PDF documents with optional OCR."""

    def __init__(self, ocr_language: str = "eng", max_pages: Optional[int] = None) -> None:
        self.ocr_language = ocr_language
        self.max_pages = max_pages

    def extract(self, data: bytes, *, ocr: bool = False) -> PDFExtractionResult:
        """Extract pages, running OCR first when *ocr* is requested."""

        if ocr:
            with traced_duration("ocr.run", language=self.ocr_language):
                data = self._perform_ocr(data)
        pages, total_pages = self._extract_pages(data)
        return PDFExtractionResult(pages=pages, total_pages=total_pages, ocr_performed=ocr)

    def _extract_pages(self, data: bytes) -> tuple[List[PageText], int]:
        try:
            reader = PdfReader(io.BytesIO(data))
            total_pages = len(reader.pages)
        except (PdfReadError, ValueError, OSError) as error:
            raise ExtractionError(f"Unable to read PDF: {error}") from error

        limit = total_pages if self.max_pages is None else min(total_pages, self.max_pages)
        if limit < total_pages:
            LOGGER.info("Processing the first %s of %s pages", limit, total_pages)

        pages: List[PageText] = []
        for index in range(limit):
            pages.append(self._extract_page(reader.pages[index], index + 1))
        return pages, total_pages

    def _extract_page(self, page: Any, page_number: int) -> PageText:
        collector = _FragmentCollector(page_height=float(page.mediabox.height))
        try:
            text = (
                page.extract_text(
                    visitor_operand_before=collector.before_operator,
                    visitor_text=collector,
                )
                or ""
            )
        except Exception as error:  # pragma: no cover - depends on PDF internals
            LOGGER.warning("Failed to extract text from PDF page %s: %s", page_number, error)
            return PageText(page_number=page_number, text="")
        items = tuple(collector.items) or None
        return PageText(page_number=page_number, text=normalize_text(text), items=items)

    def _perform_ocr(self, data: bytes) -> bytes:
        with tempfile.NamedTemporaryFile(suffix=".pdf") as src, tempfile.NamedTemporaryFile(
            suffix=".pdf"
        ) as dst:
            src.write(data)
            src.flush()
            cmd = [
                "ocrmypdf",
                "--force-ocr",
                "--output-type",
                "pdf",
                "-l",
                self.ocr_language,
                src.name,
                dst.name,
            ]
            LOGGER.debug("Running OCR command: %s", " ".join(cmd))
            try:
                subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
            except FileNotFoundError as exc:
                raise OCRUnavailableError("ocrmypdf is not installed") from exc
            except subprocess.CalledProcessError as exc:
                raise OCRUnavailableError(
                    f"ocrmypdf failed: {exc.stderr.decode(errors='ignore')}"
                ) from exc

            dst.seek(0)
            return dst.read()


__all__ = ["PDFExtractionResult", "PDFExtractor"]
