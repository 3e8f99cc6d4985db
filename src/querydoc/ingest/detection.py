"""Heuristics deciding whether an extracted PDF needs OCR."""
from __future__ import annotations

from typing import Sequence

from .models import PageText

MIN_TOTAL_CHARS = 100


def detect_scanned_pdf(pages: Sequence[PageText]) -> bool:
    """Return ``True`` when the extracted text looks like an image-only scan.

    Two signals trigger OCR: almost no text across all pages, or any page with
    no text at all. The second catches mixed scans where one handwritten page
    fails completely while the others produce some text.
    """

    total_chars = sum(len(page.text) for page in pages)
    if total_chars < MIN_TOTAL_CHARS:
        return True
    return any(not page.text.strip() for page in pages)


__all__ = ["MIN_TOTAL_CHARS", "detect_scanned_pdf"]
