"""
Book metadata derived from uploads: PDF page count and keyword tags.
"""

from __future__ import annotations

import logging

import fitz  # PyMuPDF

logger = logging.getLogger()

MIN_KEYWORD_LENGTH = 3


def count_pdf_pages(pdf_bytes: bytes) -> int | None:
    """
    Count the pages of a PDF.

    Best effort: an unreadable PDF yields None instead of an error.

    Args:
        pdf_bytes: Raw PDF file contents

    Returns:
        int: Page count, or None if the PDF could not be parsed
    """
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            return doc.page_count
    except Exception as e:
        logger.error(f"Error counting PDF pages: {str(e)}")
        return None


def derive_keywords(title: str | None, subject: str | None) -> list[str]:
    """
    Build the keyword set of a book from its title and subject.

    Words are lower-cased, split on whitespace and kept when longer than
    two characters. Duplicates are dropped, first occurrence wins.

    Example:
        derive_keywords("Intro to Algebra", "Math algebra")
        # ["intro", "algebra", "math"]
    """
    keywords: list[str] = []
    for text in (title, subject):
        if not text:
            continue
        for word in text.lower().split():
            if len(word) >= MIN_KEYWORD_LENGTH and word not in keywords:
                keywords.append(word)
    return keywords
