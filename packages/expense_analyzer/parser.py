"""Statement files to text chunks for extraction.

PDFs are read page by page with ``pdfplumber``; anything else is read as
UTF-8 text. Pages (or the whole text file) are packed greedily into chunks of
at most ``max_chars`` characters. A PDF page is never split across chunks; a
single page longer than ``max_chars`` becomes its own oversized chunk, and a
plain text file is cut on line boundaries where possible.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pdfplumber

from .config import get_chunk_chars
from .logging_setup import get_logger

_logger = get_logger("expense_analyzer.parser")


def pdf_pages(path: str | Path) -> list[str]:
    with pdfplumber.open(path) as pdf:
        return [page.extract_text() or "" for page in pdf.pages]


def pack_chunks(pages: Iterable[str], max_chars: int) -> list[str]:
    """Join consecutive pages with newlines while the chunk stays under ``max_chars``."""

    chunks: list[str] = []
    current: list[str] = []
    size = 0
    for page in pages:
        if not page.strip():
            continue
        extra = len(page) + (1 if current else 0)
        if current and size + extra > max_chars:
            chunks.append("\n".join(current))
            current, size = [], 0
            extra = len(page)
        current.append(page)
        size += extra
    if current:
        chunks.append("\n".join(current))
    return chunks


def _split_text(text: str, max_chars: int) -> list[str]:
    if len(text) <= max_chars:
        return [text] if text.strip() else []
    # Lines act as pages; a single over-long line is hard-cut.
    lines: list[str] = []
    for line in text.splitlines():
        while len(line) > max_chars:
            lines.append(line[:max_chars])
            line = line[max_chars:]
        lines.append(line)
    return pack_chunks(lines, max_chars)


def parse_file(path: str | Path, *, max_chars: int | None = None) -> list[str]:
    """Return the extraction chunks for one statement file (possibly empty)."""

    p = Path(path)
    limit = max_chars or get_chunk_chars()
    if p.suffix.lower() == ".pdf":
        pages = pdf_pages(p)
        chunks = pack_chunks(pages, limit)
        _logger.info("parser:pdf path=%s pages=%d chunks=%d", p.name, len(pages), len(chunks))
    else:
        text = p.read_text(encoding="utf-8", errors="replace")
        chunks = _split_text(text, limit)
        _logger.info("parser:text path=%s chars=%d chunks=%d", p.name, len(text), len(chunks))
    return chunks


def parse_files(paths: Iterable[str | Path], *, max_chars: int | None = None) -> list[str]:
    chunks: list[str] = []
    for path in paths:
        chunks.extend(parse_file(path, max_chars=max_chars))
    return chunks


__all__ = ["pdf_pages", "pack_chunks", "parse_file", "parse_files"]
