"""
Sentence-aware chunking with overlap for semantic indexing.

Every chunk is a contiguous span of the source text. When a chunk is closed
the next one starts `overlap` characters before its end, so neighbouring
chunks share context across the boundary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Tuple

# A sentence is any run of text up to and including its terminators; a
# trailing fragment without a terminator is kept as its own sentence.
_SENTENCE = re.compile(r"[^.!?\n]*[.!?\n]+|[^.!?\n]+$")

DEFAULT_MAX_CHARS = 2000
DEFAULT_OVERLAP_CHARS = 200
DEFAULT_MIN_CHARS = 20


@dataclass(frozen=True)
class TextChunk:
    text: str
    start: int
    end: int


def _sentence_spans(text: str, limit: int) -> Iterator[Tuple[int, int]]:
    """Yield contiguous sentence spans, hard-splitting any longer than limit."""
    for match in _SENTENCE.finditer(text):
        start, end = match.span()
        while end - start > limit:
            yield start, start + limit
            start += limit
        if end > start:
            yield start, end


def _stripped(text: str, start: int, end: int) -> TextChunk | None:
    raw = text[start:end]
    leading = len(raw) - len(raw.lstrip())
    trailing = len(raw) - len(raw.rstrip())
    if leading == len(raw):
        return None
    return TextChunk(
        text=raw.strip(), start=start + leading, end=end - trailing
    )


def chunk_text_with_overlap(
    text: str,
    max_chars: int = DEFAULT_MAX_CHARS,
    overlap: int = DEFAULT_OVERLAP_CHARS,
) -> List[TextChunk]:
    """
    Split text into chunks of at most max_chars on sentence boundaries.

    Text that already fits is returned as a single chunk. Otherwise sentences
    are packed greedily; each new chunk is seeded with the last `overlap`
    characters of the previous one.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if overlap < 0 or overlap >= max_chars:
        raise ValueError("overlap must be >= 0 and smaller than max_chars")
    if not text or not text.strip():
        return []
    if len(text) <= max_chars:
        single = _stripped(text, 0, len(text))
        return [single] if single else []

    spans: List[Tuple[int, int]] = []
    current_start: int | None = None
    current_end = 0
    for start, end in _sentence_spans(text, max_chars - overlap):
        if current_start is None:
            current_start, current_end = start, end
            continue
        if end - current_start > max_chars:
            spans.append((current_start, current_end))
            current_start = max(current_start, current_end - overlap)
        current_end = end
    if current_start is not None:
        spans.append((current_start, current_end))

    chunks = []
    for start, end in spans:
        chunk = _stripped(text, start, end)
        if chunk is not None:
            chunks.append(chunk)
    return chunks


def prepare_chunks(
    text: str,
    max_chars: int = DEFAULT_MAX_CHARS,
    overlap: int = DEFAULT_OVERLAP_CHARS,
    min_chars: int = DEFAULT_MIN_CHARS,
) -> List[TextChunk]:
    """Chunk text, drop duplicate chunks and, when there is more than one, short ones."""
    unique: List[TextChunk] = []
    seen: set[str] = set()
    for chunk in chunk_text_with_overlap(text, max_chars=max_chars, overlap=overlap):
        if chunk.text in seen:
            continue
        seen.add(chunk.text)
        unique.append(chunk)
    if len(unique) <= 1:
        return unique
    return [chunk for chunk in unique if len(chunk.text) >= min_chars]
