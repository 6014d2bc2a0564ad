"""Structural chunker for condominium documents.

Splits markdown/plain text before headings and "Artigo" clauses, then packs
the sections greedily into overlapping passages of bounded size. Every
passage starts with a "Document: {title}" line so a retrieved chunk still
names its source.
"""

import re
from typing import NamedTuple

from shared.models.document import Chunk

MIN_SECTION_CHARS = 50  # shorter sections are noise (page numbers, stray lines)
MIN_CHUNK_CHARS = 100   # a buffer must exceed this before it may be closed
WORDS_PER_OVERLAP_CHAR = 5

_HEADING_RE = re.compile(r"#{1,3}\s")
_ARTICLE_RE = re.compile(r"\*\*\s*Artigo")
_TOPIC_ARTICLE_RE = re.compile(r"^Artigo", re.IGNORECASE)


class Section(NamedTuple):
    text: str
    start: int


def title_prefix(title: str) -> str:
    return f"Document: {title}\n\n"


def is_boundary(line: str) -> bool:
    """Tell whether a line opens a new section.

    A section opens with a markdown heading of level 1 to 3 ("# ", "## ",
    "### ") or with a bolded article marker ("**Artigo", "** Artigo").
    """
    return bool(_HEADING_RE.match(line) or _ARTICLE_RE.match(line))


def split_sections(text: str) -> list[Section]:
    """Cut ``text`` immediately before every boundary line.

    The first line never causes a cut, since nothing precedes it. Sections
    keep their source offset and are returned untrimmed, so joining them
    gives back the original text.
    """
    sections: list[Section] = []
    current_start = 0
    offset = 0
    for line in text.splitlines(keepends=True):
        if offset > 0 and is_boundary(line):
            sections.append(Section(text[current_start:offset], current_start))
            current_start = offset
        offset += len(line)
    if current_start < len(text) or not sections:
        sections.append(Section(text[current_start:], current_start))
    return sections


def _tail_words(buffer: str, overlap: int) -> str:
    word_count = overlap // WORDS_PER_OVERLAP_CHAR
    if word_count <= 0:
        return ""
    return " ".join(buffer.split(" ")[-word_count:]).strip()


def chunk(text: str, title: str, chunk_size: int = 1000, overlap: int = 200) -> list[Chunk]:
    """Split a document into ordered, overlapping chunks.

    Sections shorter than MIN_SECTION_CHARS are dropped. When the next
    section would push the running buffer past ``chunk_size`` and the buffer
    already holds more than MIN_CHUNK_CHARS, the buffer is closed and a new
    one is seeded with the title prefix, roughly ``overlap / 5`` trailing
    words of the closed buffer, and the section that caused the rollover.
    A single section longer than ``chunk_size`` is kept whole.

    Documents that yield no chunk this way (no usable section, or too short)
    fall back to fixed windows of ``chunk_size`` over the prefixed text,
    advancing by ``chunk_size - overlap``.

    Args:
        text (str): Markdown or plain text.
        title (str): Document title used in the prefix.
        chunk_size (int): Target chunk length in characters.
        overlap (int): Overlap budget in characters (approximated in words).

    Returns:
        list[Chunk]: Chunks numbered from 0. Empty for blank input.

    Raises:
        ValueError: If ``overlap`` is negative or not smaller than ``chunk_size``.
    """
    if overlap < 0 or chunk_size <= overlap:
        raise ValueError("chunk_size must be greater than overlap, and overlap must not be negative.")
    if not text.strip():
        return []

    prefix = title_prefix(title)
    chunks: list[Chunk] = []
    buffer = prefix
    buffer_start: int | None = None
    buffer_end = 0

    for section in split_sections(text):
        body = section.text.strip()
        if len(body) < MIN_SECTION_CHARS:
            continue
        body_start = section.start + (len(section.text) - len(section.text.lstrip()))
        body_end = body_start + len(body)

        if len(buffer) + len(body) > chunk_size and len(buffer) > MIN_CHUNK_CHARS:
            chunks.append(Chunk(
                content=buffer.strip(),
                chunk_number=len(chunks),
                start_index=buffer_start if buffer_start is not None else body_start,
                end_index=buffer_end,
            ))
            tail = _tail_words(buffer, overlap)
            buffer = f"{prefix}{tail}\n\n{body}\n\n" if tail else f"{prefix}{body}\n\n"
            buffer_start = body_start
        else:
            buffer += f"{body}\n\n"
            if buffer_start is None:
                buffer_start = body_start
        buffer_end = body_end

    if len(buffer.strip()) > MIN_CHUNK_CHARS:
        chunks.append(Chunk(
            content=buffer.strip(),
            chunk_number=len(chunks),
            start_index=buffer_start or 0,
            end_index=buffer_end,
        ))

    if not chunks:
        chunks = _fixed_windows(prefix + text, len(prefix), chunk_size, overlap)
    return chunks


def _fixed_windows(prefixed: str, prefix_len: int, chunk_size: int, overlap: int) -> list[Chunk]:
    """Fallback slicing; offsets are mapped back to the unprefixed source."""
    stride = chunk_size - overlap
    windows: list[Chunk] = []
    for start in range(0, len(prefixed), stride):
        end = min(start + chunk_size, len(prefixed))
        windows.append(Chunk(
            content=prefixed[start:end],
            chunk_number=len(windows),
            start_index=max(start - prefix_len, 0),
            end_index=max(end - prefix_len, 0),
        ))
        if end >= len(prefixed):
            break
    return windows


def extract_topics(text: str, limit: int = 3) -> list[str]:
    """Return up to ``limit`` heading-like lines (headings, bold lines, articles) longer than 20 chars."""
    topics: list[str] = []
    for raw in text.split("\n"):
        line = raw.strip()
        if len(line) <= 20 or line.startswith("---") or line.startswith("Document:"):
            continue
        if line.startswith("#") or line.startswith("**") or _TOPIC_ARTICLE_RE.match(line):
            topics.append(line)
            if len(topics) >= limit:
                break
    return topics
