"""Text chunking utilities.

This module splits statute records and uploaded files into bounded-size
chunks with deterministic identifiers.
"""

import re
import time
from datetime import datetime, timezone
from typing import List

from lawbot.models import Chunk, LegalSection

LEGAL_DATASET_SOURCE = "legal_dataset"
UPLOAD_SOURCE = "upload"


def _check_budget(max_chars: int) -> None:
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")


def chunk_text(text: str, max_chars: int = 1500) -> List[str]:
    """Split text into fixed windows of at most max_chars characters.

    Windows are cut at the raw character boundary (not sentence-aware) and
    stripped; windows that are blank after stripping are dropped.

    Args:
        text: Text to split.
        max_chars: Character budget per chunk.

    Returns:
        List of non-empty chunks in source order.
    """
    _check_budget(max_chars)
    chunks: List[str] = []
    for start in range(0, len(text), max_chars):
        chunk = text[start : start + max_chars].strip()
        if chunk:
            chunks.append(chunk)
    return chunks


def chunk_words(text: str, max_chars: int) -> List[str]:
    """Split text at word boundaries into chunks of at most max_chars.

    Words are accumulated space-joined until appending the next word would
    exceed the budget; the accumulation is then flushed and the word starts
    the next chunk. A word longer than max_chars forms its own chunk rather
    than being cut.

    Args:
        text: Text to split.
        max_chars: Character budget per chunk.

    Returns:
        List of non-empty chunks in source order.
    """
    _check_budget(max_chars)
    chunks: List[str] = []
    current = ""
    for word in text.split(" "):
        if current and len(current) + 1 + len(word) > max_chars:
            flushed = current.strip()
            if flushed:
                chunks.append(flushed)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current.strip():
        chunks.append(current.strip())
    return chunks


def section_full_text(section: LegalSection) -> str:
    return (
        f"{section.act} - Section {section.section}: {section.title}\n\n"
        f"{section.description}\n\n{section.text}"
    ).strip()


def chunk_section(
    section: LegalSection, max_chars: int = 800, indexed_at: str | None = None
) -> List[Chunk]:
    """Build chunks for one statute record.

    Args:
        section: Source record.
        max_chars: Character budget per chunk.
        indexed_at: ISO timestamp stamped on every chunk (defaults to now).

    Returns:
        One chunk with id section.id when the record fits, otherwise
        word-aware chunks with ids "{id}_chunk_{n}" (0-based).
    """
    _check_budget(max_chars)
    indexed_at = indexed_at or datetime.now(timezone.utc).isoformat()
    full_text = section_full_text(section)
    base = {
        "act": section.act,
        "section": section.section,
        "title": section.title,
        "source": LEGAL_DATASET_SOURCE,
        "indexed_at": indexed_at,
    }

    if len(full_text) <= max_chars:
        return [
            Chunk(
                id=section.id,
                text=full_text,
                metadata={**base, "chunk_index": 0, "total_chunks": 1},
            )
        ]

    pieces = chunk_words(full_text, max_chars)
    return [
        Chunk(
            id=f"{section.id}_chunk_{idx}",
            text=piece,
            metadata={**base, "chunk_index": idx, "total_chunks": len(pieces)},
        )
        for idx, piece in enumerate(pieces)
    ]


def sanitize_file_name(file_name: str) -> str:
    return re.sub(r"\s+", "_", file_name)


def chunk_upload(
    file_name: str,
    raw_text: str,
    max_chars: int = 1500,
    now: float | None = None,
) -> List[Chunk]:
    """Build chunks for an uploaded file.

    Args:
        file_name: Original file name.
        raw_text: Extracted text of the file.
        max_chars: Character budget per chunk.
        now: Upload time as a UNIX timestamp (defaults to now).

    Returns:
        Chunks with ids "{timestamp_ms}_{file_name}_chunk_{n}" (1-based).
    """
    now = time.time() if now is None else now
    base_id = f"{int(now * 1000)}_{sanitize_file_name(file_name)}"
    uploaded_at = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()
    pieces = chunk_text(raw_text, max_chars)
    return [
        Chunk(
            id=f"{base_id}_chunk_{idx + 1}",
            text=piece,
            metadata={
                "source": UPLOAD_SOURCE,
                "file_name": file_name,
                "chunk_index": idx + 1,
                "total_chunks": len(pieces),
                "uploaded_at": uploaded_at,
            },
        )
        for idx, piece in enumerate(pieces)
    ]
