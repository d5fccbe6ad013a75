"""
Transcript chunker (greedy, character-bounded).

Input: ordered transcript items with timestamps.
Each item:
{
  "text": "....",
  "timestamp_seconds": 12.34,
  "duration_seconds": 6.56
}

Output: ordered chunks. Each chunk is a contiguous run of items whose combined
text length stays within max_chunk_chars. An item longer than the limit on its
own becomes a chunk by itself; items are never split or dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from vid2chat.errors import InvalidInputError

DEFAULT_MAX_CHUNK_CHARS = 8000


# ----------------------------
# Data structures
# ----------------------------

@dataclass(frozen=True)
class TranscriptItem:
    text: str
    timestamp_seconds: float
    duration_seconds: float = 0.0

    def __post_init__(self):
        if self.timestamp_seconds < 0 or self.duration_seconds < 0:
            raise InvalidInputError(
                "Transcript timestamps and durations must be non-negative",
                details={
                    "timestamp_seconds": self.timestamp_seconds,
                    "duration_seconds": self.duration_seconds,
                },
            )


Chunk = Tuple[TranscriptItem, ...]


# ----------------------------
# Utilities
# ----------------------------

def format_ts(seconds: float) -> str:
    seconds = max(0, int(seconds))
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def chunk_char_length(chunk: Sequence[TranscriptItem]) -> int:
    return sum(len(item.text) for item in chunk)


def format_chunk(chunk: Sequence[TranscriptItem]) -> str:
    """Render a chunk as one `[12s] text` line per item."""
    return "\n".join(f"[{int(item.timestamp_seconds)}s] {item.text}" for item in chunk)


# ----------------------------
# Core chunking logic
# ----------------------------

def chunk_transcript(
    items: Sequence[TranscriptItem],
    max_chunk_chars: int = DEFAULT_MAX_CHUNK_CHARS,
) -> List[Chunk]:
    """
    Partition items into chunks with a single greedy pass.

    An item joins the current chunk while the running length plus its own
    length stays <= max_chunk_chars; otherwise the current chunk is closed and
    the item starts the next one. Empty input gives an empty list, which
    callers must treat as "no transcript".
    """
    if max_chunk_chars <= 0:
        raise InvalidInputError(
            "max_chunk_chars must be positive",
            details={"max_chunk_chars": max_chunk_chars},
        )

    chunks: List[Chunk] = []
    current: List[TranscriptItem] = []
    current_len = 0

    for item in items:
        item_len = len(item.text)
        if current and current_len + item_len > max_chunk_chars:
            chunks.append(tuple(current))
            current = []
            current_len = 0
        current.append(item)
        current_len += item_len

    if current:
        chunks.append(tuple(current))

    return chunks
