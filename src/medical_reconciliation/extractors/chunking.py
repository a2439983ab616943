# ============================================================================
# src/medical_reconciliation/extractors/chunking.py
# ============================================================================
"""
Chunking & Windowing

Pure functions that split report text into bounded segments:
- Fixed chunks (optionally padded on interior boundaries)
- Sliding windows inside one chunk, sized for a single extractor call
- Prompt capping that keeps head/middle/tail, or centres on an anchor
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

MIDDLE_MARKER = "\n...\n[MIDDLE]\n"
FOCUS_MARKER = "\n...\n[FOCUS]\n"
END_MARKER = "\n...\n[END]\n"


@dataclass
class TextChunk:
    """One slice of a document plus its position."""
    text: str
    chunk_index: int
    total_chunks: int
    chunk_size: int
    start: int
    end: int


def _chunk_geometry(text_length: int, chunk_index: int, max_chunks: int):
    total_chunks = max(1, min(max_chunks, text_length or 1))
    chunk_size = max(1, math.ceil(text_length / total_chunks)) if text_length else 0
    index = min(max(0, int(chunk_index)), total_chunks - 1)
    return total_chunks, chunk_size, index


def slice_text_fixed(text: str, chunk_index: int = 0, max_chunks: int = 4) -> TextChunk:
    """Equal-size slice `chunk_index` of at most `max_chunks`; the index is clamped."""
    text = text or ""
    total_chunks, chunk_size, index = _chunk_geometry(len(text), chunk_index, max_chunks)
    start = index * chunk_size
    end = min(len(text), start + chunk_size)
    return TextChunk(text[start:end], index, total_chunks, chunk_size, start, end)


def slice_text_fixed_with_overlap(
    text: str,
    chunk_index: int = 0,
    max_chunks: int = 4,
    overlap_chars: int = 1200
) -> TextChunk:
    """
    Fixed slice padded by `overlap_chars` on each interior boundary.

    The first chunk is not padded at its start and the last not at its end.
    """
    text = text or ""
    total_chunks, chunk_size, index = _chunk_geometry(len(text), chunk_index, max_chunks)
    overlap = max(0, int(overlap_chars))

    base_start = index * chunk_size
    base_end = min(len(text), base_start + chunk_size)
    start = max(0, base_start - overlap) if index > 0 else base_start
    end = min(len(text), base_end + overlap) if index < total_chunks - 1 else base_end
    return TextChunk(text[start:end], index, total_chunks, chunk_size, start, end)


def split_text_windows(
    text: str,
    window_chars: int = 12000,
    overlap_chars: int = 600,
    max_windows: int = 8
) -> List[str]:
    """
    Sliding windows over one chunk.

    Returns [] for blank text and a single window when the text fits.
    """
    if not text or not text.strip():
        return []

    size = max(1, int(window_chars))
    step = max(1, size - max(0, int(overlap_chars)))

    windows = []
    start = 0
    while start < len(text) and len(windows) < max_windows:
        end = min(len(text), start + size)
        windows.append(text[start:end])
        if end >= len(text):
            break
        start += step
    return windows


def cap_text_for_prompt(text: str, max_chars: int = 20000) -> str:
    """Keep head (40%), middle (20%) and tail of over-long text."""
    text = text or ""
    if len(text) <= max_chars:
        return text

    head_len = int(max_chars * 0.4)
    mid_len = int(max_chars * 0.2)
    tail_len = max(0, max_chars - head_len - mid_len)

    mid_start = max(head_len, len(text) // 2 - mid_len // 2)
    head = text[:head_len]
    middle = text[mid_start:mid_start + mid_len]
    tail = text[len(text) - tail_len:] if tail_len else ""
    return f"{head}{MIDDLE_MARKER}{middle}{END_MARKER}{tail}"


def find_first_anchor(text: str, anchors: Iterable[str]) -> Optional[int]:
    """Earliest case-insensitive position of any anchor term."""
    lowered = (text or "").lower()
    positions = [
        lowered.find(anchor.lower())
        for anchor in anchors
        if anchor and anchor.strip()
    ]
    positions = [p for p in positions if p >= 0]
    return min(positions) if positions else None


def cap_text_with_anchors(text: str, anchors: Sequence[str], max_chars: int = 20000) -> str:
    """
    Cap text, centring the retained block on the first anchor found.

    Keeps head (25%), an anchor block (50%) and the tail. Without any anchor
    match this is cap_text_for_prompt.
    """
    text = text or ""
    if len(text) <= max_chars:
        return text

    position = find_first_anchor(text, anchors or ())
    if position is None:
        return cap_text_for_prompt(text, max_chars)

    head_len = int(max_chars * 0.25)
    anchor_len = int(max_chars * 0.5)
    tail_len = max(0, max_chars - head_len - anchor_len)

    anchor_start = max(0, position - anchor_len // 2)
    anchor_start = min(anchor_start, max(0, len(text) - anchor_len))
    head = text[:head_len]
    focus = text[anchor_start:anchor_start + anchor_len]
    tail = text[len(text) - tail_len:] if tail_len else ""
    return f"{head}{FOCUS_MARKER}{focus}{END_MARKER}{tail}"

