import re
import logging
from typing import List, Sequence

from .config import CONFIG
from .models import FetchStatus, Segment, Word

logger = logging.getLogger(f"broll.{__name__}")

SENTENCE_END_RE = re.compile(r'[.!?]$')


def ms_to_seconds(ms: float) -> float:
    return ms / 1000.0


def segment_words_into_sentences(words: Sequence[Word], gap_ms: float = None) -> List[Segment]:
    """
    Groups a flat, word-level transcript into sentence-level segments.

    Words are accumulated in order and the running sentence is closed when:
    - the word's trimmed text ends with '.', '!' or '?';
    - it is the last word of the transcript;
    - the silence before the next word is longer than `gap_ms` (a new thought).

    Each segment starts at the first buffered word and ends at the closing word, so
    consecutive segments never overlap and every word lands in exactly one segment.

    Args:
        words (Sequence[Word]): Word records in transcript order, timed in milliseconds.
        gap_ms (float): Pause length that forces a boundary. Defaults to CONFIG["SENTENCE_GAP_MS"].

    Returns:
        List[Segment]: Segments timed in seconds, all with fetch_status 'idle'.
                       An empty input gives an empty list.
    """
    if gap_ms is None:
        gap_ms = CONFIG["SENTENCE_GAP_MS"]

    segments: List[Segment] = []
    buffer: List[Word] = []

    for i, word in enumerate(words):
        buffer.append(word)

        is_last_word = i == len(words) - 1
        ends_with_punctuation = bool(SENTENCE_END_RE.search(word.text.strip()))
        next_starts_new_thought = not is_last_word and (words[i + 1].start_ms - word.end_ms) > gap_ms

        if ends_with_punctuation or is_last_word or next_starts_new_thought:
            segments.append(Segment(
                text=" ".join(w.text for w in buffer).strip(),
                start_time=ms_to_seconds(buffer[0].start_ms),
                end_time=ms_to_seconds(word.end_ms),
                words=list(buffer),
                fetch_status=FetchStatus.IDLE,
            ))
            buffer = []

    logger.debug(f"Segmented {len(words)} words into {len(segments)} sentences.")
    return segments


def find_active_segment(segments: Sequence[Segment], t: float) -> int:
    """Index of the first segment whose [start, end) range contains `t`, or -1 when none does."""
    for i, segment in enumerate(segments):
        if segment.contains(t):
            return i
    return -1
