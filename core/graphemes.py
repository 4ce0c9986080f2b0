"""Grapheme-aware length measurement.

BlueSky enforces its post limit in grapheme clusters, so emoji sequences and
combining marks must count as the single character a reader sees.
"""

import logging
import unicodedata

import grapheme

logger = logging.getLogger(__name__)

ZERO_WIDTH_JOINER = "\u200d"

# Emoji presentation / skin tone code points that never stand alone
_VARIATION_SELECTORS = range(0xFE00, 0xFE10)
_SKIN_TONE_MODIFIERS = range(0x1F3FB, 0x1F400)


def grapheme_length(text: str) -> int:
    """Return the number of user-perceived characters in text."""
    if not text:
        return 0

    try:
        return grapheme.length(text)
    except Exception:
        logger.warning("Grapheme segmentation failed, using approximate length", exc_info=True)

    try:
        return approximate_length(text)
    except Exception:
        logger.warning("Approximate length failed, using code point length", exc_info=True)
        return len(text)


def approximate_length(text: str) -> int:
    """Heuristic grapheme count used when segmentation is unavailable.

    Combining marks, variation selectors and skin tone modifiers attach to the
    previous character. A zero-width joiner swallows the character after it,
    which collapses ZWJ emoji sequences into one.
    """
    count = 0
    joined = False
    for char in text:
        if joined:
            joined = False
            continue
        if char == ZERO_WIDTH_JOINER:
            joined = True
            continue
        code = ord(char)
        if code in _VARIATION_SELECTORS or code in _SKIN_TONE_MODIFIERS:
            continue
        if unicodedata.category(char).startswith("M"):
            continue
        count += 1
    return count


def truncate_graphemes(text: str, limit: int, ellipsis: str = "...") -> str:
    """Shorten text to at most limit graphemes, ending with ellipsis when cut."""
    if grapheme_length(text) <= limit:
        return text
    keep = max(0, limit - len(ellipsis))
    return "".join(list(grapheme.graphemes(text))[:keep]) + ellipsis


def split_graphemes(text: str, size: int) -> list[str]:
    """Cut text into pieces of at most size grapheme clusters."""
    clusters = list(grapheme.graphemes(text))
    return ["".join(clusters[i:i + size]) for i in range(0, len(clusters), size)]
