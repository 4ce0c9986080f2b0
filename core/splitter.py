"""Thread splitter for long BlueSky posts.

Splits text into thread parts at paragraph, then sentence, then word
boundaries, respecting the BlueSky grapheme limit.
"""

import re

from core.graphemes import grapheme_length, split_graphemes

MAX_POST_LENGTH = 300

PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])\s+")
WHITESPACE_RE = re.compile(r"\s+")

PARAGRAPH_SEPARATOR = "\n\n"
WORD_SEPARATOR = " "


def _join(current: str, piece: str, separator: str) -> str:
    return f"{current}{separator}{piece}" if current else piece


def _split_words(sentence: str, limit: int) -> list[str]:
    """Split on whitespace, hard-cutting any single word longer than limit."""
    words = []
    for word in WHITESPACE_RE.split(sentence):
        if not word:
            continue
        if grapheme_length(word) > limit:
            words.extend(split_graphemes(word, limit))
        else:
            words.append(word)
    return words


def split_content_into_chunks(content: str, limit: int = MAX_POST_LENGTH) -> list[str]:
    """Split content into chunks of at most limit graphemes.

    Args:
        content: The full draft text, any length.
        limit: Maximum graphemes per chunk.

    Returns:
        Chunks in posting order. Empty list for empty content.
    """
    chunks: list[str] = []
    current = ""

    for paragraph in PARAGRAPH_BREAK_RE.split(content):
        if grapheme_length(paragraph) > limit:
            current = _pack_sentences(paragraph, current, chunks, limit)
        elif grapheme_length(_join(current, paragraph, PARAGRAPH_SEPARATOR)) > limit:
            chunks.append(current)
            current = paragraph
        else:
            current = _join(current, paragraph, PARAGRAPH_SEPARATOR)

    if current:
        chunks.append(current)

    return chunks


def _pack_sentences(paragraph: str, current: str, chunks: list[str], limit: int) -> str:
    """Accumulate an oversized paragraph sentence by sentence.

    Returns the running chunk; completed chunks are appended to chunks.
    """
    for sentence in SENTENCE_BREAK_RE.split(paragraph):
        candidate = _join(current, sentence, WORD_SEPARATOR)
        if grapheme_length(candidate) <= limit:
            current = candidate
        elif grapheme_length(sentence) > limit:
            current = _pack_words(sentence, current, chunks, limit)
        else:
            if current:
                chunks.append(current)
            current = sentence
    return current


def _pack_words(sentence: str, current: str, chunks: list[str], limit: int) -> str:
    """Accumulate an oversized sentence word by word into a secondary buffer."""
    buffer = ""
    for word in _split_words(sentence, limit):
        candidate = _join(buffer, word, WORD_SEPARATOR)
        if grapheme_length(candidate) <= limit:
            buffer = candidate
            continue
        current = _merge_buffer(current, buffer, chunks, limit)
        buffer = word

    if buffer:
        current = _merge_buffer(current, buffer, chunks, limit)
    return current


def _merge_buffer(current: str, buffer: str, chunks: list[str], limit: int) -> str:
    """Append buffer to the running chunk if it fits, else flush and promote it."""
    if current and grapheme_length(f"{current}{WORD_SEPARATOR}{buffer}") <= limit:
        return f"{current}{WORD_SEPARATOR}{buffer}"
    if current:
        chunks.append(current)
    return buffer


def format_chunk_preview(chunks: list[str]) -> str:
    """Render chunks the way they will appear as a thread."""
    total = len(chunks)
    return "\n\n---\n\n".join(
        f"Post {i}/{total}: {grapheme_length(chunk)} chars\n{chunk}"
        for i, chunk in enumerate(chunks, 1)
    )
