"""Split long policy text into bounded chunks along paragraph, sentence and word boundaries."""

import re

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")

PARAGRAPH_SEPARATOR = "\n\n"
INLINE_SEPARATOR = " "


def _split_words(sentence: str, max_size: int) -> list[str]:
    pieces: list[str] = []
    current = ""
    for word in sentence.split():
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= max_size:
            current = f"{current} {word}"
        else:
            pieces.append(current)
            current = word
    if current:
        pieces.append(current)
    return pieces


def _segments(paragraph: str, max_size: int) -> list[str]:
    """Pieces of one paragraph, each within max_size unless it is a single oversized word."""
    if len(paragraph) <= max_size:
        return [paragraph]
    segments: list[str] = []
    for sentence in _SENTENCE_RE.split(paragraph):
        sentence = sentence.strip()
        if not sentence:
            continue
        if len(sentence) <= max_size:
            segments.append(sentence)
        else:
            segments.extend(_split_words(sentence, max_size))
    return segments


def split_text(text: str, max_size: int) -> list[str]:
    """
    Split *text* into chunks of at most *max_size* characters.

    Paragraphs (blank-line separated) are packed together first; a paragraph that is
    too long is split into sentences, and a sentence that is too long into words.
    A single word longer than max_size is emitted whole rather than cut.
    Empty or whitespace-only input yields an empty list.
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")

    chunks: list[str] = []
    current = ""
    for paragraph in _PARAGRAPH_RE.split(text or ""):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        for index, segment in enumerate(_segments(paragraph, max_size)):
            separator = PARAGRAPH_SEPARATOR if index == 0 else INLINE_SEPARATOR
            if not current:
                current = segment
            elif len(current) + len(separator) + len(segment) <= max_size:
                current = f"{current}{separator}{segment}"
            else:
                chunks.append(current)
                current = segment
    if current:
        chunks.append(current)
    return chunks
