"""Split long input text into backend-sized segments at sentence boundaries."""

from typing import TextIO

from polly_reader.constants import MAX_WORDS
from polly_reader.models import TextSegment

SENTENCE_TERMINATOR = "."


def read_input(stream: TextIO) -> str:
    """Read all of stream and return it with surrounding whitespace trimmed."""
    return stream.read().strip()


def _ends_sentence(token: str) -> bool:
    return token.endswith(SENTENCE_TERMINATOR)


def _find_cut(tokens: list[str], start: int, max_words: int) -> int | None:
    """Index of the token that closes the segment starting at start.

    Walks to the max_words-th token, then forward to the first token ending
    a sentence. None means the rest of the input is the final segment.
    """
    limit = start + max_words - 1
    if limit >= len(tokens):
        return None
    for i in range(limit, len(tokens)):
        if _ends_sentence(tokens[i]):
            return i
    return None


def segment(text: str, max_words: int = MAX_WORDS) -> list[TextSegment]:
    """Split text into ordered segments of roughly max_words words.

    Short input (fewer than max_words words) comes back as one segment equal
    to the trimmed text. Longer input is cut only after a token ending in
    ".", at or after the max_words-th word of each segment, so a sentence is
    never split. A trailing remainder without a terminator becomes the last
    segment whatever its length. Tokens are re-joined with single spaces.
    """
    if max_words <= 0:
        raise ValueError(f"max_words must be positive, got {max_words}")

    text = text.strip()
    tokens = text.split()
    if not tokens:
        return []
    if len(tokens) < max_words:
        return [TextSegment(content=text, sequence_index=0)]

    chunks = []
    start = 0
    while start < len(tokens):
        cut = _find_cut(tokens, start, max_words)
        end = len(tokens) if cut is None else cut + 1
        chunks.append(" ".join(tokens[start:end]))
        start = end

    return [TextSegment(content=c, sequence_index=i) for i, c in enumerate(chunks)]
