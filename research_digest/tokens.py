"""
Token estimation and token-budgeted chunking.

The estimate is a heuristic (word count plus a fudge of one token per five
characters for punctuation and symbols). It is only used to compare sizes
against budgets, never to bill anything.
"""

from typing import List


def estimate_tokens(text: str) -> int:
    """Estimate the token count of ``text``."""
    if not text:
        return 0
    return len(text.split()) + len(text) // 5


def _split_line(line: str, limit: int) -> List[str]:
    """Split one oversized line on word boundaries."""
    pieces: List[str] = []
    current: List[str] = []
    for word in line.split(" "):
        candidate = " ".join(current + [word])
        if current and estimate_tokens(candidate) > limit:
            pieces.append(" ".join(current))
            current = [word]
        else:
            current.append(word)
    if current:
        pieces.append(" ".join(current))
    return pieces


def chunk_by_tokens(text: str, limit: int) -> List[str]:
    """
    Split text into pieces whose estimate never exceeds ``limit``.

    Lines are accumulated until adding the next one would exceed the limit,
    then the buffer is flushed. A single line that is larger than the limit
    on its own is split on word boundaries; a single word larger than the
    limit is kept whole.

    Args:
        text: Text to split
        limit: Token budget per chunk

    Returns:
        List of chunks (empty for blank input)
    """
    if not text or not text.strip():
        return []
    if limit <= 0:
        return [text]

    chunks: List[str] = []
    buffer = ""

    for line in text.split("\n"):
        lines = [line] if estimate_tokens(line) <= limit else _split_line(line, limit)
        for piece in lines:
            if buffer and estimate_tokens(buffer + piece + "\n") > limit:
                chunks.append(buffer)
                buffer = ""
            buffer += piece + "\n"

    if buffer.strip():
        chunks.append(buffer)

    return chunks
