"""
Split long replies into chunks that fit a platform's message size limit.
"""

from typing import List

DEFAULT_MAX_LENGTH = 1900


def split_message(text: str, max_length: int = DEFAULT_MAX_LENGTH) -> List[str]:
    """
    Split text into chunks of at most max_length characters.

    Breaks at the last newline before the limit, else the last space, as long as
    that keeps at least half the limit in the chunk; otherwise cuts hard at the
    limit. The text left after each break is stripped of surrounding whitespace.

    Args:
        text: Reply text
        max_length: Maximum characters per chunk

    Returns:
        List of chunks, empty for empty text

    Raises:
        ValueError: If max_length is not positive
    """
    if max_length <= 0:
        raise ValueError("max_length must be positive")

    chunks = []
    remaining = text

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        break_point = remaining.rfind("\n", 0, max_length + 1)
        if break_point == -1 or break_point < max_length / 2:
            break_point = remaining.rfind(" ", 0, max_length + 1)
        if break_point == -1 or break_point < max_length / 2:
            break_point = max_length

        chunks.append(remaining[:break_point])
        remaining = remaining[break_point:].strip()

    return chunks
