"""String manipulation utilities."""

from typing import Sequence


def truncate_for_logging(
    text: str, max_length: int = 1000, edge_length: int = 500
) -> str:
    """
    Truncate text for logging, showing beginning and end.

    Args:
        text: Text to truncate
        max_length: Maximum length before truncation is applied
        edge_length: Number of characters to show from start and end

    Returns:
        Truncated text with ellipsis if needed, or original text if short enough

    Examples:
        >>> truncate_for_logging("Hello", max_length=100)
        'Hello'
        >>> "..." in truncate_for_logging("x" * 2000, max_length=1000, edge_length=10)
        True
    """
    if len(text) <= max_length:
        return text
    return f"{text[:edge_length]}...\n...{text[-edge_length:]}"


def summarize_sentences(sentences: Sequence[str], max_length: int = 300) -> str:
    """
    Render caption texts as a single line for error messages.

    Line breaks inside a caption are shown as ``/`` and captions are
    separated by `` | ``.

    Examples:
        >>> summarize_sentences(["Hi,\\nthere", "Bye"])
        'Hi, / there | Bye'
    """
    joined = " | ".join(" / ".join(s.splitlines()) for s in sentences)
    return truncate_for_logging(
        joined, max_length=max_length, edge_length=max(max_length // 2, 1)
    )
