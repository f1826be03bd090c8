"""
Size limits for text sent to the LLM or shown in progress events.

Limits are plain character counts; no tokenizer is involved.
"""

from typing import Any, Dict, List, Optional

ELLIPSIS = "..."


def truncate_value(value: Any, max_length: int) -> Any:
    """
    Shorten a string to exactly max_length characters. Non-strings pass through.

    Limits above 10 keep the last 3 characters so that suffixes such as
    units or file extensions survive:
        >>> truncate_value("start" + "x" * 100 + "end", max_length=20)
        'startxxxxxxxxx...end'
    """
    if not isinstance(value, str) or len(value) <= max_length:
        return value

    if max_length <= 10:
        return value[:max_length - len(ELLIPSIS)] + ELLIPSIS

    tail = 3
    return value[:max_length - len(ELLIPSIS) - tail] + ELLIPSIS + value[-tail:]


def truncate_rows(
    rows: List[Dict[str, Any]],
    max_rows: int,
    max_value_length: int = 200,
) -> List[Dict[str, Any]]:
    """First max_rows rows, long string cells shortened. The input is not modified."""
    return [
        {column: truncate_value(value, max_value_length) for column, value in row.items()}
        for row in rows[:max_rows]
    ]


def preview_text(text: str, max_chars: int) -> str:
    """
    >>> preview_text("There are 42 orders.", max_chars=9)
    'There are...'
    """
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + ELLIPSIS


class InputValidator:
    """Checks run on LLM input before any request is sent."""

    @staticmethod
    def validate_total_chars(
        prompt: str,
        system_prompt: Optional[str] = None,
        max_chars: int = 0
    ) -> None:
        """
        Raises:
            ValueError: If prompt plus system prompt exceed max_chars
        """
        total_chars = len(prompt) + len(system_prompt or "")
        if total_chars > max_chars:
            raise ValueError(
                f"Total input too large: {total_chars} characters, maximum allowed: {max_chars}"
            )
