"""
Utility helper functions for safe data handling and match-time formatting.
"""
import math
import re
from typing import Any, Optional

_MARKUP_CHARS = re.compile(r"[<>]")


def safe_str(value: Any, default: str = "") -> str:
    """
    Safely convert value to string, handling None.

    Args:
        value: Any value to convert
        default: Default string if value is None

    Returns:
        String representation or default
    """
    if value is None:
        return default
    return str(value)


def safe_strip(value: Any) -> str:
    """
    Safely strip whitespace from a value, handling None.

    Args:
        value: Any value to strip

    Returns:
        Stripped string or empty string if None
    """
    if value is None:
        return ""
    return str(value).strip()


def safe_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    """
    Safely convert value to int, handling None and invalid values.

    Args:
        value: Any value to convert
        default: Default if conversion fails

    Returns:
        Integer or default
    """
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def sanitize_text(value: Any, max_length: int = 500) -> str:
    """
    Clean free-text input: strip whitespace, drop angle brackets, cap length.
    """
    if not isinstance(value, str):
        return ""
    return _MARKUP_CHARS.sub("", value.strip())[:max_length]


def round_seconds(milliseconds: float) -> int:
    """Round a millisecond span to whole seconds, halves rounding up."""
    return int(math.floor(milliseconds / 1000.0 + 0.5))


def format_clock(seconds: int) -> str:
    """Format elapsed seconds as 'MM:SS'."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


def format_match_minute(seconds: int, regulation_seconds: int, is_second_half: bool) -> str:
    """
    Format a match minute the way a referee's card reads it.

    Within regulation this is the ceiling minute ('12'). Past the end of
    the current half it becomes stoppage notation ('35+2').
    """
    half = regulation_seconds / 2
    first_half_overrun = seconds > half and not is_second_half
    second_half_overrun = seconds > regulation_seconds

    if not (first_half_overrun or second_half_overrun):
        return str(math.ceil(seconds / 60))

    if not is_second_half:
        base_seconds = half
    else:
        base_seconds = regulation_seconds
    extra_minutes = math.ceil((seconds - base_seconds) / 60)
    return f"{int(base_seconds // 60)}+{extra_minutes}"
