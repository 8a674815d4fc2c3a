"""Reusable field validators for request schemas.

- String sanitization (notes, customer search)
- ``HH:MM`` clock times (drop-in slots, acceptance hours)
- Goods type normalization
"""

import re

from warebook.services.rates import normalize_goods_type

CLOCK_REGEX = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# XSS patterns
XSS_PATTERNS = [
    r"<script[^>]*>.*?</script>",
    r"javascript:",
    r"on\w+\s*=",
    r"<iframe",
]


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """Trim and length-check free text, rejecting markup injection.

    Raises:
        ValueError: If validation fails
    """
    if not isinstance(value, str):
        raise ValueError("Must be a string")

    value = value.strip()

    if len(value) > max_length:
        raise ValueError(f"String too long (max {max_length} characters)")

    for pattern in XSS_PATTERNS:
        if re.search(pattern, value, re.IGNORECASE):
            raise ValueError("Invalid characters detected")

    return value


def validate_clock_time(value: str | None) -> str | None:
    """Accept ``HH:MM`` (24h).  ``HH:MM:SS`` is truncated to minutes."""
    if value is None:
        return None
    value = value.strip()
    if len(value) == 8 and value[5] == ":":
        value = value[:5]
    if not CLOCK_REGEX.match(value):
        raise ValueError("Time must be HH:MM (24-hour)")
    return value


def validate_goods_type(value: str | None) -> str:
    return normalize_goods_type(value)
