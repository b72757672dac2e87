from typing import Optional


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse a stored integer, returning None for missing or malformed values."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
