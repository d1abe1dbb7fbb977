"""Human-readable byte counts."""

from __future__ import annotations

_UNIT = 1024
_PREFIXES = "KMGTPE"


def format_size(size_bytes: int) -> str:
    """Format a byte count using binary units, e.g. ``1536 -> "1.5 KB"``."""
    if size_bytes < _UNIT:
        return f"{size_bytes} B"

    div, exp = _UNIT, 0
    n = size_bytes // _UNIT
    while n >= _UNIT and exp < len(_PREFIXES) - 1:
        div *= _UNIT
        exp += 1
        n //= _UNIT

    return f"{size_bytes / div:.1f} {_PREFIXES[exp]}B"
