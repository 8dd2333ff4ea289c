"""Utility helpers for the surplus dashboard."""

from __future__ import annotations

import math
from typing import Any, Optional


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (towards +inf).

    Python's built-in ``round`` rounds half to even, which disagrees with the
    percentages shown in the dashboard (22.5 -> 23, -2.5 -> -2).
    """
    return int(math.floor(value + 0.5))


def to_float(value: Any) -> Optional[float]:
    """Coerce JSON numbers and numeric strings; anything else becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = float(text)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def format_kg(value: Optional[float], *, empty: str = "-") -> str:
    if not value:
        return empty
    return f"{value:g} kg"


def same_id(left: Any, right: Any) -> bool:
    """Compare opaque ids that may arrive as int from JSON or str from a form."""
    if left is None or right is None:
        return False
    return str(left).strip() == str(right).strip()
