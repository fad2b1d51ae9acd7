"""Normalization functions for arrival-sheet ingestion.

Text helpers accept str | None and return the appropriate type or None.
Count helpers accept whatever a spreadsheet cell may hold and never raise.
"""

from __future__ import annotations

import re
from typing import Any

_NON_DIGIT = re.compile(r"[^0-9]")
_COMPOSITE_DELIMITERS = re.compile(r"[,|;]")


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: normalize_space
# ---------------------------------------------------------------------------

def normalize_space(value: str | None) -> str | None:
    """Collapse internal runs of whitespace to single spaces, then trim."""
    v = trim(value)
    if v is None:
        return None
    return re.sub(r"\s+", " ", v)


# ---------------------------------------------------------------------------
# Rule 3: match_key  (for accommodation name comparison)
# ---------------------------------------------------------------------------

def match_key(value: str | None) -> str:
    """Lowercase and trim a name for comparison.

    Internal whitespace and punctuation are kept as-is: "Mina Tent M-001"
    and "mina tent m001" are different keys.
    """
    if value is None:
        return ""
    return str(value).strip().lower()


# ---------------------------------------------------------------------------
# Rule 4: parse_count
# ---------------------------------------------------------------------------

def parse_count(value: Any) -> int:
    """Return a non-negative pilgrim count from a cell value.

    ints pass through (negatives clamp to 0), floats are truncated, strings
    have every non-digit character stripped before parsing ("1,200 pax" →
    1200, "-5" → 5).  Anything else, or a string with no digits, → 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        if value != value:  # NaN
            return 0
        return max(int(value), 0)
    if isinstance(value, str):
        digits = _NON_DIGIT.sub("", value)
        return int(digits) if digits else 0
    return 0


# ---------------------------------------------------------------------------
# Rule 5: text_value  (cell → str | None)
# ---------------------------------------------------------------------------

def text_value(value: Any) -> str | None:
    """Coerce a cell to trimmed text; None and blank strings → None."""
    if value is None:
        return None
    if isinstance(value, str):
        return trim(value)
    return trim(str(value))


# ---------------------------------------------------------------------------
# Helper: split_composite
# ---------------------------------------------------------------------------

def split_composite(value: str | None) -> list[str]:
    """Split a composite field on ',', '|' or ';' into trimmed, non-empty parts.

    "Hotel A: 100, Hotel B: 50" → ["Hotel A: 100", "Hotel B: 50"]
    """
    if value is None:
        return []
    return [p.strip() for p in _COMPOSITE_DELIMITERS.split(value) if p.strip()]
