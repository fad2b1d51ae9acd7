"""housing_etl.rows

Row normalizer for arrival-sheet rows.

Spreadsheets from different organizers name the same column differently
("accommodationName", "hotel", "accommodation_name", ...).  Each logical
field has an ordered alias list; the first alias holding a present,
non-blank value wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from housing_etl.normalize import parse_count, text_value

# ---------------------------------------------------------------------------
# Alias table (priority order)
# ---------------------------------------------------------------------------

ACCOMMODATION_NAME_KEYS = (
    "accommodationName",
    "accommodation_name",
    "accommodation",
    "hotel",
    "building",
    "tent",
)

PILGRIMS_ASSIGNED_KEYS = (
    "accommodationPilgrims",
    "accommodation_pilgrims",
    "pilgrims",
    "pilgrimsPerAccommodation",
)

CONTRACT_NUMBER_KEYS = ("contractNumber", "contract_number", "contract")

MULTI_FIELD_KEYS = ("accommodations", "accommodation_list", "hotels")

# Count applied to bare names inside a multi field ("Hotel A, Hotel B").
DEFAULT_COUNT_KEYS = ("pilgrims", "pilgrimsCount")

# Group-level columns read from the main (first) row.
GROUP_NUMBER_KEYS = ("groupNumber", "group_number")
GROUP_NAME_KEYS = ("groupName", "group_name")
DESTINATION_KEYS = ("destination",)
PILGRIMS_COUNT_KEYS = ("pilgrimsCount", "pilgrims_count")


@dataclass
class NormalizedRow:
    accommodation_name: str | None = None
    pilgrims_assigned: int | None = None
    contract_number: str | None = None
    multi_field: str | None = None
    default_count: int | None = None


def first_present(row: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    """Return the first value under *keys* that is not None or blank text."""
    for key in keys:
        value = row.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def has_accommodation_data(row: Mapping[str, Any]) -> bool:
    """True when the row fills any single-name or multi-entry column."""
    return first_present(row, ACCOMMODATION_NAME_KEYS + MULTI_FIELD_KEYS) is not None


def _count_field(row: Mapping[str, Any], keys: tuple[str, ...]) -> int | None:
    value = first_present(row, keys)
    return None if value is None else parse_count(value)


def normalize_row(row: Mapping[str, Any]) -> NormalizedRow:
    """Extract the logical accommodation fields from one raw row.

    Missing fields come back as None; nothing here raises.  Numeric fields
    go through parse_count, so "120 pilgrims" → 120 and "n/a" → 0.
    """
    multi = first_present(row, MULTI_FIELD_KEYS)
    return NormalizedRow(
        accommodation_name=text_value(first_present(row, ACCOMMODATION_NAME_KEYS)),
        pilgrims_assigned=_count_field(row, PILGRIMS_ASSIGNED_KEYS),
        contract_number=text_value(first_present(row, CONTRACT_NUMBER_KEYS)),
        # Only text can be composite; a numeric cell here is ignored.
        multi_field=multi if isinstance(multi, str) else None,
        default_count=_count_field(row, DEFAULT_COUNT_KEYS),
    )
