"""housing_etl.allocation

Turns normalized arrival-sheet rows into accommodation assignments.

Sources, in the order they are tried for a group:
  1. single-field rows   — one accommodation name + count per row
  2. multi-entry fields  — "Hotel A: 100, Hotel B: 50" in one cell
  3. fallback            — only when 1 and 2 produced nothing: split the
                           group's total evenly over generic catalog records
                           located at the group's destination

Everything here is best-effort.  Unresolved names, unparsable counts and
empty destination filters produce nothing rather than raising.  Pass a
RunCounters to observe what was dropped; it never changes the output.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from housing_etl.catalog import AccommodationRecord
from housing_etl.normalize import match_key, parse_count, split_composite, text_value
from housing_etl.resolution import resolve_accommodation
from housing_etl.rows import (
    DESTINATION_KEYS,
    GROUP_NAME_KEYS,
    GROUP_NUMBER_KEYS,
    PILGRIMS_COUNT_KEYS,
    first_present,
    has_accommodation_data,
    normalize_row,
)
from housing_etl.shared import RunCounters

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Logical destination → substrings looked for in AccommodationRecord.location.
DESTINATION_ALIASES: dict[str, tuple[str, ...]] = {
    "makkah": ("makkah", "mecca"),
    "madinah": ("madinah", "medina"),
    "mina": ("mina",),
    "arafat": ("arafat",),
}

DEFAULT_DESTINATION = "makkah"
DEFAULT_GROUP_NUMBER = "GRP-NEW"
DEFAULT_GROUP_NAME = "New Group from Excel"

# Catalog section the destination fallback draws from.  hotels and buildings
# repeat some of its places under their own ids.
FALLBACK_SECTION = "accommodations"

# "<name>:<count>" or "<name>|<count>"
_SEGMENT_PATTERN = re.compile(r"(.+?)[:|](.+)")


# ---------------------------------------------------------------------------
# Output types
# ---------------------------------------------------------------------------

@dataclass
class ResolvedAssignment:
    accommodation_id: str
    accommodation_name: str
    pilgrims_assigned: int
    contract_number: str | None = None

    @classmethod
    def for_record(
        cls,
        record: AccommodationRecord,
        pilgrims: int,
        contract_number: str | None = None,
    ) -> ResolvedAssignment:
        return cls(
            accommodation_id=record.id,
            accommodation_name=record.name,
            pilgrims_assigned=pilgrims,
            contract_number=contract_number,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "accommodationId": self.accommodation_id,
            "accommodationName": self.accommodation_name,
            "pilgrimsAssigned": self.pilgrims_assigned,
        }
        if self.contract_number is not None:
            out["contractNumber"] = self.contract_number
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ResolvedAssignment:
        """Build from the stored wire shape (camelCase or snake_case keys)."""
        return cls(
            accommodation_id=text_value(
                first_present(data, ("accommodationId", "accommodation_id"))
            ) or "",
            accommodation_name=text_value(
                first_present(data, ("accommodationName", "accommodation_name"))
            ) or "",
            pilgrims_assigned=parse_count(
                first_present(data, ("pilgrimsAssigned", "pilgrims_assigned"))
            ),
            contract_number=text_value(
                first_present(data, ("contractNumber", "contract_number"))
            ),
        )


@dataclass
class GroupAllocation:
    group_number: str
    group_name: str
    destination: str
    pilgrims_count: int
    assignments: list[ResolvedAssignment] = field(default_factory=list)
    fallback_used: bool = False
    # Indices of rows that name an accommodation but produced no assignment.
    unresolved_rows: list[int] = field(default_factory=list)

    @property
    def pilgrims_assigned(self) -> int:
        return sum(a.pilgrims_assigned for a in self.assignments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupNumber": self.group_number,
            "groupName": self.group_name,
            "destination": self.destination,
            "pilgrimsCount": self.pilgrims_count,
            "fallbackUsed": self.fallback_used,
            "accommodations": [a.to_dict() for a in self.assignments],
        }


# ---------------------------------------------------------------------------
# Multi-entry parser
# ---------------------------------------------------------------------------

def parse_multiple(
    composite_text: str | None,
    catalog: Iterable[AccommodationRecord],
    default_count: int = 0,
    counters: RunCounters | None = None,
) -> list[ResolvedAssignment]:
    """Split a composite accommodations cell into assignments.

    Segments are separated by ',', '|' or ';'.  A segment of the form
    "<name>: <count>" uses its own count; a bare name uses *default_count*.
    Segments that do not resolve, or whose count is not positive, are dropped.
    """
    records = list(catalog)
    out: list[ResolvedAssignment] = []
    for part in split_composite(composite_text):
        m = _SEGMENT_PATTERN.match(part)
        if m:
            name = m.group(1).strip()
            count = parse_count(m.group(2).strip())
        else:
            name = part
            count = default_count

        record = resolve_accommodation(name, records)
        if record is None:
            if counters is not None:
                counters.names_unresolved += 1
                counters.warn(f"unresolved accommodation in multi field: {name!r}")
            continue
        if count <= 0:
            if counters is not None:
                counters.counts_not_positive += 1
                counters.warn(f"no pilgrim count for {record.name!r} in multi field")
            continue
        out.append(ResolvedAssignment.for_record(record, count))

    if counters is not None:
        counters.assignments_multi_field += len(out)
    return out


# ---------------------------------------------------------------------------
# Proportional fallback
# ---------------------------------------------------------------------------

def matches_destination(record: AccommodationRecord, destination: str | None) -> bool:
    """True when the record's location names the logical *destination*."""
    aliases = DESTINATION_ALIASES.get(match_key(destination))
    if not aliases:
        return False
    location = match_key(record.location)
    return any(alias in location for alias in aliases)


def distribute_fallback(
    destination: str | None,
    total_pilgrims: int,
    catalog: Iterable[AccommodationRecord],
    counters: RunCounters | None = None,
) -> list[ResolvedAssignment]:
    """Spread *total_pilgrims* over the catalog records at *destination*.

    Every match gets total // n; the first match (catalog order) also takes
    the whole remainder, so the counts always sum to *total_pilgrims*.
    Unknown destinations and destinations without matches yield [].
    """
    if total_pilgrims <= 0:
        return []

    matching = [rec for rec in catalog if matches_destination(rec, destination)]
    if not matching:
        log.debug("No accommodations for destination %r; fallback skipped", destination)
        if counters is not None:
            counters.fallback_no_match += 1
            counters.warn(f"no accommodations match destination {destination!r}")
        return []

    base, remainder = divmod(total_pilgrims, len(matching))
    out = [
        ResolvedAssignment.for_record(rec, base + (remainder if i == 0 else 0))
        for i, rec in enumerate(matching)
    ]
    if counters is not None:
        counters.fallback_groups += 1
        counters.fallback_assignments += len(out)
    return out


# ---------------------------------------------------------------------------
# Row-set extraction
# ---------------------------------------------------------------------------

def assignments_from_row(
    row: Mapping[str, Any],
    catalog: Sequence[AccommodationRecord],
    counters: RunCounters | None = None,
) -> list[ResolvedAssignment]:
    """Assignments carried by one raw row (single field first, then multi field)."""
    norm = normalize_row(row)
    out: list[ResolvedAssignment] = []

    if norm.accommodation_name:
        record = resolve_accommodation(norm.accommodation_name, catalog)
        count = norm.pilgrims_assigned or 0
        if record is None:
            if counters is not None:
                counters.names_unresolved += 1
                counters.warn(f"unresolved accommodation: {norm.accommodation_name!r}")
        elif count <= 0:
            if counters is not None:
                counters.counts_not_positive += 1
                counters.warn(f"no pilgrim count for {record.name!r}")
        else:
            out.append(ResolvedAssignment.for_record(record, count, norm.contract_number))
            if counters is not None:
                counters.assignments_single_field += 1

    if norm.multi_field:
        out.extend(
            parse_multiple(norm.multi_field, catalog, norm.default_count or 0, counters)
        )
    return out


def assignments_from_rows(
    rows: Iterable[Mapping[str, Any]],
    catalog: Iterable[AccommodationRecord],
    counters: RunCounters | None = None,
) -> list[ResolvedAssignment]:
    records = list(catalog)
    out: list[ResolvedAssignment] = []
    for row in rows:
        out.extend(assignments_from_row(row, records, counters))
    return out


# ---------------------------------------------------------------------------
# Group pipeline
# ---------------------------------------------------------------------------

def allocate_group(
    rows: Sequence[Mapping[str, Any]],
    catalog: Iterable[AccommodationRecord],
    counters: RunCounters | None = None,
) -> GroupAllocation:
    """Build the accommodation plan for one arrival group.

    The first row carries the group columns (number, name, destination,
    total pilgrims).  Explicit assignments from every row win; the
    destination fallback runs only when none were found, and only over the
    generic accommodations section.  A missing total is reported as the sum
    actually assigned.
    """
    records = list(catalog)
    main_row: Mapping[str, Any] = rows[0] if rows else {}

    destination = match_key(text_value(first_present(main_row, DESTINATION_KEYS))) or DEFAULT_DESTINATION
    raw_total = first_present(main_row, PILGRIMS_COUNT_KEYS)
    total = parse_count(raw_total) if raw_total is not None else 0

    assignments: list[ResolvedAssignment] = []
    unresolved_rows: list[int] = []
    for pos, row in enumerate(rows):
        found = assignments_from_row(row, records, counters)
        if not found and has_accommodation_data(row):
            unresolved_rows.append(pos)
        assignments.extend(found)

    fallback_used = False
    if not assignments and total > 0:
        generic = [rec for rec in records if rec.source == FALLBACK_SECTION]
        assignments = distribute_fallback(destination, total, generic, counters)
        fallback_used = bool(assignments)

    allocation = GroupAllocation(
        group_number=text_value(first_present(main_row, GROUP_NUMBER_KEYS)) or DEFAULT_GROUP_NUMBER,
        group_name=text_value(first_present(main_row, GROUP_NAME_KEYS)) or DEFAULT_GROUP_NAME,
        destination=destination,
        pilgrims_count=total,
        assignments=assignments,
        fallback_used=fallback_used,
        unresolved_rows=unresolved_rows,
    )
    if not allocation.pilgrims_count:
        allocation.pilgrims_count = allocation.pilgrims_assigned
    log.debug(
        "Group %s: %d assignment(s), %d pilgrims, fallback=%s",
        allocation.group_number, len(assignments), allocation.pilgrims_assigned, fallback_used,
    )
    return allocation
