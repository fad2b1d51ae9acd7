"""housing_etl.backfill

Re-resolution of stored assignments before they are shown for confirmation.

Assignments loaded from storage or edited by hand may carry a name but no
accommodation id, or an id the current catalog no longer knows.  Those are
re-resolved by name and the id is written back in place.  The stored
display name is never replaced by the canonical catalog name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from housing_etl.allocation import ResolvedAssignment
from housing_etl.catalog import AccommodationRecord, Catalog
from housing_etl.resolution import resolve_accommodation
from housing_etl.shared import RunCounters

log = logging.getLogger(__name__)


def _as_catalog(catalog: Iterable[AccommodationRecord]) -> Catalog:
    if isinstance(catalog, Catalog):
        return catalog
    return Catalog(records=tuple(catalog))


def backfill_assignments(
    assignments: list[ResolvedAssignment],
    catalog: Iterable[AccommodationRecord],
    counters: RunCounters | None = None,
) -> int:
    """Fill missing or stale accommodation ids in place.

    Returns the number of assignments whose id was rewritten.  When the
    name does not resolve either, a stale id is left as it was.
    """
    cat = _as_catalog(catalog)
    repaired = 0
    for assignment in assignments:
        if not assignment.accommodation_name.strip():
            continue
        if assignment.accommodation_id in cat:
            continue
        record = resolve_accommodation(assignment.accommodation_name, cat)
        if record is None:
            if counters is not None:
                counters.backfill_unresolved += 1
                counters.warn(
                    f"cannot re-resolve {assignment.accommodation_name!r} "
                    f"(id {assignment.accommodation_id!r} kept)"
                )
            continue
        log.debug(
            "Backfilled %r: %r → %s",
            assignment.accommodation_name, assignment.accommodation_id, record.id,
        )
        assignment.accommodation_id = record.id
        repaired += 1

    if counters is not None:
        counters.assignments_backfilled += repaired
    return repaired


# ---------------------------------------------------------------------------
# Confirmation view
# ---------------------------------------------------------------------------

@dataclass
class ConfirmationLine:
    assignment: ResolvedAssignment
    record: AccommodationRecord | None

    def to_dict(self) -> dict:
        out = self.assignment.to_dict()
        rec = self.record
        out["accommodation"] = None if rec is None else {
            "id": rec.id,
            "name": rec.name,
            "kind": rec.kind,
            "location": rec.location,
            "capacity": rec.capacity,
            "occupied": rec.occupied,
            "available": rec.available,
        }
        return out


def confirmation_view(
    assignments: list[ResolvedAssignment],
    catalog: Iterable[AccommodationRecord],
    counters: RunCounters | None = None,
) -> list[ConfirmationLine]:
    """Backfill, then pair each assignment with its catalog record (or None)."""
    cat = _as_catalog(catalog)
    backfill_assignments(assignments, cat, counters)
    return [ConfirmationLine(a, cat.by_id(a.accommodation_id)) for a in assignments]


def total_assigned(assignments: Iterable[ResolvedAssignment]) -> int:
    return sum(a.pilgrims_assigned for a in assignments)
