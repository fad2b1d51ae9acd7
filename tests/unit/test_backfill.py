"""Unit tests for housing_etl.backfill."""

from __future__ import annotations

import copy

import pytest

from housing_etl.allocation import ResolvedAssignment
from housing_etl.backfill import backfill_assignments, confirmation_view, total_assigned
from housing_etl.catalog import AccommodationRecord, build_catalog
from housing_etl.shared import RunCounters


HOTEL_A = AccommodationRecord("hotel-a", "Hotel A", "Makkah", kind="hotel", capacity=100, occupied=40)
HOTEL_B = AccommodationRecord("hotel-b", "Hotel B", "Makkah", kind="hotel")


@pytest.fixture
def catalog():
    return build_catalog(hotels=[HOTEL_A, HOTEL_B])


class TestBackfillAssignments:
    def test_fills_missing_id(self, catalog):
        items = [ResolvedAssignment("", "hotel a", 10)]
        assert backfill_assignments(items, catalog) == 1
        assert items[0].accommodation_id == "hotel-a"

    def test_name_not_overwritten(self, catalog):
        items = [ResolvedAssignment("", "  HOTEL B ", 10)]
        backfill_assignments(items, catalog)
        assert items[0].accommodation_id == "hotel-b"
        assert items[0].accommodation_name == "  HOTEL B "

    def test_replaces_stale_id(self, catalog):
        items = [ResolvedAssignment("acc-99", "Hotel B", 10)]
        backfill_assignments(items, catalog)
        assert items[0].accommodation_id == "hotel-b"

    def test_valid_id_untouched(self, catalog):
        # The id is authoritative even when the stored label names another record.
        items = [ResolvedAssignment("hotel-a", "Hotel B", 10)]
        assert backfill_assignments(items, catalog) == 0
        assert items[0].accommodation_id == "hotel-a"

    def test_unresolvable_keeps_stale_id(self, catalog):
        items = [ResolvedAssignment("acc-99", "Nowhere Inn", 10)]
        assert backfill_assignments(items, catalog) == 0
        assert items[0].accommodation_id == "acc-99"

    def test_empty_name_skipped(self, catalog):
        items = [ResolvedAssignment("", "   ", 10)]
        assert backfill_assignments(items, catalog) == 0
        assert items[0].accommodation_id == ""

    def test_accepts_plain_record_list(self):
        items = [ResolvedAssignment("", "Hotel A", 1)]
        backfill_assignments(items, [HOTEL_A])
        assert items[0].accommodation_id == "hotel-a"

    def test_idempotent(self, catalog):
        items = [
            ResolvedAssignment("", "Hotel A", 10),
            ResolvedAssignment("stale", "hotel b", 5),
            ResolvedAssignment("stale-2", "Nowhere", 5),
        ]
        backfill_assignments(items, catalog)
        snapshot = copy.deepcopy(items)
        assert backfill_assignments(items, catalog) == 0
        assert items == snapshot

    def test_counters(self, catalog):
        counters = RunCounters()
        items = [ResolvedAssignment("", "Hotel A", 1), ResolvedAssignment("", "Nowhere", 1)]
        backfill_assignments(items, catalog, counters)
        assert counters.assignments_backfilled == 1
        assert counters.backfill_unresolved == 1
        assert len(counters.warnings) == 1


class TestConfirmationView:
    def test_pairs_with_records(self, catalog):
        items = [ResolvedAssignment("", "Hotel A", 10), ResolvedAssignment("x", "Nowhere", 3)]
        lines = confirmation_view(items, catalog)
        assert lines[0].record is HOTEL_A
        assert lines[1].record is None
        assert items[0].accommodation_id == "hotel-a"

    def test_to_dict_includes_record(self, catalog):
        lines = confirmation_view([ResolvedAssignment("hotel-a", "Hotel A", 10)], catalog)
        d = lines[0].to_dict()
        assert d["accommodationId"] == "hotel-a"
        assert d["accommodation"]["available"] == 60
        assert d["accommodation"]["kind"] == "hotel"

    def test_to_dict_unresolved(self, catalog):
        lines = confirmation_view([ResolvedAssignment("", "Nowhere", 1)], catalog)
        assert lines[0].to_dict()["accommodation"] is None


class TestTotalAssigned:
    def test_sum(self):
        items = [ResolvedAssignment("a", "A", 10), ResolvedAssignment("b", "B", 5)]
        assert total_assigned(items) == 15

    def test_empty(self):
        assert total_assigned([]) == 0
