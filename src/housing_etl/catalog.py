"""housing_etl.catalog

Read-only accommodation catalog used for name resolution and fallback
distribution.

Responsibilities:
  - Load and validate the YAML accommodation directory
    (config/accommodation_catalog.yml by default)
  - Merge its housing sections into one ordered Catalog
  - Hash YAML content for traceability in run reports

Section order is fixed and significant: resolution scans records in
catalog order and stops at the first hit, so earlier sections win ties.

    accommodations → hotels → buildings → mina_tents → arafat_tents

Usage:
    from pathlib import Path
    from housing_etl.catalog import load_catalog

    catalog = load_catalog(Path("config/accommodation_catalog.yml"))
    record = catalog.by_id("hotel-1")
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator

import yaml

from housing_etl.normalize import normalize_space

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CATALOG_SECTIONS = ("accommodations", "hotels", "buildings", "mina_tents", "arafat_tents")

VALID_KINDS = frozenset({"accommodation", "hotel", "building", "tent"})

# Default kind / fixed location / display-name prefix per section.
_SECTION_KIND = {
    "accommodations": "accommodation",
    "hotels": "hotel",
    "buildings": "building",
    "mina_tents": "tent",
    "arafat_tents": "tent",
}
_TENT_SECTIONS = {
    "mina_tents": ("Mina Tent", "mina"),
    "arafat_tents": ("Arafat Tent", "arafat"),
}

DEFAULT_CATALOG_PATH = Path(__file__).parent.parent.parent / "config" / "accommodation_catalog.yml"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class CatalogValidationError(ValueError):
    """Raised when a catalog YAML file fails schema validation."""


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AccommodationRecord:
    """One housing unit a group can be assigned to."""

    id: str
    name: str
    location: str
    kind: str = "accommodation"
    source: str = "accommodations"
    capacity: int | None = None
    occupied: int | None = None

    @property
    def available(self) -> int | None:
        if self.capacity is None or self.occupied is None:
            return None
        return self.capacity - self.occupied


@dataclass(frozen=True)
class Catalog:
    """Ordered, immutable sequence of AccommodationRecord.

    Never re-sorted; iteration order is the resolution tie-break order.
    """

    records: tuple[AccommodationRecord, ...] = ()
    yaml_hash: str = ""
    _index: dict[str, AccommodationRecord] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        index = self._index
        for rec in self.records:
            index.setdefault(rec.id, rec)

    def __iter__(self) -> Iterator[AccommodationRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def by_id(self, accommodation_id: str | None) -> AccommodationRecord | None:
        if not accommodation_id:
            return None
        return self._index.get(accommodation_id)

    def __contains__(self, accommodation_id: object) -> bool:
        return isinstance(accommodation_id, str) and accommodation_id in self._index


def build_catalog(
    accommodations: Iterable[AccommodationRecord] = (),
    hotels: Iterable[AccommodationRecord] = (),
    buildings: Iterable[AccommodationRecord] = (),
    mina_tents: Iterable[AccommodationRecord] = (),
    arafat_tents: Iterable[AccommodationRecord] = (),
    yaml_hash: str = "",
) -> Catalog:
    """Concatenate housing directories in the fixed catalog order."""
    records: list[AccommodationRecord] = []
    for section in (accommodations, hotels, buildings, mina_tents, arafat_tents):
        records.extend(section)
    return Catalog(records=tuple(records), yaml_hash=yaml_hash)


# ---------------------------------------------------------------------------
# Loader + validator
# ---------------------------------------------------------------------------

def load_catalog(yaml_path: Path = DEFAULT_CATALOG_PATH) -> Catalog:
    """Load, validate, and return a Catalog from a YAML file.

    Raises:
        CatalogValidationError: If the file does not match the catalog schema.
        FileNotFoundError: If the YAML file does not exist.
    """
    raw = yaml_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise CatalogValidationError(f"Catalog YAML could not be parsed: {exc}") from exc
    yaml_hash = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    catalog = catalog_from_dict(data, yaml_hash=yaml_hash)
    log.debug("Loaded %d accommodation records from %s", len(catalog), yaml_path)
    return catalog


def catalog_from_dict(data: Any, yaml_hash: str = "") -> Catalog:
    """Validate a parsed catalog mapping and build the Catalog."""
    validate_catalog(data)
    sections = {
        name: [_record_from_entry(name, entry) for entry in (data.get(name) or [])]
        for name in CATALOG_SECTIONS
    }
    return build_catalog(yaml_hash=yaml_hash, **sections)


def validate_catalog(data: Any) -> None:
    """Raise CatalogValidationError if data does not match the catalog schema.

    Validates:
      - root is a mapping with only known section keys
      - every section is a list of mappings
      - required keys per entry (id; name + location, or tent_number for tents)
      - capacity / occupied are non-negative integers when present
      - ids are unique across the whole catalog
    """
    if not isinstance(data, dict):
        raise CatalogValidationError("Catalog YAML root must be a mapping.")

    unknown = set(data.keys()) - set(CATALOG_SECTIONS)
    if unknown:
        raise CatalogValidationError(
            f"Unknown catalog sections: {sorted(unknown)}. Must be among {list(CATALOG_SECTIONS)}."
        )

    seen_ids: set[str] = set()
    for section in CATALOG_SECTIONS:
        entries = data.get(section) or []
        if not isinstance(entries, list):
            raise CatalogValidationError(f"Section '{section}' must be a list.")
        for pos, entry in enumerate(entries):
            where = f"{section}[{pos}]"
            if not isinstance(entry, dict):
                raise CatalogValidationError(f"Entry {where} must be a mapping.")
            entry_id = entry.get("id")
            if not entry_id or not str(entry_id).strip():
                raise CatalogValidationError(f"Entry {where} is missing 'id'.")
            entry_id = str(entry_id).strip()
            if entry_id in seen_ids:
                raise CatalogValidationError(f"Duplicate accommodation id '{entry_id}' at {where}.")
            seen_ids.add(entry_id)

            if section in _TENT_SECTIONS:
                if not entry.get("tent_number") and not entry.get("name"):
                    raise CatalogValidationError(
                        f"Entry {where} needs 'tent_number' or 'name'."
                    )
            else:
                for key in ("name", "location"):
                    if not entry.get(key) or not str(entry[key]).strip():
                        raise CatalogValidationError(f"Entry {where} is missing '{key}'.")

            kind = entry.get("kind")
            if kind is not None and kind not in VALID_KINDS:
                raise CatalogValidationError(
                    f"Entry {where} has invalid kind '{kind}'. Must be one of {sorted(VALID_KINDS)}."
                )

            for key in ("capacity", "occupied"):
                val = entry.get(key)
                if val is None:
                    continue
                if isinstance(val, bool) or not isinstance(val, int) or val < 0:
                    raise CatalogValidationError(
                        f"Entry {where} '{key}' value '{val}' must be a non-negative integer."
                    )


def _record_from_entry(section: str, entry: dict[str, Any]) -> AccommodationRecord:
    if section in _TENT_SECTIONS:
        prefix, location = _TENT_SECTIONS[section]
        name = entry.get("name") or f"{prefix} {entry['tent_number']}"
        location = entry.get("location") or location
    else:
        name = entry["name"]
        location = entry["location"]
    return AccommodationRecord(
        id=str(entry["id"]).strip(),
        name=normalize_space(str(name)) or "",
        location=normalize_space(str(location)) or "",
        kind=entry.get("kind") or _SECTION_KIND[section],
        source=section,
        capacity=entry.get("capacity"),
        occupied=entry.get("occupied"),
    )
