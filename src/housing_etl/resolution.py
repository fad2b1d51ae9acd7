"""housing_etl.resolution

Free-text accommodation name → catalog record.

Two passes over the catalog, both in catalog order, first hit wins:
  1. exact:   match_key(record.name) == match_key(text)
  2. partial: either key is a substring of the other

No edit-distance scoring.  An unresolvable name returns None; callers
decide whether to drop the row.
"""

from __future__ import annotations

import logging
from typing import Iterable

from housing_etl.catalog import AccommodationRecord
from housing_etl.normalize import match_key

log = logging.getLogger(__name__)


def resolve_accommodation(
    text: str | None,
    catalog: Iterable[AccommodationRecord],
) -> AccommodationRecord | None:
    """Return the catalog record *text* refers to, or None."""
    key = match_key(text)
    if not key:
        return None

    records = list(catalog)
    for rec in records:
        if match_key(rec.name) == key:
            return rec

    for rec in records:
        rec_key = match_key(rec.name)
        if rec_key and (rec_key in key or key in rec_key):
            log.debug("Partial match %r → %s (%r)", text, rec.id, rec.name)
            return rec

    log.debug("No accommodation matches %r", text)
    return None
