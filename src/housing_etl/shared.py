"""housing_etl.shared

Shared utilities used by the import and confirm modes.
Includes RejectWriter, RunCounters, header normalization, and
report-writing support.
"""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open CSV writer for rejected rows."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh = None
        self._writer = None

    def write(self, row: dict[str, Any], reason: str) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "w", newline="", encoding="utf-8")
            fieldnames = list(row.keys()) + ["_reject_reason"]
            self._writer = csv.DictWriter(
                self._fh, fieldnames=fieldnames, extrasaction="ignore"
            )
            self._writer.writeheader()
        out = dict(row)
        out["_reject_reason"] = reason
        self._writer.writerow(out)
        self._fh.flush()

    def close(self) -> None:
        if self._fh:
            self._fh.close()


class NullRejectWriter:
    """No-op reject writer for dry runs."""

    def write(self, row: dict[str, Any], reason: str) -> None:
        return None

    def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# RunCounters
# ---------------------------------------------------------------------------

@dataclass
class RunCounters:
    # Import counters
    rows_read: int = 0
    rows_rejected: int = 0
    assignments_single_field: int = 0
    assignments_multi_field: int = 0
    names_unresolved: int = 0
    counts_not_positive: int = 0
    fallback_groups: int = 0
    fallback_assignments: int = 0
    fallback_no_match: int = 0
    # Confirm counters
    assignments_read: int = 0
    assignments_backfilled: int = 0
    backfill_unresolved: int = 0
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_read": self.rows_read,
            "rows_rejected": self.rows_rejected,
            "assignments_single_field": self.assignments_single_field,
            "assignments_multi_field": self.assignments_multi_field,
            "names_unresolved": self.names_unresolved,
            "counts_not_positive": self.counts_not_positive,
            "fallback_groups": self.fallback_groups,
            "fallback_assignments": self.fallback_assignments,
            "fallback_no_match": self.fallback_no_match,
            "assignments_read": self.assignments_read,
            "assignments_backfilled": self.assignments_backfilled,
            "backfill_unresolved": self.backfill_unresolved,
            "warnings": self.warnings[:50],
        }


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------

def normalize_headers(raw: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with header keys whitespace-stripped."""
    return {k.strip(): v for k, v in raw.items() if k is not None}


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    dry_run: bool,
    source_paths: dict[str, str],
    counters: RunCounters,
    reports_dir: Path = Path("./artifacts/reports"),
    extra: dict[str, Any] | None = None,
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "dry_run": dry_run,
        **source_paths,
        **(extra or {}),
        "counters": counters.to_dict(),
    }
    report_path = reports_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
