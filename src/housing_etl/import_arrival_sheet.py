"""housing_etl.import_arrival_sheet

Unified CLI entrypoint for arrival-sheet accommodation handling.

Modes (--mode):
  import   — read an arrival-group CSV, resolve accommodation columns
             against the catalog and write the allocation JSON (default)
  confirm  — re-resolve stored assignments (missing / stale ids) and
             write the confirmation view JSON

Usage (import):
    python -m housing_etl.import_arrival_sheet \\
        --mode import \\
        --csv-path "uploads/arrivals_group_12.csv" \\
        --output-path "artifacts/allocations/group_12.json"

Usage (confirm):
    python -m housing_etl.import_arrival_sheet \\
        --mode confirm \\
        --assignments-path "artifacts/allocations/group_12.json"
"""

from __future__ import annotations

import csv
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click

from housing_etl.allocation import (
    GroupAllocation,
    ResolvedAssignment,
    allocate_group,
)
from housing_etl.backfill import confirmation_view, total_assigned
from housing_etl.catalog import (
    DEFAULT_CATALOG_PATH,
    Catalog,
    CatalogValidationError,
    load_catalog,
)
from housing_etl.normalize import text_value
from housing_etl.rows import GROUP_NUMBER_KEYS, first_present
from housing_etl.shared import (
    NullRejectWriter,
    RejectWriter,
    RunCounters,
    normalize_headers,
    write_run_report,
)


# ---------------------------------------------------------------------------
# Sheet helpers (import)
# ---------------------------------------------------------------------------

def read_sheet(csv_path: Path) -> list[dict[str, Any]]:
    """Read an arrival CSV into header-stripped row dicts."""
    with csv_path.open(newline="", encoding="utf-8-sig") as fh:
        return [normalize_headers(row) for row in csv.DictReader(fh)]


def split_groups(rows: list[dict[str, Any]]) -> list[list[dict[str, Any]]]:
    """Split sheet rows into per-group row lists.

    A row whose group number differs from the current group's starts a new
    group; rows without a group number continue the current one.  The first
    row of each group is its main row.
    """
    groups: list[list[dict[str, Any]]] = []
    current_number: str | None = None
    for row in rows:
        number = text_value(first_present(row, GROUP_NUMBER_KEYS))
        if not groups or (number is not None and number != current_number):
            groups.append([])
            if number is not None:
                current_number = number
        groups[-1].append(row)
    return groups


def _run_import(
    run_id: str,
    csv_path: Path,
    catalog: Catalog,
    counters: RunCounters,
    rejects: RejectWriter | NullRejectWriter,
) -> list[GroupAllocation]:
    rows = read_sheet(csv_path)
    counters.rows_read = len(rows)
    click.echo(f"[{run_id}] Read {len(rows)} row(s) from {csv_path}")

    allocations: list[GroupAllocation] = []
    for group_rows in split_groups(rows):
        allocation = allocate_group(group_rows, catalog, counters)
        for pos in allocation.unresolved_rows:
            counters.rows_rejected += 1
            rejects.write(group_rows[pos], "no_resolvable_accommodation")
        if not allocation.assignments:
            counters.warn(f"group {allocation.group_number}: no accommodations assigned")
        allocations.append(allocation)
        click.echo(
            f"[{run_id}] Group {allocation.group_number}: "
            f"{len(allocation.assignments)} accommodation(s), "
            f"{allocation.pilgrims_assigned}/{allocation.pilgrims_count} pilgrims"
            + (" (destination fallback)" if allocation.fallback_used else "")
        )
    return allocations


# ---------------------------------------------------------------------------
# Stored-assignment helpers (confirm)
# ---------------------------------------------------------------------------

def load_stored_assignments(path: Path) -> list[list[ResolvedAssignment]]:
    """Load stored assignments as one list per group.

    Accepts a bare assignment list, a single group object with an
    "accommodations" key, or an import output with a "groups" list.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        groups = [data]
    elif isinstance(data, dict) and isinstance(data.get("groups"), list):
        groups = [g.get("accommodations") or [] for g in data["groups"]]
    elif isinstance(data, dict) and isinstance(data.get("accommodations"), list):
        groups = [data["accommodations"]]
    else:
        raise ValueError(
            "expected a list of assignments or an object with 'groups' or 'accommodations'"
        )
    return [
        [ResolvedAssignment.from_dict(item) for item in group if isinstance(item, dict)]
        for group in groups
    ]


def _run_confirm(
    run_id: str,
    assignments_path: Path,
    catalog: Catalog,
    counters: RunCounters,
) -> list[dict[str, Any]]:
    groups = load_stored_assignments(assignments_path)
    out: list[dict[str, Any]] = []
    for assignments in groups:
        counters.assignments_read += len(assignments)
        lines = confirmation_view(assignments, catalog, counters)
        out.append({
            "totalAccommodations": len(lines),
            "totalPilgrimsAssigned": total_assigned(assignments),
            "accommodations": [line.to_dict() for line in lines],
        })
    click.echo(
        f"[{run_id}] Confirmed {counters.assignments_read} assignment(s): "
        f"{counters.assignments_backfilled} backfilled, "
        f"{counters.backfill_unresolved} unresolved"
    )
    return out


# ---------------------------------------------------------------------------
# Unified CLI
# ---------------------------------------------------------------------------

@click.command()
@click.option(
    "--mode",
    default="import",
    type=click.Choice(["import", "confirm"]),
    show_default=True,
    help="Processing mode",
)
@click.option("--csv-path", default=None, type=click.Path(), help="[import] Arrival-group CSV")
@click.option(
    "--assignments-path",
    default=None,
    type=click.Path(),
    help="[confirm] JSON file of stored assignments",
)
@click.option(
    "--catalog-path",
    default=str(DEFAULT_CATALOG_PATH),
    type=click.Path(),
    show_default=True,
    help="Accommodation catalog YAML",
)
@click.option("--output-path", default=None, type=click.Path(), help="Result JSON (default under ./artifacts)")
@click.option(
    "--rejects-path",
    default="./artifacts/rejects/arrival_sheet_rejects.csv",
    show_default=True,
    help="[import] CSV of rows whose accommodations could not be resolved",
)
@click.option(
    "--reports-dir",
    default="./artifacts/reports",
    type=click.Path(),
    show_default=True,
)
@click.option("--dry-run", is_flag=True, default=False, help="Resolve and report; write no files")
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
def main(
    mode: str,
    csv_path: str | None,
    assignments_path: str | None,
    catalog_path: str,
    output_path: str | None,
    rejects_path: str,
    reports_dir: str,
    dry_run: bool,
    run_id: str | None,
    verbose: bool,
) -> None:
    """Arrival-sheet accommodation import CLI."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.now(timezone.utc).isoformat()
    counters = RunCounters()

    click.echo(f"[{run_id}] Starting {mode} run (dry_run={dry_run})")

    try:
        catalog = load_catalog(Path(catalog_path))
    except (OSError, CatalogValidationError) as exc:
        click.echo(f"[{run_id}] FATAL: cannot load catalog {catalog_path}: {exc}", err=True)
        sys.exit(1)
    click.echo(f"[{run_id}] Catalog: {len(catalog)} accommodation(s) from {catalog_path}")

    source_paths: dict[str, str] = {"catalog_path": catalog_path}
    result: Any
    if mode == "import":
        if not csv_path:
            click.echo(f"[{run_id}] FATAL: --csv-path is required for --mode import", err=True)
            sys.exit(1)
        source_paths["csv_path"] = csv_path
        rejects = NullRejectWriter() if dry_run else RejectWriter(Path(rejects_path))
        try:
            allocations = _run_import(run_id, Path(csv_path), catalog, counters, rejects)
        except OSError as exc:
            click.echo(f"[{run_id}] FATAL: cannot read {csv_path}: {exc}", err=True)
            sys.exit(1)
        finally:
            rejects.close()
        result = {"runId": run_id, "groups": [a.to_dict() for a in allocations]}
        default_output = Path(f"./artifacts/allocations/{run_id}.json")
    else:
        if not assignments_path:
            click.echo(
                f"[{run_id}] FATAL: --assignments-path is required for --mode confirm",
                err=True,
            )
            sys.exit(1)
        source_paths["assignments_path"] = assignments_path
        try:
            groups = _run_confirm(run_id, Path(assignments_path), catalog, counters)
        except (OSError, ValueError) as exc:
            click.echo(f"[{run_id}] FATAL: cannot read {assignments_path}: {exc}", err=True)
            sys.exit(1)
        result = {"runId": run_id, "groups": groups}
        default_output = Path(f"./artifacts/confirmations/{run_id}.json")

    if dry_run:
        click.echo(f"[{run_id}] [dry-run] No files written.")
    else:
        out_path = Path(output_path) if output_path else default_output
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(result, indent=2, ensure_ascii=False), encoding="utf-8")
        source_paths["output_path"] = str(out_path)
        report_path = write_run_report(
            run_id, started_at, mode, dry_run, source_paths, counters,
            reports_dir=Path(reports_dir),
            extra={"catalog_hash": catalog.yaml_hash},
        )
        click.echo(f"[{run_id}] Wrote {out_path}; report {report_path}")

    click.echo(
        f"[{run_id}] Done: {counters.rows_read} rows read, "
        f"{counters.rows_rejected} rejected, "
        f"{counters.names_unresolved} unresolved name(s), "
        f"{counters.fallback_groups} fallback group(s), "
        f"{counters.assignments_backfilled} backfilled"
    )


if __name__ == "__main__":
    main()
