from __future__ import annotations

import argparse
import asyncio
import csv
import json
from pathlib import Path
from typing import Any, Sequence

from freight_pricing.floor_recalc_job import run_floor_recalculation
from freight_pricing.rate_table import load_rate_table
from freight_pricing.run_store import artifact_dir_for_run, write_run_report
from freight_pricing.settings import settings


def load_freight_rows(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        raise ValueError(f"input file not found: {path}")
    if path.suffix.lower() == ".csv":
        with path.open("r", encoding="utf-8", newline="") as f:
            # Empty CSV cells mean "absent", not empty strings.
            return [{k: (v if v != "" else None) for k, v in row.items()} for row in csv.DictReader(f)]
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON file: {path}") from e
    if isinstance(data, dict) and isinstance(data.get("freights"), list):
        data = data["freights"]
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise ValueError(f"expected a JSON list of freight objects in {path}")
    return data


def _missing_floor(row: dict[str, Any]) -> bool:
    value = row.get("minimum_regulatory_price", row.get("minimum_antt_price"))
    try:
        return value is None or float(value) == 0.0
    except (TypeError, ValueError):
        return True


class FileFreightSource:
    """Rows from an export file, filtered to those lacking a floor value."""

    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows

    async def fetch_missing_floors(self, limit: int) -> list[dict[str, Any]]:
        return [row for row in self._rows if _missing_floor(row)][:limit]


class CollectingPersistence:
    def __init__(self) -> None:
        self.updates: dict[str, float] = {}

    async def update_minimum_price(self, record_id: str, minimum_price: float) -> None:
        self.updates[record_id] = minimum_price


def run_recalculate(args: argparse.Namespace) -> dict[str, Any]:
    old_out_dir = settings.out_dir
    settings.out_dir = str(Path(args.out_dir).resolve())
    try:
        rows = load_freight_rows(Path(args.input).resolve())
        table = load_rate_table(args.rates)
        sink = CollectingPersistence()

        report = asyncio.run(
            run_floor_recalculation(
                FileFreightSource(rows),
                sink,
                rate_table=table,
                max_records=args.max_records,
                concurrency=args.concurrency,
            )
        )

        paths = write_run_report(
            report,
            extra={"input": str(Path(args.input).resolve()), "rate_table_source": table.source},
        )
        if not args.dry_run:
            updates_path = artifact_dir_for_run(report.run_id) / "updates.json"
            updates_path.write_text(json.dumps(sink.updates, indent=2, sort_keys=True), encoding="utf-8")
            paths["updates.json"] = updates_path
    finally:
        settings.out_dir = old_out_dir

    return {
        "run_id": report.run_id,
        "message": report.message,
        "total": report.total,
        "updated": report.updated,
        "failed": report.failed,
        "skipped": report.skipped,
        "dry_run": bool(args.dry_run),
        "artifacts": {name: str(path) for name, path in paths.items()},
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Recalculate missing ANTT minimum prices for exported freights.")
    parser.add_argument("--input", required=True, help="JSON list or CSV of freight rows.")
    parser.add_argument("--rates", default=None, help="ANTT rate table JSON (defaults to RATE_TABLE_PATH).")
    parser.add_argument("--out-dir", default="out")
    parser.add_argument("--max-records", type=int, default=settings.floor_batch_max_records)
    parser.add_argument("--concurrency", type=int, default=settings.floor_batch_concurrency)
    parser.add_argument("--dry-run", action="store_true")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    payload = run_recalculate(args)
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
