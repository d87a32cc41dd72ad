from __future__ import annotations

import csv
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .models import RunReport
from .settings import settings

AUDIT_CSV_COLUMNS: tuple[str, ...] = (
    "record_id",
    "status",
    "reason_code",
    "reason",
    "computed_value",
    "category",
    "table_type",
    "axle_count",
    "axles_assumed",
    "used_fallback",
    "distance_km",
    "required_trucks",
    "rate_per_km",
    "fixed_charge",
    "per_vehicle",
)


def write_manifest(run_id: str, manifest: dict[str, Any]) -> Path:
    out_dir = Path(settings.out_dir) / "manifests"
    out_dir.mkdir(parents=True, exist_ok=True)

    enriched = {
        "run_id": run_id,
        "created_at": datetime.now(UTC).isoformat(),
        **manifest,
    }

    path = out_dir / f"{run_id}.json"
    path.write_text(json.dumps(enriched, indent=2, default=str), encoding="utf-8")
    return path


def artifact_dir_for_run(run_id: str) -> Path:
    p = Path(settings.out_dir) / "artifacts" / run_id
    p.mkdir(parents=True, exist_ok=True)
    return p


def _audit_rows(report: RunReport) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for entry in report.entries:
        row: dict[str, Any] = {
            "record_id": entry.record_id,
            "status": entry.status,
            "reason_code": entry.reason_code or "",
            "reason": entry.reason or "",
            "computed_value": "" if entry.computed_value is None else entry.computed_value,
        }
        if entry.calculation is not None:
            row.update(entry.calculation.model_dump())
        rows.append(row)
    return rows


def _write_csv(path: Path, rows: list[dict[str, Any]]) -> None:
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(AUDIT_CSV_COLUMNS))
        writer.writeheader()
        for row in rows:
            writer.writerow({k: row.get(k, "") for k in AUDIT_CSV_COLUMNS})


def write_run_report(report: RunReport, *, extra: dict[str, Any] | None = None) -> dict[str, Path]:
    """Persist a recalculation run: JSON manifest plus a per-record audit CSV."""
    manifest_path = write_manifest(
        report.run_id,
        {
            "type": "antt_floor_recalculation",
            "message": report.message,
            "report": report.model_dump(mode="json"),
            **(extra or {}),
        },
    )
    audit_path = artifact_dir_for_run(report.run_id) / "audit.csv"
    _write_csv(audit_path, _audit_rows(report))
    return {"manifest.json": manifest_path, "audit.csv": audit_path}
