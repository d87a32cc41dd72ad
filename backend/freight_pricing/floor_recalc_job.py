from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import ValidationError

from .floor_calculator import FloorError, compute_floor
from .logging_utils import log_event
from .models import AuditEntry, FreightFloorRecord, RunReport
from .pricing_errors import normalize_reason_code
from .rate_table import RateTable, load_rate_table
from .settings import settings


class FreightFloorSource(Protocol):
    async def fetch_missing_floors(self, limit: int) -> Sequence[FreightFloorRecord | Mapping[str, Any]]: ...


class FloorPersistence(Protocol):
    async def update_minimum_price(self, record_id: str, minimum_price: float) -> None: ...


def _record_id(raw: FreightFloorRecord | Mapping[str, Any], position: int) -> str:
    if isinstance(raw, FreightFloorRecord):
        return raw.id
    value = raw.get("id") if isinstance(raw, Mapping) else None
    text = str(value).strip() if value is not None else ""
    return text or f"row_{position}"


async def _process_record(
    raw: FreightFloorRecord | Mapping[str, Any],
    position: int,
    *,
    sink: FloorPersistence,
    rate_table: RateTable,
) -> AuditEntry:
    record_id = _record_id(raw, position)
    try:
        record = raw if isinstance(raw, FreightFloorRecord) else FreightFloorRecord.model_validate(raw)
    except ValidationError as e:
        return AuditEntry(
            record_id=record_id,
            status="failed",
            reason_code="record_invalid",
            reason=f"record could not be parsed ({e.error_count()} errors)",
        )

    if record.minimum_regulatory_price is not None and record.minimum_regulatory_price > 0:
        return AuditEntry(
            record_id=record_id,
            status="skipped",
            reason_code="floor_already_present",
            reason="minimum regulatory price already set",
        )

    result = compute_floor(record, rate_table)
    if isinstance(result, FloorError):
        return AuditEntry(
            record_id=record_id,
            status="skipped" if result.is_precondition else "failed",
            reason_code=normalize_reason_code(result.reason_code),
            reason=result.message,
        )

    if result.used_fallback:
        log_event(
            "floor_rate_fallback",
            record_id=record_id,
            requested_category=result.category.value,
            table_type=result.table_type.value,
            axle_count=result.axle_count,
        )

    try:
        await sink.update_minimum_price(record_id, result.value)
    except Exception as e:  # persistence is external; report it on this row only
        return AuditEntry(
            record_id=record_id,
            status="failed",
            reason_code="persistence_failed",
            reason=str(e) or type(e).__name__,
            computed_value=result.value,
            calculation=result.calculation(),
        )

    return AuditEntry(
        record_id=record_id,
        status="updated",
        computed_value=result.value,
        calculation=result.calculation(),
    )


async def run_floor_recalculation(
    source: FreightFloorSource,
    sink: FloorPersistence,
    *,
    rate_table: RateTable | None = None,
    abort: asyncio.Event | None = None,
    max_records: int | None = None,
    concurrency: int | None = None,
    run_id: str | None = None,
) -> RunReport:
    """Recompute the ANTT floor of every freight the source reports as missing one.

    Every fetched record (up to ``max_records``) gets exactly one audit entry;
    no single record can abort the run. Once ``abort`` is set, records not
    yet started are reported as skipped and already committed updates stay.
    """
    run_id = run_id or str(uuid.uuid4())
    table = rate_table if rate_table is not None else load_rate_table()
    limit = max(1, int(max_records if max_records is not None else settings.floor_batch_max_records))
    workers = max(1, int(concurrency if concurrency is not None else settings.floor_batch_concurrency))
    started_at = datetime.now(UTC)
    t0 = time.perf_counter()

    fetched = list(await source.fetch_missing_floors(limit))
    if len(fetched) > limit:
        log_event(
            "floor_recalculation_truncated",
            level=logging.WARNING,
            run_id=run_id,
            fetched=len(fetched),
            max_records=limit,
        )
        fetched = fetched[:limit]

    log_event(
        "floor_recalculation_started",
        run_id=run_id,
        record_count=len(fetched),
        rate_table_source=table.source,
        concurrency=workers,
    )

    sem = asyncio.Semaphore(workers)

    async def one(position: int) -> AuditEntry:
        raw = fetched[position]
        async with sem:
            if abort is not None and abort.is_set():
                return AuditEntry(
                    record_id=_record_id(raw, position),
                    status="skipped",
                    reason_code="run_aborted",
                    reason="run aborted before this record was processed",
                )
            try:
                return await _process_record(raw, position, sink=sink, rate_table=table)
            except Exception as e:  # keep the run going; the row carries the error
                log_event(
                    "floor_recalculation_record_error",
                    level=logging.ERROR,
                    run_id=run_id,
                    record_id=_record_id(raw, position),
                    error=str(e),
                )
                return AuditEntry(
                    record_id=_record_id(raw, position),
                    status="failed",
                    reason_code="record_processing_error",
                    reason=str(e) or type(e).__name__,
                )

    entries = await asyncio.gather(*[one(i) for i in range(len(fetched))])

    updated = sum(1 for e in entries if e.status == "updated")
    failed = sum(1 for e in entries if e.status == "failed")
    skipped = sum(1 for e in entries if e.status == "skipped")
    report = RunReport(
        run_id=run_id,
        started_at=started_at,
        finished_at=datetime.now(UTC),
        aborted=bool(abort is not None and abort.is_set()),
        total=len(entries),
        updated=updated,
        failed=failed,
        skipped=skipped,
        entries=tuple(entries),
    )

    log_event(
        "floor_recalculation_finished",
        run_id=run_id,
        total=report.total,
        updated=report.updated,
        failed=report.failed,
        skipped=report.skipped,
        aborted=report.aborted,
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return report
