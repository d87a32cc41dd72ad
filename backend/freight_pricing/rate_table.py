from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .antt_categories import CargoCategory, parse_category
from .logging_utils import log_event
from .models import RegulatoryRateEntry, TableType, VehicleOwnership
from .pricing_errors import PricingDataError
from .settings import settings


def derive_table_type(ownership: VehicleOwnership, high_performance: bool) -> TableType:
    own = ownership == "OWN"
    if high_performance:
        return TableType.C if own else TableType.D
    return TableType.A if own else TableType.B


@dataclass(frozen=True)
class RateLookup:
    entry: RegulatoryRateEntry
    requested_category: CargoCategory
    # True when the general-cargo row stood in for the requested category.
    used_fallback: bool


class RateTable:
    """Read-only ANTT rate reference keyed by (table type, category, axles)."""

    def __init__(
        self,
        entries: Iterable[RegulatoryRateEntry],
        *,
        source: str = "inline",
        as_of: str | None = None,
    ) -> None:
        index: dict[tuple[TableType, CargoCategory, int], RegulatoryRateEntry] = {}
        for entry in entries:
            if entry.key in index:
                table, category, axles = entry.key
                raise PricingDataError(
                    reason_code="rate_table_invalid",
                    message=f"Duplicate ANTT rate for table {table.value}, {category.value}, {axles} axles.",
                    details={"source": source},
                )
            index[entry.key] = entry
        self._index = index
        self.source = source
        self.as_of = as_of

    def __len__(self) -> int:
        return len(self._index)

    @property
    def entries(self) -> tuple[RegulatoryRateEntry, ...]:
        return tuple(self._index.values())

    def get(self, table_type: TableType, category: CargoCategory, axle_count: int) -> RegulatoryRateEntry | None:
        return self._index.get((TableType(table_type), CargoCategory(category), int(axle_count)))

    def lookup(self, table_type: TableType, category: CargoCategory, axle_count: int) -> RateLookup | None:
        """Exact match first, then the general-cargo row of the same table and axle count.

        ``None`` means no regulation row exists at all, which callers must
        treat as a failure and never as a zero rate.
        """
        exact = self.get(table_type, category, axle_count)
        if exact is not None:
            return RateLookup(entry=exact, requested_category=CargoCategory(category), used_fallback=False)
        if CargoCategory(category) is CargoCategory.GENERAL:
            return None
        fallback = self.get(table_type, CargoCategory.GENERAL, axle_count)
        if fallback is None:
            return None
        return RateLookup(entry=fallback, requested_category=CargoCategory(category), used_fallback=True)


def _parse_rate_payload(payload: Any, *, source: str) -> RateTable:
    if not isinstance(payload, dict):
        raise PricingDataError(
            reason_code="rate_table_invalid",
            message="ANTT rate payload must be a JSON object with a 'rates' list.",
            details={"source": source},
        )
    raw_rates = payload.get("rates")
    if not isinstance(raw_rates, list) or not raw_rates:
        raise PricingDataError(
            reason_code="rate_table_invalid",
            message="ANTT rate payload has no rates.",
            details={"source": source},
        )

    entries: list[RegulatoryRateEntry] = []
    ignored: list[str] = []
    for idx, item in enumerate(raw_rates):
        if not isinstance(item, dict):
            raise PricingDataError(
                reason_code="rate_table_invalid",
                message=f"ANTT rate row {idx} is not an object.",
                details={"source": source, "row": idx},
            )
        row = dict(item)
        # Column names as exported from the antt_rates table.
        if "axle_count" not in row and "axles" in row:
            row["axle_count"] = row["axles"]
        label = row.get("cargo_category")
        if isinstance(label, str) and label.strip():
            try:
                parse_category(label)
            except ValueError:
                # No freight maps to this category, so no lookup can reach the row.
                ignored.append(label.strip())
                continue
        try:
            entries.append(RegulatoryRateEntry.model_validate(row))
        except ValidationError as e:
            raise PricingDataError(
                reason_code="rate_table_invalid",
                message=f"ANTT rate row {idx} is invalid.",
                details={"source": source, "row": idx, "errors": e.errors(include_url=False)},
            ) from e

    if ignored:
        log_event(
            "rate_table_rows_ignored",
            level=logging.WARNING,
            source=source,
            count=len(ignored),
            categories=sorted(set(ignored)),
        )
    if not entries:
        raise PricingDataError(
            reason_code="rate_table_invalid",
            message="ANTT rate payload has no rows for known cargo categories.",
            details={"source": source, "ignored_categories": sorted(set(ignored))},
        )

    as_of = payload.get("as_of")
    return RateTable(
        entries,
        source=str(payload.get("source") or source),
        as_of=str(as_of) if as_of else None,
    )


@lru_cache(maxsize=8)
def _load_rate_table_cached(path_str: str) -> RateTable:
    path = Path(path_str)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PricingDataError(
            reason_code="rate_table_unavailable",
            message=f"ANTT rate table not readable: {path}",
            details={"path": str(path)},
        ) from e
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise PricingDataError(
            reason_code="rate_table_invalid",
            message=f"ANTT rate table is not valid JSON: {path}",
            details={"path": str(path)},
        ) from e
    return _parse_rate_payload(payload, source=str(path))


def load_rate_table(path: str | Path | None = None) -> RateTable:
    resolved = Path(path) if path is not None else Path(settings.rate_table_path)
    return _load_rate_table_cached(str(resolved.resolve()))


def clear_rate_table_cache() -> None:
    _load_rate_table_cached.cache_clear()
