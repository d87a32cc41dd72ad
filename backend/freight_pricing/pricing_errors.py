from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        # display path
        "pricing_mode_invalid",
        "unit_value_missing",
        # floor preconditions (skipped)
        "cargo_type_missing",
        "distance_missing",
        "floor_already_present",
        "run_aborted",
        # floor failures
        "rate_not_found",
        "record_invalid",
        "persistence_failed",
        "record_processing_error",
        # reference data
        "rate_table_unavailable",
        "rate_table_invalid",
    }
)


@dataclass
class PricingDataError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


def normalize_reason_code(reason_code: str, *, default: str = "record_processing_error") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
