from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from .antt_categories import CargoCategory, map_cargo_to_category
from .models import FloorCalculation, FreightFloorRecord, TableType
from .rate_table import RateTable, derive_table_type
from .settings import settings

_CENT = Decimal("0.01")


def round2(value: Decimal | float | int) -> Decimal:
    """Half-up to cents, the way the ANTT worksheets round."""
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FloorValue:
    value: float
    per_vehicle: float
    category: CargoCategory
    table_type: TableType
    axle_count: int
    axles_assumed: bool
    used_fallback: bool
    rate_per_km: Decimal
    fixed_charge: Decimal
    distance_km: float
    required_trucks: int

    def calculation(self) -> FloorCalculation:
        return FloorCalculation(
            category=self.category.value,
            table_type=self.table_type.value,
            axle_count=self.axle_count,
            axles_assumed=self.axles_assumed,
            used_fallback=self.used_fallback,
            distance_km=self.distance_km,
            required_trucks=self.required_trucks,
            rate_per_km=float(self.rate_per_km),
            fixed_charge=float(self.fixed_charge),
            per_vehicle=self.per_vehicle,
        )


@dataclass(frozen=True)
class FloorError:
    reason_code: str
    message: str

    @property
    def is_precondition(self) -> bool:
        # Not enough data to judge, as opposed to data with no matching regulation.
        return self.reason_code in PRECONDITION_REASON_CODES


FloorResult = Union[FloorValue, FloorError]

PRECONDITION_REASON_CODES: frozenset[str] = frozenset({"cargo_type_missing", "distance_missing"})


def check_floor_preconditions(record: FreightFloorRecord) -> FloorError | None:
    if not record.cargo_type_code:
        return FloorError(reason_code="cargo_type_missing", message="cargo type missing")
    if record.distance_km is None or record.distance_km <= 0:
        return FloorError(reason_code="distance_missing", message="distance missing or zero")
    return None


def compute_floor(record: FreightFloorRecord, rate_table: RateTable) -> FloorResult:
    """ANTT minimum price for all vehicles of a freight.

    ``per_vehicle = round2(rate_per_km * distance_km + fixed_charge)`` and
    ``total = round2(per_vehicle * max(1, required_trucks))``. Pure; nothing
    is persisted here.
    """
    missing = check_floor_preconditions(record)
    if missing is not None:
        return missing
    distance_km = float(record.distance_km or 0.0)

    category = map_cargo_to_category(record.cargo_type_code)
    table_type = derive_table_type(record.vehicle_ownership, record.is_high_performance_vehicle)
    axles_assumed = record.required_axles is None
    axle_count = settings.default_axle_count if record.required_axles is None else record.required_axles

    lookup = rate_table.lookup(table_type, category, axle_count)
    if lookup is None:
        return FloorError(
            reason_code="rate_not_found",
            message=f"rate not found for {axle_count} axles, table {table_type.value}",
        )

    trucks = max(1, record.required_trucks)
    distance = Decimal(str(distance_km))
    per_vehicle = round2(lookup.entry.rate_per_km * distance + lookup.entry.fixed_charge)
    total = round2(per_vehicle * trucks)

    return FloorValue(
        value=float(total),
        per_vehicle=float(per_vehicle),
        category=category,
        table_type=table_type,
        axle_count=axle_count,
        axles_assumed=axles_assumed,
        used_fallback=lookup.used_fallback,
        rate_per_km=lookup.entry.rate_per_km,
        fixed_charge=lookup.entry.fixed_charge,
        distance_km=distance_km,
        required_trucks=trucks,
    )
