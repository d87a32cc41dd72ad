from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .antt_categories import CargoCategory, parse_category

VehicleOwnership = Literal["OWN", "THIRD_PARTY"]
AuditStatus = Literal["updated", "failed", "skipped"]

_OWN_ALIASES = frozenset({"OWN", "PROPRIO", "PROPRIA", "PRÓPRIO", "PRÓPRIA"})


class TableType(str, Enum):
    """ANTT rate tables: ownership x performance classification."""

    A = "A"  # own vehicle, standard
    B = "B"  # third-party vehicle, standard
    C = "C"  # own vehicle, high performance
    D = "D"  # third-party vehicle, high performance


def _finite_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out


def _truck_count(value: Any) -> int:
    number = _finite_or_none(value)
    if number is None or number < 1:
        return 1
    return int(number)


def _apply_legacy_aliases(data: dict[str, Any], aliases: dict[str, tuple[str, ...]]) -> dict[str, Any]:
    # Canonical keys always win over legacy ones.
    for field, legacy_keys in aliases.items():
        if field in data:
            continue
        for key in legacy_keys:
            if key in data:
                data[field] = data[key]
                break
    return data


class FreightPricingInput(BaseModel):
    """Raw pricing fields of a freight as stored upstream.

    No field implies a unit on its own; ``pricing_mode`` alone decides how the
    numbers are read.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    pricing_mode: str | None = None
    price: float | None = None
    price_per_km: float | None = None
    price_per_ton: float | None = None
    required_trucks: int = 1
    weight_kg: float | None = None
    distance_km: float | None = None

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_aliases(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        return _apply_legacy_aliases(
            dict(value),
            {
                "pricing_mode": ("pricing_type", "pricingMode"),
                "price_per_km": ("pricePerKm",),
                "price_per_ton": ("pricePerTon",),
                "required_trucks": ("requiredTrucks",),
                "weight_kg": ("weight", "weightKg"),
                "distance_km": ("distanceKm",),
            },
        )

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        if value is None:
            raise ValueError("freight id is required")
        return str(value)

    @field_validator("pricing_mode", mode="before")
    @classmethod
    def _raw_mode(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("price", "price_per_km", "price_per_ton", "weight_kg", "distance_km", mode="before")
    @classmethod
    def _lenient_number(cls, value: Any) -> float | None:
        return _finite_or_none(value)

    @field_validator("required_trucks", mode="before")
    @classmethod
    def _lenient_trucks(cls, value: Any) -> int:
        return _truck_count(value)


class FreightFloorRecord(BaseModel):
    """Subset of a freight row needed to compute its ANTT floor."""

    model_config = ConfigDict(frozen=True)

    id: str
    cargo_type_code: str | None = None
    distance_km: float | None = None
    required_axles: int | None = None
    is_high_performance_vehicle: bool = False
    vehicle_ownership: VehicleOwnership = "THIRD_PARTY"
    required_trucks: int = 1
    minimum_regulatory_price: float | None = None

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_aliases(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        return _apply_legacy_aliases(
            dict(value),
            {
                "cargo_type_code": ("cargo_type",),
                "required_axles": ("vehicle_axles_required", "axles"),
                "is_high_performance_vehicle": ("high_performance",),
                "minimum_regulatory_price": ("minimum_antt_price",),
            },
        )

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            raise ValueError("freight id is required")
        return str(value).strip()

    @field_validator("cargo_type_code", mode="before")
    @classmethod
    def _blank_cargo_is_missing(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("distance_km", "minimum_regulatory_price", mode="before")
    @classmethod
    def _lenient_number(cls, value: Any) -> float | None:
        return _finite_or_none(value)

    @field_validator("required_axles", mode="before")
    @classmethod
    def _lenient_axles(cls, value: Any) -> int | None:
        number = _finite_or_none(value)
        if number is None or number < 1:
            return None
        return int(number)

    @field_validator("is_high_performance_vehicle", mode="before")
    @classmethod
    def _missing_flag_is_false(cls, value: Any) -> Any:
        if value is None:
            return False
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "t", "yes", "sim"}
        return value

    @field_validator("vehicle_ownership", mode="before")
    @classmethod
    def _normalize_ownership(cls, value: Any) -> str:
        text = str(value or "").strip().upper()
        return "OWN" if text in _OWN_ALIASES else "THIRD_PARTY"

    @field_validator("required_trucks", mode="before")
    @classmethod
    def _lenient_trucks(cls, value: Any) -> int:
        return _truck_count(value)


class RegulatoryRateEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    table_type: TableType
    cargo_category: CargoCategory
    axle_count: int = Field(..., ge=2, le=9)
    rate_per_km: Decimal = Field(..., ge=0)
    fixed_charge: Decimal = Field(..., ge=0)

    @field_validator("table_type", mode="before")
    @classmethod
    def _upper_table(cls, value: Any) -> Any:
        return str(value or "").strip().upper()

    @field_validator("cargo_category", mode="before")
    @classmethod
    def _category(cls, value: Any) -> CargoCategory:
        return parse_category(value)

    @field_validator("rate_per_km", "fixed_charge", mode="before")
    @classmethod
    def _exact_decimal(cls, value: Any) -> Decimal:
        # Floats go through str() so 4.1 stays 4.1 rather than its binary expansion.
        if isinstance(value, bool):
            raise ValueError("rate values must be numeric")
        try:
            out = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"invalid rate value '{value}'") from e
        if not out.is_finite():
            raise ValueError("rate values must be finite")
        return out

    @property
    def key(self) -> tuple[TableType, CargoCategory, int]:
        return (self.table_type, self.cargo_category, self.axle_count)


class FloorCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    table_type: str
    axle_count: int
    axles_assumed: bool
    used_fallback: bool
    distance_km: float
    required_trucks: int
    rate_per_km: float
    fixed_charge: float
    per_vehicle: float


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_id: str
    status: AuditStatus
    reason_code: str | None = None
    reason: str | None = None
    computed_value: float | None = None
    calculation: FloorCalculation | None = None


class RunReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_id: str
    started_at: datetime
    finished_at: datetime
    aborted: bool = False
    total: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    entries: tuple[AuditEntry, ...] = ()

    @model_validator(mode="after")
    def _counters_cover_every_entry(self) -> "RunReport":
        if self.updated + self.failed + self.skipped != self.total:
            raise ValueError("updated + failed + skipped must equal total")
        if len(self.entries) != self.total:
            raise ValueError("every record must have exactly one audit entry")
        return self

    @property
    def message(self) -> str:
        return (
            f"Recálculo concluído: {self.updated} atualizados, "
            f"{self.failed} falharam, {self.skipped} ignorados"
        )

    def entries_with_status(self, status: AuditStatus) -> list[AuditEntry]:
        return [entry for entry in self.entries if entry.status == status]
