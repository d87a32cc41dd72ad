from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Literal, Union

from .display_cache import DISPLAY_CACHE, PriceDisplayCache
from .logging_utils import log_event
from .models import FreightPricingInput
from .pricing_mode import PricingMode, resolve_mode

PriceUnit = Literal["ton", "km", "vehicle", "none"]

UNAVAILABLE_LABEL = "Preço indisponível"


@dataclass(frozen=True)
class CanonicalPriceResult:
    primary_label: str
    suffix: str
    unit: PriceUnit
    # Always "per one unit"; callers sort/compare on this, never on labels.
    unit_value: float
    secondary_label: str | None
    is_invalid: bool
    pricing_mode: PricingMode
    invalid_reason: str | None = None


# Pricing terms: one variant per mode, carrying only the fields that mode reads.


@dataclass(frozen=True)
class FixedTerms:
    price: float
    required_trucks: int


@dataclass(frozen=True)
class PerKmTerms:
    rate: float
    distance_km: float | None
    required_trucks: int


@dataclass(frozen=True)
class PerTonTerms:
    rate: float
    weight_kg: float | None
    required_trucks: int


@dataclass(frozen=True)
class InvalidTerms:
    mode: PricingMode
    reason: str


PricingTerms = Union[FixedTerms, PerKmTerms, PerTonTerms, InvalidTerms]


def format_brl(value: float) -> str:
    """``4500.0`` -> ``"R$ 4.500,00"`` (pt-BR separators)."""
    text = f"{value:,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def _positive(value: float | None) -> float | None:
    if value is None or not math.isfinite(value) or value <= 0:
        return None
    return value


def pricing_terms(freight: FreightPricingInput) -> PricingTerms:
    mode = resolve_mode(freight.pricing_mode)
    trucks = max(1, int(freight.required_trucks))

    if mode is PricingMode.PER_TON:
        # price_per_km doubles as the per-ton rate on legacy rows.
        rate = _positive(freight.price_per_ton) or _positive(freight.price_per_km)
        if rate is None:
            return InvalidTerms(mode=mode, reason="unit_value_missing")
        return PerTonTerms(rate=rate, weight_kg=_positive(freight.weight_kg), required_trucks=trucks)

    if mode is PricingMode.PER_KM:
        rate = _positive(freight.price_per_km)
        if rate is None:
            return InvalidTerms(mode=mode, reason="unit_value_missing")
        return PerKmTerms(rate=rate, distance_km=_positive(freight.distance_km), required_trucks=trucks)

    if mode is PricingMode.FIXED:
        price = _positive(freight.price)
        if price is None:
            return InvalidTerms(mode=mode, reason="unit_value_missing")
        return FixedTerms(price=price, required_trucks=trucks)

    return InvalidTerms(mode=PricingMode.INVALID, reason="pricing_mode_invalid")


def _vehicles_label(count: int) -> str:
    return f"{count} vehicles"


def _join_context(parts: list[str]) -> str | None:
    return " · ".join(parts) if parts else None


def _render(terms: PricingTerms) -> CanonicalPriceResult:
    if isinstance(terms, PerTonTerms):
        # required_trucks must never reach the unit value here.
        context: list[str] = []
        if terms.weight_kg is not None:
            context.append(f"{terms.weight_kg / 1000:.1f} ton")
        if terms.required_trucks > 1:
            context.append(_vehicles_label(terms.required_trucks))
        return CanonicalPriceResult(
            primary_label=f"{format_brl(terms.rate)}/ton",
            suffix="/ton",
            unit="ton",
            unit_value=terms.rate,
            secondary_label=_join_context(context),
            is_invalid=False,
            pricing_mode=PricingMode.PER_TON,
        )

    if isinstance(terms, PerKmTerms):
        context = []
        if terms.distance_km is not None:
            context.append(f"{math.floor(terms.distance_km + 0.5)} km")
        if terms.required_trucks > 1:
            context.append(_vehicles_label(terms.required_trucks))
        return CanonicalPriceResult(
            primary_label=f"{format_brl(terms.rate)}/km",
            suffix="/km",
            unit="km",
            unit_value=terms.rate,
            secondary_label=_join_context(context),
            is_invalid=False,
            pricing_mode=PricingMode.PER_KM,
        )

    if isinstance(terms, FixedTerms):
        if terms.required_trucks > 1:
            per_vehicle = terms.price / terms.required_trucks
            return CanonicalPriceResult(
                primary_label=f"{format_brl(per_vehicle)}/vehicle",
                suffix="/vehicle",
                unit="vehicle",
                unit_value=per_vehicle,
                secondary_label=_vehicles_label(terms.required_trucks),
                is_invalid=False,
                pricing_mode=PricingMode.FIXED,
            )
        return CanonicalPriceResult(
            primary_label=format_brl(terms.price),
            suffix="",
            unit="vehicle",
            unit_value=terms.price,
            secondary_label=None,
            is_invalid=False,
            pricing_mode=PricingMode.FIXED,
        )

    return CanonicalPriceResult(
        primary_label=UNAVAILABLE_LABEL,
        suffix="",
        unit="none",
        unit_value=0.0,
        secondary_label=None,
        is_invalid=True,
        pricing_mode=terms.mode,
        invalid_reason=terms.reason,
    )


def compute_canonical_price(
    freight: FreightPricingInput,
    *,
    cache: PriceDisplayCache | None = None,
    unit_only: bool = False,
) -> CanonicalPriceResult:
    """Canonical display value and unit for one freight.

    Never raises for bad pricing data: every failure is an ``is_invalid``
    result. A cached result for the same freight id is returned untouched
    until the cache entry is invalidated. ``unit_only`` drops the secondary
    context line and leaves the primary label unchanged.
    """
    store = DISPLAY_CACHE if cache is None else cache
    key = (freight.id, unit_only)
    cached = store.get(key)
    if cached is not None:
        return cached

    terms = pricing_terms(freight)
    result = _render(terms)
    if isinstance(terms, InvalidTerms):
        log_event(
            "price_display_invalid",
            level=logging.WARNING,
            freight_id=freight.id,
            pricing_mode=freight.pricing_mode,
            reason_code=terms.reason,
        )
    if unit_only and result.secondary_label is not None:
        result = replace(result, secondary_label=None)

    store.put(key, result)
    return result


def canonical_price_for(
    freight_id: Any,
    fields: Mapping[str, Any],
    *,
    cache: PriceDisplayCache | None = None,
    unit_only: bool = False,
) -> CanonicalPriceResult:
    """Same as ``compute_canonical_price`` for a raw row (legacy column names accepted).

    The id is the cache key and must be present: a ``None`` id raises
    ``pydantic.ValidationError``. Bad pricing fields still give an invalid result.
    """
    freight = FreightPricingInput.model_validate({**dict(fields), "id": freight_id})
    return compute_canonical_price(freight, cache=cache, unit_only=unit_only)
