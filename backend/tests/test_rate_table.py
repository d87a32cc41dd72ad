from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest

from freight_pricing import rate_table
from freight_pricing.antt_categories import CargoCategory
from freight_pricing.models import RegulatoryRateEntry, TableType
from freight_pricing.pricing_errors import PricingDataError
from freight_pricing.rate_table import (
    RateTable,
    clear_rate_table_cache,
    derive_table_type,
    load_rate_table,
)
from freight_pricing.settings import settings


def _entry(table: str, category: CargoCategory, axles: int, rate: str, fixed: str) -> RegulatoryRateEntry:
    return RegulatoryRateEntry(
        table_type=table,
        cargo_category=category,
        axle_count=axles,
        rate_per_km=Decimal(rate),
        fixed_charge=Decimal(fixed),
    )


def _table() -> RateTable:
    return RateTable(
        [
            _entry("A", CargoCategory.BULK_SOLID, 5, "6.1234", "650.71"),
            _entry("A", CargoCategory.GENERAL, 5, "5.8519", "540.37"),
            _entry("B", CargoCategory.GENERAL, 7, "6.0763", "541.50"),
        ],
        source="unit",
    )


@pytest.mark.parametrize(
    ("ownership", "high_performance", "expected"),
    [
        ("OWN", False, TableType.A),
        ("THIRD_PARTY", False, TableType.B),
        ("OWN", True, TableType.C),
        ("THIRD_PARTY", True, TableType.D),
    ],
)
def test_table_type_is_ownership_crossed_with_performance(ownership, high_performance, expected) -> None:
    assert derive_table_type(ownership, high_performance) is expected


def test_exact_match_is_not_a_fallback() -> None:
    hit = _table().lookup(TableType.A, CargoCategory.BULK_SOLID, 5)
    assert hit is not None
    assert hit.used_fallback is False
    assert hit.entry.rate_per_km == Decimal("6.1234")


def test_missing_category_falls_back_to_general_cargo_and_says_so() -> None:
    hit = _table().lookup(TableType.A, CargoCategory.HAZARDOUS_GENERAL, 5)
    assert hit is not None
    assert hit.used_fallback is True
    assert hit.requested_category is CargoCategory.HAZARDOUS_GENERAL
    assert hit.entry.cargo_category is CargoCategory.GENERAL
    assert hit.entry.fixed_charge == Decimal("540.37")


def test_fallback_keeps_table_type_and_axles() -> None:
    table = _table()
    assert table.lookup(TableType.B, CargoCategory.BULK_SOLID, 5) is None
    assert table.lookup(TableType.A, CargoCategory.BULK_SOLID, 7) is None
    assert table.lookup(TableType.A, CargoCategory.GENERAL, 9) is None


def test_duplicate_keys_are_rejected() -> None:
    with pytest.raises(PricingDataError) as exc:
        RateTable(
            [
                _entry("A", CargoCategory.GENERAL, 5, "1", "1"),
                _entry("A", CargoCategory.GENERAL, 5, "2", "2"),
            ]
        )
    assert exc.value.reason_code == "rate_table_invalid"


def test_load_rate_table_from_json_export(tmp_path: Path) -> None:
    path = tmp_path / "rates.json"
    path.write_text(
        json.dumps(
            {
                "source": "antt_export",
                "as_of": "2025-01-20",
                "rates": [
                    {"table_type": "a", "cargo_category": "Carga Geral", "axles": 5, "rate_per_km": "5.8519", "fixed_charge": "540.37"},
                    {"table_type": "D", "cargo_category": "Granel líquido", "axle_count": 9, "rate_per_km": 6.7, "fixed_charge": 580},
                ],
            }
        ),
        encoding="utf-8",
    )
    clear_rate_table_cache()
    table = load_rate_table(path)

    assert len(table) == 2
    assert table.source == "antt_export"
    assert table.as_of == "2025-01-20"
    assert table.get(TableType.D, CargoCategory.BULK_LIQUID, 9).rate_per_km == Decimal("6.7")
    assert load_rate_table(path) is table
    clear_rate_table_cache()


def test_load_rate_table_missing_file_is_unavailable(tmp_path: Path) -> None:
    clear_rate_table_cache()
    with pytest.raises(PricingDataError) as exc:
        load_rate_table(tmp_path / "nope.json")
    assert exc.value.reason_code == "rate_table_unavailable"


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        json.dumps([]),
        json.dumps({"rates": []}),
        json.dumps({"rates": ["row"]}),
        json.dumps({"rates": [{"table_type": "E", "cargo_category": "Carga Geral", "axles": 5, "rate_per_km": 1, "fixed_charge": 1}]}),
        json.dumps({"rates": [{"table_type": "A", "cargo_category": "Carga Geral", "axles": 5, "rate_per_km": "x", "fixed_charge": 1}]}),
    ],
)
def test_load_rate_table_invalid_payloads(tmp_path: Path, payload: str) -> None:
    path = tmp_path / "bad.json"
    path.write_text(payload, encoding="utf-8")
    clear_rate_table_cache()
    with pytest.raises(PricingDataError) as exc:
        load_rate_table(path)
    assert exc.value.reason_code == "rate_table_invalid"
    clear_rate_table_cache()


def test_bundled_sample_table_loads_from_settings() -> None:
    clear_rate_table_cache()
    table = load_rate_table()

    assert table.source == "antt_pisos_minimos_sample"
    assert len(table) == 4 * 4 * 7
    general = table.get(TableType.A, CargoCategory.GENERAL, 5)
    assert general is not None
    assert general.rate_per_km == Decimal("5.8519")
    assert general.fixed_charge == Decimal("540.37")
    # Hazardous cargo has no rows of its own in the sample.
    assert table.lookup(TableType.A, CargoCategory.HAZARDOUS_GENERAL, 5).used_fallback is True
    assert settings.rate_table_path.endswith("antt_rates_sample.json")


def test_rows_for_unmapped_categories_are_ignored_not_fatal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    events: list[tuple[str, dict]] = []
    monkeypatch.setattr(rate_table, "log_event", lambda event, **fields: events.append((event, fields)))
    path = tmp_path / "mixed.json"
    path.write_text(
        json.dumps(
            {
                "rates": [
                    {"table_type": "A", "cargo_category": "Carga Geral", "axles": 5, "rate_per_km": "5.8519", "fixed_charge": "540.37"},
                    {"table_type": "A", "cargo_category": "Frigorificada ou Aquecida", "axles": 5, "rate_per_km": "6.9", "fixed_charge": "600"},
                    {"table_type": "B", "cargo_category": "Conteinerizada", "axles": 3, "rate_per_km": "x", "fixed_charge": "1"},
                ]
            }
        ),
        encoding="utf-8",
    )
    clear_rate_table_cache()
    table = load_rate_table(path)

    assert len(table) == 1
    assert table.get(TableType.A, CargoCategory.GENERAL, 5).fixed_charge == Decimal("540.37")
    assert [e for e, _ in events] == ["rate_table_rows_ignored"]
    assert events[0][1]["categories"] == ["Conteinerizada", "Frigorificada ou Aquecida"]
    clear_rate_table_cache()


def test_table_with_only_unmapped_categories_is_invalid(tmp_path: Path) -> None:
    path = tmp_path / "reefer.json"
    path.write_text(
        json.dumps({"rates": [{"table_type": "A", "cargo_category": "Conteinerizada", "axles": 5, "rate_per_km": 1, "fixed_charge": 1}]}),
        encoding="utf-8",
    )
    clear_rate_table_cache()
    with pytest.raises(PricingDataError) as exc:
        load_rate_table(path)
    assert exc.value.reason_code == "rate_table_invalid"
    clear_rate_table_cache()
