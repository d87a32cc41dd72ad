from __future__ import annotations

from enum import Enum
from typing import Any


class CargoCategory(str, Enum):
    """ANTT cargo categories, valued with the labels used by the regulator's tables."""

    BULK_SOLID = "Granel sólido"
    BULK_LIQUID = "Granel líquido"
    NEO_BULK = "Neogranel"
    HAZARDOUS_GENERAL = "Perigosa (carga geral)"
    GENERAL = "Carga Geral"


CARGO_TO_CATEGORY: dict[str, CargoCategory] = {
    "graos_soja": CargoCategory.BULK_SOLID,
    "graos_milho": CargoCategory.BULK_SOLID,
    "graos_trigo": CargoCategory.BULK_SOLID,
    "graos_arroz": CargoCategory.BULK_SOLID,
    "adubo_fertilizante": CargoCategory.BULK_SOLID,
    "calcario": CargoCategory.BULK_SOLID,
    "farelo_soja": CargoCategory.BULK_SOLID,
    "acucar": CargoCategory.BULK_SOLID,
    "cafe": CargoCategory.BULK_SOLID,
    "sementes_bags": CargoCategory.NEO_BULK,
    "defensivos_agricolas": CargoCategory.HAZARDOUS_GENERAL,
    "combustivel": CargoCategory.BULK_LIQUID,
    "combustivel_diesel": CargoCategory.BULK_LIQUID,
    "racao_animal": CargoCategory.GENERAL,
    "fardos_algodao": CargoCategory.GENERAL,
    "algodao": CargoCategory.GENERAL,
    "gado_bovino": CargoCategory.GENERAL,
    "gado_leiteiro": CargoCategory.GENERAL,
    "suinos_porcos": CargoCategory.GENERAL,
    "maquinas_agricolas": CargoCategory.GENERAL,
    "equipamentos": CargoCategory.GENERAL,
    "madeira": CargoCategory.GENERAL,
    "celulose": CargoCategory.GENERAL,
    "frutas": CargoCategory.GENERAL,
    "hortifruti": CargoCategory.GENERAL,
    "carnes": CargoCategory.GENERAL,
    "laticinios": CargoCategory.GENERAL,
}


def map_cargo_to_category(cargo_type_code: Any) -> CargoCategory:
    # Codes absent from the table are general cargo.
    key = str(cargo_type_code or "").strip().lower()
    return CARGO_TO_CATEGORY.get(key, CargoCategory.GENERAL)


def parse_category(value: Any) -> CargoCategory:
    """Accept either the regulator label or the enum name (reference-data rows use both)."""
    if isinstance(value, CargoCategory):
        return value
    text = str(value or "").strip()
    for category in CargoCategory:
        if text == category.value or text.upper() == category.name:
            return category
    folded = text.casefold()
    for category in CargoCategory:
        if folded == category.value.casefold():
            return category
    raise ValueError(f"unknown cargo category '{text}'")
