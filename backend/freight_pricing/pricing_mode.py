from __future__ import annotations

import re
from enum import Enum
from typing import Any


class PricingMode(str, Enum):
    FIXED = "FIXED"
    PER_KM = "PER_KM"
    PER_TON = "PER_TON"
    # Sentinel for missing/unrecognised modes. Never persisted.
    INVALID = "INVALID"


# Legacy spellings seen in older freight rows and imports.
_MODE_ALIASES: dict[str, PricingMode] = {
    "FIXED": PricingMode.FIXED,
    "FIXO": PricingMode.FIXED,
    "VALOR_FIXO": PricingMode.FIXED,
    "PRECO_FIXO": PricingMode.FIXED,
    "PER_KM": PricingMode.PER_KM,
    "POR_KM": PricingMode.PER_KM,
    "KM": PricingMode.PER_KM,
    "PER_TON": PricingMode.PER_TON,
    "POR_TON": PricingMode.PER_TON,
    "POR_TONELADA": PricingMode.PER_TON,
    "TONELADA": PricingMode.PER_TON,
    "TON": PricingMode.PER_TON,
}

_SEPARATORS_RE = re.compile(r"[\s\-]+")


def _normalize_key(raw: str) -> str:
    return _SEPARATORS_RE.sub("_", raw.strip()).upper()


def resolve_mode(raw: Any) -> PricingMode:
    """Map a raw pricing-mode value onto one canonical mode.

    ``None``, empty strings, non-strings and unknown spellings all resolve to
    ``PricingMode.INVALID``; a mode is never inferred from other fields.
    """
    if isinstance(raw, PricingMode):
        return raw
    if not isinstance(raw, str):
        return PricingMode.INVALID
    key = _normalize_key(raw)
    if not key:
        return PricingMode.INVALID
    return _MODE_ALIASES.get(key, PricingMode.INVALID)
