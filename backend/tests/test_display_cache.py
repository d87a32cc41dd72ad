from __future__ import annotations

from freight_pricing import display_cache
from freight_pricing.display_cache import DisplayCacheStore, NullDisplayCache
from freight_pricing.models import FreightPricingInput
from freight_pricing.price_display import compute_canonical_price


def _per_ton(freight_id: str) -> FreightPricingInput:
    return FreightPricingInput(id=freight_id, pricing_mode="PER_TON", price_per_km=80, price=40000, required_trucks=12)


def test_repeated_calls_return_the_same_cached_object() -> None:
    cache = DisplayCacheStore()
    r1 = compute_canonical_price(_per_ton("cache-1"), cache=cache)
    r2 = compute_canonical_price(_per_ton("cache-1"), cache=cache)

    assert r1 is r2
    stats = cache.snapshot()
    assert stats["size"] == 1
    assert stats["hits"] == 1
    assert stats["misses"] == 1


def test_invalidate_single_id_recomputes_equal_content_with_new_reference() -> None:
    cache = DisplayCacheStore()
    freight = FreightPricingInput(id="cache-clear", pricing_mode="FIXED", price=5000, required_trucks=1)
    other = compute_canonical_price(_per_ton("cache-other"), cache=cache)

    r1 = compute_canonical_price(freight, cache=cache)
    assert cache.invalidate("cache-clear") == 1
    r2 = compute_canonical_price(freight, cache=cache)

    assert r1 is not r2
    assert r1 == r2
    assert r1.primary_label == r2.primary_label == "R$ 5.000,00"
    assert compute_canonical_price(_per_ton("cache-other"), cache=cache) is other


def test_invalidate_without_argument_clears_everything() -> None:
    cache = DisplayCacheStore()
    a = compute_canonical_price(_per_ton("a"), cache=cache)
    compute_canonical_price(_per_ton("b"), cache=cache, unit_only=True)

    assert cache.invalidate() == 2
    assert cache.snapshot()["size"] == 0
    assert compute_canonical_price(_per_ton("a"), cache=cache) is not a


def test_invalidate_id_drops_unit_only_variant_too() -> None:
    cache = DisplayCacheStore()
    compute_canonical_price(_per_ton("v"), cache=cache)
    compute_canonical_price(_per_ton("v"), cache=cache, unit_only=True)
    compute_canonical_price(_per_ton("v2"), cache=cache)

    assert cache.invalidate("v") == 2
    assert cache.snapshot()["size"] == 1


def test_cached_result_wins_until_invalidated_even_if_input_changed() -> None:
    cache = DisplayCacheStore()
    first = compute_canonical_price(
        FreightPricingInput(id="stale", pricing_mode="PER_KM", price_per_km=3), cache=cache
    )
    changed = FreightPricingInput(id="stale", pricing_mode="PER_KM", price_per_km=5)

    assert compute_canonical_price(changed, cache=cache) is first
    cache.invalidate("stale")
    assert compute_canonical_price(changed, cache=cache).unit_value == 5


def test_null_cache_never_memoizes_but_values_match() -> None:
    cache = NullDisplayCache()
    r1 = compute_canonical_price(_per_ton("pure"), cache=cache)
    r2 = compute_canonical_price(_per_ton("pure"), cache=cache)

    assert r1 is not r2
    assert r1 == r2
    assert cache.invalidate() == 0


def test_module_level_cache_is_the_default() -> None:
    display_cache.invalidate_display_cache()
    r1 = compute_canonical_price(_per_ton("default-cache"))
    r2 = compute_canonical_price(_per_ton("default-cache"))

    assert r1 is r2
    assert display_cache.display_cache_stats()["size"] >= 1
    assert display_cache.invalidate_display_cache("default-cache") == 1


def test_invalidate_leaves_ids_sharing_a_prefix_alone() -> None:
    cache = DisplayCacheStore()
    compute_canonical_price(_per_ton("a"), cache=cache)
    piped = compute_canonical_price(_per_ton("a|b"), cache=cache)
    lookalike = compute_canonical_price(_per_ton("a|unit_only"), cache=cache)
    compute_canonical_price(_per_ton("a"), cache=cache, unit_only=True)

    assert cache.invalidate("a") == 2
    assert cache.get(("a|b", False)) is piped
    assert cache.get(("a|unit_only", False)) is lookalike
    assert cache.snapshot()["size"] == 2
