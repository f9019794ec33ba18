"""Tests for seed catalog assembly, validation and the version-keyed cache."""

from __future__ import annotations

import pytest

from marketpoll.domain.config import load_config
from marketpoll.domain.errors import SeedValidationError
from marketpoll.domain.seeds.catalog import (
    SeedCatalogCache,
    build_seed_asset_rows,
    file_seed_loader,
    parse_seed_catalog,
    validate_seed_catalog,
)
from marketpoll.domain.seeds.generator import MatchupMode

from conftest import SMALL_SEED, SMALL_SEED_ASSET_KEYS


def test_small_seed_catalog_has_every_one_vs_one_pair() -> None:
    catalog = parse_seed_catalog(SMALL_SEED, matchup_modes="1v1")
    assert catalog.errors == ()
    assert catalog.asset_keys == frozenset(SMALL_SEED_ASSET_KEYS)
    assert len(catalog.pairs) == 15
    assert catalog.matchup_modes == (MatchupMode.ONE_VS_ONE,)


def test_validation_rejects_parse_errors() -> None:
    catalog = parse_seed_catalog(SMALL_SEED + "GoldenBroken|M,oops\n", matchup_modes="1v1")
    with pytest.raises(SeedValidationError) as exc_info:
        validate_seed_catalog(catalog, min_assets=1, min_pairs=1)
    assert exc_info.value.errors == ["line 8: Invalid rate token: oops"]
    assert exc_info.value.asset_count == 6


def test_validation_rejects_small_catalogs() -> None:
    catalog = parse_seed_catalog(SMALL_SEED, matchup_modes="1v1")
    validate_seed_catalog(catalog, min_assets=6, min_pairs=15)
    with pytest.raises(SeedValidationError, match="assets=6, pairs=15"):
        validate_seed_catalog(catalog, min_assets=50, min_pairs=100)


def test_asset_rows_carry_range_metadata() -> None:
    catalog = parse_seed_catalog(SMALL_SEED, matchup_modes="1v1")
    rows = build_seed_asset_rows(catalog.assets, source="test_seed.csv")
    alpha = next(row for row in rows if row["key"] == "GoldenAlpha|M")
    assert alpha["label"] == "GoldenAlpha M"
    assert alpha["tier"] == "1-5kx"
    assert alpha["active"] is True
    assert alpha["metadata_json"]["source"] == "test_seed.csv"
    assert alpha["metadata_json"]["seedRange"] == "1kx-1.5kx"
    assert alpha["metadata_json"]["midX"] == pytest.approx(1_250)
    assert alpha["metadata_json"]["tierIndex"] == 0


def test_cache_reuses_parse_for_same_version() -> None:
    loads: list[str] = []

    def loader() -> str:
        loads.append("read")
        return SMALL_SEED

    cache = SeedCatalogCache(matchup_modes="1v1")
    first = cache.get("v1", loader)
    second = cache.get("v1", loader)

    assert first is second
    assert loads == ["read"]
    assert cache.version == "v1"


def test_cache_reparses_on_new_version_or_invalidate() -> None:
    loads: list[str] = []

    def loader() -> str:
        loads.append("read")
        return SMALL_SEED

    cache = SeedCatalogCache(matchup_modes="1v1")
    cache.get("v1", loader)
    cache.get("v2", loader)
    cache.invalidate()
    assert cache.version is None
    cache.get("v2", loader)

    assert len(loads) == 3


def test_valid_pair_keys_is_empty_for_broken_seed() -> None:
    cache = SeedCatalogCache(matchup_modes="1v1")
    assert cache.valid_pair_keys("bad", lambda: "GoldenX|M,nope\n") == frozenset()
    assert len(cache.valid_pair_keys("good", lambda: SMALL_SEED)) == 15


def test_bundled_seed_file_parses_cleanly() -> None:
    config = load_config(environ={})
    catalog = parse_seed_catalog(
        file_seed_loader(config.catalog.seed_path)(),
        matchup_modes=config.catalog.matchup_modes,
        parameters=config.generator,
    )

    assert catalog.errors == ()
    assert len(catalog.assets) >= config.catalog.min_assets
    assert len(catalog.pairs) >= config.catalog.min_pairs
    assert all(key.startswith("Golden") for key in catalog.asset_keys)
    assert any(pair.matchup_mode is not MatchupMode.ONE_VS_ONE for pair in catalog.pairs)
    validate_seed_catalog(
        catalog,
        min_assets=config.catalog.min_assets,
        min_pairs=config.catalog.min_pairs,
    )
