"""Seed catalog parsing and matchup generation."""

from marketpoll.domain.seeds.catalog import (
    ParsedSeedCatalog,
    SeedCatalogCache,
    build_seed_asset_rows,
    parse_seed_catalog,
    validate_seed_catalog,
)
from marketpoll.domain.seeds.generator import GeneratedPair, GeneratorParameters, MatchupMode
from marketpoll.domain.seeds.parser import ParsedSeedAsset, parse_seed_assets

__all__ = [
    "GeneratedPair",
    "GeneratorParameters",
    "MatchupMode",
    "ParsedSeedAsset",
    "ParsedSeedCatalog",
    "SeedCatalogCache",
    "build_seed_asset_rows",
    "parse_seed_assets",
    "parse_seed_catalog",
    "validate_seed_catalog",
]
