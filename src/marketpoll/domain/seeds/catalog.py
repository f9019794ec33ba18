"""Seed catalog assembly, validation and a version-keyed parse cache."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from marketpoll.domain.errors import SeedValidationError
from marketpoll.domain.pair_key import label_from_asset_key
from marketpoll.domain.seeds.generator import (
    GeneratedPair,
    GeneratorParameters,
    MatchupMode,
    RngFactory,
    create_seeded_rng,
    generate_pairs,
    normalize_matchup_modes,
)
from marketpoll.domain.seeds.parser import ParsedSeedAsset, parse_seed_assets

SeedLoader = Callable[[], str]


@dataclass(frozen=True)
class ParsedSeedCatalog:
    assets: tuple[ParsedSeedAsset, ...]
    pairs: tuple[GeneratedPair, ...]
    errors: tuple[str, ...]
    matchup_modes: tuple[MatchupMode, ...]

    @property
    def pair_keys(self) -> frozenset[str]:
        return frozenset(pair.pair_key for pair in self.pairs)

    @property
    def asset_keys(self) -> frozenset[str]:
        return frozenset(asset.asset_key for asset in self.assets)


def parse_seed_catalog(
    csv_text: str,
    *,
    matchup_modes: Iterable[str] | str | None = None,
    parameters: GeneratorParameters | None = None,
    rng_factory: RngFactory = create_seeded_rng,
) -> ParsedSeedCatalog:
    """Parse assets and generate pairs; errors are collected, never raised."""
    assets, errors = parse_seed_assets(csv_text)
    modes = normalize_matchup_modes(matchup_modes)
    pairs = generate_pairs(assets, modes, parameters, rng_factory)
    return ParsedSeedCatalog(
        assets=tuple(assets),
        pairs=tuple(pairs),
        errors=tuple(errors),
        matchup_modes=tuple(modes),
    )


def validate_seed_catalog(catalog: ParsedSeedCatalog, *, min_assets: int, min_pairs: int) -> None:
    """Raise ``SeedValidationError`` unless the catalog is error-free and large enough."""
    if catalog.errors:
        head = "; ".join(catalog.errors[:5])
        raise SeedValidationError(
            f"Seed CSV parse errors ({len(catalog.errors)}): {head}",
            errors=catalog.errors,
            asset_count=len(catalog.assets),
            pair_count=len(catalog.pairs),
        )
    if len(catalog.assets) < min_assets or len(catalog.pairs) < min_pairs:
        raise SeedValidationError(
            "Seed CSV did not generate enough rows "
            f"(assets={len(catalog.assets)}, pairs={len(catalog.pairs)}).",
            asset_count=len(catalog.assets),
            pair_count=len(catalog.pairs),
        )


def build_seed_asset_rows(assets: Sequence[ParsedSeedAsset], *, source: str) -> list[dict[str, Any]]:
    """Insert payloads for the ``assets`` table."""
    return [
        {
            "key": asset.asset_key,
            "label": label_from_asset_key(asset.asset_key),
            "tier": asset.tier_id,
            "image_url": None,
            "active": True,
            "metadata_json": {
                "source": source,
                "seedRange": asset.seed_range_raw,
                "minX": asset.min_value,
                "maxX": asset.max_value,
                "midX": asset.mid_value,
                "tierIndex": asset.tier_index,
            },
        }
        for asset in assets
    ]


def file_seed_loader(path: Path) -> SeedLoader:
    def _load() -> str:
        return path.read_text(encoding="utf-8")

    return _load


class SeedCatalogCache:
    """Memoizes one parsed catalog per seed version.

    The synchronizer owns the instance and passes it to readers (for example
    the matchup selector) so they can reuse the parse instead of re-reading
    the seed file on every request.
    """

    def __init__(
        self,
        *,
        matchup_modes: Iterable[str] | str | None = None,
        parameters: GeneratorParameters | None = None,
        rng_factory: RngFactory = create_seeded_rng,
    ) -> None:
        self.matchup_modes = normalize_matchup_modes(matchup_modes)
        self.parameters = parameters or GeneratorParameters()
        self.rng_factory = rng_factory
        self._version: str | None = None
        self._catalog: ParsedSeedCatalog | None = None

    @property
    def version(self) -> str | None:
        return self._version

    def get(self, version: str, loader: SeedLoader) -> ParsedSeedCatalog:
        if self._catalog is not None and self._version == version:
            return self._catalog

        catalog = parse_seed_catalog(
            loader(),
            matchup_modes=self.matchup_modes,
            parameters=self.parameters,
            rng_factory=self.rng_factory,
        )
        self._version = version
        self._catalog = catalog
        return catalog

    def valid_pair_keys(self, version: str, loader: SeedLoader) -> frozenset[str]:
        """Pair keys of an error-free cached catalog; empty when the seed has errors."""
        catalog = self.get(version, loader)
        if catalog.errors or not catalog.pairs:
            return frozenset()
        return catalog.pair_keys

    def invalidate(self) -> None:
        self._version = None
        self._catalog = None


__all__ = [
    "ParsedSeedCatalog",
    "SeedCatalogCache",
    "SeedLoader",
    "build_seed_asset_rows",
    "file_seed_loader",
    "parse_seed_catalog",
    "validate_seed_catalog",
]
