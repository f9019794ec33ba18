"""Load MarketPoll settings from a TOML file."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from marketpoll.domain.ratings.elo import EloParameters
from marketpoll.domain.seeds.generator import GeneratorParameters, MatchupMode, normalize_matchup_modes

ROOT_DIR = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_PATH = ROOT_DIR / "configs" / "marketpoll.toml"
MATCHUP_MODES_ENV = "MARKETPOLL_MATCHUP_MODES"


@dataclass(frozen=True)
class CatalogConfig:
    seed_path: Path = ROOT_DIR / "data" / "marketpoll_seeds.csv"
    seed_version: str = "v1"
    cursor_source: str = "web_bootstrap_seed_version"
    seed_source_label: str = "marketpoll_seeds.csv"
    managed_key_prefix: str = "Golden"
    matchup_modes: tuple[MatchupMode, ...] = tuple(MatchupMode)
    min_assets: int = 50
    min_pairs: int = 100

    @property
    def fallback_version(self) -> str:
        return f"{self.seed_version}:fallback"


@dataclass(frozen=True)
class SelectorConfig:
    featured_weight: int = 2
    recent_exclude_limit: int = 20


@dataclass(frozen=True)
class RatingConfig:
    parameters: EloParameters = field(default_factory=EloParameters)
    min_votes: int = 1


@dataclass(frozen=True)
class VoteConfig:
    max_retries: int = 3
    base_delay_seconds: float = 0.025
    max_delay_seconds: float = 0.25


@dataclass(frozen=True)
class MarketPollConfig:
    file_path: Path | None = None
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    generator: GeneratorParameters = field(default_factory=GeneratorParameters)
    selector: SelectorConfig = field(default_factory=SelectorConfig)
    rating: RatingConfig = field(default_factory=RatingConfig)
    votes: VoteConfig = field(default_factory=VoteConfig)

    def with_matchup_modes(self, raw: str | None) -> MarketPollConfig:
        """Return a copy whose catalog uses ``raw`` modes (ignored when blank)."""
        if raw is None or not raw.strip():
            return self
        modes = tuple(normalize_matchup_modes(raw))
        return replace(self, catalog=replace(self.catalog, matchup_modes=modes))


def load_config(config_path: Path | None = None, *, environ: dict[str, str] | None = None) -> MarketPollConfig:
    """Load and validate a config file; a missing default file yields built-in defaults."""
    env = os.environ if environ is None else environ
    path = config_path or DEFAULT_CONFIG_PATH

    if config_path is not None and not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw: dict[str, Any] = {}
    if path.exists():
        if not path.is_file():
            raise IsADirectoryError(f"Config path is not a file: {path}")
        with path.open("rb") as file:
            raw = tomllib.load(file)

    config = _parse_config(raw, path)
    return config.with_matchup_modes(env.get(MATCHUP_MODES_ENV))


def _parse_config(raw: dict[str, Any], file_path: Path) -> MarketPollConfig:
    catalog_raw = raw.get("catalog", {})
    generator_raw = raw.get("generator", {})
    selector_raw = raw.get("selector", {})
    rating_raw = raw.get("rating", {})
    votes_raw = raw.get("votes", {})

    defaults = CatalogConfig()
    seed_path = Path(str(catalog_raw.get("seed_path", defaults.seed_path)))
    if not seed_path.is_absolute():
        seed_path = (file_path.parent / seed_path).resolve()

    seed_version = str(catalog_raw.get("seed_version", defaults.seed_version)).strip()
    if not seed_version:
        raise ValueError(f"{file_path}: [catalog].seed_version is required")

    modes_raw = catalog_raw.get("matchup_modes")
    catalog = CatalogConfig(
        seed_path=seed_path,
        seed_version=seed_version,
        cursor_source=str(catalog_raw.get("cursor_source", defaults.cursor_source)),
        seed_source_label=str(catalog_raw.get("seed_source_label", seed_path.name)),
        managed_key_prefix=str(catalog_raw.get("managed_key_prefix", defaults.managed_key_prefix)),
        matchup_modes=tuple(normalize_matchup_modes(modes_raw)),
        min_assets=int(catalog_raw.get("min_assets", defaults.min_assets)),
        min_pairs=int(catalog_raw.get("min_pairs", defaults.min_pairs)),
    )

    generator_defaults = GeneratorParameters()
    generator = GeneratorParameters(
        neighbor_window=int(generator_raw.get("neighbor_window", generator_defaults.neighbor_window)),
        min_pairs_per_asset=int(
            generator_raw.get("min_pairs_per_asset", generator_defaults.min_pairs_per_asset)
        ),
        max_pairs_one_vs_one=int(
            generator_raw.get("max_pairs_one_vs_one", generator_defaults.max_pairs_one_vs_one)
        ),
        max_pairs_per_multi_mode=int(
            generator_raw.get("max_pairs_per_multi_mode", generator_defaults.max_pairs_per_multi_mode)
        ),
        max_multi_attempts=int(
            generator_raw.get("max_multi_attempts", generator_defaults.max_multi_attempts)
        ),
        max_asset_tier_spread=int(
            generator_raw.get("max_asset_tier_spread", generator_defaults.max_asset_tier_spread)
        ),
        featured_pair_count=int(
            generator_raw.get("featured_pair_count", generator_defaults.featured_pair_count)
        ),
    )

    selector = SelectorConfig(
        featured_weight=int(selector_raw.get("featured_weight", 2)),
        recent_exclude_limit=int(selector_raw.get("recent_exclude_limit", 20)),
    )

    elo_defaults = EloParameters()
    rating = RatingConfig(
        parameters=EloParameters(
            initial_elo=float(rating_raw.get("initial_elo", elo_defaults.initial_elo)),
            base_k_factor=float(rating_raw.get("base_k_factor", elo_defaults.base_k_factor)),
            max_k_multiplier=float(rating_raw.get("max_k_multiplier", elo_defaults.max_k_multiplier)),
            k_ramp_votes=float(rating_raw.get("k_ramp_votes", elo_defaults.k_ramp_votes)),
            scale_factor=float(rating_raw.get("scale_factor", elo_defaults.scale_factor)),
            rounding_digits=int(rating_raw.get("rounding_digits", elo_defaults.rounding_digits)),
        ),
        min_votes=int(rating_raw.get("min_votes", 1)),
    )

    votes = VoteConfig(
        max_retries=int(votes_raw.get("max_retries", 3)),
        base_delay_seconds=float(votes_raw.get("base_delay_seconds", 0.025)),
        max_delay_seconds=float(votes_raw.get("max_delay_seconds", 0.25)),
    )

    config = MarketPollConfig(
        file_path=file_path,
        catalog=catalog,
        generator=generator,
        selector=selector,
        rating=rating,
        votes=votes,
    )
    _validate_config(file_path=file_path, config=config)
    return config


def _validate_config(*, file_path: Path, config: MarketPollConfig) -> None:
    if not config.catalog.cursor_source.strip():
        raise ValueError(f"{file_path}: [catalog].cursor_source must not be empty")
    if config.catalog.min_assets < 0:
        raise ValueError(f"{file_path}: [catalog].min_assets must be >= 0")
    if config.catalog.min_pairs < 0:
        raise ValueError(f"{file_path}: [catalog].min_pairs must be >= 0")

    generator = config.generator
    if generator.neighbor_window <= 0:
        raise ValueError(f"{file_path}: [generator].neighbor_window must be > 0")
    if generator.min_pairs_per_asset < 0:
        raise ValueError(f"{file_path}: [generator].min_pairs_per_asset must be >= 0")
    if generator.max_pairs_one_vs_one <= 0:
        raise ValueError(f"{file_path}: [generator].max_pairs_one_vs_one must be > 0")
    if generator.max_pairs_per_multi_mode <= 0:
        raise ValueError(f"{file_path}: [generator].max_pairs_per_multi_mode must be > 0")
    if generator.max_multi_attempts <= 0:
        raise ValueError(f"{file_path}: [generator].max_multi_attempts must be > 0")
    if generator.max_asset_tier_spread < 0:
        raise ValueError(f"{file_path}: [generator].max_asset_tier_spread must be >= 0")
    if generator.featured_pair_count < 0:
        raise ValueError(f"{file_path}: [generator].featured_pair_count must be >= 0")

    if config.selector.featured_weight < 1:
        raise ValueError(f"{file_path}: [selector].featured_weight must be >= 1")
    if config.selector.recent_exclude_limit < 0:
        raise ValueError(f"{file_path}: [selector].recent_exclude_limit must be >= 0")

    parameters = config.rating.parameters
    if parameters.initial_elo <= 0.0:
        raise ValueError(f"{file_path}: [rating].initial_elo must be > 0")
    if parameters.base_k_factor <= 0.0:
        raise ValueError(f"{file_path}: [rating].base_k_factor must be > 0")
    if parameters.max_k_multiplier <= 0.0:
        raise ValueError(f"{file_path}: [rating].max_k_multiplier must be > 0")
    if parameters.k_ramp_votes <= 0.0:
        raise ValueError(f"{file_path}: [rating].k_ramp_votes must be > 0")
    if parameters.scale_factor <= 0.0:
        raise ValueError(f"{file_path}: [rating].scale_factor must be > 0")
    if parameters.rounding_digits < 0:
        raise ValueError(f"{file_path}: [rating].rounding_digits must be >= 0")
    if config.rating.min_votes < 1:
        raise ValueError(f"{file_path}: [rating].min_votes must be >= 1")

    if config.votes.max_retries < 0:
        raise ValueError(f"{file_path}: [votes].max_retries must be >= 0")
    if config.votes.base_delay_seconds < 0.0:
        raise ValueError(f"{file_path}: [votes].base_delay_seconds must be >= 0")
    if config.votes.max_delay_seconds < config.votes.base_delay_seconds:
        raise ValueError(f"{file_path}: [votes].max_delay_seconds must be >= base_delay_seconds")


__all__ = [
    "CatalogConfig",
    "DEFAULT_CONFIG_PATH",
    "MATCHUP_MODES_ENV",
    "MarketPollConfig",
    "RatingConfig",
    "SelectorConfig",
    "VoteConfig",
    "load_config",
]
