"""Build compatibility-constrained matchup candidates from parsed seed assets."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from math import floor

from marketpoll.domain.pair_key import canonical_pair_key
from marketpoll.domain.seeds.parser import ParsedSeedAsset, tier_for_value

Rng = Callable[[], float]
RngFactory = Callable[[int], Rng]


class MatchupMode(str, Enum):
    ONE_VS_ONE = "1v1"
    ONE_VS_TWO = "1v2"
    TWO_VS_ONE = "2v1"
    TWO_VS_TWO = "2v2"

    @property
    def sizes(self) -> tuple[int, int]:
        match = re.match(r"^(\d+)v(\d+)$", self.value)
        if match is None:
            return 1, 1
        return int(match.group(1)), int(match.group(2))


ALL_MATCHUP_MODES: tuple[MatchupMode, ...] = tuple(MatchupMode)

PROMPT_TEMPLATES: tuple[str, ...] = (
    "Which one is better value at current rates?",
    "Which one is more likely to appreciate next?",
    "If you had to buy one now, which would you take?",
    "Which one has stronger market momentum?",
    "Which one feels underpriced right now?",
    "Which one would you hold for longer-term upside?",
)


@dataclass(frozen=True)
class GeneratorParameters:
    neighbor_window: int = 8
    min_pairs_per_asset: int = 2
    max_pairs_one_vs_one: int = 1600
    max_pairs_per_multi_mode: int = 500
    max_multi_attempts: int = 120_000
    max_asset_tier_spread: int = 3
    featured_pair_count: int = 180


@dataclass(frozen=True)
class Bundle:
    asset_keys: tuple[str, ...]
    min_value: float
    max_value: float
    mid_value: float
    tier_index: int
    assets: tuple[ParsedSeedAsset, ...]


@dataclass(frozen=True)
class CandidatePair:
    left_keys: tuple[str, ...]
    right_keys: tuple[str, ...]
    matchup_mode: MatchupMode
    pair_key: str
    closeness: float
    combined_mid: float


@dataclass(frozen=True)
class GeneratedPair:
    left_keys: tuple[str, ...]
    right_keys: tuple[str, ...]
    matchup_mode: MatchupMode
    pair_key: str
    prompt: str
    featured: bool


def string_hash(value: str) -> int:
    """31-multiplier rolling hash truncated to 32 bits."""
    hash_value = 0
    for char in value:
        hash_value = (hash_value * 31 + ord(char)) & 0xFFFFFFFF
    return hash_value


def create_seeded_rng(seed: int) -> Rng:
    """32-bit linear congruential generator yielding floats in ``[0, 1)``."""
    state = (seed & 0xFFFFFFFF) or 1

    def _next() -> float:
        nonlocal state
        state = (1664525 * state + 1013904223) & 0xFFFFFFFF
        return state / 4294967296

    return _next


def build_prompt(pair_key: str) -> str:
    return PROMPT_TEMPLATES[string_hash(pair_key) % len(PROMPT_TEMPLATES)]


def normalize_matchup_modes(raw: str | Iterable[str] | None) -> list[MatchupMode]:
    """Lower-case, de-duplicate and order modes; unknown values are dropped, empty means all."""
    if raw is None:
        values: list[str] = []
    elif isinstance(raw, str):
        values = [value for value in re.split(r"[,\s]+", raw) if value.strip()]
    else:
        values = [str(getattr(value, "value", value)) for value in raw]

    known = {mode.value: mode for mode in ALL_MATCHUP_MODES}
    selected = {known[value.strip().lower()] for value in values if value.strip().lower() in known}
    if not selected:
        return list(ALL_MATCHUP_MODES)
    return [mode for mode in ALL_MATCHUP_MODES if mode in selected]


def ranges_overlap(min_a: float, max_a: float, min_b: float, max_b: float) -> bool:
    return min(max_a, max_b) > max(min_a, min_b)


def is_bundle_compatible(left: Bundle, right: Bundle) -> bool:
    """Tiers may differ by one only when the numeric ranges overlap."""
    tier_diff = abs(left.tier_index - right.tier_index)
    if tier_diff > 1:
        return False
    if tier_diff == 1 and not ranges_overlap(
        left.min_value, left.max_value, right.min_value, right.max_value
    ):
        return False
    return True


def bundle_from_keys(keys: Iterable[str], by_key: dict[str, ParsedSeedAsset]) -> Bundle | None:
    ordered = sorted(set(keys))
    if not ordered:
        return None

    assets = [by_key[key] for key in ordered if key in by_key]
    if len(assets) != len(ordered):
        return None

    mid_value = sum(asset.mid_value for asset in assets)
    _, tier_index = tier_for_value(mid_value)
    return Bundle(
        asset_keys=tuple(ordered),
        min_value=sum(asset.min_value for asset in assets),
        max_value=sum(asset.max_value for asset in assets),
        mid_value=mid_value,
        tier_index=tier_index,
        assets=tuple(assets),
    )


def _closeness(left_mid: float, right_mid: float) -> float:
    return abs(left_mid - right_mid) / max(left_mid, right_mid, 1.0)


def _candidate_sort_key(candidate: CandidatePair) -> tuple[float, float]:
    return candidate.closeness, -candidate.combined_mid


def _candidate(left: Bundle, right: Bundle, mode: MatchupMode) -> CandidatePair:
    return CandidatePair(
        left_keys=left.asset_keys,
        right_keys=right.asset_keys,
        matchup_mode=mode,
        pair_key=canonical_pair_key(left.asset_keys, right.asset_keys),
        closeness=_closeness(left.mid_value, right.mid_value),
        combined_mid=left.mid_value + right.mid_value,
    )


def sample_unique_asset_keys(
    keys: Sequence[str],
    count: int,
    rng: Rng,
    blocked: set[str] | None = None,
) -> list[str] | None:
    """Draw ``count`` distinct keys not in ``blocked``; ``None`` when the pool is too small."""
    need = max(1, int(count))
    pool = [key for key in keys if not blocked or key not in blocked]
    if len(pool) < need:
        return None

    chosen: dict[str, None] = {}
    guard = 0
    while len(chosen) < need and guard < need * 30:
        index = floor(abs(rng()) * len(pool)) % len(pool)
        chosen[pool[index]] = None
        guard += 1

    if len(chosen) < need:
        for key in pool:
            chosen[key] = None
            if len(chosen) >= need:
                break

    return sorted(chosen)


def build_one_vs_one_candidates(
    assets: Sequence[ParsedSeedAsset],
    parameters: GeneratorParameters,
) -> list[CandidatePair]:
    """Pair each asset with its nearest neighbours by midpoint, then top up sparse assets."""
    ordered = sorted(assets, key=lambda asset: (asset.mid_value, asset.asset_key))
    seen: set[str] = set()
    counts: dict[str, int] = {}
    candidates: list[CandidatePair] = []
    cap = parameters.max_pairs_one_vs_one

    def add_candidate(first: ParsedSeedAsset, second: ParsedSeedAsset) -> None:
        by_key = {first.asset_key: first, second.asset_key: second}
        left = bundle_from_keys([first.asset_key], by_key)
        right = bundle_from_keys([second.asset_key], by_key)
        if left is None or right is None or left.asset_keys == right.asset_keys:
            return
        if not is_bundle_compatible(left, right):
            return

        candidate = _candidate(left, right, MatchupMode.ONE_VS_ONE)
        if candidate.pair_key in seen:
            return
        seen.add(candidate.pair_key)
        candidates.append(candidate)
        counts[first.asset_key] = counts.get(first.asset_key, 0) + 1
        counts[second.asset_key] = counts.get(second.asset_key, 0) + 1

    for index, asset in enumerate(ordered):
        upper = min(len(ordered), index + parameters.neighbor_window + 1)
        for other_index in range(index + 1, upper):
            if len(candidates) >= cap:
                break
            add_candidate(asset, ordered[other_index])
        if len(candidates) >= cap:
            break

    minimum = parameters.min_pairs_per_asset
    for index, asset in enumerate(ordered):
        if counts.get(asset.asset_key, 0) >= minimum:
            continue

        for delta in range(1, len(ordered)):
            if len(candidates) >= cap:
                break
            left_index = index - delta
            right_index = index + delta

            if left_index >= 0:
                add_candidate(asset, ordered[left_index])
            if counts.get(asset.asset_key, 0) >= minimum:
                break
            if right_index < len(ordered):
                add_candidate(asset, ordered[right_index])
            if counts.get(asset.asset_key, 0) >= minimum:
                break

            if left_index < 0 and right_index >= len(ordered):
                break

    candidates.sort(key=_candidate_sort_key)
    return candidates[:cap]


def build_multi_mode_candidates(
    assets: Sequence[ParsedSeedAsset],
    mode: MatchupMode,
    parameters: GeneratorParameters,
    rng_factory: RngFactory = create_seeded_rng,
) -> list[CandidatePair]:
    """Sample disjoint bundles with a deterministic seeded RNG until the mode cap is reached."""
    by_key = {asset.asset_key: asset for asset in assets}
    all_keys = list(by_key)
    left_size, right_size = mode.sizes
    target = parameters.max_pairs_per_multi_mode
    rng = rng_factory(string_hash(f"{mode.value}:{'|'.join(all_keys)}"))

    seen: set[str] = set()
    out: list[CandidatePair] = []
    for _ in range(parameters.max_multi_attempts):
        if len(out) >= target:
            break

        left_keys = sample_unique_asset_keys(all_keys, left_size, rng)
        if left_keys is None:
            continue
        right_keys = sample_unique_asset_keys(all_keys, right_size, rng, blocked=set(left_keys))
        if right_keys is None:
            continue

        left = bundle_from_keys(left_keys, by_key)
        right = bundle_from_keys(right_keys, by_key)
        if left is None or right is None:
            continue

        tier_indexes = [asset.tier_index for asset in (*left.assets, *right.assets)]
        if len(tier_indexes) >= 2:
            if max(tier_indexes) - min(tier_indexes) > parameters.max_asset_tier_spread:
                continue

        if not is_bundle_compatible(left, right):
            continue

        candidate = _candidate(left, right, mode)
        if candidate.pair_key in seen:
            continue
        seen.add(candidate.pair_key)
        out.append(candidate)

    out.sort(key=_candidate_sort_key)
    return out[:target]


def generate_pairs(
    assets: Sequence[ParsedSeedAsset],
    matchup_modes: Iterable[str] | None,
    parameters: GeneratorParameters | None = None,
    rng_factory: RngFactory = create_seeded_rng,
) -> list[GeneratedPair]:
    """Merge candidates across modes, rank by closeness and flag the closest as featured."""
    params = parameters or GeneratorParameters()
    modes = normalize_matchup_modes(matchup_modes)
    deduped: dict[str, CandidatePair] = {}

    if MatchupMode.ONE_VS_ONE in modes:
        for candidate in build_one_vs_one_candidates(assets, params):
            deduped[candidate.pair_key] = candidate

    for mode in modes:
        if mode is MatchupMode.ONE_VS_ONE:
            continue
        for candidate in build_multi_mode_candidates(assets, mode, params, rng_factory):
            deduped.setdefault(candidate.pair_key, candidate)

    candidates = sorted(deduped.values(), key=_candidate_sort_key)
    featured_keys = {
        candidate.pair_key for candidate in candidates[: params.featured_pair_count]
    }

    return [
        GeneratedPair(
            left_keys=candidate.left_keys,
            right_keys=candidate.right_keys,
            matchup_mode=candidate.matchup_mode,
            pair_key=candidate.pair_key,
            prompt=build_prompt(candidate.pair_key),
            featured=candidate.pair_key in featured_keys,
        )
        for candidate in candidates
    ]


__all__ = [
    "ALL_MATCHUP_MODES",
    "Bundle",
    "CandidatePair",
    "GeneratedPair",
    "GeneratorParameters",
    "MatchupMode",
    "PROMPT_TEMPLATES",
    "RngFactory",
    "build_multi_mode_candidates",
    "build_one_vs_one_candidates",
    "build_prompt",
    "bundle_from_keys",
    "create_seeded_rng",
    "generate_pairs",
    "is_bundle_compatible",
    "normalize_matchup_modes",
    "sample_unique_asset_keys",
    "string_hash",
]
