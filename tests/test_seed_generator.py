"""Tests for matchup generation from parsed seed assets."""

from __future__ import annotations

from marketpoll.domain.pair_key import canonical_pair_key
from marketpoll.domain.seeds.generator import (
    PROMPT_TEMPLATES,
    GeneratorParameters,
    MatchupMode,
    build_prompt,
    create_seeded_rng,
    generate_pairs,
    normalize_matchup_modes,
    ranges_overlap,
    string_hash,
)
from marketpoll.domain.seeds.parser import parse_seed_assets


def _assets(csv_text: str):
    assets, errors = parse_seed_assets(csv_text)
    assert errors == []
    return assets


LADDER_SEED = "\n".join(
    f"GoldenMon{index:02d}|{'MF?'[index % 3]},{1.0 + index * 0.4:.1f}kx-{1.6 + index * 0.4:.1f}kx"
    for index in range(24)
)
QUICK_PARAMS = GeneratorParameters(max_pairs_per_multi_mode=40, max_multi_attempts=5_000)


def test_normalize_matchup_modes() -> None:
    assert normalize_matchup_modes(None) == list(MatchupMode)
    assert normalize_matchup_modes("2v2, 1V1 bogus") == [MatchupMode.ONE_VS_ONE, MatchupMode.TWO_VS_TWO]
    assert normalize_matchup_modes(["nope"]) == list(MatchupMode)
    assert normalize_matchup_modes([MatchupMode.ONE_VS_TWO]) == [MatchupMode.ONE_VS_TWO]


def test_mode_sizes() -> None:
    assert MatchupMode.ONE_VS_TWO.sizes == (1, 2)
    assert MatchupMode.TWO_VS_TWO.sizes == (2, 2)


def test_ranges_must_strictly_overlap() -> None:
    assert ranges_overlap(1, 5, 4, 9) is True
    assert ranges_overlap(1, 5, 5, 9) is False


def test_seeded_rng_is_deterministic_and_bounded() -> None:
    first = create_seeded_rng(string_hash("1v2:abc"))
    second = create_seeded_rng(string_hash("1v2:abc"))
    values = [first() for _ in range(50)]
    assert values == [second() for _ in range(50)]
    assert all(0.0 <= value < 1.0 for value in values)


def test_prompt_comes_from_templates() -> None:
    key = canonical_pair_key("GoldenA|M", "GoldenB|F")
    assert build_prompt(key) == PROMPT_TEMPLATES[string_hash(key) % len(PROMPT_TEMPLATES)]


def test_generation_is_deterministic() -> None:
    first = generate_pairs(_assets(LADDER_SEED), None, QUICK_PARAMS)
    second = generate_pairs(_assets(LADDER_SEED), None, QUICK_PARAMS)
    assert [(pair.pair_key, pair.featured, pair.prompt) for pair in first] == [
        (pair.pair_key, pair.featured, pair.prompt) for pair in second
    ]
    assert any(pair.matchup_mode is not MatchupMode.ONE_VS_ONE for pair in first)


def test_pair_keys_are_unique_and_sides_disjoint() -> None:
    pairs = generate_pairs(_assets(LADDER_SEED), None, QUICK_PARAMS)
    assert len({pair.pair_key for pair in pairs}) == len(pairs)
    for pair in pairs:
        assert not set(pair.left_keys) & set(pair.right_keys)
        assert pair.pair_key == canonical_pair_key(pair.right_keys, pair.left_keys)
        assert (len(pair.left_keys), len(pair.right_keys)) == pair.matchup_mode.sizes


def test_one_vs_one_skips_incompatible_tiers() -> None:
    assets = _assets("GoldenLow|M,1kx-2kx\nGoldenHigh|F,150kx-180kx\nGoldenLow2|F,1.5kx-2.5kx\n")
    pairs = generate_pairs(assets, "1v1")
    assert [pair.pair_key for pair in pairs] == ["GoldenLow2|F::GoldenLow|M"]


def test_adjacent_tiers_need_overlapping_ranges() -> None:
    overlapping = _assets("GoldenA|M,4kx-5.5kx\nGoldenB|F,5kx-6kx\n")
    disjoint = _assets("GoldenA|M,4kx-4.5kx\nGoldenB|F,5kx-6kx\n")
    assert len(generate_pairs(overlapping, "1v1")) == 1
    assert generate_pairs(disjoint, "1v1") == []


def test_caps_and_featured_count() -> None:
    params = GeneratorParameters(
        max_pairs_one_vs_one=10,
        max_pairs_per_multi_mode=4,
        max_multi_attempts=5_000,
        featured_pair_count=3,
    )
    pairs = generate_pairs(_assets(LADDER_SEED), None, params)

    by_mode = {mode: [pair for pair in pairs if pair.matchup_mode is mode] for mode in MatchupMode}
    assert len(by_mode[MatchupMode.ONE_VS_ONE]) == 10
    for mode in (MatchupMode.ONE_VS_TWO, MatchupMode.TWO_VS_ONE, MatchupMode.TWO_VS_TWO):
        assert len(by_mode[mode]) <= 4
    assert sum(1 for pair in pairs if pair.featured) == 3
    assert all(pair.featured for pair in pairs[:3])


def test_injected_rng_factory_is_used_for_multi_modes() -> None:
    calls: list[int] = []

    def factory(seed: int):
        calls.append(seed)
        return create_seeded_rng(seed)

    generate_pairs(_assets(LADDER_SEED), "1v2,2v2", QUICK_PARAMS, rng_factory=factory)
    assert len(calls) == 2
