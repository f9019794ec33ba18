"""Parse the seed CSV (``asset_key,seed_range``) into typed asset records."""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from math import inf, isfinite

from marketpoll.domain.pair_key import variant_from_asset_key

RATE_MULTIPLIERS: dict[str, float] = {
    "x": 1.0,
    "k": 1_000.0,
    "kx": 1_000.0,
    "m": 1_000_000.0,
    "mx": 1_000_000.0,
}


@dataclass(frozen=True)
class Tier:
    id: str
    min_value: float
    max_value: float


TIERS: tuple[Tier, ...] = (
    Tier("1-5kx", 1_000, 5_000),
    Tier("5-10kx", 5_000, 10_000),
    Tier("10-20kx", 10_000, 20_000),
    Tier("20-40kx", 20_000, 40_000),
    Tier("40-100kx", 40_000, 100_000),
    Tier("100-200kx", 100_000, 200_000),
    Tier("200-500kx", 200_000, 500_000),
    Tier("500-1000kx", 500_000, 1_000_000),
    Tier("1mx-2mx", 1_000_000, 2_000_000),
    Tier("2mx-3mx", 2_000_000, 3_000_000),
    Tier("3mx+", 3_000_000, inf),
)

_HEADER_PATTERN = re.compile(r"^asset_key\s*,\s*seed_range\b", re.IGNORECASE)
_TOKEN_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*([a-z]*)$", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedSeedAsset:
    asset_key: str
    seed_range_raw: str
    min_value: float
    max_value: float
    mid_value: float
    tier_id: str
    tier_index: int
    gender: str


@dataclass(frozen=True)
class SeedRange:
    min_value: float
    max_value: float
    mid_value: float
    tier_id: str
    tier_index: int


class SeedRangeError(ValueError):
    """A seed range token could not be parsed."""


@dataclass(frozen=True)
class _RateToken:
    value: float
    multiplier: float


class _MissingUnit(Exception):
    pass


def tier_for_value(mid_value: float) -> tuple[str, int]:
    """Return ``(tier_id, tier_index)`` for a midpoint; unmatched values land in the last tier."""
    for index, tier in enumerate(TIERS):
        if tier.min_value <= mid_value < tier.max_value:
            return tier.id, index
    return TIERS[-1].id, len(TIERS) - 1


def _parse_rate_token(raw: str, fallback_multiplier: float | None = None) -> _RateToken:
    token = str(raw or "").strip().lower()
    if token.endswith("+"):
        token = token[:-1]
    match = _TOKEN_PATTERN.match(token)
    if match is None:
        raise SeedRangeError(f"Invalid rate token: {raw}")

    amount = float(match.group(1))
    if not isfinite(amount) or amount < 0:
        raise SeedRangeError(f"Invalid numeric amount: {raw}")

    unit = match.group(2).lower()
    if not unit:
        if fallback_multiplier is None:
            raise _MissingUnit()
        return _RateToken(value=amount * fallback_multiplier, multiplier=fallback_multiplier)

    multiplier = RATE_MULTIPLIERS.get(unit)
    if multiplier is None:
        raise SeedRangeError(f"Unknown unit in rate token: {raw}")
    return _RateToken(value=amount * multiplier, multiplier=multiplier)


def _try_rate_token(raw: str) -> _RateToken | None:
    try:
        return _parse_rate_token(raw)
    except _MissingUnit:
        return None


def parse_seed_range(raw_range: str) -> SeedRange:
    """Parse ``200-300k``, ``950kx-1.3mx`` or ``3mx`` into numeric bounds.

    A bound without a unit borrows the multiplier of the other bound; when
    neither side has a unit both are read as plain amounts.
    """
    raw = str(raw_range or "").strip()
    if not raw:
        raise SeedRangeError("Range cannot be empty.")

    parts = [part.strip() for part in raw.split("-") if part.strip()]
    if len(parts) not in (1, 2):
        raise SeedRangeError(f"Range must be single value or min-max: {raw}")

    if len(parts) == 1:
        single = _parse_rate_token(parts[0], fallback_multiplier=1.0)
        tier_id, tier_index = tier_for_value(single.value)
        return SeedRange(
            min_value=single.value,
            max_value=single.value,
            mid_value=single.value,
            tier_id=tier_id,
            tier_index=tier_index,
        )

    left = _try_rate_token(parts[0])
    right = _try_rate_token(parts[1])
    if left is None:
        fallback = right.multiplier if right is not None else 1.0
        left = _parse_rate_token(parts[0], fallback_multiplier=fallback)
    if right is None:
        right = _parse_rate_token(parts[1], fallback_multiplier=left.multiplier)

    if left.value > right.value:
        raise SeedRangeError(f"Range min greater than max: {raw}")

    mid_value = (left.value + right.value) / 2
    tier_id, tier_index = tier_for_value(mid_value)
    return SeedRange(
        min_value=left.value,
        max_value=right.value,
        mid_value=mid_value,
        tier_id=tier_id,
        tier_index=tier_index,
    )


def parse_csv_row(line: str) -> list[str]:
    """Split one CSV row honouring double quotes and ``""`` escapes."""
    fields = next(csv.reader([line], skipinitialspace=True), [""])
    return [field.strip() for field in fields]


def parse_seed_assets(csv_text: str) -> tuple[list[ParsedSeedAsset], list[str]]:
    """Parse every row; bad rows become ``line N: ...`` errors instead of exceptions."""
    errors: list[str] = []
    assets: list[ParsedSeedAsset] = []
    seen: set[str] = set()

    for line_no, raw_line in enumerate(str(csv_text or "").splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if _HEADER_PATTERN.match(line):
            continue

        columns = parse_csv_row(raw_line)
        if len(columns) < 2:
            errors.append(f"line {line_no}: expected asset_key,seed_range")
            continue

        asset_key = columns[0].strip()
        seed_range_raw = columns[1].strip()
        if not asset_key:
            errors.append(f"line {line_no}: invalid asset key")
            continue
        if not seed_range_raw:
            continue
        if asset_key in seen:
            errors.append(f"line {line_no}: duplicate asset key {asset_key}")
            continue
        seen.add(asset_key)

        try:
            seed_range = parse_seed_range(seed_range_raw)
        except SeedRangeError as exc:
            errors.append(f"line {line_no}: {exc}")
            continue

        assets.append(
            ParsedSeedAsset(
                asset_key=asset_key,
                seed_range_raw=seed_range_raw,
                min_value=seed_range.min_value,
                max_value=seed_range.max_value,
                mid_value=seed_range.mid_value,
                tier_id=seed_range.tier_id,
                tier_index=seed_range.tier_index,
                gender=variant_from_asset_key(asset_key),
            )
        )

    assets.sort(key=lambda asset: asset.asset_key)
    return assets, errors


__all__ = [
    "ParsedSeedAsset",
    "RATE_MULTIPLIERS",
    "SeedRange",
    "SeedRangeError",
    "TIERS",
    "parse_csv_row",
    "parse_seed_assets",
    "parse_seed_range",
    "tier_for_value",
]
