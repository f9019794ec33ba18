"""Canonical identifiers and display labels for assets and matchups."""

from __future__ import annotations

from collections.abc import Iterable

BUNDLE_SEPARATOR = "+"
SIDE_SEPARATOR = "::"


def canonical_bundle_key(keys: str | Iterable[str]) -> str:
    """Order-independent key for one side of a matchup."""
    values = [keys] if isinstance(keys, str) else list(keys)
    members = sorted({str(value).strip() for value in values if str(value).strip()})
    return BUNDLE_SEPARATOR.join(members)


def canonical_pair_key(left: str | Iterable[str], right: str | Iterable[str]) -> str:
    """Symmetric key for a matchup; stable under side swaps and member reordering."""
    sides = sorted((canonical_bundle_key(left), canonical_bundle_key(right)))
    return SIDE_SEPARATOR.join(sides)


def label_from_asset_key(asset_key: str) -> str:
    """Turn ``Name|M`` into ``Name M`` and ``Name|?`` into ``Name (?)``."""
    name, _, variant = str(asset_key or "Unknown").partition("|")
    normalized_variant = "(?)" if variant == "?" else variant
    return f"{name or 'Unknown'} {normalized_variant}".strip()


def variant_from_asset_key(asset_key: str) -> str:
    parts = str(asset_key or "").split("|")
    return parts[1].strip().upper() if len(parts) > 1 else ""


__all__ = [
    "canonical_bundle_key",
    "canonical_pair_key",
    "label_from_asset_key",
    "variant_from_asset_key",
]
