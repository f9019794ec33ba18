"""Small built-in catalog used when no valid seed has ever been applied."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DefaultAsset:
    key: str
    label: str
    tier: str


@dataclass(frozen=True)
class DefaultPair:
    left_key: str
    right_key: str
    prompt: str
    featured: bool = False


DEFAULT_ASSETS: tuple[DefaultAsset, ...] = (
    DefaultAsset("Charizard|M", "Charizard M", "Apex"),
    DefaultAsset("Gengar|M", "Gengar M", "Apex"),
    DefaultAsset("Mewtwo|?", "Mewtwo (?)", "Apex"),
    DefaultAsset("Dragonite|M", "Dragonite M", "High"),
    DefaultAsset("Garchomp|M", "Garchomp M", "High"),
    DefaultAsset("Lucario|M", "Lucario M", "High"),
    DefaultAsset("Blaziken|M", "Blaziken M", "Mid"),
    DefaultAsset("Metagross|?", "Metagross (?)", "Mid"),
    DefaultAsset("Tyranitar|M", "Tyranitar M", "Mid"),
    DefaultAsset("Absol|M", "Absol M", "Mid"),
    DefaultAsset("Gardevoir|F", "Gardevoir F", "Mid"),
    DefaultAsset("Salamence|M", "Salamence M", "High"),
)

DEFAULT_PAIRS: tuple[DefaultPair, ...] = (
    DefaultPair("Charizard|M", "Gengar|M", "Which would trade higher this week?", featured=True),
    DefaultPair("Mewtwo|?", "Dragonite|M", "Which one would hold value better long-term?", featured=True),
    DefaultPair("Garchomp|M", "Lucario|M", "Which has stronger short-term momentum?"),
    DefaultPair("Blaziken|M", "Metagross|?", "Which is more likely to trend upward next month?"),
    DefaultPair("Tyranitar|M", "Absol|M", "If you had to buy one now, which would you choose?"),
    DefaultPair("Gardevoir|F", "Salamence|M", "Which has better cross-event demand?"),
)

__all__ = ["DEFAULT_ASSETS", "DEFAULT_PAIRS", "DefaultAsset", "DefaultPair"]
