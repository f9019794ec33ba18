"""Vote-tally Elo updates for single assets and asset bundles."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from math import isfinite, log10, sqrt


class EloResult(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    TIE = "tie"


@dataclass(frozen=True)
class EloParameters:
    initial_elo: float = 1500.0
    base_k_factor: float = 24.0
    max_k_multiplier: float = 2.0
    k_ramp_votes: float = 5.0
    scale_factor: float = 400.0
    rounding_digits: int = 4


@dataclass(frozen=True)
class EloUpdate:
    left_score: float
    right_score: float
    total_votes: int
    result: EloResult
    affects_score: bool
    k_factor: float


@dataclass(frozen=True)
class BundleEloUpdate(EloUpdate):
    left_scores: tuple[float, ...]
    right_scores: tuple[float, ...]
    left_team_score: float
    right_team_score: float


DEFAULT_ELO_PARAMETERS = EloParameters()


def calculate_expected_score(rating: float, opponent_rating: float, scale_factor: float) -> float:
    """Compute the Elo expected score for one side."""
    return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / scale_factor))


def dynamic_k_factor(total_votes: int, parameters: EloParameters = DEFAULT_ELO_PARAMETERS) -> float:
    """K grows with vote volume and is capped at ``max_k_multiplier`` times the base."""
    ramp = sqrt(max(total_votes, 0) / parameters.k_ramp_votes)
    return parameters.base_k_factor * min(parameters.max_k_multiplier, ramp)


def _finite_score(score: float, fallback: float) -> float:
    try:
        value = float(score)
    except (TypeError, ValueError):
        return fallback
    return value if isfinite(value) else fallback


def _vote_count(votes: int) -> int:
    try:
        return max(0, int(votes))
    except (TypeError, ValueError):
        return 0


def _vote_result(votes_left: int, votes_right: int) -> EloResult:
    if votes_left > votes_right:
        return EloResult.LEFT
    if votes_left < votes_right:
        return EloResult.RIGHT
    return EloResult.TIE


def update_elo(
    left_score: float,
    right_score: float,
    votes_left: int,
    votes_right: int,
    *,
    min_votes: int = 1,
    parameters: EloParameters = DEFAULT_ELO_PARAMETERS,
) -> EloUpdate:
    """Move two ratings toward the observed vote share.

    The actual score of each side is its share of the votes, so a 7-3 tally
    counts as 0.7/0.3 rather than a plain win. When fewer than ``min_votes``
    votes were cast the ratings come back unchanged with
    ``affects_score=False``; callers must not persist counters in that case.
    """
    left = _finite_score(left_score, parameters.initial_elo)
    right = _finite_score(right_score, parameters.initial_elo)
    left_votes = _vote_count(votes_left)
    right_votes = _vote_count(votes_right)
    total_votes = left_votes + right_votes
    result = _vote_result(left_votes, right_votes)

    if total_votes < max(1, _vote_count(min_votes)):
        return EloUpdate(
            left_score=left,
            right_score=right,
            total_votes=total_votes,
            result=result,
            affects_score=False,
            k_factor=0.0,
        )

    expected_left = calculate_expected_score(left, right, parameters.scale_factor)
    expected_right = 1.0 - expected_left
    actual_left = left_votes / total_votes
    actual_right = right_votes / total_votes
    k_factor = dynamic_k_factor(total_votes, parameters)

    digits = parameters.rounding_digits
    return EloUpdate(
        left_score=round(left + k_factor * (actual_left - expected_left), digits),
        right_score=round(right + k_factor * (actual_right - expected_right), digits),
        total_votes=total_votes,
        result=result,
        affects_score=True,
        k_factor=k_factor,
    )


def _team_rating(masses: Sequence[float], scale_factor: float) -> float:
    return scale_factor * log10(sum(masses))


def update_team_elo(
    left_scores: Sequence[float],
    right_scores: Sequence[float],
    votes_left: int,
    votes_right: int,
    *,
    min_votes: int = 1,
    parameters: EloParameters = DEFAULT_ELO_PARAMETERS,
) -> BundleEloUpdate:
    """Rate two bundles against each other and split each side's delta by member strength.

    Each member rating ``r`` becomes a logistic mass ``10 ** (r / scale)``; the
    team rating is ``scale * log10(sum(masses))``. After the single-side update
    runs between the two team ratings, every member receives the team delta
    weighted by its share of that side's mass.
    """
    left_list = [_finite_score(score, parameters.initial_elo) for score in left_scores]
    right_list = [_finite_score(score, parameters.initial_elo) for score in right_scores]
    left_list = left_list or [parameters.initial_elo]
    right_list = right_list or [parameters.initial_elo]

    scale = parameters.scale_factor
    left_masses = [10.0 ** (score / scale) for score in left_list]
    right_masses = [10.0 ** (score / scale) for score in right_list]
    left_mass_total = sum(left_masses)
    right_mass_total = sum(right_masses)

    left_team = _team_rating(left_masses, scale)
    right_team = _team_rating(right_masses, scale)

    team = update_elo(
        left_team,
        right_team,
        votes_left,
        votes_right,
        min_votes=min_votes,
        parameters=parameters,
    )

    digits = parameters.rounding_digits
    if not team.affects_score:
        next_left = tuple(left_list)
        next_right = tuple(right_list)
    else:
        left_delta = team.left_score - left_team
        right_delta = team.right_score - right_team
        next_left = tuple(
            round(score + left_delta * (mass / left_mass_total), digits)
            for score, mass in zip(left_list, left_masses)
        )
        next_right = tuple(
            round(score + right_delta * (mass / right_mass_total), digits)
            for score, mass in zip(right_list, right_masses)
        )

    return BundleEloUpdate(
        left_score=team.left_score,
        right_score=team.right_score,
        total_votes=team.total_votes,
        result=team.result,
        affects_score=team.affects_score,
        k_factor=team.k_factor,
        left_scores=next_left,
        right_scores=next_right,
        left_team_score=round(left_team, digits),
        right_team_score=round(right_team, digits),
    )


__all__ = [
    "BundleEloUpdate",
    "DEFAULT_ELO_PARAMETERS",
    "EloParameters",
    "EloResult",
    "EloUpdate",
    "calculate_expected_score",
    "dynamic_k_factor",
    "update_elo",
    "update_team_elo",
]
