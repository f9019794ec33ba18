"""Rating engine modules."""

from marketpoll.domain.ratings.elo import (
    DEFAULT_ELO_PARAMETERS,
    BundleEloUpdate,
    EloParameters,
    EloResult,
    EloUpdate,
    calculate_expected_score,
    dynamic_k_factor,
    update_elo,
    update_team_elo,
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
