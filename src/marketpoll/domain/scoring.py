"""Apply a vote tally between two asset bundles to the stored scores."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.orm import Session

from marketpoll.domain.ratings.elo import BundleEloUpdate, EloParameters, EloResult, update_team_elo
from marketpoll.repositories.vote_repository import ScoreDelta, fetch_elo_by_asset_id, upsert_asset_score


def _side_delta(
    asset_id: int,
    elo: float,
    *,
    won: bool,
    lost: bool,
    votes_for: int,
    votes_against: int,
) -> ScoreDelta:
    return ScoreDelta(
        asset_id=asset_id,
        elo=elo,
        wins=int(won),
        losses=int(lost),
        ties=int(not won and not lost),
        votes_for=votes_for,
        votes_against=votes_against,
        polls=1,
    )


def apply_tally(
    session: Session,
    left_asset_ids: Sequence[int],
    right_asset_ids: Sequence[int],
    votes_left: int,
    votes_right: int,
    *,
    min_votes: int,
    parameters: EloParameters,
    polled_at: datetime,
) -> BundleEloUpdate:
    """Rate the bundles on a consistent read and persist the result.

    Elo is written as an absolute value; counters are increments. Nothing is
    written when the tally is below ``min_votes``.
    """
    current = fetch_elo_by_asset_id(session, [*left_asset_ids, *right_asset_ids])
    update = update_team_elo(
        [current.get(asset_id, parameters.initial_elo) for asset_id in left_asset_ids],
        [current.get(asset_id, parameters.initial_elo) for asset_id in right_asset_ids],
        votes_left,
        votes_right,
        min_votes=min_votes,
        parameters=parameters,
    )
    if not update.affects_score:
        return update

    left_won = update.result is EloResult.LEFT
    right_won = update.result is EloResult.RIGHT
    for asset_id, elo in zip(left_asset_ids, update.left_scores):
        delta = _side_delta(
            asset_id,
            elo,
            won=left_won,
            lost=right_won,
            votes_for=votes_left,
            votes_against=votes_right,
        )
        upsert_asset_score(session, delta, polled_at=polled_at)
    for asset_id, elo in zip(right_asset_ids, update.right_scores):
        delta = _side_delta(
            asset_id,
            elo,
            won=right_won,
            lost=left_won,
            votes_for=votes_right,
            votes_against=votes_left,
        )
        upsert_asset_score(session, delta, polled_at=polled_at)
    return update


__all__ = ["apply_tally"]
