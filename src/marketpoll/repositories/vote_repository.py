"""Write-side persistence for vote events, voters and asset scores."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from marketpoll.domain.voters import VoterProgression, VoterSnapshot
from marketpoll.models import AssetScore, VoteEvent, VoteSide, VoteSource, Voter
from marketpoll.repositories.dialect import upsert_insert


@dataclass(frozen=True)
class VoterRow:
    id: int
    visitor_id: str
    xp: int
    streak_days: int
    total_votes: int


@dataclass(frozen=True)
class ScoreDelta:
    """New absolute Elo plus counter increments for one asset."""

    asset_id: int
    elo: float
    wins: int = 0
    losses: int = 0
    ties: int = 0
    votes_for: int = 0
    votes_against: int = 0
    polls: int = 1


def fetch_voter_snapshot(session: Session, visitor_id: str) -> VoterSnapshot | None:
    row = session.execute(
        select(Voter.streak_days, Voter.last_voted_at, Voter.xp, Voter.total_votes).where(
            Voter.visitor_id == visitor_id
        )
    ).first()
    if row is None:
        return None
    return VoterSnapshot(
        streak_days=row.streak_days,
        last_voted_at=row.last_voted_at,
        xp=row.xp,
        total_votes=row.total_votes,
    )


def upsert_voter_progress(
    session: Session,
    *,
    visitor_id: str,
    progression: VoterProgression,
    now: datetime,
) -> VoterRow:
    """Create or advance a voter.

    ``xp`` and ``total_votes`` are incremented in the database, so two
    overlapping submissions computed from the same snapshot still both count.
    """
    statement = upsert_insert(session, Voter).values(
        visitor_id=visitor_id,
        xp=progression.xp_gain,
        streak_days=progression.streak_days,
        total_votes=1,
        last_voted_at=now,
        last_seen_at=now,
    )
    statement = statement.on_conflict_do_update(
        index_elements=["visitor_id"],
        set_={
            "xp": Voter.xp + statement.excluded.xp,
            "total_votes": Voter.total_votes + 1,
            "streak_days": statement.excluded.streak_days,
            "last_voted_at": statement.excluded.last_voted_at,
            "last_seen_at": statement.excluded.last_seen_at,
        },
    ).returning(Voter.id, Voter.visitor_id, Voter.xp, Voter.streak_days, Voter.total_votes)
    row = session.execute(statement).one()
    return VoterRow(
        id=row.id,
        visitor_id=row.visitor_id,
        xp=row.xp,
        streak_days=row.streak_days,
        total_votes=row.total_votes,
    )


def insert_vote_event(
    session: Session,
    *,
    source: VoteSource,
    selected_side: VoteSide,
    pair_id: int | None,
    pair_key: str,
    voter_id: int | None,
    left_asset_id: int,
    right_asset_id: int,
    selected_asset_id: int | None,
    created_at: datetime,
    weight: int = 1,
    poll_message_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> VoteEvent:
    event = VoteEvent(
        source=source,
        selected_side=selected_side,
        weight=weight,
        pair_id=pair_id,
        pair_key=pair_key,
        voter_id=voter_id,
        left_asset_id=left_asset_id,
        right_asset_id=right_asset_id,
        selected_asset_id=selected_asset_id,
        poll_message_id=poll_message_id,
        metadata_json=metadata,
        created_at=created_at,
    )
    session.add(event)
    session.flush()
    return event


def fetch_poll_event_sides(session: Session, *, poll_message_id: str) -> set[VoteSide]:
    """Sides already recorded for one poll message."""
    rows = session.scalars(
        select(VoteEvent.selected_side).where(
            VoteEvent.source == VoteSource.POLL_RUN,
            VoteEvent.poll_message_id == poll_message_id,
        )
    )
    return set(rows)


def upsert_poll_event(
    session: Session,
    *,
    poll_message_id: str,
    selected_side: VoteSide,
    weight: int,
    pair_id: int,
    pair_key: str,
    left_asset_id: int,
    right_asset_id: int,
    selected_asset_id: int,
    created_at: datetime,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Insert or refresh the tallied event for one side of a poll message."""
    statement = upsert_insert(session, VoteEvent).values(
        source=VoteSource.POLL_RUN.value,
        selected_side=selected_side.value,
        weight=weight,
        pair_id=pair_id,
        pair_key=pair_key,
        left_asset_id=left_asset_id,
        right_asset_id=right_asset_id,
        selected_asset_id=selected_asset_id,
        poll_message_id=poll_message_id,
        metadata_json=metadata,
        created_at=created_at,
    )
    statement = statement.on_conflict_do_update(
        index_elements=["source", "poll_message_id", "selected_side"],
        set_={
            "weight": statement.excluded.weight,
            "pair_id": statement.excluded.pair_id,
            "pair_key": statement.excluded.pair_key,
            "metadata_json": statement.excluded.metadata_json,
        },
    )
    session.execute(statement)


def fetch_elo_by_asset_id(session: Session, asset_ids: Iterable[int]) -> dict[int, float]:
    unique_ids = sorted(set(asset_ids))
    if not unique_ids:
        return {}
    rows = session.execute(
        select(AssetScore.asset_id, AssetScore.elo).where(AssetScore.asset_id.in_(unique_ids))
    )
    return {asset_id: elo for asset_id, elo in rows}


def upsert_asset_score(session: Session, delta: ScoreDelta, *, polled_at: datetime) -> None:
    """Write the new Elo and add the counter increments (creating the row on first vote)."""
    statement = upsert_insert(session, AssetScore).values(
        asset_id=delta.asset_id,
        elo=delta.elo,
        wins=delta.wins,
        losses=delta.losses,
        ties=delta.ties,
        polls_count=delta.polls,
        votes_for=delta.votes_for,
        votes_against=delta.votes_against,
        last_poll_at=polled_at,
    )
    statement = statement.on_conflict_do_update(
        index_elements=["asset_id"],
        set_={
            "elo": statement.excluded.elo,
            "wins": AssetScore.wins + statement.excluded.wins,
            "losses": AssetScore.losses + statement.excluded.losses,
            "ties": AssetScore.ties + statement.excluded.ties,
            "polls_count": AssetScore.polls_count + statement.excluded.polls_count,
            "votes_for": AssetScore.votes_for + statement.excluded.votes_for,
            "votes_against": AssetScore.votes_against + statement.excluded.votes_against,
            "last_poll_at": statement.excluded.last_poll_at,
            "updated_at": func.now(),
        },
    )
    session.execute(statement)


__all__ = [
    "ScoreDelta",
    "VoterRow",
    "fetch_elo_by_asset_id",
    "fetch_poll_event_sides",
    "fetch_voter_snapshot",
    "insert_vote_event",
    "upsert_asset_score",
    "upsert_poll_event",
    "upsert_voter_progress",
]
