"""Record visitor votes atomically: voter progression, vote event and ratings."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy.orm import Session, sessionmaker

from marketpoll.domain.errors import InvalidVoteError, MarketPollError, PairUnavailableError, VoteConflictError
from marketpoll.domain.ratings.elo import DEFAULT_ELO_PARAMETERS, EloParameters
from marketpoll.domain.scoring import apply_tally
from marketpoll.domain.voters import VoterProgression, compute_streak_and_xp
from marketpoll.models import VoteSide, VoteSource
from marketpoll.repositories.catalog_repository import fetch_asset_ids_by_key
from marketpoll.repositories.matchup_repository import PairRecord, fetch_pair
from marketpoll.repositories.transactions import RetryPolicy, run_serializable
from marketpoll.repositories.vote_repository import (
    fetch_voter_snapshot,
    insert_vote_event,
    upsert_voter_progress,
)

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Naive UTC timestamp matching the ``timezone=False`` columns."""
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass(frozen=True)
class VoteReceipt:
    vote_id: int
    pair_id: int
    pair_key: str
    selected_side: VoteSide
    created_at: datetime
    progression: VoterProgression


@dataclass(frozen=True)
class VoteOutcome:
    ok: bool
    reason: str | None = None
    receipt: VoteReceipt | None = None
    retryable: bool = False


def parse_vote_side(raw: VoteSide | str) -> VoteSide:
    if isinstance(raw, VoteSide):
        return raw
    value = str(raw or "").strip().upper()
    try:
        return VoteSide(value)
    except ValueError as exc:
        raise InvalidVoteError(f"Invalid vote side: {raw!r}") from exc


class VoteCoordinator:
    """The only write path for voter counters and asset scores.

    Pair and voter lookups happen before the transaction. The voter upsert,
    event insert and score writes then run as one SERIALIZABLE unit that is
    retried as a whole on serialization conflicts.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        serializable_session_factory: sessionmaker[Session],
        *,
        rating_parameters: EloParameters = DEFAULT_ELO_PARAMETERS,
        min_votes: int = 1,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.serializable_session_factory = serializable_session_factory
        self.rating_parameters = rating_parameters
        self.min_votes = min_votes
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock

    def record_vote(
        self,
        pair_id: int,
        visitor_id: str,
        side: VoteSide | str,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> VoteReceipt:
        vote_side = parse_vote_side(side)
        visitor = str(visitor_id or "").strip()
        if not visitor:
            raise InvalidVoteError("visitor_id is required")

        with self.session_factory() as session:
            pair = fetch_pair(session, pair_id)
            snapshot = fetch_voter_snapshot(session, visitor)
        if pair is None or not pair.active:
            raise PairUnavailableError(pair_id)

        def _work(session: Session) -> VoteReceipt:
            now = self.clock()
            progression = compute_streak_and_xp(snapshot, now)
            voter = upsert_voter_progress(session, visitor_id=visitor, progression=progression, now=now)
            event = insert_vote_event(
                session,
                source=VoteSource.WEB_APP,
                selected_side=vote_side,
                pair_id=pair.id,
                pair_key=pair.pair_key,
                voter_id=voter.id,
                left_asset_id=pair.left_asset_id,
                right_asset_id=pair.right_asset_id,
                selected_asset_id=_selected_asset_id(pair, vote_side),
                created_at=now,
                metadata=metadata,
            )
            if vote_side is not VoteSide.SKIP:
                self._apply_rating(session, pair, vote_side, now)

            return VoteReceipt(
                vote_id=event.id,
                pair_id=pair.id,
                pair_key=pair.pair_key,
                selected_side=vote_side,
                created_at=now,
                progression=VoterProgression(
                    streak_days=voter.streak_days,
                    xp_gain=progression.xp_gain,
                    next_xp=voter.xp,
                    next_total_votes=voter.total_votes,
                ),
            )

        receipt = run_serializable(self.serializable_session_factory, _work, policy=self.retry_policy)
        logger.info(
            "vote_recorded",
            vote_id=receipt.vote_id,
            pair_id=receipt.pair_id,
            side=vote_side.value,
            xp=receipt.progression.next_xp,
        )
        return receipt

    def submit_vote(
        self,
        pair_id: int,
        visitor_id: str,
        side: VoteSide | str,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> VoteOutcome:
        """Result-form wrapper for callers that report failures instead of raising."""
        try:
            receipt = self.record_vote(pair_id, visitor_id, side, metadata=metadata)
        except VoteConflictError as exc:
            return VoteOutcome(ok=False, reason=str(exc), retryable=True)
        except MarketPollError as exc:
            return VoteOutcome(ok=False, reason=str(exc))
        return VoteOutcome(ok=True, receipt=receipt)

    def _apply_rating(self, session: Session, pair: PairRecord, side: VoteSide, now: datetime) -> None:
        left_ids, right_ids = _side_asset_ids(session, pair)
        apply_tally(
            session,
            left_ids,
            right_ids,
            1 if side is VoteSide.LEFT else 0,
            1 if side is VoteSide.RIGHT else 0,
            min_votes=self.min_votes,
            parameters=self.rating_parameters,
            polled_at=now,
        )


def _selected_asset_id(pair: PairRecord, side: VoteSide) -> int | None:
    if side is VoteSide.LEFT:
        return pair.left_asset_id
    if side is VoteSide.RIGHT:
        return pair.right_asset_id
    return None


def _side_asset_ids(session: Session, pair: PairRecord) -> tuple[list[int], list[int]]:
    ids_by_key = fetch_asset_ids_by_key(session, [*pair.left_asset_keys, *pair.right_asset_keys])
    left_ids = [ids_by_key[key] for key in pair.left_asset_keys if key in ids_by_key]
    right_ids = [ids_by_key[key] for key in pair.right_asset_keys if key in ids_by_key]
    return left_ids or [pair.left_asset_id], right_ids or [pair.right_asset_id]


__all__ = ["VoteCoordinator", "VoteOutcome", "VoteReceipt", "parse_vote_side", "utc_now"]
