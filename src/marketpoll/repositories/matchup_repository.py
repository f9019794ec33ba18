"""Read-side queries for matchup selection."""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, aliased

from marketpoll.models import Asset, AssetScore, VoteEvent, Voter, VotingPair


@dataclass(frozen=True)
class MatchupFilter:
    """Which pairs are eligible for selection.

    ``managed_prefix`` keeps pairs whose anchor assets both start with the
    prefix; ``pair_keys`` restricts to a known-valid set; ``matchup_modes``
    restricts by mode string.
    """

    active_only: bool = True
    managed_prefix: str | None = None
    pair_keys: frozenset[str] | None = None
    matchup_modes: frozenset[str] | None = None


@dataclass(frozen=True)
class PairRecord:
    id: int
    pair_key: str
    matchup_mode: str
    prompt: str
    featured: bool
    active: bool
    left_asset_id: int
    right_asset_id: int
    left_asset_keys: tuple[str, ...]
    right_asset_keys: tuple[str, ...]


@dataclass(frozen=True)
class AssetRecord:
    id: int
    key: str
    label: str
    tier: str | None
    image_url: str | None
    elo: float | None


def _apply_filter(
    statement: Select[Any],
    criteria: MatchupFilter,
    *,
    featured: bool,
    excluded_pair_ids: Collection[int],
) -> Select[Any]:
    statement = statement.where(VotingPair.featured.is_(featured))
    if criteria.active_only:
        statement = statement.where(VotingPair.active.is_(True))
    if excluded_pair_ids:
        statement = statement.where(VotingPair.id.not_in(sorted(excluded_pair_ids)))
    if criteria.pair_keys is not None:
        statement = statement.where(VotingPair.pair_key.in_(sorted(criteria.pair_keys)))
    if criteria.matchup_modes is not None:
        statement = statement.where(VotingPair.matchup_mode.in_(sorted(criteria.matchup_modes)))
    if criteria.managed_prefix is not None:
        left_asset = aliased(Asset)
        right_asset = aliased(Asset)
        statement = (
            statement.join(left_asset, VotingPair.left_asset_id == left_asset.id)
            .join(right_asset, VotingPair.right_asset_id == right_asset.id)
            .where(
                left_asset.key.startswith(criteria.managed_prefix, autoescape=True),
                right_asset.key.startswith(criteria.managed_prefix, autoescape=True),
            )
        )
    return statement


def count_eligible_pairs(
    session: Session,
    criteria: MatchupFilter,
    *,
    featured: bool,
    excluded_pair_ids: Collection[int] = (),
) -> int:
    statement = _apply_filter(
        select(func.count(VotingPair.id)),
        criteria,
        featured=featured,
        excluded_pair_ids=excluded_pair_ids,
    )
    return int(session.scalar(statement) or 0)


def fetch_pair_id_at_offset(
    session: Session,
    criteria: MatchupFilter,
    *,
    featured: bool,
    offset: int,
    excluded_pair_ids: Collection[int] = (),
) -> int | None:
    """Return the id at ``offset`` in id order, or ``None`` if the bucket shrank meanwhile."""
    statement = _apply_filter(
        select(VotingPair.id),
        criteria,
        featured=featured,
        excluded_pair_ids=excluded_pair_ids,
    )
    return session.scalar(statement.order_by(VotingPair.id).offset(max(0, offset)).limit(1))


def fetch_recent_pair_ids_for_visitor(session: Session, visitor_id: str, *, limit: int) -> list[int]:
    """Distinct pair ids from the visitor's most recent votes, newest first."""
    if limit <= 0:
        return []
    last_seen = func.max(VoteEvent.id).label("last_event_id")
    statement = (
        select(VoteEvent.pair_id, last_seen)
        .join(Voter, VoteEvent.voter_id == Voter.id)
        .where(Voter.visitor_id == visitor_id, VoteEvent.pair_id.is_not(None))
        .group_by(VoteEvent.pair_id)
        .order_by(last_seen.desc())
        .limit(limit)
    )
    return [pair_id for pair_id, _ in session.execute(statement)]


def fetch_pair(session: Session, pair_id: int) -> PairRecord | None:
    pair = session.get(VotingPair, pair_id)
    if pair is None:
        return None
    return PairRecord(
        id=pair.id,
        pair_key=pair.pair_key,
        matchup_mode=pair.matchup_mode,
        prompt=pair.prompt,
        featured=pair.featured,
        active=pair.active,
        left_asset_id=pair.left_asset_id,
        right_asset_id=pair.right_asset_id,
        left_asset_keys=tuple(pair.left_asset_keys or ()),
        right_asset_keys=tuple(pair.right_asset_keys or ()),
    )


def fetch_assets_by_key(session: Session, keys: Sequence[str]) -> dict[str, AssetRecord]:
    """Assets with their current Elo (``None`` when never rated)."""
    if not keys:
        return {}
    statement = (
        select(Asset, AssetScore.elo)
        .outerjoin(AssetScore, AssetScore.asset_id == Asset.id)
        .where(Asset.key.in_(sorted(set(keys))))
    )
    out: dict[str, AssetRecord] = {}
    for asset, elo in session.execute(statement):
        out[asset.key] = AssetRecord(
            id=asset.id,
            key=asset.key,
            label=asset.label,
            tier=asset.tier,
            image_url=asset.image_url,
            elo=elo,
        )
    return out


__all__ = [
    "AssetRecord",
    "MatchupFilter",
    "PairRecord",
    "count_eligible_pairs",
    "fetch_assets_by_key",
    "fetch_pair",
    "fetch_pair_id_at_offset",
    "fetch_recent_pair_ids_for_visitor",
]
