"""Weighted random selection of the next matchup to show a visitor."""

from __future__ import annotations

import random
from collections.abc import Callable, Collection
from dataclasses import dataclass

import structlog
from sqlalchemy.orm import Session, sessionmaker

from marketpoll.domain.errors import MatchupUnavailableError
from marketpoll.domain.matchups.picker import MatchupBucket, pick_random_offset, pick_weighted_bucket
from marketpoll.repositories.matchup_repository import (
    AssetRecord,
    MatchupFilter,
    count_eligible_pairs,
    fetch_assets_by_key,
    fetch_pair,
    fetch_pair_id_at_offset,
    fetch_recent_pair_ids_for_visitor,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SelectedMatchup:
    pair_id: int
    pair_key: str
    matchup_mode: str
    prompt: str
    featured: bool
    left_assets: tuple[AssetRecord, ...]
    right_assets: tuple[AssetRecord, ...]


class MatchupSelector:
    """Selects one active pair per request without loading whole buckets.

    Featured pairs are weighted ``featured_weight`` times heavier than normal
    ones. When the exclusion list empties both buckets the selection runs
    again without exclusions, so a pair is returned whenever any eligible
    pair exists.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        featured_weight: int = 2,
        recent_exclude_limit: int = 20,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.session_factory = session_factory
        self.featured_weight = featured_weight
        self.recent_exclude_limit = recent_exclude_limit
        self.rng = rng

    def select_matchup(
        self,
        criteria: MatchupFilter | None = None,
        excluded_pair_ids: Collection[int] = (),
    ) -> int | None:
        with self.session_factory() as session:
            return self._select(session, criteria or MatchupFilter(), excluded_pair_ids)

    def excluded_pair_ids_for_visitor(
        self,
        session: Session,
        visitor_id: str | None,
        exclude_pair_id: int | None = None,
        limit: int | None = None,
    ) -> list[int]:
        """The visitor's recently voted pairs plus the pair just shown."""
        bounded = self.recent_exclude_limit if limit is None else limit
        excluded: list[int] = []
        if visitor_id:
            excluded.extend(fetch_recent_pair_ids_for_visitor(session, visitor_id, limit=bounded))
        if exclude_pair_id is not None and exclude_pair_id not in excluded:
            excluded.append(exclude_pair_id)
        return excluded

    def next_matchup(
        self,
        visitor_id: str | None = None,
        exclude_pair_id: int | None = None,
        criteria: MatchupFilter | None = None,
    ) -> SelectedMatchup:
        criteria = criteria or MatchupFilter()
        with self.session_factory() as session:
            excluded = self.excluded_pair_ids_for_visitor(session, visitor_id, exclude_pair_id)
            pair_id = self._select(session, criteria, excluded)
            if pair_id is None:
                raise MatchupUnavailableError()

            pair = fetch_pair(session, pair_id)
            if pair is None:
                raise MatchupUnavailableError()

            assets = fetch_assets_by_key(session, [*pair.left_asset_keys, *pair.right_asset_keys])

        return SelectedMatchup(
            pair_id=pair.id,
            pair_key=pair.pair_key,
            matchup_mode=pair.matchup_mode,
            prompt=pair.prompt,
            featured=pair.featured,
            left_assets=tuple(assets[key] for key in pair.left_asset_keys if key in assets),
            right_assets=tuple(assets[key] for key in pair.right_asset_keys if key in assets),
        )

    def _select(self, session: Session, criteria: MatchupFilter, excluded_pair_ids: Collection[int]) -> int | None:
        pair_id = self._pick(session, criteria, excluded_pair_ids)
        if pair_id is None and excluded_pair_ids:
            logger.debug("matchup_exclusions_dropped", excluded=len(excluded_pair_ids))
            pair_id = self._pick(session, criteria, ())
        return pair_id

    def _pick(self, session: Session, criteria: MatchupFilter, excluded_pair_ids: Collection[int]) -> int | None:
        counts = {
            MatchupBucket.FEATURED: count_eligible_pairs(
                session, criteria, featured=True, excluded_pair_ids=excluded_pair_ids
            ),
            MatchupBucket.NORMAL: count_eligible_pairs(
                session, criteria, featured=False, excluded_pair_ids=excluded_pair_ids
            ),
        }
        bucket = pick_weighted_bucket(
            counts[MatchupBucket.FEATURED],
            counts[MatchupBucket.NORMAL],
            self.featured_weight,
            self.rng,
        )
        if bucket is None:
            return None

        other = MatchupBucket.NORMAL if bucket is MatchupBucket.FEATURED else MatchupBucket.FEATURED
        for candidate in (bucket, other):
            offset = pick_random_offset(counts[candidate], self.rng)
            if offset is None:
                continue
            pair_id = fetch_pair_id_at_offset(
                session,
                criteria,
                featured=candidate is MatchupBucket.FEATURED,
                offset=offset,
                excluded_pair_ids=excluded_pair_ids,
            )
            if pair_id is not None:
                return pair_id
        return None


__all__ = ["MatchupFilter", "MatchupSelector", "SelectedMatchup"]
