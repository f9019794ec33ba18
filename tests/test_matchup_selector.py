"""Integration tests for matchup selection against SQLite."""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from marketpoll.domain.catalog_sync import SyncSummary
from marketpoll.domain.errors import MatchupUnavailableError
from marketpoll.domain.matchups.selector import MatchupFilter, MatchupSelector
from marketpoll.domain.pair_key import canonical_pair_key
from marketpoll.models import Asset, AssetScore, VoteEvent, Voter, VoteSide, VoteSource, VotingPair


def _pair_ids(session_factory: sessionmaker[Session], *, featured: bool | None = None) -> list[int]:
    statement = select(VotingPair.id).where(VotingPair.active.is_(True)).order_by(VotingPair.id)
    if featured is not None:
        statement = statement.where(VotingPair.featured.is_(featured))
    with session_factory() as session:
        return list(session.scalars(statement))


def test_empty_store_has_no_matchup(session_factory: sessionmaker[Session]) -> None:
    selector = MatchupSelector(session_factory)
    assert selector.select_matchup() is None
    with pytest.raises(MatchupUnavailableError):
        selector.next_matchup(visitor_id="visitor-1")


def test_selects_an_active_pair(session_factory: sessionmaker[Session], seeded_catalog: SyncSummary) -> None:
    selector = MatchupSelector(session_factory)
    assert selector.select_matchup() in _pair_ids(session_factory)


def test_low_roll_picks_first_featured_pair(
    session_factory: sessionmaker[Session],
    seeded_catalog: SyncSummary,
) -> None:
    selector = MatchupSelector(session_factory, rng=lambda: 0.0)
    assert selector.select_matchup() == _pair_ids(session_factory, featured=True)[0]


def test_high_roll_picks_last_normal_pair(
    session_factory: sessionmaker[Session],
    seeded_catalog: SyncSummary,
) -> None:
    selector = MatchupSelector(session_factory, rng=lambda: 0.999)
    assert selector.select_matchup() == _pair_ids(session_factory, featured=False)[-1]


def test_exclusions_leave_only_remaining_pair(
    session_factory: sessionmaker[Session],
    seeded_catalog: SyncSummary,
) -> None:
    pair_ids = _pair_ids(session_factory)
    keep = pair_ids[7]
    selector = MatchupSelector(session_factory)

    for _ in range(10):
        assert selector.select_matchup(excluded_pair_ids=[pid for pid in pair_ids if pid != keep]) == keep


def test_exclusions_covering_everything_fall_back(
    session_factory: sessionmaker[Session],
    seeded_catalog: SyncSummary,
) -> None:
    pair_ids = _pair_ids(session_factory)
    selector = MatchupSelector(session_factory)
    assert selector.select_matchup(excluded_pair_ids=pair_ids) in pair_ids


def test_inactive_pairs_are_never_selected(
    session_factory: sessionmaker[Session],
    seeded_catalog: SyncSummary,
) -> None:
    pair_ids = _pair_ids(session_factory)
    with session_factory() as session, session.begin():
        for pair in session.scalars(select(VotingPair).where(VotingPair.id != pair_ids[3])):
            pair.active = False

    selector = MatchupSelector(session_factory)
    for _ in range(5):
        assert selector.select_matchup(excluded_pair_ids=[pair_ids[3]]) == pair_ids[3]


def test_filter_by_managed_prefix_and_pair_keys(
    session_factory: sessionmaker[Session],
    seeded_catalog: SyncSummary,
) -> None:
    selector = MatchupSelector(session_factory)
    assert selector.select_matchup(MatchupFilter(managed_prefix="Shiny")) is None

    wanted = canonical_pair_key("GoldenCharlie|?", "GoldenEcho|F")
    criteria = MatchupFilter(managed_prefix="Golden", pair_keys=frozenset({wanted}))
    selected = selector.select_matchup(criteria)
    with session_factory() as session:
        assert session.scalar(select(VotingPair.pair_key).where(VotingPair.id == selected)) == wanted

    assert selector.select_matchup(MatchupFilter(matchup_modes=frozenset({"2v2"}))) is None


def test_next_matchup_loads_assets_and_scores(
    session_factory: sessionmaker[Session],
    seeded_catalog: SyncSummary,
) -> None:
    with session_factory() as session, session.begin():
        alpha_id = session.scalar(select(Asset.id).where(Asset.key == "GoldenAlpha|M"))
        session.add(AssetScore(asset_id=alpha_id, elo=1512.25))

    wanted = canonical_pair_key("GoldenAlpha|M", "GoldenBravo|F")
    selector = MatchupSelector(session_factory)
    matchup = selector.next_matchup(criteria=MatchupFilter(pair_keys=frozenset({wanted})))

    assert matchup.pair_key == wanted
    assert matchup.matchup_mode == "1v1"
    assert matchup.prompt
    elos = {asset.key: asset.elo for asset in (*matchup.left_assets, *matchup.right_assets)}
    assert elos == {"GoldenAlpha|M": 1512.25, "GoldenBravo|F": None}


def test_visitor_exclusions_use_recent_votes(
    session_factory: sessionmaker[Session],
    seeded_catalog: SyncSummary,
) -> None:
    pair_ids = _pair_ids(session_factory)
    with session_factory() as session, session.begin():
        voter = Voter(visitor_id="visitor-1")
        session.add(voter)
        session.flush()
        for minute, pair_id in enumerate([pair_ids[0], pair_ids[1], pair_ids[0], pair_ids[2]]):
            pair = session.get(VotingPair, pair_id)
            session.add(
                VoteEvent(
                    source=VoteSource.WEB_APP,
                    selected_side=VoteSide.SKIP,
                    pair_id=pair.id,
                    pair_key=pair.pair_key,
                    voter_id=voter.id,
                    left_asset_id=pair.left_asset_id,
                    right_asset_id=pair.right_asset_id,
                    created_at=datetime(2026, 2, 1, 12, minute),
                )
            )

    selector = MatchupSelector(session_factory)
    with session_factory() as session:
        assert selector.excluded_pair_ids_for_visitor(session, "visitor-1") == [
            pair_ids[2],
            pair_ids[0],
            pair_ids[1],
        ]
        assert selector.excluded_pair_ids_for_visitor(session, "visitor-1", limit=2) == [
            pair_ids[2],
            pair_ids[0],
        ]
        assert selector.excluded_pair_ids_for_visitor(session, "visitor-1", exclude_pair_id=pair_ids[5]) == [
            pair_ids[2],
            pair_ids[0],
            pair_ids[1],
            pair_ids[5],
        ]
        assert selector.excluded_pair_ids_for_visitor(session, None, exclude_pair_id=pair_ids[5]) == [pair_ids[5]]

    for _ in range(10):
        matchup = selector.next_matchup(visitor_id="visitor-1", exclude_pair_id=pair_ids[5])
        assert matchup.pair_id not in {pair_ids[0], pair_ids[1], pair_ids[2], pair_ids[5]}
