"""Integration tests for the catalog synchronizer against SQLite."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from marketpoll.domain.catalog_sync import CatalogSynchronizer, SyncState
from marketpoll.domain.pair_key import canonical_pair_key
from marketpoll.domain.seeds.defaults import DEFAULT_PAIRS
from marketpoll.domain.seeds.generator import GeneratorParameters
from marketpoll.models import Asset, AssetScore, IngestionCursor, VoteEvent, VoteSide, VoteSource, VotingPair

from conftest import SMALL_SEED, SMALL_SEED_ASSET_KEYS, make_synchronizer, small_catalog_config

SEED_WITHOUT_FOXTROT = SMALL_SEED.replace("GoldenFoxtrot|M,2kx-2.6kx\n", "")


def _active_pair_keys(session: Session) -> set[str]:
    return set(session.scalars(select(VotingPair.pair_key).where(VotingPair.active.is_(True))))


def _cursor(session: Session) -> str | None:
    return session.scalar(select(IngestionCursor.last_value))


def test_first_sync_applies_seed(session_factory: sessionmaker[Session]) -> None:
    summary = make_synchronizer(session_factory).ensure_catalog_current()

    assert summary.state is SyncState.VERIFIED
    assert summary.asset_count == 6
    assert summary.pair_count == 15
    assert summary.active_eligible_pairs == 15
    with session_factory() as session:
        assert set(session.scalars(select(Asset.key))) == set(SMALL_SEED_ASSET_KEYS)
        assert len(_active_pair_keys(session)) == 15
        assert session.scalar(select(func.count()).where(VotingPair.featured.is_(True))) == 5
        assert _cursor(session) == "v1"

        pair = session.scalar(select(VotingPair).where(VotingPair.pair_key == "GoldenAlpha|M::GoldenBravo|F"))
        assert pair is not None
        assert pair.matchup_mode == "1v1"
        assert sorted([*pair.left_asset_keys, *pair.right_asset_keys]) == ["GoldenAlpha|M", "GoldenBravo|F"]


def test_second_sync_with_same_version_is_skipped(session_factory: sessionmaker[Session]) -> None:
    make_synchronizer(session_factory).ensure_catalog_current()
    loads: list[str] = []

    def loader() -> str:
        loads.append("read")
        return SMALL_SEED

    synchronizer = make_synchronizer(session_factory)
    synchronizer.seed_loader = loader
    summary = synchronizer.ensure_catalog_current()

    assert summary.state is SyncState.SKIPPED
    assert summary.active_eligible_pairs == 15
    assert loads == []


def test_same_version_without_active_pairs_is_reapplied(session_factory: sessionmaker[Session]) -> None:
    make_synchronizer(session_factory).ensure_catalog_current()
    with session_factory() as session, session.begin():
        for pair in session.scalars(select(VotingPair)):
            pair.active = False

    summary = make_synchronizer(session_factory).ensure_catalog_current()

    assert summary.state is SyncState.VERIFIED
    with session_factory() as session:
        assert len(_active_pair_keys(session)) == 15


def test_new_version_deactivates_removed_assets_without_losing_history(
    session_factory: sessionmaker[Session],
) -> None:
    make_synchronizer(session_factory).ensure_catalog_current()
    with session_factory() as session, session.begin():
        foxtrot = session.scalar(select(Asset).where(Asset.key == "GoldenFoxtrot|M"))
        alpha = session.scalar(select(Asset).where(Asset.key == "GoldenAlpha|M"))
        pair = session.scalar(select(VotingPair).where(VotingPair.pair_key == "GoldenAlpha|M::GoldenFoxtrot|M"))
        session.add(AssetScore(asset_id=foxtrot.id, elo=1523.5, wins=3, polls_count=3, votes_for=3))
        session.add(
            VoteEvent(
                source=VoteSource.WEB_APP,
                selected_side=VoteSide.RIGHT,
                pair_id=pair.id,
                pair_key=pair.pair_key,
                left_asset_id=alpha.id,
                right_asset_id=foxtrot.id,
                selected_asset_id=foxtrot.id,
                created_at=datetime(2026, 1, 5, 12, 0, 0),
            )
        )

    summary = make_synchronizer(session_factory, SEED_WITHOUT_FOXTROT, version="v2").ensure_catalog_current()

    assert summary.state is SyncState.VERIFIED
    assert summary.deactivated_assets == 1
    assert summary.deactivated_pairs == 5
    with session_factory() as session:
        foxtrot = session.scalar(select(Asset).where(Asset.key == "GoldenFoxtrot|M"))
        assert foxtrot.active is False
        score = session.scalar(select(AssetScore).where(AssetScore.asset_id == foxtrot.id))
        assert score.elo == 1523.5
        assert score.wins == 3
        assert session.scalar(select(func.count(VoteEvent.id))) == 1
        assert all("GoldenFoxtrot|M" not in key for key in _active_pair_keys(session))
        assert len(_active_pair_keys(session)) == 10
        assert _cursor(session) == "v2"


def test_reintroduced_asset_is_reactivated(session_factory: sessionmaker[Session]) -> None:
    make_synchronizer(session_factory).ensure_catalog_current()
    make_synchronizer(session_factory, SEED_WITHOUT_FOXTROT, version="v2").ensure_catalog_current()

    summary = make_synchronizer(session_factory, version="v3").ensure_catalog_current()

    assert summary.activated_assets == 1
    with session_factory() as session:
        assert session.scalar(select(Asset.active).where(Asset.key == "GoldenFoxtrot|M")) is True
        assert len(_active_pair_keys(session)) == 15
        assert session.scalar(select(func.count(Asset.id))) == 6


def test_pairs_with_unmanaged_members_are_deactivated(session_factory: sessionmaker[Session]) -> None:
    make_synchronizer(session_factory).ensure_catalog_current()
    with session_factory() as session, session.begin():
        outsider = Asset(key="Charizard|M", label="Charizard M", active=True)
        session.add(outsider)
        session.flush()
        alpha_id = session.scalar(select(Asset.id).where(Asset.key == "GoldenAlpha|M"))
        session.add(
            VotingPair(
                pair_key=canonical_pair_key("GoldenAlpha|M", "Charizard|M"),
                left_asset_id=alpha_id,
                right_asset_id=outsider.id,
                left_asset_keys=["GoldenAlpha|M"],
                right_asset_keys=["Charizard|M"],
                matchup_mode="1v1",
                prompt="Which one?",
                active=True,
            )
        )

    make_synchronizer(session_factory, version="v2").ensure_catalog_current()

    with session_factory() as session:
        assert canonical_pair_key("GoldenAlpha|M", "Charizard|M") not in _active_pair_keys(session)
        assert session.scalar(select(Asset.active).where(Asset.key == "Charizard|M")) is True


def test_invalid_seed_on_empty_store_seeds_defaults(session_factory: sessionmaker[Session]) -> None:
    summary = make_synchronizer(session_factory, "GoldenBroken|M,nope\n").ensure_catalog_current()

    assert summary.state is SyncState.FALLBACK
    assert summary.seeded_defaults is True
    assert summary.errors == ("line 1: Invalid rate token: nope",)
    with session_factory() as session:
        expected = {canonical_pair_key(pair.left_key, pair.right_key) for pair in DEFAULT_PAIRS}
        assert _active_pair_keys(session) == expected
        assert _cursor(session) == "v1:fallback"
        assert session.scalar(select(func.count()).where(Asset.key.startswith("Golden"))) == 0


def test_invalid_seed_leaves_live_catalog_untouched(session_factory: sessionmaker[Session]) -> None:
    make_synchronizer(session_factory).ensure_catalog_current()
    with session_factory() as session:
        before = _active_pair_keys(session)

    summary = make_synchronizer(session_factory, "GoldenOnly|M,1kx\n", version="v2").ensure_catalog_current()

    assert summary.state is SyncState.FALLBACK
    assert summary.seeded_defaults is False
    with session_factory() as session:
        assert _active_pair_keys(session) == before
        assert _cursor(session) == "v2:fallback"
        assert session.scalar(select(func.count(Asset.id)).where(Asset.key == "GoldenOnly|M")) == 0


def test_fallback_cursor_triggers_retry_on_next_run(session_factory: sessionmaker[Session]) -> None:
    make_synchronizer(session_factory, "GoldenBroken|M,nope\n").ensure_catalog_current()

    summary = make_synchronizer(session_factory).ensure_catalog_current()

    assert summary.state is SyncState.VERIFIED
    with session_factory() as session:
        assert _cursor(session) == "v1"
        active = _active_pair_keys(session)
        assert len(active) == 15
        assert all(key.startswith("Golden") for key in active)


def test_unreadable_seed_falls_back(session_factory: sessionmaker[Session]) -> None:
    synchronizer = make_synchronizer(session_factory)

    def missing() -> str:
        raise FileNotFoundError("seed.csv")

    synchronizer.seed_loader = missing
    summary = synchronizer.ensure_catalog_current()

    assert summary.state is SyncState.FALLBACK
    assert summary.seeded_defaults is True


def test_matchup_filter_uses_cached_seed_pair_keys(session_factory: sessionmaker[Session]) -> None:
    synchronizer = make_synchronizer(session_factory)
    synchronizer.ensure_catalog_current()

    criteria = synchronizer.matchup_filter()

    assert criteria.managed_prefix == "Golden"
    assert criteria.pair_keys is not None
    assert len(criteria.pair_keys) == 15
    assert synchronizer.cache.version == "v1"


def test_matchup_filter_is_open_for_invalid_seed(session_factory: sessionmaker[Session]) -> None:
    synchronizer = make_synchronizer(session_factory, "GoldenBroken|M,nope\n")
    synchronizer.ensure_catalog_current()

    criteria = synchronizer.matchup_filter()

    assert criteria.pair_keys is None
    assert criteria.managed_prefix is None


def test_default_cache_uses_generator_parameters(session_factory: sessionmaker[Session]) -> None:
    generator = GeneratorParameters(featured_pair_count=2)
    synchronizer = CatalogSynchronizer(
        session_factory,
        small_catalog_config(),
        seed_loader=lambda: SMALL_SEED,
        generator=generator,
    )

    summary = synchronizer.ensure_catalog_current()

    assert synchronizer.cache.parameters is generator
    assert summary.state is SyncState.VERIFIED
    with session_factory() as session:
        featured = session.scalar(select(func.count(VotingPair.id)).where(VotingPair.featured.is_(True)))
        assert featured == 2
