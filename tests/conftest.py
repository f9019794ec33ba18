"""Shared fixtures: an in-memory SQLite store built from the production models."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from marketpoll.db import create_db_engine, create_serializable_session_factory, create_session_factory
from marketpoll.domain.catalog_sync import CatalogSynchronizer, SyncSummary
from marketpoll.domain.config import CatalogConfig
from marketpoll.domain.seeds.catalog import SeedCatalogCache
from marketpoll.domain.seeds.generator import GeneratorParameters, MatchupMode
from marketpoll.repositories.catalog_repository import ensure_schema

SMALL_SEED = """asset_key,seed_range
GoldenAlpha|M,1kx-1.5kx
GoldenBravo|F,1.2kx-1.8kx
GoldenCharlie|?,1.4kx-2kx
GoldenDelta|M,1.6kx-2.2kx
GoldenEcho|F,1.8kx-2.4kx
GoldenFoxtrot|M,2kx-2.6kx
"""

SMALL_SEED_ASSET_KEYS = (
    "GoldenAlpha|M",
    "GoldenBravo|F",
    "GoldenCharlie|?",
    "GoldenDelta|M",
    "GoldenEcho|F",
    "GoldenFoxtrot|M",
)


def small_catalog_config(version: str = "v1", **overrides) -> CatalogConfig:
    values = {
        "seed_version": version,
        "seed_source_label": "test_seed.csv",
        "matchup_modes": (MatchupMode.ONE_VS_ONE,),
        "min_assets": 4,
        "min_pairs": 3,
    }
    values.update(overrides)
    return CatalogConfig(**values)


def make_synchronizer(
    session_factory: sessionmaker[Session],
    csv_text: str = SMALL_SEED,
    *,
    version: str = "v1",
    featured_pair_count: int = 5,
    **overrides,
) -> CatalogSynchronizer:
    config = small_catalog_config(version, **overrides)
    cache = SeedCatalogCache(
        matchup_modes=config.matchup_modes,
        parameters=GeneratorParameters(featured_pair_count=featured_pair_count),
    )
    return CatalogSynchronizer(session_factory, config, cache, seed_loader=lambda: csv_text)


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_db_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    ensure_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def serializable_session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_serializable_session_factory(engine)


@pytest.fixture
def seeded_catalog(session_factory: sessionmaker[Session]) -> SyncSummary:
    return make_synchronizer(session_factory).ensure_catalog_current()
