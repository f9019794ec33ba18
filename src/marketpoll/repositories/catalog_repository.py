"""Persistence helpers for assets, voting pairs and ingestion cursors."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, aliased

from marketpoll.models import Asset, Base, IngestionCursor, VotingPair
from marketpoll.repositories.dialect import upsert_insert


@dataclass(frozen=True)
class PairSides:
    """Active pair with every member key of both bundles."""

    pair_id: int
    pair_key: str
    member_keys: tuple[str, ...]


def ensure_schema(engine: Engine) -> None:
    """Create all MarketPoll tables and indexes if they do not exist."""
    Base.metadata.create_all(bind=engine)


def insert_assets_skip_existing(session: Session, rows: Sequence[dict[str, Any]]) -> None:
    """Bulk insert assets; rows whose key already exists are left untouched."""
    if not rows:
        return
    statement = upsert_insert(session, Asset).on_conflict_do_nothing(index_elements=["key"])
    session.execute(statement, list(rows))


def insert_pairs_skip_existing(session: Session, rows: Sequence[dict[str, Any]]) -> None:
    """Bulk insert voting pairs; rows whose pair_key already exists are left untouched."""
    if not rows:
        return
    statement = upsert_insert(session, VotingPair).on_conflict_do_nothing(index_elements=["pair_key"])
    session.execute(statement, list(rows))


def fetch_asset_ids_by_key(session: Session, keys: Iterable[str]) -> dict[str, int]:
    unique_keys = sorted(set(keys))
    if not unique_keys:
        return {}
    rows = session.execute(select(Asset.key, Asset.id).where(Asset.key.in_(unique_keys))).all()
    return {key: asset_id for key, asset_id in rows}


def fetch_pair_id_by_key(session: Session, pair_key: str) -> int | None:
    return session.scalar(select(VotingPair.id).where(VotingPair.pair_key == pair_key))


def set_assets_active(session: Session, keys: Collection[str], *, active: bool) -> int:
    if not keys:
        return 0
    result = session.execute(
        update(Asset)
        .where(Asset.key.in_(sorted(keys)), Asset.active.is_not(active))
        .values(active=active)
    )
    return int(result.rowcount or 0)


def deactivate_stale_managed_assets(session: Session, *, managed_prefix: str, keep_keys: Collection[str]) -> int:
    """Deactivate managed assets missing from ``keep_keys``; rows and scores are never deleted."""
    statement = update(Asset).where(Asset.key.startswith(managed_prefix, autoescape=True), Asset.active.is_(True))
    if keep_keys:
        statement = statement.where(Asset.key.not_in(sorted(keep_keys)))
    result = session.execute(statement.values(active=False))
    return int(result.rowcount or 0)


def set_pairs_active_by_key(session: Session, pair_keys: Collection[str], *, active: bool) -> int:
    if not pair_keys:
        return 0
    result = session.execute(
        update(VotingPair)
        .where(VotingPair.pair_key.in_(sorted(pair_keys)), VotingPair.active.is_not(active))
        .values(active=active)
    )
    return int(result.rowcount or 0)


def deactivate_pairs_by_id(session: Session, pair_ids: Collection[int]) -> int:
    if not pair_ids:
        return 0
    result = session.execute(
        update(VotingPair).where(VotingPair.id.in_(sorted(pair_ids))).values(active=False)
    )
    return int(result.rowcount or 0)


def fetch_active_pair_sides(session: Session) -> list[PairSides]:
    """Active pairs with the keys of both anchor assets and all bundle members."""
    left_asset = aliased(Asset)
    right_asset = aliased(Asset)
    statement = (
        select(
            VotingPair.id,
            VotingPair.pair_key,
            VotingPair.left_asset_keys,
            VotingPair.right_asset_keys,
            left_asset.key,
            right_asset.key,
        )
        .join(left_asset, VotingPair.left_asset_id == left_asset.id)
        .join(right_asset, VotingPair.right_asset_id == right_asset.id)
        .where(VotingPair.active.is_(True))
        .order_by(VotingPair.id)
    )

    out: list[PairSides] = []
    for pair_id, pair_key, left_keys, right_keys, left_key, right_key in session.execute(statement):
        members = dict.fromkeys([left_key, right_key, *(left_keys or []), *(right_keys or [])])
        out.append(PairSides(pair_id=pair_id, pair_key=pair_key, member_keys=tuple(members)))
    return out


def count_active_pairs(session: Session, *, managed_prefix: str | None = None) -> int:
    """Count active pairs, optionally only those whose anchor assets carry ``managed_prefix``."""
    statement = select(func.count(VotingPair.id)).where(VotingPair.active.is_(True))
    if managed_prefix is not None:
        left_asset = aliased(Asset)
        right_asset = aliased(Asset)
        statement = (
            statement.join(left_asset, VotingPair.left_asset_id == left_asset.id)
            .join(right_asset, VotingPair.right_asset_id == right_asset.id)
            .where(
                left_asset.key.startswith(managed_prefix, autoescape=True),
                right_asset.key.startswith(managed_prefix, autoescape=True),
            )
        )
    return int(session.scalar(statement) or 0)


def get_cursor_value(session: Session, source: str) -> str | None:
    return session.scalar(select(IngestionCursor.last_value).where(IngestionCursor.source == source))


def upsert_cursor(session: Session, *, source: str, value: str) -> None:
    """Create or move the cursor; concurrent writers converge on the last value."""
    statement = upsert_insert(session, IngestionCursor).values(source=source, last_value=value)
    statement = statement.on_conflict_do_update(
        index_elements=["source"],
        set_={"last_value": statement.excluded.last_value, "updated_at": func.now()},
    )
    session.execute(statement)


__all__ = [
    "PairSides",
    "count_active_pairs",
    "deactivate_pairs_by_id",
    "deactivate_stale_managed_assets",
    "ensure_schema",
    "fetch_active_pair_sides",
    "fetch_asset_ids_by_key",
    "fetch_pair_id_by_key",
    "get_cursor_value",
    "insert_assets_skip_existing",
    "insert_pairs_skip_existing",
    "set_assets_active",
    "set_pairs_active_by_key",
    "upsert_cursor",
]
