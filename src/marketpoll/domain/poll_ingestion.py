"""Import externally tallied poll runs (for example chat-bot polls)."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from math import isfinite
from typing import Any

import structlog
from sqlalchemy.orm import Session, sessionmaker

from marketpoll.domain.pair_key import canonical_bundle_key, canonical_pair_key, label_from_asset_key
from marketpoll.domain.ratings.elo import DEFAULT_ELO_PARAMETERS, EloParameters
from marketpoll.domain.scoring import apply_tally
from marketpoll.domain.seeds.generator import build_prompt
from marketpoll.domain.vote_coordinator import Clock, utc_now
from marketpoll.models import VoteSide
from marketpoll.repositories.catalog_repository import (
    fetch_asset_ids_by_key,
    fetch_pair_id_by_key,
    insert_assets_skip_existing,
    insert_pairs_skip_existing,
    set_assets_active,
    set_pairs_active_by_key,
)
from marketpoll.repositories.transactions import RetryPolicy, run_serializable
from marketpoll.repositories.vote_repository import fetch_poll_event_sides, upsert_poll_event

logger = structlog.get_logger(__name__)

POLL_ASSET_SOURCE = "poll_run"


@dataclass(frozen=True)
class PollRun:
    message_id: str
    left_keys: tuple[str, ...]
    right_keys: tuple[str, ...]
    left_votes: int
    right_votes: int
    external_run_id: str | None = None
    guild_id: str | None = None
    channel_id: str | None = None
    started_at: datetime | None = None
    ends_at: datetime | None = None
    closed_at: datetime | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PollRun:
        """Build a run from the exported JSON shape (camelCase keys, epoch milliseconds)."""
        left_key = str(payload.get("leftAssetKey") or "").strip()
        right_key = str(payload.get("rightAssetKey") or "").strip()
        left_keys = _key_list(payload.get("leftAssets")) or ([left_key] if left_key else [])
        right_keys = _key_list(payload.get("rightAssets")) or ([right_key] if right_key else [])
        return cls(
            message_id=str(payload.get("messageId") or "").strip(),
            left_keys=tuple(left_keys),
            right_keys=tuple(right_keys),
            left_votes=_tally(payload.get("leftVotes")),
            right_votes=_tally(payload.get("rightVotes")),
            external_run_id=_optional_str(payload.get("externalRunId")),
            guild_id=_optional_str(payload.get("guildId")),
            channel_id=_optional_str(payload.get("channelId")),
            started_at=_from_epoch_ms(payload.get("startedAtMs")),
            ends_at=_from_epoch_ms(payload.get("endsAtMs")),
            closed_at=_from_epoch_ms(payload.get("closedAtMs")),
        )

    @property
    def is_valid(self) -> bool:
        if not self.message_id or not self.left_keys or not self.right_keys:
            return False
        if len(set(self.left_keys)) != len(self.left_keys) or len(set(self.right_keys)) != len(self.right_keys):
            return False
        if set(self.left_keys) & set(self.right_keys):
            return False
        return canonical_bundle_key(self.left_keys) != canonical_bundle_key(self.right_keys)

    @property
    def pair_key(self) -> str:
        return canonical_pair_key(self.left_keys, self.right_keys)


@dataclass
class IngestionSummary:
    processed: int = 0
    skipped: int = 0
    upserted_votes: int = 0
    rated_runs: int = 0
    skipped_message_ids: list[str] = field(default_factory=list)


def _key_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return list(dict.fromkeys(str(item).strip() for item in value if str(item).strip()))


def _tally(value: Any) -> int:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0
    if not isfinite(number):
        return 0
    return max(0, int(number))


def _optional_str(value: Any) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


def _from_epoch_ms(value: Any) -> datetime | None:
    try:
        millis = float(value)
    except (TypeError, ValueError):
        return None
    if not isfinite(millis) or millis <= 0:
        return None
    return datetime.fromtimestamp(millis / 1000.0, tz=UTC).replace(tzinfo=None)


def _run_metadata(run: PollRun) -> dict[str, Any]:
    return {
        "externalRunId": run.external_run_id,
        "guildId": run.guild_id,
        "channelId": run.channel_id,
        "startedAt": run.started_at.isoformat() if run.started_at else None,
        "endsAt": run.ends_at.isoformat() if run.ends_at else None,
        "closedAt": run.closed_at.isoformat() if run.closed_at else None,
        "totalVotes": run.left_votes + run.right_votes,
        "leftAssets": list(run.left_keys),
        "rightAssets": list(run.right_keys),
    }


def _ensure_pair(session: Session, run: PollRun) -> tuple[int, list[int], list[int]]:
    keys = list(dict.fromkeys([*run.left_keys, *run.right_keys]))
    insert_assets_skip_existing(
        session,
        [
            {
                "key": key,
                "label": label_from_asset_key(key),
                "tier": None,
                "image_url": None,
                "active": True,
                "metadata_json": {"source": POLL_ASSET_SOURCE},
            }
            for key in keys
        ],
    )
    set_assets_active(session, keys, active=True)
    ids_by_key = fetch_asset_ids_by_key(session, keys)
    left_ids = [ids_by_key[key] for key in run.left_keys]
    right_ids = [ids_by_key[key] for key in run.right_keys]

    pair_key = run.pair_key
    insert_pairs_skip_existing(
        session,
        [
            {
                "pair_key": pair_key,
                "left_asset_id": left_ids[0],
                "right_asset_id": right_ids[0],
                "left_asset_keys": list(run.left_keys),
                "right_asset_keys": list(run.right_keys),
                "matchup_mode": f"{len(run.left_keys)}v{len(run.right_keys)}",
                "prompt": build_prompt(pair_key),
                "featured": False,
                "active": True,
            }
        ],
    )
    set_pairs_active_by_key(session, [pair_key], active=True)
    pair_id = fetch_pair_id_by_key(session, pair_key)
    if pair_id is None:
        raise RuntimeError(f"voting pair missing after upsert: {pair_key}")
    return pair_id, left_ids, right_ids


def ingest_poll_runs(
    serializable_session_factory: sessionmaker[Session],
    runs: Iterable[PollRun],
    *,
    parameters: EloParameters = DEFAULT_ELO_PARAMETERS,
    min_votes: int = 1,
    retry_policy: RetryPolicy | None = None,
    clock: Clock = utc_now,
) -> IngestionSummary:
    """Upsert one LEFT and one RIGHT weighted event per poll message.

    Re-importing a message refreshes its events but rates it only the first
    time, so repeated imports of the same export are idempotent.
    """
    policy = retry_policy or RetryPolicy()
    summary = IngestionSummary()

    for run in runs:
        summary.processed += 1
        if not run.is_valid:
            summary.skipped += 1
            if run.message_id:
                summary.skipped_message_ids.append(run.message_id)
            logger.info("poll_run_skipped", message_id=run.message_id or None)
            continue

        def _work(session: Session, run: PollRun = run) -> bool:
            created_at = run.closed_at or clock()
            pair_id, left_ids, right_ids = _ensure_pair(session, run)
            existing_sides = fetch_poll_event_sides(session, poll_message_id=run.message_id)

            metadata = _run_metadata(run)
            sides: Sequence[tuple[VoteSide, int, int]] = (
                (VoteSide.LEFT, run.left_votes, left_ids[0]),
                (VoteSide.RIGHT, run.right_votes, right_ids[0]),
            )
            for side, weight, selected_asset_id in sides:
                upsert_poll_event(
                    session,
                    poll_message_id=run.message_id,
                    selected_side=side,
                    weight=weight,
                    pair_id=pair_id,
                    pair_key=run.pair_key,
                    left_asset_id=left_ids[0],
                    right_asset_id=right_ids[0],
                    selected_asset_id=selected_asset_id,
                    created_at=created_at,
                    metadata=metadata,
                )

            if existing_sides & {VoteSide.LEFT, VoteSide.RIGHT}:
                return False
            update = apply_tally(
                session,
                left_ids,
                right_ids,
                run.left_votes,
                run.right_votes,
                min_votes=min_votes,
                parameters=parameters,
                polled_at=created_at,
            )
            return update.affects_score

        rated = run_serializable(serializable_session_factory, _work, policy=policy)
        summary.upserted_votes += 2
        summary.rated_runs += int(rated)

    logger.info(
        "poll_runs_ingested",
        processed=summary.processed,
        skipped=summary.skipped,
        upserted_votes=summary.upserted_votes,
        rated_runs=summary.rated_runs,
    )
    return summary


__all__ = ["IngestionSummary", "PollRun", "ingest_poll_runs"]
