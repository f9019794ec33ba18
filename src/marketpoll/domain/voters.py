"""Voter streak and XP progression."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

BASE_XP_PER_VOTE = 10
MAX_STREAK_BONUS = 7


@dataclass(frozen=True)
class VoterSnapshot:
    streak_days: int
    last_voted_at: datetime | None
    xp: int
    total_votes: int


@dataclass(frozen=True)
class VoterProgression:
    streak_days: int
    xp_gain: int
    next_xp: int
    next_total_votes: int


def utc_day(value: datetime) -> date:
    """Calendar day in UTC; naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(UTC).date()


def compute_streak_and_xp(snapshot: VoterSnapshot | None, now: datetime | None = None) -> VoterProgression:
    """Same UTC day keeps the streak, yesterday extends it, anything older resets to 1."""
    current = now or datetime.now(UTC)
    today = utc_day(current)
    yesterday = today - timedelta(days=1)

    streak_days = 1
    if snapshot is not None and snapshot.last_voted_at is not None:
        last_day = utc_day(snapshot.last_voted_at)
        if last_day == today:
            streak_days = max(1, snapshot.streak_days)
        elif last_day == yesterday:
            streak_days = max(1, snapshot.streak_days + 1)

    xp_gain = BASE_XP_PER_VOTE + min(streak_days, MAX_STREAK_BONUS)
    previous_xp = snapshot.xp if snapshot is not None else 0
    previous_votes = snapshot.total_votes if snapshot is not None else 0
    return VoterProgression(
        streak_days=streak_days,
        xp_gain=xp_gain,
        next_xp=previous_xp + xp_gain,
        next_total_votes=previous_votes + 1,
    )


__all__ = ["VoterProgression", "VoterSnapshot", "compute_streak_and_xp", "utc_day"]
