"""Exception taxonomy for catalog, matchup and vote operations."""

from __future__ import annotations

from collections.abc import Sequence


class MarketPollError(Exception):
    """Base exception for expected MarketPoll failures."""


class SeedValidationError(MarketPollError):
    """The seed catalog cannot be applied (parse errors or too few rows)."""

    def __init__(
        self,
        message: str,
        *,
        errors: Sequence[str] = (),
        asset_count: int = 0,
        pair_count: int = 0,
    ) -> None:
        self.errors = list(errors)
        self.asset_count = asset_count
        self.pair_count = pair_count
        super().__init__(message)


class MatchupUnavailableError(MarketPollError):
    """No active, eligible voting pair exists."""

    def __init__(self, message: str = "No active voting matchups are available.") -> None:
        super().__init__(message)


class PairUnavailableError(MarketPollError):
    """A referenced voting pair is missing or inactive."""

    def __init__(self, pair_id: int) -> None:
        self.pair_id = pair_id
        super().__init__(f"Voting pair not found: pair_id={pair_id}")


class InvalidVoteError(MarketPollError):
    """A vote payload failed validation."""


class VoteConflictError(MarketPollError):
    """Serialization conflicts persisted after every retry attempt."""

    retryable = True

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Vote transaction conflicted after {attempts} attempts; retry later.")


__all__ = [
    "InvalidVoteError",
    "MarketPollError",
    "MatchupUnavailableError",
    "PairUnavailableError",
    "SeedValidationError",
    "VoteConflictError",
]
