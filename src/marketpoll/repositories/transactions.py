"""Serializable transactions with bounded retry on serialization conflicts."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

import structlog
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_random_exponential

from marketpoll.domain.errors import VoteConflictError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
SERIALIZATION_SQLSTATES = frozenset({"40001", "40P01"})


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_seconds: float = 0.025
    max_delay_seconds: float = 0.25
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


def is_serialization_conflict(exc: BaseException) -> bool:
    """True for Postgres serialization/deadlock failures and SQLite lock contention."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in SERIALIZATION_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "serializable_transaction_retry",
        attempt=retry_state.attempt_number,
        error=str(outcome.exception()) if outcome is not None else None,
    )


def run_serializable(
    session_factory: sessionmaker[Session],
    work: Callable[[Session], T],
    *,
    policy: RetryPolicy,
) -> T:
    """Run ``work`` in its own transaction, retrying the whole unit on conflict.

    Each attempt opens a fresh session so no state leaks between retries.
    Non-conflict errors propagate immediately; conflicts that outlast the
    policy raise ``VoteConflictError``.
    """
    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_random_exponential(multiplier=policy.base_delay_seconds, max=policy.max_delay_seconds),
        retry=retry_if_exception(is_serialization_conflict),
        before_sleep=_log_retry,
        sleep=policy.sleep,
        reraise=True,
    )

    def _attempt() -> T:
        with session_factory() as session:
            with session.begin():
                return work(session)

    try:
        return retrying(_attempt)
    except DBAPIError as exc:
        if not is_serialization_conflict(exc):
            raise
        attempts = retrying.statistics.get("attempt_number", policy.max_attempts)
        logger.error("serializable_transaction_exhausted", attempts=attempts)
        raise VoteConflictError(attempts) from exc


__all__ = ["RetryPolicy", "SERIALIZATION_SQLSTATES", "is_serialization_conflict", "run_serializable"]
