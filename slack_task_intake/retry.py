"""Bounded, fixed-delay retry for calls that create remote records."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

import structlog

T = TypeVar("T")


def _never_permanent(_exc: BaseException) -> bool:
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to attempt a call and how long to wait between attempts.

    ``is_permanent`` classifies an error as one the remote party will keep
    rejecting (a 4xx-style failure); such errors stop the loop immediately.
    """

    max_attempts: int
    delay: float
    is_permanent: Callable[[BaseException], bool] = _never_permanent

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay cannot be negative")


class RetryError(Exception):
    """Raised by :meth:`RetryOutcome.unwrap` when the call never succeeded."""

    def __init__(self, message: str, *, attempts: int, last_error: BaseException, permanent: bool) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
        self.permanent = permanent


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    attempts: int
    value: T | None = None
    error: Exception | None = None
    permanent: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise :class:`RetryError` chained to the last error."""

        if self.error is None:
            return self.value  # type: ignore[return-value]
        reason = "rejected" if self.permanent else "failed"
        raise RetryError(
            f"Call {reason} after {self.attempts} attempt(s): {self.error}",
            attempts=self.attempts,
            last_error=self.error,
            permanent=self.permanent,
        ) from self.error


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    operation_name: str = "operation",
) -> RetryOutcome[T]:
    """Run *operation* under *policy* and report how it ended.

    Waits happen only between attempts, so total waiting is bounded by
    ``(max_attempts - 1) * delay``.
    """

    log = structlog.get_logger().bind(operation=operation_name, max_attempts=policy.max_attempts)
    last_error: Exception | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            value = operation()
        except Exception as exc:
            last_error = exc
            if policy.is_permanent(exc):
                log.error("retry_aborted_permanent_error", attempt=attempt, error=str(exc))
                return RetryOutcome(attempts=attempt, error=exc, permanent=True)

            log.warning("retry_attempt_failed", attempt=attempt, error=str(exc))
            if attempt < policy.max_attempts:
                sleep(policy.delay)
            continue

        if attempt > 1:
            log.info("retry_succeeded", attempt=attempt)
        return RetryOutcome(attempts=attempt, value=value)

    log.error("retry_exhausted", attempts=policy.max_attempts, error=str(last_error))
    return RetryOutcome(attempts=policy.max_attempts, error=last_error)
