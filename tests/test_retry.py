"""Tests for the bounded retry executor."""

from pathlib import Path
import sys

import pytest
from structlog.testing import capture_logs

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from slack_task_intake.retry import RetryError, RetryPolicy, call_with_retry  # noqa: E402


class PermanentFailure(Exception):
    pass


class TransientFailure(Exception):
    pass


class FlakyOperation:
    """Fails with the queued errors in order, then returns *value*."""

    def __init__(self, errors, value="task-1"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


def _policy(max_attempts=3, delay=2.0):
    return RetryPolicy(
        max_attempts=max_attempts,
        delay=delay,
        is_permanent=lambda exc: isinstance(exc, PermanentFailure),
    )


def test_success_on_first_attempt_does_not_wait():
    sleeps = []
    operation = FlakyOperation([])

    outcome = call_with_retry(operation, _policy(), sleep=sleeps.append)

    assert outcome.ok is True
    assert outcome.unwrap() == "task-1"
    assert outcome.attempts == 1
    assert sleeps == []


def test_client_error_on_first_attempt_stops_immediately():
    sleeps = []
    operation = FlakyOperation([PermanentFailure("400 bad request")])

    outcome = call_with_retry(operation, _policy(), sleep=sleeps.append)

    assert operation.calls == 1
    assert outcome.attempts == 1
    assert outcome.permanent is True
    assert sleeps == []
    with pytest.raises(RetryError) as err:
        outcome.unwrap()
    assert err.value.permanent is True
    assert isinstance(err.value.__cause__, PermanentFailure)


def test_transient_failures_then_success_uses_two_delays():
    sleeps = []
    operation = FlakyOperation([TransientFailure("timeout"), TransientFailure("503")])

    outcome = call_with_retry(operation, _policy(max_attempts=3, delay=2.0), sleep=sleeps.append)

    assert outcome.unwrap() == "task-1"
    assert outcome.attempts == 3
    assert operation.calls == 3
    assert sleeps == [2.0, 2.0]


def test_exhausting_attempts_reports_last_error_and_attempt_count():
    sleeps = []
    errors = [TransientFailure(f"boom {index}") for index in range(3)]
    operation = FlakyOperation(errors)

    outcome = call_with_retry(operation, _policy(max_attempts=3, delay=0.5), sleep=sleeps.append)

    assert outcome.ok is False
    assert outcome.attempts == 3
    assert str(outcome.error) == "boom 2"
    assert sum(sleeps) <= (3 - 1) * 0.5
    with pytest.raises(RetryError) as err:
        outcome.unwrap()
    assert err.value.attempts == 3
    assert err.value.permanent is False


def test_client_error_after_transient_failure_stops_remaining_attempts():
    sleeps = []
    operation = FlakyOperation([TransientFailure("timeout"), PermanentFailure("404")])

    outcome = call_with_retry(operation, _policy(max_attempts=5), sleep=sleeps.append)

    assert operation.calls == 2
    assert outcome.attempts == 2
    assert outcome.permanent is True
    assert len(sleeps) == 1


def test_single_attempt_policy_never_sleeps():
    sleeps = []
    operation = FlakyOperation([TransientFailure("timeout")])

    outcome = call_with_retry(operation, _policy(max_attempts=1), sleep=sleeps.append)

    assert outcome.attempts == 1
    assert outcome.ok is False
    assert sleeps == []


@pytest.mark.parametrize("kwargs", [{"max_attempts": 0, "delay": 1}, {"max_attempts": 1, "delay": -1}])
def test_invalid_policies_are_rejected(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_attempt_failures_are_logged():
    operation = FlakyOperation([TransientFailure("timeout")])

    with capture_logs() as logs:
        call_with_retry(operation, _policy(), sleep=lambda _delay: None, operation_name="clockify_create_task")

    failed = [entry for entry in logs if entry["event"] == "retry_attempt_failed"]
    assert failed and failed[0]["attempt"] == 1
    assert failed[0]["operation"] == "clockify_create_task"
    assert any(entry["event"] == "retry_succeeded" for entry in logs)
