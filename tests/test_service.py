"""Tests for the background submission entry point."""

from pathlib import Path
import sys

from structlog.testing import capture_logs

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from slack_task_intake.clients import ClientConfig  # noqa: E402
from slack_task_intake.integrations.clockify import ClockifyError, is_client_error  # noqa: E402
from slack_task_intake.models import TaskSubmission  # noqa: E402
from slack_task_intake.retry import RetryPolicy  # noqa: E402
from slack_task_intake.tasks import service  # noqa: E402
from slack_task_intake.tasks.saga import SagaResult, SagaStage, SubmissionSaga  # noqa: E402

TENANT = ClientConfig(display_name="Digr", conversation_id="C2", ledger_id="sheet-2", project_id="proj-2")
SUBMISSION = TaskSubmission(title="Fix tag", requirement="Pixel fires twice")


class StubSaga:
    def __init__(self, outcome):
        self.outcome = outcome
        self.states = []

    def run(self, state):
        self.states.append(state)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _process(monkeypatch, saga):
    web_clients = []

    def fake_build_saga(web_client):
        web_clients.append(web_client)
        return saga

    monkeypatch.setattr(service, "build_saga", fake_build_saga)
    result = service.process_task_submission(
        client="web-client",
        tenant=TENANT,
        submission=SUBMISSION,
        submitter_id="U9",
        conversation_id="C2",
    )
    return result, web_clients


def test_successful_run_returns_result(monkeypatch):
    expected = SagaResult(task_id="task-1", ledger_row_index=4, thread_ts="1.1")
    saga = StubSaga(expected)

    with capture_logs() as logs:
        result, web_clients = _process(monkeypatch, saga)

    assert result == expected
    assert web_clients == ["web-client"]
    state = saga.states[0]
    assert state.client is TENANT
    assert state.submitter_id == "U9"
    assert state.stage is SagaStage.RECEIVED
    processed = [entry for entry in logs if entry["event"] == "task_submission_processed"]
    assert processed[0]["task_id"] == "task-1"


class StubSlack:
    def __init__(self):
        self.ephemerals = []

    def get_user_display_name(self, user_id):
        return "Robin"

    def post_message(self, *, channel, text, blocks=None, thread_ts=None):
        return {"ok": True, "ts": "1700000000.000001"}

    def post_ephemeral(self, *, channel, user, text, blocks=None):
        self.ephemerals.append(user)
        return {"ok": True}


class StubLedger:
    def append_row(self, ledger_id, row):
        return 5

    def update_task_id(self, ledger_id, row_index, task_id):
        raise AssertionError("task id should not be written when task creation fails")


class UnavailableTracker:
    def __init__(self):
        self.calls = 0

    def create_task(self, project_id, enriched):
        self.calls += 1
        raise ClockifyError("Service Unavailable", status_code=503)


def test_exhausted_retries_log_the_stage_that_failed(monkeypatch):
    slack, tracker = StubSlack(), UnavailableTracker()
    saga = SubmissionSaga(
        slack=slack,
        ledger=StubLedger(),
        tracker=tracker,
        retry_policy=RetryPolicy(max_attempts=3, delay=2.0, is_permanent=is_client_error),
        sleep=lambda _seconds: None,
    )

    with capture_logs() as logs:
        result, _ = _process(monkeypatch, saga)

    assert result is None
    assert tracker.calls == 3
    assert slack.ephemerals == ["U9"]
    failure = next(entry for entry in logs if entry["event"] == "saga_failed")
    assert failure["failed_stage"] == "REMOTE_TASK_CREATED"
    assert failure["last_completed_stage"] == "LEDGER_ROW_APPENDED"
    assert failure["error_type"] == "RetryError"
    assert failure["task_attempts"] == 3
    assert failure["ledger_row_index"] == 5
    assert failure["client"] == "Digr"


def test_setup_failure_is_logged_not_raised(monkeypatch):
    def broken_build_saga(web_client):
        raise RuntimeError("Missing required environment variables: CLOCKIFY_API_KEY")

    monkeypatch.setattr(service, "build_saga", broken_build_saga)

    with capture_logs() as logs:
        result = service.process_task_submission(
            client=object(),
            tenant=TENANT,
            submission=SUBMISSION,
            submitter_id="U9",
            conversation_id="C2",
        )

    assert result is None
    assert any(entry["event"] == "saga_setup_failed" for entry in logs)


def test_shared_clockify_client_is_closed_at_exit(monkeypatch):
    registered = []

    class FakeClockifyClient:
        def close(self):
            pass

        @classmethod
        def from_settings(cls, settings):
            return cls()

    monkeypatch.setattr(service, "get_settings", lambda: None)
    monkeypatch.setattr(service, "ClockifyClient", FakeClockifyClient)
    monkeypatch.setattr(service.atexit, "register", registered.append)
    service.get_clockify_client.cache_clear()

    try:
        created = service.get_clockify_client()
        assert service.get_clockify_client() is created
    finally:
        service.get_clockify_client.cache_clear()

    assert registered == [created.close]
