"""Background entry point that runs the submission saga for one modal submission."""

from __future__ import annotations

import atexit
from functools import lru_cache

import structlog

from slack_task_intake.clients import ClientConfig
from slack_task_intake.config import AppSettings, get_settings
from slack_task_intake.integrations.clockify import ClockifyClient, is_client_error
from slack_task_intake.integrations.ledger import LedgerClient
from slack_task_intake.models import TaskSubmission
from slack_task_intake.retry import RetryPolicy
from slack_task_intake.slack_client import SlackClient

from .saga import SagaError, SagaResult, SubmissionSaga, WorkflowState


@lru_cache()
def get_ledger_client() -> LedgerClient:
    return LedgerClient.from_settings(get_settings())


@lru_cache()
def get_clockify_client() -> ClockifyClient:
    """Return the shared Clockify client; its connection pool is closed at interpreter exit."""

    client = ClockifyClient.from_settings(get_settings())
    atexit.register(client.close)
    return client


def build_retry_policy(settings: AppSettings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.clockify_max_retries,
        delay=settings.clockify_retry_delay,
        is_permanent=is_client_error,
    )


def build_saga(web_client) -> SubmissionSaga:
    """Assemble a saga around the Bolt-provided WebClient and the shared API clients."""

    settings = get_settings()
    return SubmissionSaga(
        slack=SlackClient(client=web_client),
        ledger=get_ledger_client(),
        tracker=get_clockify_client(),
        retry_policy=build_retry_policy(settings),
        tasks_at_a_time=settings.tasks_at_a_time,
    )


def process_task_submission(
    *,
    client,
    tenant: ClientConfig,
    submission: TaskSubmission,
    submitter_id: str,
    conversation_id: str,
) -> SagaResult | None:
    """Run the saga and log its outcome; failures are reported, never re-raised."""

    log = structlog.get_logger().bind(
        client=tenant.display_name,
        title=submission.title,
        submitter_id=submitter_id,
        conversation_id=conversation_id,
    )
    state = WorkflowState(
        submission=submission,
        client=tenant,
        submitter_id=submitter_id,
        conversation_id=conversation_id,
    )

    try:
        saga = build_saga(client)
        result = saga.run(state)
    except SagaError as exc:
        cause = exc.__cause__
        log.error(
            "saga_failed",
            failed_stage=exc.failed_stage.value,
            last_completed_stage=exc.last_completed_stage.value,
            error=str(cause or exc),
            error_type=type(cause or exc).__name__,
            thread_ts=state.thread_ts,
            ledger_row_index=state.ledger_row_index,
            task_attempts=state.task_attempts,
        )
        return None
    except Exception:
        log.exception("saga_setup_failed")
        return None

    log.info(
        "task_submission_processed",
        task_id=result.task_id,
        ledger_row_index=result.ledger_row_index,
    )
    return result
