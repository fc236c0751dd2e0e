"""State machine that carries one task submission through Slack, Sheets and Clockify.

The stages run strictly in order::

    RECEIVED -> IDENTITY_RESOLVED -> THREAD_OPENED -> LEDGER_ROW_APPENDED
             -> REMOTE_TASK_CREATED -> LEDGER_ROW_UPDATED -> CONFIRMED

Any step failure moves the state to FAILED. Work already committed (the thread
message, the ledger row) is left in place; once the thread exists the submitter
gets a best-effort ephemeral notice.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, Iterator, List, Tuple

import structlog

from slack_task_intake.clients import ClientConfig
from slack_task_intake.integrations.clockify import ClockifyClient
from slack_task_intake.integrations.ledger import LedgerClient, build_ledger_row, ledger_url
from slack_task_intake.models import EnrichedSubmission, TaskSubmission
from slack_task_intake.retry import RetryPolicy, call_with_retry
from slack_task_intake.slack_client import SlackClient

from .messages import build_failure_notice, build_submission_announcement, build_task_confirmation


class SagaStage(str, Enum):
    RECEIVED = "RECEIVED"
    IDENTITY_RESOLVED = "IDENTITY_RESOLVED"
    THREAD_OPENED = "THREAD_OPENED"
    LEDGER_ROW_APPENDED = "LEDGER_ROW_APPENDED"
    REMOTE_TASK_CREATED = "REMOTE_TASK_CREATED"
    LEDGER_ROW_UPDATED = "LEDGER_ROW_UPDATED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


_NEXT_STAGE = {
    SagaStage.RECEIVED: SagaStage.IDENTITY_RESOLVED,
    SagaStage.IDENTITY_RESOLVED: SagaStage.THREAD_OPENED,
    SagaStage.THREAD_OPENED: SagaStage.LEDGER_ROW_APPENDED,
    SagaStage.LEDGER_ROW_APPENDED: SagaStage.REMOTE_TASK_CREATED,
    SagaStage.REMOTE_TASK_CREATED: SagaStage.LEDGER_ROW_UPDATED,
    SagaStage.LEDGER_ROW_UPDATED: SagaStage.CONFIRMED,
}

TERMINAL_STAGES = frozenset({SagaStage.CONFIRMED, SagaStage.FAILED})


class SagaTransitionError(Exception):
    """Raised when a stage change skips or repeats a step."""


@dataclass
class WorkflowState:
    """Everything one saga run has learned so far; owned by that run alone."""

    submission: TaskSubmission
    client: ClientConfig
    submitter_id: str
    conversation_id: str
    stage: SagaStage = SagaStage.RECEIVED
    enriched: EnrichedSubmission | None = None
    thread_ts: str | None = None
    ledger_row_index: int | None = None
    task_id: str | None = None
    task_attempts: int = 0
    history: List[SagaStage] = field(default_factory=lambda: [SagaStage.RECEIVED])

    def advance(self, target: SagaStage) -> None:
        if target is SagaStage.FAILED:
            if self.stage in TERMINAL_STAGES:
                raise SagaTransitionError(f"Cannot fail a saga already in {self.stage.value}")
        elif _NEXT_STAGE.get(self.stage) is not target:
            raise SagaTransitionError(f"Cannot transition from {self.stage.value} to {target.value}")
        self.stage = target
        self.history.append(target)


@dataclass(frozen=True)
class SagaResult:
    task_id: str
    ledger_row_index: int
    thread_ts: str


class SagaError(Exception):
    """A saga step failed; the originating error is chained as ``__cause__``."""

    def __init__(
        self,
        message: str,
        *,
        failed_stage: SagaStage,
        last_completed_stage: SagaStage,
        state: WorkflowState,
    ) -> None:
        super().__init__(message)
        self.failed_stage = failed_stage
        self.last_completed_stage = last_completed_stage
        self.state = state


class SubmissionSaga:
    """Drive a :class:`WorkflowState` from RECEIVED to a terminal stage."""

    def __init__(
        self,
        *,
        slack: SlackClient,
        ledger: LedgerClient,
        tracker: ClockifyClient,
        retry_policy: RetryPolicy,
        tasks_at_a_time: int = 3,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._slack = slack
        self._ledger = ledger
        self._tracker = tracker
        self._retry_policy = retry_policy
        self._tasks_at_a_time = tasks_at_a_time
        self._sleep = sleep
        self._clock = clock

    def _steps(self) -> Iterator[Tuple[SagaStage, Callable[[WorkflowState], None]]]:
        yield SagaStage.IDENTITY_RESOLVED, self._resolve_identity
        yield SagaStage.THREAD_OPENED, self._open_thread
        yield SagaStage.LEDGER_ROW_APPENDED, self._append_ledger_row
        yield SagaStage.REMOTE_TASK_CREATED, self._create_remote_task
        yield SagaStage.LEDGER_ROW_UPDATED, self._update_ledger_row
        yield SagaStage.CONFIRMED, self._post_confirmation

    def run(self, state: WorkflowState) -> SagaResult:
        """Execute every remaining step; raise :class:`SagaError` on the first failure."""

        log = structlog.get_logger().bind(
            client=state.client.display_name,
            conversation_id=state.conversation_id,
            submitter_id=state.submitter_id,
            title=state.submission.title,
        )
        log.info("saga_started")

        for target, step in self._steps():
            try:
                step(state)
            except Exception as exc:
                last_completed = state.stage
                state.advance(SagaStage.FAILED)
                log.error(
                    "saga_step_failed",
                    failed_stage=target.value,
                    last_completed_stage=last_completed.value,
                    error=str(exc),
                )
                self._notify_failure(state, log)
                raise SagaError(
                    f"Task submission failed at {target.value}: {exc}",
                    failed_stage=target,
                    last_completed_stage=last_completed,
                    state=state,
                ) from exc

            state.advance(target)
            log.info("saga_transition", stage=target.value)

        log.info(
            "saga_completed",
            task_id=state.task_id,
            ledger_row_index=state.ledger_row_index,
            thread_ts=state.thread_ts,
        )
        return SagaResult(
            task_id=state.task_id,
            ledger_row_index=state.ledger_row_index,
            thread_ts=state.thread_ts,
        )

    def _resolve_identity(self, state: WorkflowState) -> None:
        name: str | None = None
        try:
            name = self._slack.get_user_display_name(state.submitter_id)
        except Exception as exc:
            structlog.get_logger().warning(
                "identity_resolution_failed",
                submitter_id=state.submitter_id,
                error=str(exc),
            )
        state.enriched = EnrichedSubmission(
            submission=state.submission,
            created_by=f"@{name or state.submitter_id}",
        )

    def _open_thread(self, state: WorkflowState) -> None:
        message = build_submission_announcement(
            enriched=state.enriched,
            client=state.client,
            submitter_id=state.submitter_id,
        )
        response = self._slack.post_message(
            channel=state.conversation_id,
            text=message["text"],
            blocks=message["blocks"],
        )
        thread_ts = response.get("ts")
        if not thread_ts:
            raise ValueError("Slack response did not include a message timestamp")
        state.thread_ts = thread_ts

    def _append_ledger_row(self, state: WorkflowState) -> None:
        row = build_ledger_row(state.enriched, self._clock())
        state.ledger_row_index = self._ledger.append_row(state.client.ledger_id, row)

    def _create_remote_task(self, state: WorkflowState) -> None:
        outcome = call_with_retry(
            lambda: self._tracker.create_task(state.client.project_id, state.enriched),
            self._retry_policy,
            sleep=self._sleep,
            operation_name="clockify_create_task",
        )
        state.task_attempts = outcome.attempts
        state.task_id = outcome.unwrap()

    def _update_ledger_row(self, state: WorkflowState) -> None:
        self._ledger.update_task_id(state.client.ledger_id, state.ledger_row_index, state.task_id)

    def _post_confirmation(self, state: WorkflowState) -> None:
        message = build_task_confirmation(
            submitter_id=state.submitter_id,
            task_id=state.task_id,
            ledger_url=ledger_url(state.client.ledger_id),
            tasks_at_a_time=self._tasks_at_a_time,
        )
        self._slack.post_message(
            channel=state.conversation_id,
            text=message["text"],
            blocks=message["blocks"],
            thread_ts=state.thread_ts,
        )

    def _notify_failure(self, state: WorkflowState, log) -> None:
        if not state.thread_ts:
            return
        notice = build_failure_notice()
        try:
            self._slack.post_ephemeral(
                channel=state.conversation_id,
                user=state.submitter_id,
                text=notice["text"],
                blocks=notice["blocks"],
            )
        except Exception as exc:
            log.error("failure_notice_failed", error=str(exc))
