"""Task submission models, modal builders and the submission saga."""

from slack_task_intake.models import EnrichedSubmission, TaskSubmission

from .modal import TASK_MODAL_CALLBACK_ID, block_id_for, build_task_modal
from .requests import parse_modal_metadata, parse_submission
from .saga import SagaError, SagaResult, SagaStage, SubmissionSaga, WorkflowState
from .validation import FieldError, validate_submission

__all__ = [
    "TASK_MODAL_CALLBACK_ID",
    "block_id_for",
    "build_task_modal",
    "EnrichedSubmission",
    "TaskSubmission",
    "parse_modal_metadata",
    "parse_submission",
    "SagaError",
    "SagaResult",
    "SagaStage",
    "SubmissionSaga",
    "WorkflowState",
    "FieldError",
    "validate_submission",
]
