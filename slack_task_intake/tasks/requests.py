"""Utilities for parsing task modal submissions."""

from __future__ import annotations

import json
from typing import Any, Dict

from pydantic import BaseModel, Field, ValidationError

from slack_task_intake.models import TaskSubmission

from .modal import FIELD_BLOCKS


class SubmissionValue(BaseModel):
    """Represents a single field value coming from Slack modal state."""

    value: str | None = Field(None, alias="value")


class SubmissionState(BaseModel):
    """Model to validate Slack modal state payloads."""

    values: Dict[str, Dict[str, SubmissionValue]]


class ModalMetadata(BaseModel):
    """Tenant reference attached to the modal when it was opened."""

    conversation_id: str
    display_name: str | None = None


def _field_value(state: SubmissionState, field: str) -> str | None:
    block_id, action_id = FIELD_BLOCKS[field]
    block = state.values.get(block_id, {})
    if action_id in block:
        raw = block[action_id].value
    else:
        raw = next(iter(block.values()), SubmissionValue()).value
    if raw is None:
        return None
    return raw.strip() or None


def parse_submission(state_payload: Dict[str, Any]) -> TaskSubmission:
    """Parse Slack modal state into a :class:`TaskSubmission`.

    Required fields missing from the payload become empty strings so the validator
    can report them; optional fields become ``None``.
    """

    try:
        state = SubmissionState.model_validate(state_payload)
    except ValidationError as exc:
        raise ValueError("Invalid submission payload") from exc

    return TaskSubmission(
        title=_field_value(state, "title") or "",
        requirement=_field_value(state, "requirement") or "",
        website_url=_field_value(state, "website_url"),
        system_access=_field_value(state, "system_access"),
        screen_recording=_field_value(state, "screen_recording"),
    )


def parse_modal_metadata(raw: str | None) -> ModalMetadata:
    try:
        payload = json.loads(raw or "")
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid task metadata.") from exc

    try:
        return ModalMetadata.model_validate(payload)
    except ValidationError as exc:
        raise ValueError("Task metadata missing.") from exc
