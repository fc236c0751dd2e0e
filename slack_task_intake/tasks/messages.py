"""Block Kit message builders for each stage of a task submission."""

from __future__ import annotations

from typing import Any, Dict, List

from slack_task_intake.clients import ClientConfig
from slack_task_intake.models import EnrichedSubmission

_MISSING_VALUE = "_Not provided_"

FAILURE_NOTICE = (
    ":x: Sorry, there was an error processing your task submission. "
    "Our team has been notified. Please try again or contact support."
)

UNCONFIGURED_CHANNEL_NOTICE = (
    ":warning: This app is only available in configured client channels. "
    "Please contact your administrator."
)

_CAPACITY_WORDS = {1: "one", 2: "two", 3: "three", 4: "four", 5: "five"}


def _format_field(label: str, value: Any) -> str:
    if value is None:
        return f"*{label}:* {_MISSING_VALUE}"

    if isinstance(value, str) and value.strip() == "":
        return f"*{label}:* {_MISSING_VALUE}"

    return f"*{label}:* {value}"


def _section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def build_submission_announcement(
    *,
    enriched: EnrichedSubmission,
    client: ClientConfig,
    submitter_id: str,
) -> Dict[str, Any]:
    """Build the top-level channel message that anchors the submission thread."""

    lines = [
        _format_field("Title", enriched.title),
        _format_field("Detailed requirement", enriched.requirement),
        _format_field("Website URL", enriched.website_url),
        _format_field("System access", enriched.system_access),
        _format_field("Screen recording", enriched.screen_recording),
        _format_field("Created by", enriched.created_by),
    ]

    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "New task submitted", "emoji": True},
        },
        _section("\n".join(lines)),
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": f"- Client: {client.display_name} - Submitted by <@{submitter_id}>",
                }
            ],
        },
    ]

    return {
        "text": f"New task submitted by <@{submitter_id}>: {enriched.title}",
        "blocks": blocks,
    }


def _capacity_note(tasks_at_a_time: int) -> str:
    count = _CAPACITY_WORDS.get(tasks_at_a_time, str(tasks_at_a_time))
    noun = "task" if tasks_at_a_time == 1 else "tasks"
    return f"We handle {count} {noun} at a time."


def build_task_confirmation(
    *,
    submitter_id: str,
    task_id: str,
    ledger_url: str,
    tasks_at_a_time: int,
) -> Dict[str, Any]:
    """Build the threaded reply confirming the created task."""

    return {
        "text": f"Hey <@{submitter_id}>\n\nThanks for the task. Task ID: {task_id}",
        "blocks": [
            _section(f"Hey <@{submitter_id}>\n\nThanks for the task. Task ID: *{task_id}*"),
            _section(
                f"You can check all tasks <{ledger_url}|here>. "
                "If you have multiple tasks and need to set priorities, just let us know. "
                f"{_capacity_note(tasks_at_a_time)}"
            ),
        ],
    }


def build_failure_notice() -> Dict[str, Any]:
    """Build the ephemeral notice sent when processing fails."""

    return {"text": FAILURE_NOTICE, "blocks": [_section(FAILURE_NOTICE)]}
