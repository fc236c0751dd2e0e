"""Builder for the task submission modal."""

from __future__ import annotations

import json
from typing import Any, Dict

from slack_task_intake.clients import ClientConfig

TASK_MODAL_CALLBACK_ID = "task_submission_modal"
MAX_TITLE_LENGTH = 200
MAX_REQUIREMENT_LENGTH = 3000

# field name -> (block_id, action_id)
FIELD_BLOCKS: Dict[str, tuple[str, str]] = {
    "title": ("task_title", "title_input"),
    "requirement": ("detailed_requirement", "requirement_input"),
    "website_url": ("website_url", "url_input"),
    "system_access": ("system_access", "access_input"),
    "screen_recording": ("screen_recording", "recording_input"),
}


def _input_block(
    field: str,
    *,
    label: str,
    placeholder: str,
    optional: bool,
    multiline: bool = False,
    max_length: int | None = None,
) -> Dict[str, Any]:
    block_id, action_id = FIELD_BLOCKS[field]
    element: Dict[str, Any] = {
        "type": "plain_text_input",
        "action_id": action_id,
        "placeholder": {"type": "plain_text", "text": placeholder},
    }
    if multiline:
        element["multiline"] = True
    if max_length is not None:
        element["max_length"] = max_length

    return {
        "type": "input",
        "block_id": block_id,
        "label": {"type": "plain_text", "text": label},
        "element": element,
        "optional": optional,
    }


def build_task_modal(client: ClientConfig) -> Dict[str, Any]:
    """Build the modal payload opened by the slash command for *client*."""

    metadata = {
        "conversation_id": client.conversation_id,
        "display_name": client.display_name,
    }

    return {
        "type": "modal",
        "callback_id": TASK_MODAL_CALLBACK_ID,
        "private_metadata": json.dumps(metadata),
        "title": {"type": "plain_text", "text": "Submit New Task"},
        "submit": {"type": "plain_text", "text": "Submit"},
        "close": {"type": "plain_text", "text": "Cancel"},
        "blocks": [
            _input_block(
                "title",
                label="Title of the task",
                placeholder='e.g., Track "Add to Cart" button clicks',
                optional=False,
                max_length=MAX_TITLE_LENGTH,
            ),
            _input_block(
                "requirement",
                label="Detailed requirement",
                placeholder="Provide detailed requirements, expected behavior, and any specific instructions...",
                optional=False,
                multiline=True,
                max_length=MAX_REQUIREMENT_LENGTH,
            ),
            _input_block(
                "website_url",
                label="Website URL",
                placeholder="https://example.com",
                optional=True,
            ),
            _input_block(
                "system_access",
                label="System Access (GTM Container ID, GA4 Property, etc.)",
                placeholder="GTM Container ID: GTM-XXXXXX\nGA4 Property: G-XXXXXXXXXX",
                optional=True,
                multiline=True,
            ),
            _input_block(
                "screen_recording",
                label="Link to Screen Recording",
                placeholder="https://loom.com/share/...",
                optional=True,
            ),
        ],
    }


def block_id_for(field: str) -> str:
    """Return the modal block id that renders *field*, or ``general``."""

    entry = FIELD_BLOCKS.get(field)
    return entry[0] if entry else "general"
