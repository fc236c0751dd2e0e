"""Structural validation of task submissions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List
from urllib.parse import urlparse

from slack_task_intake.models import TaskSubmission


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def __str__(self) -> str:
        return self.message


def is_valid_url(value: str) -> bool:
    """Return True for absolute http(s) URLs with a host.

    Other absolute schemes such as ``ftp:`` or ``mailto:`` are rejected on purpose;
    submitted links have to open in a browser.
    """

    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    if not parsed.netloc:
        return False
    return True


def validate_submission(submission: TaskSubmission) -> List[FieldError]:
    """Return every rule *submission* violates; an empty list means it is valid."""

    errors: List[FieldError] = []

    if not (submission.title or "").strip():
        errors.append(FieldError("title", "Title is required"))

    if not (submission.requirement or "").strip():
        errors.append(FieldError("requirement", "Detailed requirement is required"))

    if submission.website_url and not is_valid_url(submission.website_url):
        errors.append(FieldError("website_url", "Website URL is not valid"))

    if submission.screen_recording and not is_valid_url(submission.screen_recording):
        errors.append(FieldError("screen_recording", "Screen recording link is not valid"))

    return errors
