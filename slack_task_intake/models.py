"""Value objects describing a task submission as it moves through intake."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TaskSubmission:
    """Raw values entered in the task modal."""

    title: str
    requirement: str
    website_url: str | None = None
    system_access: str | None = None
    screen_recording: str | None = None


@dataclass(frozen=True)
class EnrichedSubmission:
    """A submission together with the resolved name of the person who sent it."""

    submission: TaskSubmission
    created_by: str

    def __post_init__(self) -> None:
        if not (self.created_by or "").strip():
            raise ValueError("created_by must be a non-empty string")

    @property
    def title(self) -> str:
        return self.submission.title

    @property
    def requirement(self) -> str:
        return self.submission.requirement

    @property
    def website_url(self) -> str | None:
        return self.submission.website_url

    @property
    def system_access(self) -> str | None:
        return self.submission.system_access

    @property
    def screen_recording(self) -> str | None:
        return self.submission.screen_recording
