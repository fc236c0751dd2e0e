"""Clockify API client used to register submitted tasks."""

from __future__ import annotations

from typing import Any, Dict

import httpx
import structlog

from slack_task_intake.config import AppSettings
from slack_task_intake.models import EnrichedSubmission

DEFAULT_BASE_URL = "https://api.clockify.me/api/v1"
DEFAULT_TIMEOUT = 10.0


class ClockifyError(Exception):
    """Raised when Clockify rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


def is_client_error(exc: BaseException) -> bool:
    """Return True when *exc* is a 4xx Clockify response that retrying cannot fix."""

    return isinstance(exc, ClockifyError) and exc.is_client_error


def format_task_description(enriched: EnrichedSubmission) -> str:
    """Render the Clockify task description as labelled blocks."""

    parts = [f"**Detailed Requirement:**\n{enriched.requirement}"]
    if enriched.website_url:
        parts.append(f"**Website URL:**\n{enriched.website_url}")
    if enriched.system_access:
        parts.append(f"**System Access:**\n{enriched.system_access}")
    if enriched.screen_recording:
        parts.append(f"**Screen Recording:**\n{enriched.screen_recording}")
    parts.append(f"**Submitted by:** {enriched.created_by}")
    return "\n\n".join(parts)


class ClockifyClient:
    """Minimal Clockify workspace client authenticated with an API key."""

    def __init__(
        self,
        *,
        api_key: str,
        workspace_id: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._workspace_id = workspace_id
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"X-Api-Key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "ClockifyClient":
        return cls(
            api_key=settings.clockify_api_key,
            workspace_id=settings.clockify_workspace_id,
            base_url=settings.clockify_base_url,
            timeout=settings.clockify_timeout_seconds,
        )

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, *, json: Dict[str, Any] | None = None) -> Dict[str, Any]:
        try:
            response = self._http.request(method, path, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise ClockifyError(
                f"Clockify returned HTTP {status_code} for {method} {path}",
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ClockifyError(f"Clockify request failed: {exc!r}") from exc

        return response.json() if response.content else {}

    def create_task(self, project_id: str, enriched: EnrichedSubmission) -> str:
        """Create a billable, active task under *project_id* and return its id."""

        payload = {
            "name": enriched.title,
            "description": format_task_description(enriched),
            "status": "ACTIVE",
            "billable": True,
        }
        data = self._request(
            "POST",
            f"/workspaces/{self._workspace_id}/projects/{project_id}/tasks",
            json=payload,
        )
        task_id = data.get("id")
        if not task_id:
            raise ClockifyError("Clockify response did not include a task id")

        structlog.get_logger().info("clockify_task_created", project_id=project_id, task_id=task_id)
        return str(task_id)

    def verify_access(self) -> bool:
        try:
            self._request("GET", f"/workspaces/{self._workspace_id}")
        except ClockifyError as exc:
            structlog.get_logger().warning(
                "clockify_access_failed",
                workspace_id=self._workspace_id,
                status_code=exc.status_code,
                error=str(exc),
            )
            return False
        return True
