"""Pydantic-based configuration helpers for Slack Task Intake."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable, List

from pydantic import BaseModel, Field, ValidationError, field_validator


class AppSettings(BaseModel):
    """Settings required to initialise the Slack bot and its downstream services."""

    bot_token: str = Field(..., alias="SLACK_BOT_TOKEN")
    signing_secret: str = Field(..., alias="SLACK_SIGNING_SECRET")
    google_service_account_email: str = Field(..., alias="GOOGLE_SERVICE_ACCOUNT_EMAIL")
    google_private_key: str = Field(..., alias="GOOGLE_PRIVATE_KEY")
    clockify_api_key: str = Field(..., alias="CLOCKIFY_API_KEY")
    clockify_workspace_id: str = Field(..., alias="CLOCKIFY_WORKSPACE_ID")
    clockify_base_url: str = Field("https://api.clockify.me/api/v1", alias="CLOCKIFY_BASE_URL")
    clockify_max_retries: int = Field(3, alias="CLOCKIFY_MAX_RETRIES")
    clockify_retry_delay_ms: int = Field(2000, alias="CLOCKIFY_RETRY_DELAY_MS")
    clockify_timeout_seconds: float = Field(10.0, alias="CLOCKIFY_TIMEOUT_SECONDS")
    ledger_sheet_name: str = Field("submissions", alias="LEDGER_SHEET_NAME")
    tasks_at_a_time: int = Field(3, alias="TASKS_AT_A_TIME")
    clients_file: str = Field("clients.json", alias="CLIENTS_FILE")
    slash_command: str = Field("/measurehero-new-task", alias="SLASH_COMMAND")

    @field_validator("google_private_key")
    @classmethod
    def _unescape_newlines(cls, value: str) -> str:
        return value.replace("\\n", "\n")

    @field_validator("clockify_max_retries", "tasks_at_a_time")
    @classmethod
    def _ensure_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Value must be at least 1")
        return value

    @field_validator("clockify_retry_delay_ms")
    @classmethod
    def _ensure_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Retry delay cannot be negative")
        return value

    @field_validator("clockify_timeout_seconds")
    @classmethod
    def _ensure_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeout must be greater than zero")
        return value

    @field_validator("clockify_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def clockify_retry_delay(self) -> float:
        """Delay between Clockify attempts, in seconds."""

        return self.clockify_retry_delay_ms / 1000


def _format_missing(fields: Iterable[str]) -> str:
    """Return a human-friendly comma-separated list of missing env vars."""

    unique: List[str] = []
    for field in fields:
        if field not in unique:
            unique.append(field)
    return ", ".join(unique)


@lru_cache()
def get_settings() -> AppSettings:
    """Fetch and cache settings from environment variables."""

    try:
        return AppSettings.model_validate(os.environ)
    except ValidationError as exc:
        missing = [str(error["loc"][0]) for error in exc.errors() if error["type"] == "missing"]
        if missing:
            message = (
                "Missing required environment variables: "
                f"{_format_missing(missing)}"
            )
        else:
            invalid = [str(error["loc"][0]) for error in exc.errors()]
            message = f"Invalid environment variables: {_format_missing(invalid)}"
        raise RuntimeError(message) from exc
