"""Google Sheets ledger holding one row per task submission."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any, List, Sequence

import gspread
import structlog
from google.oauth2.service_account import Credentials

from slack_task_intake.config import AppSettings
from slack_task_intake.models import EnrichedSubmission

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
VALUE_INPUT_OPTION = "USER_ENTERED"

LEDGER_COLUMNS = (
    "timestamp",
    "display_timestamp",
    "title",
    "requirement",
    "website_url",
    "system_access",
    "screen_recording",
    "created_by",
    "task_id",
    "status",
    "notes",
)
TASK_ID_COLUMN = LEDGER_COLUMNS.index("task_id")

_ROW_PATTERN = re.compile(r"^[A-Za-z]+(\d+)")


class LedgerError(Exception):
    """Raised when the ledger spreadsheet cannot be read or written."""


def ledger_url(ledger_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{ledger_id}"


def build_ledger_row(enriched: EnrichedSubmission, now: datetime | None = None) -> List[Any]:
    """Return the positional row appended for *enriched*.

    The task id, status and notes columns are left blank; the task id is filled
    in once the Clockify task exists, the other two are maintained by hand.
    """

    moment = now or datetime.now(UTC)
    return [
        int(moment.timestamp()),
        moment.astimezone(UTC).strftime("%a, %d %b %Y %H:%M:%S"),
        enriched.title,
        enriched.requirement,
        enriched.website_url or "",
        enriched.system_access or "",
        enriched.screen_recording or "",
        enriched.created_by,
        "",
        "",
        "",
    ]


def parse_row_index(updated_range: str) -> int:
    """Extract the first row number from an A1 range such as ``submissions!A15:K15``."""

    _, _, cells = (updated_range or "").rpartition("!")
    match = _ROW_PATTERN.match(cells)
    if match is None:
        raise LedgerError(f"Unable to determine appended row from range '{updated_range}'")
    return int(match.group(1))


def _column_letter(index: int) -> str:
    return chr(ord("A") + index)


class LedgerClient:
    """Append and update submission rows in a client's spreadsheet."""

    def __init__(self, *, client: gspread.Client, sheet_name: str = "submissions") -> None:
        self._client = client
        self._sheet_name = sheet_name

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "LedgerClient":
        info = {
            "type": "service_account",
            "client_email": settings.google_service_account_email,
            "private_key": settings.google_private_key,
            "token_uri": TOKEN_URI,
        }
        credentials = Credentials.from_service_account_info(info, scopes=SCOPES)
        return cls(client=gspread.authorize(credentials), sheet_name=settings.ledger_sheet_name)

    @property
    def sheet_name(self) -> str:
        return self._sheet_name

    def _worksheet(self, ledger_id: str):
        return self._client.open_by_key(ledger_id).worksheet(self._sheet_name)

    def append_row(self, ledger_id: str, row: Sequence[Any]) -> int:
        """Append *row* and return its 1-based row number in the sheet."""

        log = structlog.get_logger().bind(ledger_id=ledger_id, sheet=self._sheet_name)
        last_column = _column_letter(len(LEDGER_COLUMNS) - 1)
        try:
            response = self._worksheet(ledger_id).append_row(
                list(row),
                value_input_option=VALUE_INPUT_OPTION,
                table_range=f"A:{last_column}",
            )
        except gspread.exceptions.GSpreadException as exc:
            log.error("ledger_append_failed", error=str(exc))
            raise LedgerError(f"Failed to append row to ledger {ledger_id}") from exc

        updated_range = ((response or {}).get("updates") or {}).get("updatedRange", "")
        row_index = parse_row_index(updated_range)
        log.info("ledger_row_appended", row_index=row_index)
        return row_index

    def update_task_id(self, ledger_id: str, row_index: int, task_id: str) -> None:
        """Write *task_id* into the task id cell of row *row_index*."""

        log = structlog.get_logger().bind(ledger_id=ledger_id, row_index=row_index, task_id=task_id)
        try:
            self._worksheet(ledger_id).update_cell(row_index, TASK_ID_COLUMN + 1, task_id)
        except gspread.exceptions.GSpreadException as exc:
            log.error("ledger_update_failed", error=str(exc))
            raise LedgerError(f"Failed to update task id in ledger {ledger_id}") from exc
        log.info("ledger_task_id_updated")

    def verify_access(self, ledger_id: str) -> bool:
        try:
            self._worksheet(ledger_id)
        except gspread.exceptions.GSpreadException as exc:
            structlog.get_logger().warning("ledger_access_failed", ledger_id=ledger_id, error=str(exc))
            return False
        return True
