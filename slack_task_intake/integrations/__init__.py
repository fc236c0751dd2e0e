"""Clients for the spreadsheet ledger and the Clockify time tracker."""

from .clockify import ClockifyClient, ClockifyError, format_task_description, is_client_error
from .ledger import LEDGER_COLUMNS, TASK_ID_COLUMN, LedgerClient, LedgerError, build_ledger_row, ledger_url

__all__ = [
    "ClockifyClient",
    "ClockifyError",
    "format_task_description",
    "is_client_error",
    "LEDGER_COLUMNS",
    "TASK_ID_COLUMN",
    "LedgerClient",
    "LedgerError",
    "build_ledger_row",
    "ledger_url",
]
