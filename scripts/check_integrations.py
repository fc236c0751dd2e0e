"""Verify that every configured client's ledger and Clockify are reachable.

Usage:
    python scripts/check_integrations.py

Environment:
    Ensure the Google service account, Clockify credentials and CLIENTS_FILE
    are available in the current shell before running this script.
"""

from __future__ import annotations

import sys

from slack_task_intake.clients import get_client_registry
from slack_task_intake.logging_config import configure_logging
from slack_task_intake.tasks.service import get_clockify_client, get_ledger_client


def check_integrations() -> bool:
    registry = get_client_registry()
    ledger = get_ledger_client()
    clockify = get_clockify_client()

    try:
        healthy = clockify.verify_access()
        print(f"Clockify workspace: {'ok' if healthy else 'UNREACHABLE'}")

        for client in registry:
            reachable = ledger.verify_access(client.ledger_id)
            healthy = healthy and reachable
            print(f"{client.display_name} ({client.conversation_id}) ledger: {'ok' if reachable else 'UNREACHABLE'}")
    finally:
        clockify.close()

    return healthy


if __name__ == "__main__":
    configure_logging()
    sys.exit(0 if check_integrations() else 1)
