"""Read-only registry mapping Slack channels to tenant configuration."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping

from pydantic import BaseModel, ConfigDict, field_validator

from slack_task_intake.config import get_settings


class ClientConfig(BaseModel):
    """A configured client and the external identifiers used for its submissions."""

    model_config = ConfigDict(frozen=True)

    display_name: str
    conversation_id: str
    ledger_id: str
    project_id: str

    @field_validator("display_name", "conversation_id", "ledger_id", "project_id")
    @classmethod
    def _require_value(cls, value: str) -> str:
        trimmed = (value or "").strip()
        if not trimmed:
            raise ValueError("client fields must be non-empty strings")
        return trimmed


class ClientRegistry:
    """Immutable lookup of :class:`ClientConfig` keyed by conversation id."""

    def __init__(self, clients: Iterable[ClientConfig]) -> None:
        by_conversation: dict[str, ClientConfig] = {}
        for client in clients:
            if client.conversation_id in by_conversation:
                raise ValueError(f"Duplicate client conversation id '{client.conversation_id}'")
            by_conversation[client.conversation_id] = client
        self._clients: Mapping[str, ClientConfig] = MappingProxyType(by_conversation)

    @classmethod
    def from_records(cls, records: Iterable[Mapping]) -> "ClientRegistry":
        return cls(ClientConfig.model_validate(record) for record in records)

    @classmethod
    def from_file(cls, file_path: Path) -> "ClientRegistry":
        """Load the registry from a JSON list of client records."""

        with file_path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
        if not isinstance(data, list):
            raise ValueError("Client registry file must contain a JSON list")
        return cls.from_records(data)

    def find(self, conversation_id: str | None) -> ClientConfig | None:
        if not conversation_id:
            return None
        return self._clients.get(conversation_id)

    def is_configured(self, conversation_id: str | None) -> bool:
        return self.find(conversation_id) is not None

    def conversation_ids(self) -> List[str]:
        return list(self._clients)

    def __iter__(self) -> Iterator[ClientConfig]:
        return iter(self._clients.values())

    def __len__(self) -> int:
        return len(self._clients)


@lru_cache()
def get_client_registry() -> ClientRegistry:
    """Load and cache the registry named by the ``CLIENTS_FILE`` setting."""

    return ClientRegistry.from_file(Path(get_settings().clients_file))
