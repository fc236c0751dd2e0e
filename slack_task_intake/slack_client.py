"""Thin wrapper utilities around the Slack WebClient."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from slack_sdk import WebClient


class SlackClient:
    """Encapsulate Slack WebClient interactions for easier testing."""

    def __init__(self, *, token: str | None = None, client: WebClient | None = None) -> None:
        if client is None and token is None:
            raise ValueError("Either an instantiated client or a bot token must be provided.")

        self._client = client or WebClient(token=token)

    @property
    def client(self) -> WebClient:
        """Expose the underlying WebClient for advanced use cases."""

        return self._client

    def open_modal(self, *, trigger_id: str, view: Mapping[str, Any]) -> Mapping[str, Any]:
        return self._client.views_open(trigger_id=trigger_id, view=dict(view))

    def post_message(
        self,
        *,
        channel: str,
        text: str,
        blocks: Sequence[Mapping[str, Any]] | None = None,
        thread_ts: str | None = None,
    ) -> Mapping[str, Any]:
        """Post a message to a channel, as a thread reply when *thread_ts* is given."""

        kwargs: dict[str, Any] = {"channel": channel, "text": text}
        if blocks:
            kwargs["blocks"] = list(blocks)
        if thread_ts:
            kwargs["thread_ts"] = thread_ts
        return self._client.chat_postMessage(**kwargs)

    def post_ephemeral(
        self,
        *,
        channel: str,
        user: str,
        text: str,
        blocks: Sequence[Mapping[str, Any]] | None = None,
    ) -> Mapping[str, Any]:
        """Post a message only *user* can see."""

        kwargs: dict[str, Any] = {"channel": channel, "user": user, "text": text}
        if blocks:
            kwargs["blocks"] = list(blocks)
        return self._client.chat_postEphemeral(**kwargs)

    def get_user_display_name(self, user_id: str) -> str | None:
        """Return the best available human-readable name for *user_id*."""

        response = self._client.users_info(user=user_id)
        user = response.get("user") or {}
        profile = user.get("profile") or {}
        for candidate in (user.get("real_name"), profile.get("real_name"), user.get("name")):
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
        return None
