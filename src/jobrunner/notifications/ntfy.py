"""ntfy push notifications.

Publishes with ntfy's JSON API: a POST to the server root whose body names
the topic. See https://docs.ntfy.sh/publish/#publish-as-json
"""

from __future__ import annotations

from typing import Any

import httpx

from jobrunner.core.config import NtfyConfig
from jobrunner.notifications.base import HttpChannel, check_response
from jobrunner.output.formatter import Report


class NtfyChannel(HttpChannel):
    """Publishes the report to an ntfy topic.

    The title is the summary line and the message is the full report text.
    """

    name = "ntfy"

    def __init__(self, config: NtfyConfig, client: httpx.Client | None = None) -> None:
        super().__init__(config.timeout_seconds, client)
        self._config = config

    def _build_payload(self, report: Report) -> dict[str, Any]:
        cfg = self._config
        payload: dict[str, Any] = {
            "topic": cfg.topic,
            "title": report.summary,
            "message": report.text,
            "priority": cfg.priority,
        }
        if cfg.tags:
            payload["tags"] = list(cfg.tags)
        if cfg.email:
            payload["email"] = cfg.email
        return payload

    def _build_headers(self) -> dict[str, str]:
        if self._config.access_token:
            return {"Authorization": f"Bearer {self._config.access_token}"}
        return {}

    def deliver(self, report: Report) -> None:
        action = "sending ntfy notification"
        response = self._request(
            action,
            "POST",
            self._config.server_url,
            headers=self._build_headers(),
            json=self._build_payload(report),
        )
        check_response(self.name, response, action)


__all__ = ["NtfyChannel"]
