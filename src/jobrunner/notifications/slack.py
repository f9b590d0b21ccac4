"""Slack incoming-webhook delivery.

Slack webhooks take no attachments, so only the headline is posted.
"""

from __future__ import annotations

from typing import Any

import httpx

from jobrunner.core.config import SlackConfig
from jobrunner.notifications.base import HttpChannel, check_response
from jobrunner.output.formatter import Report


class SlackChannel(HttpChannel):
    """Posts the report headline to a Slack channel."""

    name = "slack"

    def __init__(self, config: SlackConfig, client: httpx.Client | None = None) -> None:
        super().__init__(config.timeout_seconds, client)
        self._config = config

    def _build_payload(self, report: Report) -> dict[str, Any]:
        payload: dict[str, Any] = {"text": report.headline}
        if self._config.username:
            payload["username"] = self._config.username
        if self._config.icon_emoji:
            payload["icon_emoji"] = self._config.icon_emoji
        return payload

    def deliver(self, report: Report) -> None:
        action = "POSTing Slack webhook"
        response = self._request(
            action,
            "POST",
            self._config.webhook_url,
            json=self._build_payload(report),
        )
        check_response(self.name, response, action)


__all__ = ["SlackChannel"]
