"""Discord webhook delivery.

Posts a multipart form: a short ``content`` line, plus the full report
attached as a file named after the run's log file.
"""

from __future__ import annotations

import httpx

from jobrunner.core.config import DiscordConfig
from jobrunner.notifications.base import HttpChannel, check_response
from jobrunner.output.formatter import Report


class DiscordChannel(HttpChannel):
    """Posts the report headline and attaches the full report."""

    name = "discord"

    def __init__(
        self,
        config: DiscordConfig,
        attachment_name: str,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(config.timeout_seconds, client)
        self._config = config
        self._attachment_name = attachment_name

    def deliver(self, report: Report) -> None:
        action = "POSTing Discord webhook"
        response = self._request(
            action,
            "POST",
            self._config.webhook_url,
            data={"content": report.headline},
            files={
                "files[0]": (
                    self._attachment_name,
                    report.text.encode("utf-8"),
                    "text/plain; charset=utf-8",
                ),
            },
        )
        check_response(self.name, response, action)


__all__ = ["DiscordChannel"]
