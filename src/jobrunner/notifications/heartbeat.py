"""Success heartbeat.

After a healthy run, fetch a monitoring URL (Uptime Kuma push monitors,
healthchecks.io, ...) so that a missing run can be noticed.
"""

from __future__ import annotations

import httpx

from jobrunner.notifications.base import HttpChannel, check_response
from jobrunner.output.formatter import Report


def is_duplicate_push(response: httpx.Response) -> bool:
    """Uptime Kuma answers a repeated push with a 404 "Duplicate entry".

    See https://github.com/louislam/uptime-kuma/issues/5357
    """
    if response.status_code != 404:
        return False
    body = response.text
    return 'ok":false' in body and "Duplicate entry" in body


class SuccessHeartbeat(HttpChannel):
    """GETs a URL; only meaningful for successful runs."""

    name = "success-notify"

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(timeout, client)
        self._url = url

    def deliver(self, report: Report) -> None:
        action = f"GETting '{self._url}'"
        response = self._request(action, "GET", self._url)
        if is_duplicate_push(response):
            return
        check_response(self.name, response, action)


__all__ = ["SuccessHeartbeat", "is_duplicate_push"]
