"""Delivery framework base types.

Provides the core delivery infrastructure for jobrunner:
- DeliveryChannel protocol implemented by every channel
- deliver() fan-out that tries every channel once and collects failures
- Shared HTTP helpers for the webhook-style channels

A channel reports failure by raising. The fan-out converts whatever it
raised into a DeliveryError naming the channel, so one broken channel never
prevents the remaining ones from being tried.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

import httpx

from jobrunner import __version__
from jobrunner.core.errors import DeliveryError, ErrorCode
from jobrunner.core.logging import get_logger
from jobrunner.output.formatter import Report

_logger = get_logger("notifications")

# Bodies of unexpected HTTP responses are truncated to this many characters
MAX_ERROR_BODY_CHARS = 500


def product_identifier() -> str:
    """User-Agent and X-Mailer value identifying this tool."""
    return f"jobrunner/{__version__}"


@runtime_checkable
class DeliveryChannel(Protocol):
    """Protocol for delivery channels.

    Implementations push a finished Report through one channel (mail, ntfy,
    a chat webhook, ...). Each channel:
    - Builds its own payload from the report's summary, glyph and text
    - Bounds its network calls with its own timeout
    - Raises DeliveryError (or any exception) on failure
    """

    @property
    def name(self) -> str:
        """Short channel name used in error messages (e.g., "mail")."""
        ...

    def deliver(self, report: Report) -> None:
        """Deliver the report.

        Raises:
            DeliveryError: If the channel could not deliver the report.
        """
        ...


def deliver(channels: Iterable[DeliveryChannel], report: Report) -> list[DeliveryError]:
    """Attempt delivery through every channel, in order, exactly once.

    Args:
        channels: Channels to try, in delivery order.
        report: The report to deliver.

    Returns:
        One DeliveryError per failed channel, in channel order. Empty when
        every channel succeeded or none was configured.
    """
    errors: list[DeliveryError] = []

    for channel in channels:
        log = _logger.bind(channel=channel.name)
        try:
            channel.deliver(report)
        except DeliveryError as e:
            log.warning("delivery_failed", error=e.message, code=e.code.value)
            errors.append(e)
        except Exception as e:
            # Any other exception is still only this channel's failure
            log.warning("delivery_failed_unexpectedly", error=str(e), exc_info=True)
            errors.append(DeliveryError(channel.name, f"unexpected error: {e}"))
        else:
            log.info("delivery_succeeded")

    return errors


def check_response(
    channel: str,
    response: httpx.Response,
    action: str,
) -> None:
    """Raise a DeliveryError unless the response has a 2xx status.

    Args:
        channel: Channel name for the error.
        response: The HTTP response received.
        action: What was being done, e.g. "POSTing Discord webhook".
    """
    if response.is_success:
        return
    body = response.text[:MAX_ERROR_BODY_CHARS]
    raise DeliveryError(
        channel,
        f"failed {action} (HTTP {response.status_code} {response.reason_phrase}): {body}",
        ErrorCode.DELIVERY_REJECTED,
    )


def transport_error(channel: str, action: str, error: httpx.HTTPError) -> DeliveryError:
    """Wrap an httpx transport failure as a DeliveryError."""
    if isinstance(error, httpx.TimeoutException):
        detail = f"timed out: {error}"
    else:
        detail = str(error) or type(error).__name__
    return DeliveryError(
        channel,
        f"failed {action}: {detail}",
        ErrorCode.DELIVERY_TRANSPORT,
    )


class HttpChannel:
    """Base for channels that talk HTTP through an httpx.Client.

    A client may be injected (tests use httpx.MockTransport); otherwise one
    is created per delivery with the channel's timeout and closed afterwards.
    """

    name = "http"

    def __init__(self, timeout: float, client: httpx.Client | None = None) -> None:
        self._timeout = timeout
        self._client = client

    def _request(
        self,
        action: str,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request; transport failures become DeliveryErrors."""
        all_headers = {"User-Agent": product_identifier(), **(headers or {})}
        try:
            if self._client is not None:
                return self._client.request(
                    method, url, headers=all_headers, timeout=self._timeout, **kwargs
                )
            with httpx.Client(timeout=httpx.Timeout(self._timeout)) as client:
                return client.request(method, url, headers=all_headers, **kwargs)
        except httpx.HTTPError as e:
            raise transport_error(self.name, action, e) from e


__all__ = [
    "DeliveryChannel",
    "HttpChannel",
    "MAX_ERROR_BODY_CHARS",
    "check_response",
    "deliver",
    "product_identifier",
    "transport_error",
]
