"""jobrunner delivery framework.

Pushes a finished report through zero or more independent channels:
- Email (SMTP)
- ntfy push notifications
- Discord and Slack webhooks
- A success heartbeat URL

Usage:
    from jobrunner.notifications import create_channels_from_config, deliver

    channels = create_channels_from_config(delivery_config, log_filename)
    errors = deliver(channels, report)  # one DeliveryError per failed channel
"""

from jobrunner.notifications.base import (
    DeliveryChannel,
    HttpChannel,
    check_response,
    deliver,
    product_identifier,
)
from jobrunner.notifications.discord import DiscordChannel
from jobrunner.notifications.factory import create_channels_from_config
from jobrunner.notifications.heartbeat import SuccessHeartbeat
from jobrunner.notifications.mail import MailChannel
from jobrunner.notifications.ntfy import NtfyChannel
from jobrunner.notifications.slack import SlackChannel

__all__ = [
    # Base types
    "DeliveryChannel",
    "HttpChannel",
    "check_response",
    "deliver",
    "product_identifier",
    # Channels
    "DiscordChannel",
    "MailChannel",
    "NtfyChannel",
    "SlackChannel",
    "SuccessHeartbeat",
    # Factory
    "create_channels_from_config",
]
