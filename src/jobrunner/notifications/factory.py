"""Factory for creating delivery channels from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jobrunner.notifications.discord import DiscordChannel
from jobrunner.notifications.mail import MailChannel
from jobrunner.notifications.ntfy import NtfyChannel
from jobrunner.notifications.slack import SlackChannel

if TYPE_CHECKING:
    from jobrunner.core.config import DeliveryConfig
    from jobrunner.notifications.base import DeliveryChannel


def create_channels_from_config(
    config: DeliveryConfig,
    log_filename: str,
) -> list[DeliveryChannel]:
    """Create the configured channels in delivery order.

    Order is fixed: mail, ntfy, Discord, Slack.

    Args:
        config: Delivery configuration; absent sub-configs are skipped.
        log_filename: Name used for file attachments.

    Returns:
        List of DeliveryChannel instances, possibly empty.
    """
    channels: list[DeliveryChannel] = []
    if config.mail is not None:
        channels.append(MailChannel(config.mail))
    if config.ntfy is not None:
        channels.append(NtfyChannel(config.ntfy))
    if config.discord is not None:
        channels.append(DiscordChannel(config.discord, attachment_name=log_filename))
    if config.slack is not None:
        channels.append(SlackChannel(config.slack))
    return channels


__all__ = ["create_channels_from_config"]
