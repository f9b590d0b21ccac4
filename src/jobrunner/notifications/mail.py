"""Email delivery over SMTP.

The encryption mode follows the port: 465 uses implicit TLS, 587 uses
STARTTLS, anything else talks plain SMTP.
"""

from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage
from email.policy import SMTP

from jobrunner.core.config import MailConfig
from jobrunner.core.errors import DeliveryError, ErrorCode
from jobrunner.core.logging import get_logger
from jobrunner.notifications.base import product_identifier
from jobrunner.output.formatter import Report

_logger = get_logger("notifications.mail")

SMTPS_PORT = 465
SUBMISSION_PORT = 587


def build_message(config: MailConfig, report: Report) -> EmailMessage:
    """Build the email for a report.

    The body is the full report text, with tabs replaced when the config
    asks for it. The SMTP policy writes CRLF line endings on the wire.
    """
    body = report.text
    if config.tab_char_replacement:
        body = body.replace("\t", config.tab_char_replacement)

    msg = EmailMessage(policy=SMTP)
    msg["From"] = config.mail_from
    msg["To"] = config.mail_to
    msg["Subject"] = report.headline
    msg["X-Mailer"] = product_identifier()
    msg.set_content(body)
    return msg


class MailChannel:
    """Sends the report as a plain-text email.

    Example usage:
        channel = MailChannel(MailConfig(
            mail_to="ops@example.com",
            mail_from="runner@host",
            smtp_host="smtp.example.com",
            smtp_port=587,
            smtp_user="runner",
            smtp_password="...",
        ))
        channel.deliver(report)
    """

    name = "mail"

    def __init__(self, config: MailConfig) -> None:
        self._config = config

    def _connect(self) -> smtplib.SMTP:
        cfg = self._config
        if cfg.smtp_port == SMTPS_PORT:
            return smtplib.SMTP_SSL(
                cfg.smtp_host,
                cfg.smtp_port,
                timeout=cfg.timeout_seconds,
                context=ssl.create_default_context(),
            )
        server = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_seconds)
        if cfg.smtp_port == SUBMISSION_PORT:
            try:
                server.starttls(context=ssl.create_default_context())
            except (OSError, smtplib.SMTPException):
                server.close()
                raise
        return server

    def deliver(self, report: Report) -> None:
        cfg = self._config
        msg = build_message(cfg, report)

        try:
            server = self._connect()
        except (OSError, smtplib.SMTPException) as e:
            raise DeliveryError(
                self.name,
                f"failed to connect to SMTP server {cfg.smtp_host}:{cfg.smtp_port}: {e}",
                ErrorCode.DELIVERY_TRANSPORT,
            ) from e

        try:
            with server:
                if cfg.smtp_user or cfg.smtp_password:
                    server.login(cfg.smtp_user, cfg.smtp_password)
                server.send_message(msg)
        except smtplib.SMTPResponseException as e:
            raise DeliveryError(
                self.name,
                f"failed to send email to {cfg.mail_to}: {e.smtp_code} {e.smtp_error!r}",
                ErrorCode.DELIVERY_REJECTED,
            ) from e
        except (OSError, smtplib.SMTPException) as e:
            raise DeliveryError(
                self.name,
                f"failed to send email to {cfg.mail_to}: {e}",
                ErrorCode.DELIVERY_TRANSPORT,
            ) from e

        _logger.debug("mail_sent", mail_to=cfg.mail_to)


__all__ = ["MailChannel", "build_message"]
