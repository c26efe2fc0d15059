"""Email send service - composes the HTML body and dispatches one message."""

import asyncio
import time
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Callable, Optional

import aiosmtplib

from bridgemail.core.constants import Timeouts
from bridgemail.core.formatting import (
    format_html_quote,
    is_html,
    text_to_html,
    wrap_in_html_document,
)
from bridgemail.core.models import SendOptions, SendResult
from bridgemail.core.smtp.connection import SMTPConnection
from bridgemail.utils.config import ProtocolSettings
from bridgemail.utils.errors import NetworkTimeoutError, SMTPError
from bridgemail.utils.logging import async_log_call, get_logger

logger = get_logger(__name__)

ConnectionFactory = Callable[[ProtocolSettings, bool], SMTPConnection]


def compute_references(
    references: Optional[str], in_reply_to: Optional[str]
) -> Optional[str]:
    """Outgoing References header: prior chain then the replied-to id.

    Returns None when there is no ``in_reply_to``.
    """
    if not in_reply_to:
        return None
    if references:
        return f"{references} {in_reply_to}"
    return in_reply_to


def compose_body(options: SendOptions) -> str:
    """Build the full HTML document for an outgoing message."""
    input_is_html = is_html(options.body)
    logger.debug(f"Input detected as: {'HTML' if input_is_html else 'plain text'}")

    body_html = (
        options.body if input_is_html else f"<div>{text_to_html(options.body)}</div>"
    )

    if options.quoted_message is not None:
        logger.debug("Adding quoted message")
        body_html = f"{body_html}\n{format_html_quote(options.quoted_message)}"

    full_html = wrap_in_html_document(body_html)
    logger.debug(f"Final HTML length: {len(full_html)}")
    return full_html


def build_message(options: SendOptions, sender: str) -> EmailMessage:
    """Build the MIME message for ``options`` sent from ``sender``."""
    domain = sender.rpartition("@")[2] if "@" in sender else None

    message = EmailMessage()
    message["From"] = sender
    message["To"] = options.to
    message["Subject"] = options.subject
    message["Date"] = formatdate(localtime=True)
    message["Message-ID"] = make_msgid(domain=domain)

    references = compute_references(options.references, options.in_reply_to)
    if options.in_reply_to:
        message["In-Reply-To"] = options.in_reply_to
        message["References"] = references
        logger.debug(
            "Threading headers",
            extra={"in_reply_to": options.in_reply_to, "references": references},
        )

    message.set_content(compose_body(options), subtype="html", charset="utf-8")
    return message


class EmailSendService:
    """Send one composed message per call. No retries."""

    def __init__(
        self,
        settings: ProtocolSettings,
        verify_tls: bool = False,
        connection_factory: ConnectionFactory = SMTPConnection,
    ):
        """Initialise send service.

        Args:
            settings: SMTP connection settings; ``user`` is the sender
            verify_tls: Whether to verify the server certificate
            connection_factory: Builds the SMTPConnection (swapped in tests)
        """
        self.settings = settings
        self.verify_tls = verify_tls
        self._connection_factory = connection_factory

    @async_log_call
    async def send(self, options: SendOptions) -> SendResult:
        """Compose and send a message in a single attempt.

        Raises:
            MissingCredentialsError: If SMTP credentials are not configured
            NetworkTimeoutError: If the send times out
            SMTPError: If the server rejects the message
        """
        self.settings.require_credentials()

        message = build_message(options, self.settings.user)
        start_time = time.time()

        logger.info(
            "Sending email", extra={"recipient": options.to, "subject": options.subject[:50]}
        )

        async with self._connection_factory(self.settings, self.verify_tls) as connection:
            try:
                await asyncio.wait_for(
                    connection.client.send_message(message),
                    timeout=Timeouts.SMTP_SEND,
                )

            except asyncio.TimeoutError as e:
                raise NetworkTimeoutError(
                    "SMTP send operation timed out", details={"recipient": options.to}
                ) from e

            except aiosmtplib.SMTPException as e:
                logger.error(
                    "Failed to send email",
                    extra={"recipient": options.to, "error": str(e)},
                )
                raise SMTPError(
                    f"Failed to send email: {str(e)}",
                    details={"recipient": options.to},
                ) from e

        duration = time.time() - start_time
        logger.info(
            "Email sent successfully",
            extra={"recipient": options.to, "duration_seconds": round(duration, 2)},
        )

        return SendResult(
            message_id=str(message["Message-ID"]),
            to=options.to,
            subject=options.subject,
            duration=duration,
        )
