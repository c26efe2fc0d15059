"""Message fetch service - locate a message by Message-ID and normalise it."""

import time
from datetime import datetime
from typing import Callable, Optional

from bridgemail.core.constants import IMAPFolders
from bridgemail.core.envelope import parse_envelope
from bridgemail.core.imap.connection import IMAPConnection
from bridgemail.core.imap.protocol import IMAPProtocol
from bridgemail.core.mime import decompose, split_headers_and_body
from bridgemail.core.models import FetchedMessage
from bridgemail.utils.config import ProtocolSettings
from bridgemail.utils.errors import IMAPError
from bridgemail.utils.logging import async_log_call, get_logger

logger = get_logger(__name__)

ConnectionFactory = Callable[[ProtocolSettings, bool], IMAPConnection]


def strip_angle_brackets(message_id: str) -> str:
    """Drop one leading ``<`` and one trailing ``>``."""
    message_id = message_id.strip()
    if message_id.startswith("<"):
        message_id = message_id[1:]
    if message_id.endswith(">"):
        message_id = message_id[:-1]
    return message_id


def build_fetched_message(
    source: str,
    requested_id: str,
    retrieved_at: Optional[datetime] = None,
) -> FetchedMessage:
    """Normalise raw message source into a FetchedMessage.

    Args:
        source: Raw message text
        requested_id: Message-ID the caller asked for, used when the source
            has no Message-ID header
        retrieved_at: Fallback date when the source has no usable Date
    """
    headers, _ = split_headers_and_body(source)
    envelope = parse_envelope(headers, retrieved_at)
    bodies = decompose(source)

    return FetchedMessage(
        message_id=envelope.message_id or requested_id,
        sender=envelope.sender,
        recipient=envelope.recipient,
        subject=envelope.subject,
        date=envelope.date,
        body=bodies.plain_body.strip(),
        html=bodies.html_body.strip() or None,
        references=envelope.in_reply_to,
    )


class MessageFetchService:
    """Fetch single messages from the inbox by Message-ID."""

    def __init__(
        self,
        settings: ProtocolSettings,
        verify_tls: bool = False,
        connection_factory: ConnectionFactory = IMAPConnection,
    ):
        """Initialise fetch service.

        Args:
            settings: IMAP connection settings
            verify_tls: Whether to verify the server certificate
            connection_factory: Builds the IMAPConnection (swapped in tests)
        """
        self.settings = settings
        self.verify_tls = verify_tls
        self._connection_factory = connection_factory

    @async_log_call
    async def fetch_message_by_id(self, message_id: str) -> Optional[FetchedMessage]:
        """Fetch and normalise the inbox message with the given Message-ID.

        Only INBOX is searched. When several messages share the id the
        lowest UID is used.

        Returns:
            The FetchedMessage, or None if no inbox message matches

        Raises:
            MissingCredentialsError: If IMAP credentials are not configured
            NetworkError: If connecting, searching or fetching fails
            IMAPError: If the FETCH response carries no message source
        """
        self.settings.require_credentials()

        search_id = strip_angle_brackets(message_id)
        start_time = time.time()

        async with self._connection_factory(self.settings, self.verify_tls) as connection:
            protocol = IMAPProtocol(connection)

            async with protocol.mailbox(IMAPFolders.INBOX):
                logger.debug(f"Searching for Message-ID: {search_id}")
                uids = await protocol.search_message_id(search_id)
                logger.debug(f"Found UIDs: {uids}")

                if not uids:
                    logger.info(
                        "Message not found",
                        extra={"message_id": search_id, "folder": IMAPFolders.INBOX},
                    )
                    return None

                if len(uids) > 1:
                    logger.warning(
                        f"{len(uids)} messages share Message-ID {search_id}, using UID {uids[0]}"
                    )

                uid = uids[0]
                raw_source = await protocol.fetch_source(uid)

        if raw_source is None:
            raise IMAPError(
                f"FETCH returned no message body for UID {uid}",
                details={"uid": uid, "message_id": search_id},
            )

        source_text = raw_source.decode("utf-8", errors="replace")
        fetched = build_fetched_message(source_text, message_id)

        logger.debug(
            "Fetched message",
            extra={
                "from": fetched.sender,
                "subject": fetched.subject,
                "duration_seconds": round(time.time() - start_time, 2),
            },
        )
        return fetched
