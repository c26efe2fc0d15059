"""IMAP commands used to locate and download one message by Message-ID."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from bridgemail.core.constants import IMAPResponse, Timeouts
from bridgemail.core.imap.connection import IMAPConnection
from bridgemail.utils.errors import IMAPError, NetworkTimeoutError
from bridgemail.utils.logging import async_log_call, get_logger

logger = get_logger(__name__)


def quote_search_value(value: str) -> str:
    """Quote a value for use as an IMAP SEARCH string argument."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class IMAPProtocol:
    """Low-level IMAP protocol operations on an open connection."""

    def __init__(self, connection: IMAPConnection):
        """Bind to an open connection.

        Args:
            connection: Open IMAPConnection
        """
        self.connection = connection
        self._selected_folder: Optional[str] = None

    async def select_folder(self, folder: str) -> None:
        """Select ``folder`` unless it is already the selected one.

        Raises:
            IMAPError: If folder selection fails
        """
        if self._selected_folder == folder:
            logger.debug(f"Folder {folder} already selected, skipping")
            return

        client = self.connection.client

        try:
            response = await asyncio.wait_for(
                client.select(folder), timeout=Timeouts.IMAP_SELECT
            )
        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError(
                f"Timed out selecting folder {folder}", details={"folder": folder}
            ) from e
        except Exception as e:
            raise IMAPError(
                f"IMAP error selecting folder {folder}: {str(e)}",
                details={"folder": folder},
            ) from e

        if response.result != IMAPResponse.OK:
            raise IMAPError(
                f"Failed to select folder: {folder}",
                details={"folder": folder, "response": response.result},
            )

        self._selected_folder = folder
        logger.debug(f"Selected IMAP folder: {folder}")

    @asynccontextmanager
    async def mailbox(self, folder: str) -> AsyncIterator["IMAPProtocol"]:
        """Hold the connection lock with ``folder`` selected.

        Keeps the selected mailbox stable across a search and its fetch.
        """
        async with self.connection.lock:
            await self.select_folder(folder)
            yield self

    async def search_uids(self, criteria: str) -> List[int]:
        """Run ``UID SEARCH`` and return the matching UIDs.

        Args:
            criteria: IMAP search criteria (e.g. ``HEADER Message-ID "<id>"``)

        Returns:
            Matching UIDs in ascending order

        Raises:
            IMAPError: If the search fails
        """
        client = self.connection.client

        try:
            response = await asyncio.wait_for(
                client.uid_search(criteria), timeout=Timeouts.IMAP_SEARCH
            )
        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError(
                "IMAP search timed out", details={"criteria": criteria}
            ) from e
        except Exception as e:
            raise IMAPError(
                f"IMAP search error: {str(e)}",
                details={"criteria": criteria},
            ) from e

        if response.result != IMAPResponse.OK:
            raise IMAPError(
                f"UID search failed: {criteria}",
                details={"criteria": criteria, "response": response.result},
            )

        uid_data = response.lines[0] if response.lines else b""
        if isinstance(uid_data, str):
            uid_data = uid_data.encode()
        uids = [int(uid) for uid in bytes(uid_data).split() if uid.isdigit()]

        logger.debug(
            "UID search completed",
            extra={"criteria": criteria, "count": len(uids)},
        )
        return sorted(uids)

    async def search_message_id(self, message_id: str) -> List[int]:
        """Find UIDs whose Message-ID header contains ``message_id``."""
        return await self.search_uids(
            f"HEADER Message-ID {quote_search_value(message_id)}"
        )

    @async_log_call
    async def fetch_source(self, uid: int) -> Optional[bytes]:
        """Fetch the full RFC822 source of one message.

        Fetching ``RFC822`` (not ``BODY.PEEK``) sets the ``\\Seen`` flag.

        Returns:
            Raw message bytes, or None if the response carried no literal

        Raises:
            IMAPError: If the fetch command fails
        """
        client = self.connection.client

        try:
            response = await asyncio.wait_for(
                client.uid("fetch", str(uid), "(RFC822)"), timeout=Timeouts.IMAP_FETCH
            )
        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError(
                f"IMAP fetch timed out for UID {uid}", details={"uid": uid}
            ) from e
        except Exception as e:
            raise IMAPError(
                f"IMAP fetch error: {str(e)}", details={"uid": uid}
            ) from e

        if response.result != IMAPResponse.OK:
            raise IMAPError(
                f"FETCH failed for UID {uid}",
                details={"uid": uid, "response": response.result},
            )

        raw_email = self.extract_literal(response.lines)
        if raw_email is None:
            logger.warning("FETCH response had no message body", extra={"uid": uid})
        return raw_email

    @staticmethod
    def extract_literal(lines: list) -> Optional[bytes]:
        """Pull the message literal out of aioimaplib FETCH response lines.

        aioimaplib returns the literal as a ``bytearray`` between the
        ``* n FETCH (...`` line and the closing ``)``. The last line is the
        tagged completion text, never message data.
        """
        for line in lines:
            if isinstance(line, bytearray):
                return bytes(line)

        for line in lines[:-1]:
            if isinstance(line, bytes):
                line_str = line.decode("utf-8", errors="ignore").strip()
                if not (
                    line_str.startswith("*")
                    or "FETCH" in line_str
                    or line_str == ")"
                    or line_str.startswith("{")
                    or not line_str
                ):
                    return line

        return None
