"""Envelope fields read from a raw header block."""

from dataclasses import dataclass
from datetime import datetime
from email.parser import HeaderParser
from email.policy import compat32
from email.utils import getaddresses, parsedate_to_datetime
from typing import Optional

from bridgemail.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_ADDRESS = "Unknown"
NO_SUBJECT = "(no subject)"


@dataclass(frozen=True)
class Envelope:
    """Header values needed to quote and thread a message.

    Values are unfolded but not RFC 2047 decoded.
    """

    message_id: Optional[str]
    sender: str
    recipient: str
    subject: str
    date: datetime
    in_reply_to: Optional[str]


def format_address(header_value: Optional[str]) -> str:
    """Format the first address of a header as ``"Name <addr>"``.

    Without a display name the result is ``"<addr>"``; a missing or empty
    header gives ``"Unknown"``.
    """
    if not header_value:
        return UNKNOWN_ADDRESS

    addresses = [(name, addr) for name, addr in getaddresses([header_value]) if addr]
    if not addresses:
        return UNKNOWN_ADDRESS

    name, addr = addresses[0]
    return f"{name} <{addr}>".strip()


def parse_date(header_value: Optional[str], default: Optional[datetime] = None) -> datetime:
    """Parse an RFC 2822 date, falling back to ``default`` or now."""
    fallback = default or datetime.now().astimezone()
    if not header_value:
        return fallback

    try:
        parsed = parsedate_to_datetime(header_value)
    except (TypeError, ValueError, IndexError):
        logger.debug(f"Unparseable Date header: {header_value!r}")
        return fallback

    if parsed is None:
        return fallback
    if parsed.tzinfo is None:
        return parsed.astimezone()
    return parsed


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = " ".join(str(value).split())
    return value or None


def parse_envelope(headers: str, retrieved_at: Optional[datetime] = None) -> Envelope:
    """Read the envelope fields from a message's header block."""
    message = HeaderParser(policy=compat32).parsestr(headers)

    return Envelope(
        message_id=_clean(message.get("Message-ID")),
        sender=format_address(_clean(message.get("From"))),
        recipient=format_address(_clean(message.get("To"))),
        subject=_clean(message.get("Subject")) or NO_SUBJECT,
        date=parse_date(_clean(message.get("Date")), retrieved_at),
        in_reply_to=_clean(message.get("In-Reply-To")),
    )
