"""Message models passed between the fetch, format and send steps."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class FetchedMessage:
    """Normalised view of a message retrieved from the mail store.

    ``sender`` and ``recipient`` are display strings (``"Name <addr>"``) or
    ``"Unknown"``. ``references`` carries the original message's own
    ``In-Reply-To`` so a reply can extend the thread.
    """

    message_id: str
    sender: str
    recipient: str
    subject: str
    date: datetime
    body: str = ""
    html: Optional[str] = None
    references: Optional[str] = None


@dataclass
class SendOptions:
    """Outgoing message descriptor."""

    to: str
    subject: str
    body: str
    in_reply_to: Optional[str] = None
    references: Optional[str] = None
    quoted_message: Optional[FetchedMessage] = None


@dataclass
class SendResult:
    """Outcome of a single successful send."""

    message_id: str
    to: str
    subject: str
    duration: float = 0.0
