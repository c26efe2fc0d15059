"""Shared constants for the mail protocols.

Timeouts are in seconds and apply per operation. There is no retry layer:
an operation either completes within its timeout or the invocation fails.
"""

from enum import Enum


class IMAPResponse(str, Enum):
    "IMAP server response codes."

    OK = "OK"
    NO = "NO"
    BAD = "BAD"


class Timeouts:
    """Timeout settings for mail operations (in seconds)."""

    # IMAP
    IMAP_CONNECT = 30.0
    IMAP_LOGIN = 30.0
    IMAP_SELECT = 10.0
    IMAP_SEARCH = 30.0
    IMAP_FETCH = 30.0
    IMAP_LOGOUT = 5.0

    # SMTP
    SMTP_CONNECT = 30.0
    SMTP_SEND = 60.0
    SMTP_QUIT = 5.0


class IMAPFolders:
    """IMAP folder names."""

    INBOX = "INBOX"
