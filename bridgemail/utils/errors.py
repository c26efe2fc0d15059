"""Exception types raised by bridgemail.

Every failure the CLI reports is a ``MailerError``. Subclasses carry a
category, a default user-facing message and a ``details`` dict that goes to
the debug log but never to the terminal.
"""

from enum import Enum
from typing import Any, Dict


class ErrorCategory(Enum):
    """Broad failure classes, used in structured logs."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class MailerError(Exception):
    """Root of the bridgemail exception tree."""

    category = ErrorCategory.UNKNOWN
    user_message = "Mail operation failed"

    def __init__(
        self, message: str | None = None, details: Dict[str, Any] | None = None
    ):
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured form for log records."""
        return {
            "error_type": type(self).__name__,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


## Transport


class NetworkError(MailerError):
    """The relay could not be reached or dropped the session."""

    category = ErrorCategory.NETWORK
    user_message = "Could not reach the mail relay"


class IMAPError(NetworkError):
    """The IMAP server refused or failed a command."""

    user_message = "IMAP command failed"


class SMTPError(NetworkError):
    """The SMTP server refused or failed the send."""

    user_message = "SMTP send failed"


class NetworkTimeoutError(NetworkError):
    """A connect, login, search, fetch or send exceeded its timeout."""

    user_message = "Mail relay timed out"


## Login


class AuthenticationError(MailerError):
    category = ErrorCategory.AUTHENTICATION
    user_message = "Login to the mail relay failed"


class InvalidCredentialsError(AuthenticationError):
    """The relay rejected the configured user/password."""

    user_message = "Relay rejected the username or password"


## Input


class ValidationError(MailerError):
    category = ErrorCategory.VALIDATION
    user_message = "Invalid command input"


class MissingRequiredFieldError(ValidationError):
    """A required input (such as the message body) was empty."""

    user_message = "Required input is empty"


## Settings


class ConfigurationError(MailerError):
    category = ErrorCategory.CONFIGURATION
    user_message = "Mail settings are invalid"


class MissingCredentialsError(ConfigurationError):
    """``*_USER``/``*_PASS`` are not set for a protocol that is needed."""

    user_message = "Mail credentials not configured"


class InvalidConfigError(ConfigurationError):
    """A setting could not be parsed, e.g. a non-numeric port."""

    user_message = "A mail setting has an invalid value"


## Lookup


class MessageNotFoundError(MailerError):
    """The requested Message-ID is not in the mailbox."""

    category = ErrorCategory.NOT_FOUND
    user_message = "Message not found"


def format_error_message(error: Exception) -> str:
    """One-line text shown to the user for ``error``."""
    if isinstance(error, MailerError):
        return error.message
    return f"Unexpected error: {error}"
