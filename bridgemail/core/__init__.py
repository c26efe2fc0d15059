"""Mail handling core: fetch and decompose, format, send.

Usage Examples
----------------

Decompose raw message source:
    >>> from bridgemail.core.mime import decompose
    >>>
    >>> bodies = decompose(raw_source)
    >>> print(bodies.plain_body, bodies.html_body)

Fetch a message to quote:
    >>> from bridgemail.core.services import MessageFetchService
    >>>
    >>> service = MessageFetchService(settings.imap)
    >>> message = await service.fetch_message_by_id("<abc@example.com>")

Send a reply:
    >>> from bridgemail.core.services import EmailSendService
    >>>
    >>> result = await EmailSendService(settings.smtp).send(options)
    >>> print(result.message_id)
"""

from .models import FetchedMessage, SendOptions, SendResult

__all__ = ["FetchedMessage", "SendOptions", "SendResult"]
