"""HTML composition helpers: text conversion, quoting and document wrapping."""

import re
from datetime import datetime

from bridgemail.core.models import FetchedMessage

HTML_TAG_RE = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)

NO_CONTENT = "(no content)"

DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; font-size: 14px; line-height: 1.5; color: #333;">
{body}
</body>
</html>"""

QUOTE_TEMPLATE = """
<div style="margin-top: 1em; color: #666;">{attribution}</div>
<blockquote type="cite" style="margin: 0.5em 0; padding-left: 1em; border-left: 2px solid #ccc;">
{content}
</blockquote>"""


def escape_html(text: str) -> str:
    """Escape ``&``, ``<``, ``>`` and ``"``, ampersand first."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def is_html(text: str) -> bool:
    """True if the text contains something that looks like an opening tag."""
    return HTML_TAG_RE.search(text) is not None


def text_to_html(text: str) -> str:
    """Escape plain text and turn each line break into ``<br>`` plus newline."""
    return escape_html(text).replace("\n", "<br>\n")


def format_date(date: datetime) -> str:
    """Render a date like ``Monday, January 6, 2025 at 3:04 PM``.

    Aware datetimes are shown in the local timezone.
    """
    if date.tzinfo is not None:
        date = date.astimezone()

    hour = date.hour % 12 or 12
    meridiem = "AM" if date.hour < 12 else "PM"
    return (
        f"{date:%A}, {date:%B} {date.day}, {date.year} "
        f"at {hour}:{date:%M} {meridiem}"
    )


def format_html_quote(message: FetchedMessage) -> str:
    """Render a fetched message as an attribution line and cite blockquote.

    HTML content is embedded as-is; plain text is escaped first.
    """
    attribution = (
        f"On {format_date(message.date)}, {escape_html(message.sender)} wrote:"
    )

    if message.html:
        content = message.html
    elif message.body:
        content = text_to_html(message.body)
    else:
        content = NO_CONTENT

    return QUOTE_TEMPLATE.format(attribution=attribution, content=content)


def wrap_in_html_document(body_html: str) -> str:
    """Wrap an HTML fragment in the fixed UTF-8 document template."""
    return DOCUMENT_TEMPLATE.format(body=body_html)
