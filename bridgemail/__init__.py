"""bridgemail: send HTML email through a local SMTP/IMAP bridge.

Replies can quote the original message (fetched from the inbox by
Message-ID) and carry In-Reply-To/References threading headers.
"""

__version__ = "0.1.0"
