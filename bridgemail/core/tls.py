"""TLS context shared by the IMAP and SMTP connections."""

import ssl


def build_ssl_context(verify: bool) -> ssl.SSLContext:
    """SSL context for the relay; local bridges use self-signed certificates."""
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context
