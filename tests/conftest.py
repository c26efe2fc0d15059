"""
Shared test fixtures and configuration for pytest
"""
import logging
from unittest.mock import create_autospec

import aioimaplib
import aiosmtplib
import pytest

from bridgemail.utils import logging as logging_module
from bridgemail.utils.config import ProtocolSettings, SecurityMode

from .helpers import MULTIPART_SOURCE, imap_response


@pytest.fixture(autouse=True)
def clean_mail_env(monkeypatch):
    """Keep the developer's mail settings out of the tests"""
    for key in (
        "SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS", "SMTP_SECURITY",
        "IMAP_HOST", "IMAP_PORT", "IMAP_USER", "IMAP_PASS", "IMAP_SECURITY",
        "MAILER_LOG_LEVEL", "MAILER_LOG_FILE", "MAILER_VERIFY_TLS",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo any init_logging() a test triggered"""
    yield
    root = logging.getLogger(logging_module.ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def smtp_settings():
    """SMTP settings with credentials"""
    return ProtocolSettings(
        protocol="smtp",
        port=1025,
        user="me@example.com",
        password="bridge-pass",
        security=SecurityMode.PLAIN,
    )


@pytest.fixture
def imap_settings():
    """IMAP settings with credentials"""
    return ProtocolSettings(
        protocol="imap",
        port=1143,
        user="me@example.com",
        password="bridge-pass",
        security=SecurityMode.PLAIN,
    )


@pytest.fixture
def fake_imap_client():
    """Autospec aioimaplib client holding the multipart sample as UID 42"""
    client = create_autospec(aioimaplib.IMAP4, instance=True)
    client.select.return_value = imap_response()
    client.uid_search.return_value = imap_response(lines=[b"42"])
    client.uid.return_value = imap_response(
        lines=[
            b"1 FETCH (UID 42 RFC822 {%d}" % len(MULTIPART_SOURCE),
            bytearray(MULTIPART_SOURCE.encode("utf-8")),
            b")",
            b"Fetch completed.",
        ]
    )
    return client


@pytest.fixture
def fake_smtp_client():
    """Autospec aiosmtplib client"""
    client = create_autospec(aiosmtplib.SMTP, instance=True)
    client.send_message.return_value = ({}, "OK")
    return client
