"""
Tests for IMAPConnection setup and teardown
"""
import asyncio
import ssl
from unittest.mock import create_autospec, patch

import aioimaplib
import pytest

from bridgemail.core.imap.connection import IMAPConnection
from bridgemail.core.tls import build_ssl_context
from bridgemail.utils.config import SecurityMode
from bridgemail.utils.errors import (
    IMAPError,
    InvalidCredentialsError,
    NetworkTimeoutError,
)

from .helpers import imap_response


def make_client(login_result="OK"):
    """aioimaplib client mock restricted to the real IMAP4 interface"""
    client = create_autospec(aioimaplib.IMAP4, instance=True)
    client.login.return_value = imap_response(result=login_result, lines=[b"done"])
    client.logout.return_value = imap_response()
    return client


class TestIMAPConnection:
    """Tests for IMAPConnection"""

    @pytest.mark.asyncio
    async def test_connect_and_logout(self, imap_settings):
        """Test a session logs in on enter and out on exit"""
        client = make_client()

        with patch("bridgemail.core.imap.connection.aioimaplib.IMAP4", return_value=client):
            async with IMAPConnection(imap_settings) as connection:
                assert connection.client is client

        client.login.assert_awaited_once_with("me@example.com", "bridge-pass")
        client.logout.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_logout_when_body_raises(self, imap_settings):
        """Test the session is closed when the caller fails"""
        client = make_client()

        with patch("bridgemail.core.imap.connection.aioimaplib.IMAP4", return_value=client):
            with pytest.raises(RuntimeError):
                async with IMAPConnection(imap_settings):
                    raise RuntimeError("caller failed")

        client.logout.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_login_rejected(self, imap_settings):
        """Test a NO login response"""
        client = make_client(login_result="NO")

        with patch("bridgemail.core.imap.connection.aioimaplib.IMAP4", return_value=client):
            with pytest.raises(InvalidCredentialsError):
                async with IMAPConnection(imap_settings):
                    pass

        client.logout.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_greeting_timeout(self, imap_settings):
        """Test timeouts while waiting for the greeting"""
        client = make_client()
        client.wait_hello_from_server.side_effect = asyncio.TimeoutError()

        with patch("bridgemail.core.imap.connection.aioimaplib.IMAP4", return_value=client):
            with pytest.raises(NetworkTimeoutError):
                await IMAPConnection(imap_settings).connect()

    @pytest.mark.asyncio
    async def test_starttls_opens_plain_session(self, imap_settings):
        """Test STARTTLS mode logs in over a plain IMAP4 session"""
        client = make_client()
        settings = imap_settings.model_copy(update={"security": SecurityMode.STARTTLS})

        with patch(
            "bridgemail.core.imap.connection.aioimaplib.IMAP4", return_value=client
        ) as mock_plain, patch(
            "bridgemail.core.imap.connection.aioimaplib.IMAP4_SSL"
        ) as mock_ssl:
            await IMAPConnection(settings).connect()

        mock_plain.assert_called_once()
        mock_ssl.assert_not_called()
        client.login.assert_awaited_once_with("me@example.com", "bridge-pass")

    def test_ssl_mode_uses_imap4_ssl(self, imap_settings):
        """Test SSL mode builds an implicit TLS client"""
        settings = imap_settings.model_copy(update={"security": SecurityMode.SSL})

        with patch("bridgemail.core.imap.connection.aioimaplib.IMAP4_SSL") as mock_ssl:
            IMAPConnection(settings)._create_client()

        assert mock_ssl.call_args.kwargs["port"] == 1143

    def test_client_requires_open_connection(self, imap_settings):
        """Test the client property before connecting"""
        with pytest.raises(IMAPError):
            IMAPConnection(imap_settings).client


class TestTLSContext:
    """Tests for build_ssl_context"""

    def test_unverified(self):
        """Test verification can be switched off for local bridges"""
        context = build_ssl_context(False)
        assert context.check_hostname is False
        assert context.verify_mode == ssl.CERT_NONE

    def test_verified(self):
        """Test default verification"""
        context = build_ssl_context(True)
        assert context.verify_mode == ssl.CERT_REQUIRED
