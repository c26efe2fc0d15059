"""Scoped IMAP session against the local bridge: connect, login, always logout."""

import asyncio
import time
from typing import Optional

import aioimaplib

from bridgemail.core.constants import IMAPResponse, Timeouts
from bridgemail.core.tls import build_ssl_context
from bridgemail.utils.config import ProtocolSettings, SecurityMode
from bridgemail.utils.errors import (
    IMAPError,
    InvalidCredentialsError,
    NetworkError,
    NetworkTimeoutError,
)
from bridgemail.utils.logging import async_log_call, get_logger

logger = get_logger(__name__)


class IMAPConnection:
    """Owns one IMAP session for the duration of an operation.

    Use as an async context manager: the session is opened on entry and
    logged out on exit, including when the body raises.
    """

    def __init__(self, settings: ProtocolSettings, verify_tls: bool = False):
        """Initialise IMAP connection.

        Args:
            settings: IMAP host, port, credentials and security mode
            verify_tls: Whether to verify the server certificate
        """
        self.settings = settings
        self.verify_tls = verify_tls
        self._client: Optional[aioimaplib.IMAP4] = None
        self.lock = asyncio.Lock()

    @property
    def client(self) -> aioimaplib.IMAP4:
        """The connected client.

        Raises:
            IMAPError: If the connection is not open
        """
        if self._client is None:
            raise IMAPError("IMAP connection is not open")
        return self._client

    def _create_client(self) -> aioimaplib.IMAP4:
        config = self.settings
        # aioimaplib has no STARTTLS: anything but SSL is a plaintext session
        if config.security is SecurityMode.SSL:
            return aioimaplib.IMAP4_SSL(
                host=config.host,
                port=config.port,
                timeout=Timeouts.IMAP_FETCH,
                ssl_context=build_ssl_context(self.verify_tls),
            )
        return aioimaplib.IMAP4(
            host=config.host, port=config.port, timeout=Timeouts.IMAP_FETCH
        )

    async def connect(self) -> aioimaplib.IMAP4:
        """Connect and authenticate.

        Returns:
            Connected aioimaplib client

        Raises:
            InvalidCredentialsError: If the server rejects the login
            NetworkTimeoutError: If connecting or logging in times out
            NetworkError: If the server cannot be reached
            IMAPError: If other IMAP errors occur
        """
        config = self.settings
        config.require_credentials()
        start_time = time.time()

        logger.info(
            "Connecting to IMAP server",
            extra={
                "server": config.host,
                "port": config.port,
                "security": config.security.value,
            },
        )

        try:
            client = self._create_client()
            self._client = client

            await asyncio.wait_for(
                client.wait_hello_from_server(), timeout=Timeouts.IMAP_CONNECT
            )

            response = await asyncio.wait_for(
                client.login(config.user, config.password),
                timeout=Timeouts.IMAP_LOGIN,
            )

            if response.result != IMAPResponse.OK:
                raise InvalidCredentialsError(
                    "IMAP authentication failed. Check IMAP_USER and IMAP_PASS.",
                    details={"server": config.host, "username": config.user},
                )

            logger.info(
                "IMAP connection established",
                extra={
                    "server": config.host,
                    "duration_seconds": round(time.time() - start_time, 2),
                },
            )
            return client

        except asyncio.TimeoutError as e:
            logger.error(
                f"IMAP connection timed out after {time.time() - start_time:.2f}s"
            )
            raise NetworkTimeoutError(
                "IMAP connection timeout", details={"server": config.host}
            ) from e

        except (InvalidCredentialsError, IMAPError):
            raise

        except aioimaplib.AioImapException as e:
            raise IMAPError(
                f"IMAP connection error: {str(e)}",
                details={"server": config.host},
            ) from e

        except Exception as e:
            raise NetworkError(
                f"Failed to connect to IMAP server {config.host}:{config.port}: {str(e)}",
                details={"server": config.host, "port": config.port},
            ) from e

    @async_log_call
    async def close_connection(self) -> None:
        """Log out and drop the client. Errors while closing are only logged."""
        if self._client is None:
            return

        try:
            await asyncio.wait_for(self._client.logout(), timeout=Timeouts.IMAP_LOGOUT)
            logger.debug("IMAP connection closed")

        except Exception as e:
            logger.debug(f"Error closing IMAP connection: {str(e)}")

        finally:
            self._client = None

    ## Scope

    async def __aenter__(self) -> "IMAPConnection":
        try:
            await self.connect()
        except BaseException:
            await self.close_connection()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close_connection()
