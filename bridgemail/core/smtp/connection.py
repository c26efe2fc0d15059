"""Scoped SMTP session against the local bridge: connect, login, always quit."""

import asyncio
import time
from typing import Optional

import aiosmtplib

from bridgemail.core.constants import Timeouts
from bridgemail.core.tls import build_ssl_context
from bridgemail.utils.config import ProtocolSettings, SecurityMode
from bridgemail.utils.errors import (
    InvalidCredentialsError,
    NetworkError,
    NetworkTimeoutError,
    SMTPError,
)
from bridgemail.utils.logging import async_log_call, get_logger

logger = get_logger(__name__)


class SMTPConnection:
    """Owns one SMTP session, opened on enter and closed on exit."""

    def __init__(self, settings: ProtocolSettings, verify_tls: bool = False):
        """Initialise SMTP connection.

        Args:
            settings: SMTP host, port, credentials and security mode
            verify_tls: Whether to verify the server certificate
        """
        self.settings = settings
        self.verify_tls = verify_tls
        self._client: Optional[aiosmtplib.SMTP] = None

    @property
    def client(self) -> aiosmtplib.SMTP:
        """The connected client.

        Raises:
            SMTPError: If the connection is not open
        """
        if self._client is None:
            raise SMTPError("SMTP connection is not open")
        return self._client

    def _create_client(self) -> aiosmtplib.SMTP:
        config = self.settings

        # PLAIN leaves start_tls to aiosmtplib, which upgrades when offered
        if config.security is SecurityMode.SSL:
            tls_options = {"use_tls": True, "start_tls": False}
        elif config.security is SecurityMode.STARTTLS:
            tls_options = {"use_tls": False, "start_tls": True}
        else:
            tls_options = {"use_tls": False, "start_tls": None}

        return aiosmtplib.SMTP(
            hostname=config.host,
            port=config.port,
            timeout=Timeouts.SMTP_CONNECT,
            tls_context=build_ssl_context(self.verify_tls),
            **tls_options,
        )

    async def connect(self) -> aiosmtplib.SMTP:
        """Connect and authenticate.

        Raises:
            InvalidCredentialsError: If the server rejects the login
            NetworkTimeoutError: If connecting times out
            NetworkError: If the server cannot be reached
            SMTPError: If other SMTP errors occur
        """
        config = self.settings
        config.require_credentials()
        start_time = time.time()

        logger.info(
            "Connecting to SMTP server",
            extra={
                "server": config.host,
                "port": config.port,
                "security": config.security.value,
            },
        )

        try:
            client = self._create_client()
            await asyncio.wait_for(client.connect(), timeout=Timeouts.SMTP_CONNECT)
            self._client = client

            await asyncio.wait_for(
                client.login(config.user, config.password),
                timeout=Timeouts.SMTP_CONNECT,
            )

            logger.info(
                "SMTP connection established",
                extra={
                    "server": config.host,
                    "duration_seconds": round(time.time() - start_time, 2),
                },
            )
            return client

        except asyncio.TimeoutError as e:
            logger.error(
                f"SMTP connection timed out after {time.time() - start_time:.2f}s"
            )
            raise NetworkTimeoutError(
                "SMTP connection timeout", details={"server": config.host}
            ) from e

        except aiosmtplib.SMTPAuthenticationError as e:
            raise InvalidCredentialsError(
                "SMTP authentication failed. Check SMTP_USER and SMTP_PASS.",
                details={"server": config.host, "username": config.user},
            ) from e

        except aiosmtplib.SMTPConnectError as e:
            raise NetworkError(
                f"Failed to connect to SMTP server {config.host}:{config.port}: {str(e)}",
                details={"server": config.host, "port": config.port},
            ) from e

        except aiosmtplib.SMTPException as e:
            raise SMTPError(
                f"SMTP connection error: {str(e)}",
                details={"server": config.host},
            ) from e

        except OSError as e:
            raise NetworkError(
                f"Failed to connect to SMTP server {config.host}:{config.port}: {str(e)}",
                details={"server": config.host, "port": config.port},
            ) from e

    @async_log_call
    async def close_connection(self) -> None:
        """Quit the session. Errors while closing are only logged."""
        if self._client is None:
            return

        try:
            await asyncio.wait_for(self._client.quit(), timeout=Timeouts.SMTP_QUIT)
            logger.debug("SMTP connection closed")

        except Exception as e:
            logger.debug(f"Error closing SMTP connection: {str(e)}")

        finally:
            self._client = None

    ## Scope

    async def __aenter__(self) -> "SMTPConnection":
        try:
            await self.connect()
        except BaseException:
            await self.close_connection()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close_connection()
