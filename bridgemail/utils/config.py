"""Connection settings resolved from the environment and an on-disk .env file."""

import os
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidConfigError, MissingCredentialsError
from .logging import get_logger, log_call
from .paths import CONFIG_ENV_PATH

logger = get_logger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_SMTP_PORT = 1025
DEFAULT_IMAP_PORT = 1143

_TRUTHY = {"1", "true", "yes", "on"}


class SecurityMode(str, Enum):
    """Transport security for a protocol connection."""

    SSL = "SSL"  # Implicit TLS from the first byte
    STARTTLS = "STARTTLS"  # Upgrade after connect
    PLAIN = "PLAIN"  # No explicit upgrade requested

    @classmethod
    def parse(cls, value: Optional[str]) -> "SecurityMode":
        if not value:
            return cls.PLAIN
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.PLAIN


class ProtocolSettings(BaseModel):
    """Connection settings for one protocol (SMTP or IMAP)."""

    model_config = ConfigDict(frozen=True)

    protocol: str
    host: str = DEFAULT_HOST
    port: int
    user: str = ""
    password: str = Field(default="", repr=False)
    security: SecurityMode = SecurityMode.PLAIN

    @field_validator("port")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError(f"port out of range: {value}")
        return value

    @property
    def has_credentials(self) -> bool:
        return bool(self.user and self.password)

    def require_credentials(self) -> None:
        """Raise if the user or password is missing."""
        if not self.has_credentials:
            prefix = self.protocol.upper()
            raise MissingCredentialsError(
                f"{prefix}_USER and {prefix}_PASS environment variables required. "
                f"Create {CONFIG_ENV_PATH} with your bridge credentials.",
                details={"protocol": self.protocol},
            )


class Settings(BaseModel):
    """Immutable settings shared by the fetch and send components."""

    model_config = ConfigDict(frozen=True)

    smtp: ProtocolSettings
    imap: ProtocolSettings
    log_level: str = "WARNING"
    log_to_file: bool = False
    verify_tls: bool = False
    env_file: Optional[str] = None


def load_env_file(path: Path) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` lines from an env file.

    Blank lines and ``#`` comments are skipped. The value is everything
    after the first ``=``, trimmed, with one pair of matching quotes removed.
    A missing file yields an empty mapping.
    """
    values: Dict[str, str] = {}

    if not path.is_file():
        logger.debug(f"No env file at {path}")
        return values

    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]

            if key and value:
                values[key] = value

    logger.debug(f"Loaded {len(values)} keys from {path}")
    return values


class ConfigResolver:
    """Layers process environment over the env file over built-in defaults."""

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[Path] = None,
    ):
        self.environ = os.environ if environ is None else environ
        self.env_file = env_file or CONFIG_ENV_PATH

    def _merged(self) -> Dict[str, str]:
        merged = load_env_file(self.env_file)
        for key, value in self.environ.items():
            if value:
                merged[key] = value
        return merged

    @staticmethod
    def _protocol(values: Mapping[str, str], protocol: str, default_port: int):
        prefix = protocol.upper()
        return {
            "protocol": protocol,
            "host": values.get(f"{prefix}_HOST") or DEFAULT_HOST,
            "port": values.get(f"{prefix}_PORT") or default_port,
            "user": values.get(f"{prefix}_USER", ""),
            "password": values.get(f"{prefix}_PASS", ""),
            "security": SecurityMode.parse(values.get(f"{prefix}_SECURITY")),
        }

    @log_call
    def resolve(self) -> Settings:
        """Build the immutable Settings.

        Raises:
            InvalidConfigError: If a value cannot be parsed (e.g. a port)
        """
        values = self._merged()

        try:
            settings = Settings(
                smtp=ProtocolSettings(**self._protocol(values, "smtp", DEFAULT_SMTP_PORT)),
                imap=ProtocolSettings(**self._protocol(values, "imap", DEFAULT_IMAP_PORT)),
                log_level=values.get("MAILER_LOG_LEVEL", "WARNING").upper(),
                log_to_file=values.get("MAILER_LOG_FILE", "").lower() in _TRUTHY,
                verify_tls=values.get("MAILER_VERIFY_TLS", "").lower() in _TRUTHY,
                env_file=str(self.env_file),
            )
        except ValidationError as e:
            raise InvalidConfigError(
                f"Invalid mail configuration: {e.errors()[0]['msg']}",
                details={"env_file": str(self.env_file)},
            ) from e

        logger.debug(
            "Resolved settings",
            extra={
                "smtp_host": settings.smtp.host,
                "smtp_port": settings.smtp.port,
                "imap_host": settings.imap.host,
                "imap_port": settings.imap.port,
            },
        )
        return settings


def resolve_settings(
    environ: Optional[Mapping[str, str]] = None, env_file: Optional[Path] = None
) -> Settings:
    """Resolve settings from the process environment and the env file."""
    return ConfigResolver(environ, env_file).resolve()
