"""Centralised path definitions for bridgemail.

Single source of truth for on-disk locations used by the tool.
"""

from pathlib import Path

# Credentials file read by the config resolver
CONFIG_DIR = Path.home() / ".config" / "bridgemail"
CONFIG_ENV_PATH = CONFIG_DIR / ".env"

# Application state
STATE_DIR = Path.home() / ".bridgemail"
LOGS_DIR = STATE_DIR / "logs"
LOG_FILE_PATH = LOGS_DIR / "bridgemail.log"
