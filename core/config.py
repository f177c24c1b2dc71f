"""
Configuration loader for the assistant chat client.

Loads settings using a priority chain:
1. Environment variables
2. chat.env file (KEY=VALUE, one per line)
3. Built-in defaults
"""

import logging
import os
from pathlib import Path
from typing import Optional

from core.constants import DEFAULT_API_URL, DEFAULT_ASK_PATH, DEFAULT_REQUEST_TIMEOUT

# Global configuration storage
_config: dict[str, str] = {}
_config_loaded: bool = False
logger = logging.getLogger(__name__)

CONFIG_KEYS = [
    "CHAT_API_URL",
    "CHAT_ASK_PATH",
    "CHAT_REQUEST_TIMEOUT",
]


def get_config_path() -> Path:
    """Get the path to the chat.env file."""
    module_dir = Path(__file__).parent.parent
    return module_dir / "chat.env"


def load_config(config_path: Optional[Path] = None) -> dict[str, str]:
    """
    Load configuration from the environment and the chat.env file.

    Environment variables take precedence over values from the file.
    Lines starting with # are comments, empty lines are ignored.

    Args:
        config_path: Optional path to config file. Defaults to chat.env

    Returns:
        Dictionary of configuration values
    """
    global _config, _config_loaded

    if _config_loaded and config_path is None:
        return _config

    path = config_path or get_config_path()

    config: dict[str, str] = {}
    if path.exists():
        config.update(_load_from_file(path))

    config.update(_load_from_env())

    _config = config
    _config_loaded = True
    return config


def _load_from_file(path: Path) -> dict[str, str]:
    """Load configuration from a file."""
    config = {}

    with open(path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                logger.warning("Invalid line %s in %s: %s", line_num, path, line)
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            # Remove quotes if present
            if value.startswith('"') and value.endswith('"'):
                value = value[1:-1]
            elif value.startswith("'") and value.endswith("'"):
                value = value[1:-1]

            config[key] = value

    return config


def _load_from_env() -> dict[str, str]:
    """Load configuration from environment variables."""
    config = {}
    for key in CONFIG_KEYS:
        value = os.environ.get(key)
        if value:
            config[key] = value
    return config


def get_api_url() -> str:
    """Base URL of the assistant API, without a trailing slash."""
    return load_config().get("CHAT_API_URL", DEFAULT_API_URL).rstrip("/")


def get_ask_path() -> str:
    """Path of the streaming ask endpoint."""
    path = load_config().get("CHAT_ASK_PATH", DEFAULT_ASK_PATH)
    return path if path.startswith("/") else f"/{path}"


def get_request_timeout() -> float:
    """Transport timeout in seconds."""
    raw = load_config().get("CHAT_REQUEST_TIMEOUT")
    if raw is None:
        return DEFAULT_REQUEST_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        logger.warning("Invalid CHAT_REQUEST_TIMEOUT %r, using default", raw)
        return DEFAULT_REQUEST_TIMEOUT
    if timeout <= 0:
        logger.warning("CHAT_REQUEST_TIMEOUT must be positive, using default")
        return DEFAULT_REQUEST_TIMEOUT
    return timeout


def clear_config_cache() -> None:
    """Clear the cached configuration. Useful for testing."""
    global _config, _config_loaded
    _config = {}
    _config_loaded = False
