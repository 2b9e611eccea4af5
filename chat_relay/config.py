"""
Server settings.

Settings come from the process environment.  A ``.env`` file in the
working directory is loaded first (values already present in the
environment win), which makes local development convenient.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError
from .store import DEFAULT_MAX_MESSAGES

DEFAULT_PORT = 5000
DEFAULT_CLIENT_URL = "http://localhost:5173"
DEFAULT_MESSAGES_FILE = "messages.json"


@dataclass
class Settings:
    """Runtime configuration for the relay server."""

    host: str = ""
    port: int = DEFAULT_PORT
    client_url: str = DEFAULT_CLIENT_URL
    messages_file: Path = Path(DEFAULT_MESSAGES_FILE)
    max_messages: int = DEFAULT_MAX_MESSAGES
    log_level: str = "INFO"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> Settings:
    """Build :class:`Settings` from ``env`` (``os.environ`` by default).

    Raises:
        ConfigError: if a numeric setting is not an integer or the
            history cap is not positive.
    """
    if env is None:
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        env = os.environ
    max_messages = _int(env, "MAX_MESSAGES", DEFAULT_MAX_MESSAGES)
    if max_messages < 1:
        raise ConfigError("MAX_MESSAGES must be at least 1")
    return Settings(
        host=env.get("HOST", ""),
        port=_int(env, "PORT", DEFAULT_PORT),
        client_url=env.get("CLIENT_URL") or DEFAULT_CLIENT_URL,
        messages_file=Path(env.get("MESSAGES_FILE") or DEFAULT_MESSAGES_FILE),
        max_messages=max_messages,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
