"""Exceptions raised by the chat relay."""


class ChatRelayError(Exception):
    """Base class for chat relay errors."""


class ConfigError(ChatRelayError):
    """Raised when a setting taken from the environment is invalid."""
