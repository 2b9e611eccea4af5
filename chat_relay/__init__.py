"""Real-time chat relay server.

Clients join with a display name over a websocket, exchange broadcast
and private messages and see who is online and who is typing.  The
last 100 broadcast messages are kept in a JSON file so history
survives a restart.
"""

from .errors import ChatRelayError, ConfigError
from .presence import PresenceRegistry
from .router import EventRouter
from .store import MessageStore

__all__ = [
    "ChatRelayError",
    "ConfigError",
    "EventRouter",
    "MessageStore",
    "PresenceRegistry",
]

__version__ = "0.1.0"
