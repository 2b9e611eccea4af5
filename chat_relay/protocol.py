"""
Wire protocol shared by the server and the client.

Every websocket frame is a JSON object with a ``type`` field naming
the event and a ``data`` field carrying its payload, for example::

    {"type": "user_join", "data": "alice"}
    {"type": "send_message", "data": {"message": "hi"}}
    {"type": "typing_users", "data": ["alice"]}

Inbound events (client to server) are ``user_join``, ``send_message``,
``typing`` and ``private_message``.  Outbound events (server to client)
are ``user_list``, ``user_joined``, ``user_left``, ``receive_message``,
``private_message`` and ``typing_users``.  The server also greets each
new socket with a ``connected`` event carrying its connection id.
"""

import json
import time
from datetime import datetime, timezone
from typing import Any, Iterable, Tuple

# Inbound
USER_JOIN = "user_join"
SEND_MESSAGE = "send_message"
TYPING = "typing"
PRIVATE_MESSAGE = "private_message"

# Outbound
CONNECTED = "connected"
USER_LIST = "user_list"
USER_JOINED = "user_joined"
USER_LEFT = "user_left"
RECEIVE_MESSAGE = "receive_message"
TYPING_USERS = "typing_users"

ANONYMOUS = "Anonymous"


class ProtocolError(ValueError):
    """Raised when a frame is not a valid event envelope."""


def encode(event: str, data: Any = None) -> str:
    """Serialise an event and its payload into a websocket frame."""
    return json.dumps({"type": event, "data": data})


def decode(raw) -> Tuple[str, Any]:
    """Parse a websocket frame into ``(event, data)``.

    Raises:
        ProtocolError: if the frame is not JSON or has no string
            ``type`` field.
    """
    try:
        frame = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"frame is not JSON: {exc}") from exc
    if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
        raise ProtocolError("frame has no event type")
    return frame["type"], frame.get("data")


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string in UTC with a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MessageIdGenerator:
    """Hands out numeric message ids derived from the wall clock.

    Ids are epoch milliseconds, bumped by one whenever two messages
    land in the same millisecond, so they stay strictly increasing.
    Seeding with the ids already on disk keeps a restarted server from
    reusing one.
    """

    def __init__(self, existing: Iterable[Any] = (), clock=time.time):
        self._clock = clock
        self._last = 0
        for value in existing:
            if isinstance(value, int) and not isinstance(value, bool):
                self._last = max(self._last, value)

    def __call__(self) -> int:
        candidate = int(self._clock() * 1000)
        self._last = max(candidate, self._last + 1)
        return self._last
