"""
Inbound event handling and outbound fan-out.

:class:`EventRouter` owns the table of live connections and is handed
the :class:`~chat_relay.presence.PresenceRegistry` and
:class:`~chat_relay.store.MessageStore` it works on.  Each inbound
event name maps to one handler in :attr:`EventRouter.handlers`.  A
handler first updates the registry or store and only then awaits the
sends, so state changes from different connections never interleave
on the event loop.

Broadcasts always carry the full current state (the whole user list,
the whole typing list) rather than deltas.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, Iterable, Optional

import websockets

from . import protocol
from .presence import PresenceRegistry
from .store import Message, MessageStore

logger = logging.getLogger(__name__)

Handler = Callable[[Hashable, Any], Awaitable[None]]


class EventRouter:
    """Routes client events to the registry and store and relays results."""

    def __init__(self, registry: PresenceRegistry, store: MessageStore, next_id: Optional[Callable[[], int]] = None):
        self.registry = registry
        self.store = store
        self.next_id = next_id or protocol.MessageIdGenerator(
            m.get("id") for m in store.all() if isinstance(m, dict)
        )
        # connection id -> object with an async ``send(str)``
        self.connections: Dict[Hashable, Any] = {}
        self.handlers: Dict[str, Handler] = {
            protocol.USER_JOIN: self.handle_join,
            protocol.SEND_MESSAGE: self.handle_send_message,
            protocol.TYPING: self.handle_typing,
            protocol.PRIVATE_MESSAGE: self.handle_private_message,
        }

    # -- connection bookkeeping -------------------------------------------------

    async def connect(self, connection_id: Hashable, connection) -> None:
        """Start delivering events to ``connection`` and tell it its id."""
        self.connections[connection_id] = connection
        logger.info("User connected: %s", connection_id)
        await self.send_to(connection_id, protocol.CONNECTED, {"id": connection_id})

    async def disconnect(self, connection_id: Hashable) -> None:
        """Forget a connection and announce the new presence state.

        Safe to call more than once; ``user_left`` is only sent the
        first time, and only if the connection had joined.
        """
        self.connections.pop(connection_id, None)
        user = self.registry.leave(connection_id)
        if user is not None:
            logger.info("%s left the chat", user["username"])
            await self.broadcast(protocol.USER_LEFT, user)
        await self.broadcast(protocol.USER_LIST, self.registry.list())
        await self.broadcast(protocol.TYPING_USERS, self.registry.typing_names())

    async def dispatch(self, connection_id: Hashable, event: str, data: Any = None) -> bool:
        """Run the handler for ``event``.  Unknown events are logged and dropped."""
        handler = self.handlers.get(event)
        if handler is None:
            logger.warning("Ignoring unknown event %r from %s", event, connection_id)
            return False
        await handler(connection_id, data)
        return True

    # -- handlers ---------------------------------------------------------------

    async def handle_join(self, connection_id: Hashable, username: Any) -> None:
        user = self.registry.join(connection_id, username)
        logger.info("%s joined. Total users: %d", username, len(self.registry))
        await self.broadcast(protocol.USER_LIST, self.registry.list())
        await self.broadcast(protocol.USER_JOINED, user)

    async def handle_send_message(self, connection_id: Hashable, data: Any) -> None:
        fields = dict(data) if isinstance(data, dict) else {"message": data}
        message = self._build_message(connection_id, fields)
        self.store.append(message)
        logger.info("Message from %s: %s", message["sender"], message.get("message"))
        await self.broadcast(protocol.RECEIVE_MESSAGE, message)

    async def handle_typing(self, connection_id: Hashable, is_typing: Any) -> None:
        if not self.registry.set_typing(connection_id, is_typing):
            return
        await self.broadcast(protocol.TYPING_USERS, self.registry.typing_names())

    async def handle_private_message(self, connection_id: Hashable, data: Any) -> None:
        data = data if isinstance(data, dict) else {}
        to = data.get("to")
        message = self._build_message(connection_id, {"message": data.get("message"), "isPrivate": True})
        logger.info("Private message from %s to %s: %s", message["sender"], to, message["message"])
        if isinstance(to, str) and to != connection_id and to in self.connections:
            await self.send_to(to, protocol.PRIVATE_MESSAGE, message)
        await self.send_to(connection_id, protocol.PRIVATE_MESSAGE, message)

    # -- delivery ---------------------------------------------------------------

    async def broadcast(self, event: str, data: Any) -> None:
        await self.send_many(list(self.connections), event, data)

    async def send_many(self, connection_ids: Iterable[Hashable], event: str, data: Any) -> None:
        frame = protocol.encode(event, data)
        for connection_id in connection_ids:
            await self._deliver(connection_id, frame)

    async def send_to(self, connection_id: Hashable, event: str, data: Any) -> None:
        await self._deliver(connection_id, protocol.encode(event, data))

    async def _deliver(self, connection_id: Hashable, frame: str) -> None:
        connection = self.connections.get(connection_id)
        if connection is None:
            return
        try:
            await connection.send(frame)
        except websockets.ConnectionClosed:
            # The connection's own handler will run disconnect().
            logger.debug("Dropped frame for closed connection %s", connection_id)

    def _build_message(self, connection_id: Hashable, fields: Dict[str, Any]) -> Message:
        user = self.registry.get(connection_id)
        message = dict(fields)
        message.update(
            id=self.next_id(),
            sender=(user or {}).get("username") or protocol.ANONYMOUS,
            senderId=connection_id,
            timestamp=protocol.utc_timestamp(),
        )
        return message
