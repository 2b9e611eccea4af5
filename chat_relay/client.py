"""
Chat client.

A small asyncio client for the relay, mainly useful for scripting and
tests.  It opens the websocket with a bounded number of fixed-delay
retries, emits the four inbound events and dispatches outbound events
to registered callbacks.

When the server drops the connection, :meth:`ChatClient.listen` runs
the same bounded retry loop again.  Two local events let the caller
follow this: ``disconnect`` fires when the socket is lost and
``reconnect`` once a new one is open.  The server forgets a user when
its socket closes, so a ``reconnect`` callback is the place to send
``user_join`` again.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import websockets

from . import protocol

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], Union[None, Awaitable[None]]]

DEFAULT_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_DELAY = 1.0

# Client-side events, never sent by the server.
DISCONNECT = "disconnect"
RECONNECT = "reconnect"


class ChatClient:
    """Client side of the relay protocol."""

    def __init__(
        self,
        url: str,
        reconnect_attempts: int = DEFAULT_RECONNECT_ATTEMPTS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ):
        self.url = url
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.id: Optional[str] = None
        self.ws = None
        self._closing = False
        self._callbacks: Dict[str, List[EventCallback]] = {}

    async def connect(self) -> None:
        """Open the socket, retrying a fixed number of times.

        Raises:
            ConnectionError: when every attempt failed.
        """
        self._closing = False
        await self._dial()

    async def _dial(self) -> None:
        attempts = 1 + max(self.reconnect_attempts, 0)
        for attempt in range(1, attempts + 1):
            try:
                self.ws = await websockets.connect(self.url)
                return
            except (OSError, websockets.InvalidHandshake) as exc:
                logger.warning("Connection attempt %d/%d to %s failed: %s", attempt, attempts, self.url, exc)
                if attempt < attempts:
                    await asyncio.sleep(self.reconnect_delay)
        raise ConnectionError(f"could not connect to {self.url} after {attempts} attempt(s)")

    async def close(self) -> None:
        """Close the socket for good; :meth:`listen` returns instead of reconnecting."""
        self._closing = True
        if self.ws is not None:
            await self.ws.close()
            self.ws = None

    async def emit(self, event: str, data: Any = None) -> None:
        if self.ws is None:
            raise ConnectionError("not connected")
        await self.ws.send(protocol.encode(event, data))

    async def join(self, username: str) -> None:
        await self.emit(protocol.USER_JOIN, username)

    async def send_message(self, text: str, **extra: Any) -> None:
        await self.emit(protocol.SEND_MESSAGE, dict(extra, message=text))

    async def send_private_message(self, to: str, text: str) -> None:
        await self.emit(protocol.PRIVATE_MESSAGE, {"to": to, "message": text})

    async def set_typing(self, is_typing: bool) -> None:
        await self.emit(protocol.TYPING, bool(is_typing))

    def on(self, event: str, callback: EventCallback) -> None:
        """Call ``callback(data)`` whenever ``event`` happens.

        ``event`` is a server event name, ``disconnect`` or ``reconnect``.
        """
        self._callbacks.setdefault(event, []).append(callback)

    async def _fire(self, event: str, data: Any = None) -> None:
        for callback in self._callbacks.get(event, []):
            result = callback(data)
            if asyncio.iscoroutine(result):
                await result

    async def handle_frame(self, raw) -> None:
        try:
            event, data = protocol.decode(raw)
        except protocol.ProtocolError as exc:
            logger.warning("Ignoring malformed frame from server: %s", exc)
            return
        if event == protocol.CONNECTED and isinstance(data, dict):
            self.id = data.get("id")
        await self._fire(event, data)

    async def listen(self) -> None:
        """Dispatch incoming events, reconnecting whenever the socket drops.

        Returns after :meth:`close`.

        Raises:
            ConnectionError: if the socket dropped and every reconnect
                attempt failed.
        """
        if self.ws is None:
            raise ConnectionError("not connected")
        while True:
            ws = self.ws
            try:
                async for raw in ws:
                    await self.handle_frame(raw)
            except websockets.ConnectionClosed:
                pass
            if self._closing:
                logger.info("Connection to %s closed", self.url)
                return
            logger.warning("Lost connection to %s, reconnecting", self.url)
            self.ws = None
            self.id = None
            await self._fire(DISCONNECT)
            await self._dial()
            if self._closing:
                await self.ws.close()
                self.ws = None
                return
            logger.info("Reconnected to %s", self.url)
            await self._fire(RECONNECT)
