"""
Chat relay server.

This module wires the pieces together and runs them: the
``websockets`` server accepts one socket per client and feeds each
JSON frame to the :class:`~chat_relay.router.EventRouter`.  Plain HTTP
requests on the same port are answered by the read-only
``/api/messages`` and ``/api/users`` queries.

Each socket gets a random connection id when it opens.  Frames are
handled one at a time in arrival order; when the socket closes, for
whatever reason, the connection is unregistered and everyone is told.
"""

import asyncio
import logging
import uuid
from typing import Optional

import websockets

from . import protocol
from .config import Settings
from .http_api import QuerySurface
from .presence import PresenceRegistry
from .router import EventRouter
from .store import MessageStore

logger = logging.getLogger(__name__)


class RelayServer:
    """Owns the registry, the store and the router for one process."""

    def __init__(self, settings: Settings, store: Optional[MessageStore] = None):
        self.settings = settings
        self.registry = PresenceRegistry()
        self.store = store or MessageStore(settings.messages_file, settings.max_messages)
        self.router = EventRouter(self.registry, self.store)
        self.query = QuerySurface(self.registry, self.store)

    async def ws_handler(self, ws) -> None:
        """Serve one websocket until it closes."""
        connection_id = uuid.uuid4().hex
        await self.router.connect(connection_id, ws)
        try:
            async for raw in ws:
                try:
                    event, data = protocol.decode(raw)
                except protocol.ProtocolError as exc:
                    logger.warning("Dropping malformed frame from %s: %s", connection_id, exc)
                    continue
                await self.router.dispatch(connection_id, event, data)
        except websockets.ConnectionClosed:
            pass
        finally:
            logger.info("User disconnected: %s", connection_id)
            await self.router.disconnect(connection_id)

    def allowed_origins(self):
        # None lets non-browser clients (no Origin header) connect.
        return [self.settings.client_url, None]

    async def start(self, host: Optional[str] = None, port: Optional[int] = None):
        """Start listening for websockets and HTTP queries on one port."""
        return await websockets.serve(
            self.ws_handler,
            self.settings.host if host is None else host,
            self.settings.port if port is None else port,
            origins=self.allowed_origins(),
            process_request=self.query.process_request,
        )

    async def serve(self) -> None:
        """Run until the server closes."""
        ws_server = await self.start()
        logger.info("Server running on port %d", self.settings.port)
        await ws_server.wait_closed()


def run(settings: Settings) -> None:
    """Blocking entry point used by the command line."""
    server = RelayServer(settings)
    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        logger.info("Server shutting down")
