"""
Read-only HTTP query surface.

``GET /api/messages`` returns the persisted broadcast history and
``GET /api/users`` the users currently online, both as JSON arrays.
``GET /`` answers with a plain-text liveness string.

The routes are served on the websocket port through the
``process_request`` hook of ``websockets.serve``: a request without an
``Upgrade: websocket`` header is answered here, anything else goes on
to the websocket handshake.  The hook runs on the event loop, so reads
never overlap with the handlers that change the registry or the store.
"""

import json
import logging
from http import HTTPStatus
from typing import Any, List

from .presence import PresenceRegistry
from .store import MessageStore

logger = logging.getLogger(__name__)

LIVENESS_TEXT = "Chat relay server is running"


class QuerySurface:
    """Snapshot reads over the message history and the user list."""

    def __init__(self, registry: PresenceRegistry, store: MessageStore):
        self.registry = registry
        self.store = store

    def messages_snapshot(self) -> List[dict]:
        return self.store.all()

    def users_snapshot(self) -> List[dict]:
        return self.registry.list()

    def process_request(self, connection, request):
        """``process_request`` hook for ``websockets.serve``.

        Returns ``None`` for websocket upgrades so the handshake goes
        ahead, and an HTTP response for everything else.
        """
        if "websocket" in request.headers.get("Upgrade", "").lower():
            return None
        path = request.path.split("?", 1)[0]
        logger.debug("HTTP GET %s", path)
        if path == "/":
            return connection.respond(HTTPStatus.OK, LIVENESS_TEXT)
        if path == "/api/messages":
            return json_response(connection, HTTPStatus.OK, self.messages_snapshot())
        if path == "/api/users":
            return json_response(connection, HTTPStatus.OK, self.users_snapshot())
        return json_response(connection, HTTPStatus.NOT_FOUND, {"error": "not found"})


def json_response(connection, status: HTTPStatus, payload: Any):
    response = connection.respond(status, json.dumps(payload))
    del response.headers["Content-Type"]
    response.headers["Content-Type"] = "application/json"
    return response
