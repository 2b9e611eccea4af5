"""
Bounded broadcast message history mirrored to a JSON file.

The history lives in memory and is the source of truth while the
process runs.  After every append the whole list is written back to
disk so it can be reloaded on the next start.  Disk problems are
logged and otherwise ignored: a failed write leaves the in-memory
history ahead of the file until the next write succeeds.
"""

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Union

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 100

Message = Dict[str, Any]


class MessageStore:
    """Ordered list of the most recent broadcast messages."""

    def __init__(self, path: Union[str, Path], max_messages: int = DEFAULT_MAX_MESSAGES):
        self.path = Path(path)
        self.max_messages = max_messages
        self._messages: List[Message] = self.load()

    def load(self) -> List[Message]:
        """Read the backing file.

        A missing file means an empty history.  A file that cannot be
        read or does not hold a JSON array is logged and also treated
        as empty; startup never fails because of it.
        """
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            logger.exception("Could not load messages from %s", self.path)
            return []
        if not isinstance(data, list):
            logger.error("Ignoring %s: expected a JSON array, got %s", self.path, type(data).__name__)
            return []
        logger.info("Loaded %d message(s) from %s", len(data), self.path)
        return data[-self.max_messages:]

    def append(self, message: Message) -> None:
        """Add ``message`` to the end of the history and persist it.

        Once the history grows past ``max_messages`` the oldest entry
        is dropped.
        """
        self._messages.append(message)
        if len(self._messages) > self.max_messages:
            del self._messages[0]
        self.save()

    def save(self) -> bool:
        """Atomically rewrite the backing file with the current history.

        The data goes to a temporary file next to the target, which is
        then renamed over it, so a crash mid-write keeps the previous
        file.  Returns ``False`` (after logging) if the write failed.
        """
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._messages, fh, indent=2)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError):
            logger.exception("Could not save messages to %s", self.path)
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            return False
        return True

    def all(self) -> List[Message]:
        """Snapshot of the history, oldest first."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
