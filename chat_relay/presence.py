"""Who is connected and who is typing."""

from typing import Any, Dict, Hashable, List, Optional

User = Dict[str, Any]


class PresenceRegistry:
    """Maps connection ids to user records and typing usernames.

    Users are keyed by connection, not by name, so two connections may
    join under the same username.  A connection can only be typing
    while it is registered.
    """

    def __init__(self):
        self._users: Dict[Hashable, User] = {}
        self._typing: Dict[Hashable, str] = {}

    def join(self, connection_id: Hashable, username) -> User:
        user = {"username": username, "id": connection_id}
        self._users[connection_id] = user
        return dict(user)

    def leave(self, connection_id: Hashable) -> Optional[User]:
        """Forget a connection.  Returns the removed user, if any."""
        self._typing.pop(connection_id, None)
        return self._users.pop(connection_id, None)

    def get(self, connection_id: Hashable) -> Optional[User]:
        return self._users.get(connection_id)

    def list(self) -> List[User]:
        return [dict(user) for user in self._users.values()]

    def set_typing(self, connection_id: Hashable, is_typing) -> bool:
        """Mark a registered connection as typing or not.

        Returns ``False`` and changes nothing when the connection has
        not joined.
        """
        user = self._users.get(connection_id)
        if user is None:
            return False
        if is_typing:
            self._typing[connection_id] = user["username"]
        else:
            self._typing.pop(connection_id, None)
        return True

    def typing_names(self) -> List[str]:
        return list(self._typing.values())

    def __contains__(self, connection_id) -> bool:
        return connection_id in self._users

    def __len__(self) -> int:
        return len(self._users)
