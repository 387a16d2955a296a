"""Live transport connections and the user ids assigned to them."""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple, Union

from loguru import logger

from ..utils.serialization import dumps

Frame = Union[dict, str, bytes]


class Connection:
    """One transport session.

    Subclasses implement :meth:`send`, which must not block: the relay core
    calls it while a frame is being processed.
    """

    def __init__(self) -> None:
        self.conn_id: Optional[int] = None
        self.user_id: Optional[str] = None
        self.username: Optional[str] = None
        # Last raw pubkey frame, replayed to connections that join later.
        self.pubkey_frame: Optional[Union[str, bytes]] = None
        self.alive = True

    def send(self, data: Union[str, bytes]) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} #{self.conn_id} user={self.user_id}>"


def _encode(frame: Frame) -> Union[str, bytes]:
    if isinstance(frame, (str, bytes)):
        return frame
    return dumps(frame)


class ConnectionRegistry:
    def __init__(self, prefix: str = "user_") -> None:
        self.prefix = prefix
        self._connections: Dict[int, Connection] = {}
        self._by_user: Dict[str, Connection] = {}
        self._next_conn = 1
        self._next_user = 1

    def __len__(self) -> int:
        return len(self._connections)

    def connections(self) -> Iterator[Connection]:
        return iter(list(self._connections.values()))

    def register(self, conn: Connection) -> None:
        conn.conn_id = self._next_conn
        self._next_conn += 1
        self._connections[conn.conn_id] = conn
        logger.info(f"Client connected. Total clients: {len(self._connections)}")

    def _mint(self) -> Tuple[str, int]:
        while True:
            n = self._next_user
            self._next_user += 1
            user_id = f"{self.prefix}{n}"
            if user_id not in self._by_user:
                return user_id, n

    def identify(
        self,
        conn: Connection,
        proposed_id: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Tuple[str, str]:
        """Assign a user id to *conn* and return ``(user_id, username)``.

        A connection keeps the first id and name it was given.  A proposed id
        is reused unless another live connection holds it.
        """

        if conn.user_id is not None:
            return conn.user_id, conn.username or conn.user_id

        if proposed_id and proposed_id not in self._by_user:
            user_id = proposed_id
            default_name = proposed_id
            logger.info(f"Reusing saved userId: {user_id}")
        else:
            user_id, n = self._mint()
            default_name = f"User{n}"
            logger.info(f"Assigned new userId: {user_id}")

        conn.user_id = user_id
        conn.username = display_name or default_name
        self._by_user[user_id] = conn
        return user_id, conn.username

    def lookup(self, user_id: Optional[str]) -> Optional[Connection]:
        if user_id is None:
            return None
        conn = self._by_user.get(user_id)
        if conn is None or not conn.alive:
            return None
        return conn

    def send(self, conn: Connection, frame: Frame) -> bool:
        if not conn.alive or conn.conn_id not in self._connections:
            return False
        conn.send(_encode(frame))
        return True

    def deliver(self, user_id: Optional[str], frame: Frame) -> bool:
        """Send *frame* to *user_id*; returns False if nobody live holds the id."""

        conn = self.lookup(user_id)
        if conn is None:
            logger.debug(f"Dropping frame for unreachable user {user_id}")
            return False
        return self.send(conn, frame)

    def broadcast(self, frame: Frame, exclude: Optional[Connection] = None) -> int:
        data = _encode(frame)
        sent = 0
        for conn in self.connections():
            if conn is exclude or not conn.alive:
                continue
            conn.send(data)
            sent += 1
        return sent

    def unregister(self, conn: Connection) -> bool:
        """Forget *conn*.  Only the first call for a connection returns True."""

        conn.alive = False
        if conn.conn_id is None or self._connections.pop(conn.conn_id, None) is None:
            return False
        if conn.user_id is not None and self._by_user.get(conn.user_id) is conn:
            del self._by_user[conn.user_id]
        logger.info(f"Client disconnected. Total clients: {len(self._connections)}")
        return True


__all__ = ["Connection", "ConnectionRegistry", "Frame"]
