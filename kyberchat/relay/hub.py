"""Frame dispatch and connection lifecycle for the relay."""

from __future__ import annotations

from typing import Optional, Union

from loguru import logger

from ..protocol import (
    AcceptChatFrame,
    EndChatFrame,
    PayloadFrame,
    PubKeyFrame,
    RejectChatFrame,
    RequestChatFrame,
    notice_frame,
    parse_frame,
    user_id_frame,
)
from .errors import MalformedFrame, PairingError
from .messaging import MessageRelay
from .notifier import BroadcastNotifier
from .pairing import PairingCoordinator
from .registry import Connection
from .store import SessionStore


class RelayHub:
    """Entry point for transport events.

    Each call runs to completion under the store lock and never awaits, so
    the mutations caused by one frame are atomic with respect to all others.
    """

    def __init__(self, store: Optional[SessionStore] = None) -> None:
        self.store = store if store is not None else SessionStore()
        self.notifier = BroadcastNotifier(self.store)
        self.pairing = PairingCoordinator(self.store, self.notifier)
        self.relay = MessageRelay(self.store)

    def connect(self, conn: Connection) -> None:
        with self.store.lock:
            self.store.registry.register(conn)

    def disconnect(self, conn: Connection) -> None:
        """Clean up after *conn*; safe to call more than once."""

        with self.store.lock:
            if not self.store.registry.unregister(conn):
                return
            if conn.user_id is not None:
                self.pairing.on_disconnect(conn.user_id)

    def handle(self, conn: Connection, raw: Union[str, bytes]) -> None:
        with self.store.lock:
            try:
                self._dispatch(conn, raw)
            except Exception:
                logger.exception(f"Failed to handle frame from {conn!r}")

    def _dispatch(self, conn: Connection, raw: Union[str, bytes]) -> None:
        try:
            frame = parse_frame(raw)
        except MalformedFrame as exc:
            if exc.parsed:
                # Routed kinds are addressed frames; never fan them out.
                logger.warning(f"Dropping {exc} from {conn!r}")
                return
            logger.debug(f"Legacy relay for {conn!r}: {exc}")
            self.relay.broadcast_legacy(conn, raw, parsed=False)
            return

        if frame is None:
            self.relay.broadcast_legacy(conn, raw)
            return

        logger.debug(f"Received {frame.type} from {conn!r}")
        try:
            if isinstance(frame, PubKeyFrame):
                self._on_pubkey(conn, frame, raw)
            elif isinstance(frame, RequestChatFrame):
                self.pairing.request_chat(conn.user_id, frame.target_user_id)
            elif isinstance(frame, AcceptChatFrame):
                self.pairing.accept_chat(conn.user_id, frame.from_user_id)
            elif isinstance(frame, RejectChatFrame):
                self.pairing.reject_chat(conn.user_id, frame.from_user_id)
            elif isinstance(frame, EndChatFrame):
                self.pairing.end_chat(conn.user_id)
            elif isinstance(frame, PayloadFrame):
                self.relay.relay(conn, raw, frame.target_user_id)
        except PairingError as exc:
            logger.info(f"{frame.type} from {conn.user_id} refused: {exc}")
            self.store.registry.send(conn, notice_frame("chat_error", str(exc)))

    def _on_pubkey(self, conn: Connection, frame: PubKeyFrame, raw: Union[str, bytes]) -> None:
        registry = self.store.registry
        user_id, username = registry.identify(conn, frame.saved_user_id, frame.username)
        self.store.directory.upsert(user_id, username, frame.key)
        conn.pubkey_frame = raw
        logger.info(
            f"User {username} ({user_id}) identified. Total users: {len(self.store.directory)}"
        )

        registry.send(conn, user_id_frame(user_id, username))
        self.notifier.notify_all()

        # Public key exchange for clients that track peers' keys themselves.
        for other in registry.connections():
            if other is not conn and other.alive and other.pubkey_frame is not None:
                registry.send(conn, other.pubkey_frame)
        registry.broadcast(raw, exclude=conn)


__all__ = ["RelayHub"]
