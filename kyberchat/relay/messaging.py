"""Forwarding of opaque payload frames."""

from __future__ import annotations

from typing import Optional, Union

from loguru import logger

from .registry import Connection
from .store import SessionStore

# Unparseable frames shorter than this are dropped rather than broadcast.
MIN_LEGACY_FRAME = 2


class MessageRelay:
    """Delivers frames byte-for-byte; bodies are never inspected."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def relay(
        self,
        sender: Connection,
        raw: Union[str, bytes],
        target_user_id: Optional[str] = None,
    ) -> int:
        """Forward *raw* to *target_user_id*, or to everyone else when no target is given."""

        if target_user_id:
            return int(self.store.registry.deliver(target_user_id, raw))
        return self.store.registry.broadcast(raw, exclude=sender)

    def broadcast_legacy(
        self, sender: Connection, raw: Union[str, bytes], parsed: bool = True
    ) -> int:
        """Relay a frame outside the routed protocol to all other connections.

        *parsed* is False for frames that were not JSON at all; those are
        dropped when shorter than ``MIN_LEGACY_FRAME``.
        """

        if not parsed and len(raw) < MIN_LEGACY_FRAME:
            logger.debug(f"Dropping short non-JSON frame from {sender!r}")
            return 0
        return self.store.registry.broadcast(raw, exclude=sender)


__all__ = ["MessageRelay", "MIN_LEGACY_FRAME"]
