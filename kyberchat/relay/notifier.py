from __future__ import annotations

from loguru import logger

from ..protocol import user_list_update_frame
from .store import SessionStore


class BroadcastNotifier:
    """Pushes the full user directory to every live connection."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def notify_all(self) -> int:
        users = self.store.directory.snapshot()
        sent = self.store.registry.broadcast(user_list_update_frame(users))
        logger.debug(f"user_list_update with {len(users)} users sent to {sent} clients")
        return sent


__all__ = ["BroadcastNotifier"]
