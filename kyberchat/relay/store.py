"""The session store shared by every relay component."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, TYPE_CHECKING

from .directory import UserDirectory
from .registry import ConnectionRegistry

if TYPE_CHECKING:
    from .pairing import ChatSession


@dataclass
class SessionStore:
    """Registry, directory and active chat sessions of one relay process.

    Every hub operation holds ``lock`` for the whole frame, so no handler
    observes another handler's partial mutation.
    """

    registry: ConnectionRegistry = field(default_factory=ConnectionRegistry)
    directory: UserDirectory = field(default_factory=UserDirectory)
    sessions: Dict[str, "ChatSession"] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)


__all__ = ["SessionStore"]
