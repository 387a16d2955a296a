"""Authoritative per-user records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class UserRecord:
    user_id: str
    username: str
    public_key: Any = None
    connected: bool = True
    in_chat: bool = False
    chat_with: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "username": self.username,
            "publicKey": self.public_key,
            "connected": self.connected,
            "inChat": self.in_chat,
            "chatWith": self.chat_with,
        }


class UserDirectory:
    """Records of identified users, in the order they first identified.

    Pairing fields are only changed through :meth:`set_pairing`, which the
    pairing coordinator owns.
    """

    def __init__(self) -> None:
        self._records: Dict[str, UserRecord] = {}

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def upsert(self, user_id: str, username: str, public_key: Any) -> UserRecord:
        """Create the record for *user_id*, or refresh its name and key."""

        record = self._records.get(user_id)
        if record is None:
            record = UserRecord(user_id=user_id, username=username, public_key=public_key)
            self._records[user_id] = record
        else:
            record.username = username
            record.public_key = public_key
            record.connected = True
        return record

    def get(self, user_id: Optional[str]) -> Optional[UserRecord]:
        if user_id is None:
            return None
        return self._records.get(user_id)

    def snapshot(self) -> List[Dict[str, Any]]:
        return [record.as_dict() for record in self._records.values()]

    def remove(self, user_id: str) -> Optional[UserRecord]:
        return self._records.pop(user_id, None)

    def set_pairing(self, user_id: str, in_chat: bool, chat_with: Optional[str]) -> None:
        if in_chat != (chat_with is not None):
            raise ValueError("in_chat must be set exactly when chat_with is set")
        record = self._records[user_id]
        record.in_chat = in_chat
        record.chat_with = chat_with


__all__ = ["UserRecord", "UserDirectory"]
