"""Pairing state machine for exclusive one-to-one chats.

A user is either idle (``in_chat`` False) or paired with exactly one peer.
Chat requests are one-shot notifications: nothing is stored for them, so
every precondition is checked again when a request is accepted.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from loguru import logger

from ..protocol import (
    CHAT_ENDED,
    chat_request_frame,
    chat_started_frame,
    notice_frame,
)
from .directory import UserRecord
from .errors import AlreadyPaired, NotFound, SelfPairing
from .notifier import BroadcastNotifier
from .store import SessionStore

CHAT_ID_SEPARATOR = "_"


def chat_id(a: str, b: str) -> str:
    """Return the session id for the unordered pair ``{a, b}``."""

    return CHAT_ID_SEPARATOR.join(sorted((a, b)))


@dataclass
class ChatSession:
    chat_id: str
    participants: Tuple[str, str]
    started_at: float = field(default_factory=time.time)

    def as_dict(self) -> dict:
        return {
            "chatId": self.chat_id,
            "participants": list(self.participants),
            "startedAt": self.started_at,
        }


class PairingCoordinator:
    def __init__(self, store: SessionStore, notifier: BroadcastNotifier) -> None:
        self.store = store
        self.notifier = notifier

    @property
    def _users(self):
        return self.store.directory

    def _require(self, *user_ids: Optional[str]) -> List[UserRecord]:
        records = [self._users.get(uid) for uid in user_ids]
        if any(record is None for record in records):
            raise NotFound()
        return records  # type: ignore[return-value]

    @staticmethod
    def _check_idle(initiator: UserRecord, other: UserRecord) -> None:
        if other.in_chat:
            raise AlreadyPaired(f"{other.username} is already in a chat with another user.")
        if initiator.in_chat:
            raise AlreadyPaired("You are already in a chat with another user.")

    def request_chat(self, from_id: Optional[str], to_id: Optional[str]) -> str:
        """Notify *to_id* that *from_id* wants to chat; returns the request id."""

        sender, target = self._require(from_id, to_id)
        if sender.user_id == target.user_id:
            raise SelfPairing()
        self._check_idle(sender, target)

        request_id = f"{sender.user_id}_{target.user_id}_{int(time.time() * 1000)}"
        registry = self.store.registry
        registry.deliver(
            target.user_id,
            chat_request_frame(sender.user_id, sender.username, request_id),
        )
        registry.deliver(
            sender.user_id,
            notice_frame("chat_request_sent", f"Chat request sent to {target.username}."),
        )
        logger.info(f"Chat request {request_id}")
        return request_id

    def accept_chat(self, acceptor_id: Optional[str], requester_id: Optional[str]) -> ChatSession:
        """Pair *acceptor_id* with *requester_id* and open their session.

        Both users must still be idle: a second accept aimed at a requester
        who was paired in the meantime fails with :class:`AlreadyPaired`.
        """

        acceptor, requester = self._require(acceptor_id, requester_id)
        if acceptor.user_id == requester.user_id:
            raise SelfPairing()
        self._check_idle(acceptor, requester)

        users = self._users
        users.set_pairing(acceptor.user_id, True, requester.user_id)
        users.set_pairing(requester.user_id, True, acceptor.user_id)

        session = ChatSession(
            chat_id=chat_id(requester.user_id, acceptor.user_id),
            participants=(requester.user_id, acceptor.user_id),
        )
        self.store.sessions[session.chat_id] = session
        logger.info(
            f"Chat {session.chat_id} started ({requester.username} -> {acceptor.username})"
        )

        registry = self.store.registry
        registry.deliver(
            acceptor.user_id,
            chat_started_frame(session.chat_id, requester.user_id, requester.username),
        )
        registry.deliver(
            requester.user_id,
            chat_started_frame(session.chat_id, acceptor.user_id, acceptor.username),
        )
        self.notifier.notify_all()
        return session

    def reject_chat(self, rejecter_id: Optional[str], requester_id: Optional[str]) -> bool:
        rejecter = self._users.get(rejecter_id)
        requester = self._users.get(requester_id)
        if rejecter is None or requester is None:
            return False
        return self.store.registry.deliver(
            requester.user_id,
            notice_frame("chat_rejected", f"{rejecter.username} declined your chat request."),
        )

    def _unpair(self, user: UserRecord) -> Tuple[Optional[str], Optional[ChatSession]]:
        """Clear *user* and its peer; returns the peer id and the closed session."""

        peer_id = user.chat_with
        peer = self._users.get(peer_id)
        if peer is not None and peer.chat_with == user.user_id:
            self._users.set_pairing(peer.user_id, False, None)
        self._users.set_pairing(user.user_id, False, None)
        session = None
        if peer_id is not None:
            session = self.store.sessions.pop(chat_id(user.user_id, peer_id), None)
        return peer_id, session

    def end_chat(self, ender_id: Optional[str]) -> Optional[ChatSession]:
        ender = self._users.get(ender_id)
        if ender is None or not ender.in_chat:
            return None

        peer_id, session = self._unpair(ender)
        logger.info(f"Chat between {ender.user_id} and {peer_id} ended")

        registry = self.store.registry
        registry.deliver(ender.user_id, CHAT_ENDED)
        registry.deliver(peer_id, CHAT_ENDED)
        self.notifier.notify_all()
        return session

    def on_disconnect(self, user_id: Optional[str]) -> None:
        """Close the user's chat, if any, and drop its record."""

        user = self._users.get(user_id)
        if user is None:
            return

        if user.in_chat:
            peer_id, _ = self._unpair(user)
            self.store.registry.deliver(peer_id, CHAT_ENDED)
            logger.info(f"Chat between {user.user_id} and {peer_id} ended by disconnect")

        self._users.remove(user.user_id)
        logger.info(
            f"User {user.username} ({user.user_id}) disconnected. Total users: {len(self._users)}"
        )
        self.notifier.notify_all()

    def active_sessions(self) -> List[ChatSession]:
        return list(self.store.sessions.values())


__all__ = ["CHAT_ID_SEPARATOR", "ChatSession", "PairingCoordinator", "chat_id"]
