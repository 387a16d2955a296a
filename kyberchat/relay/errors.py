"""Errors raised by the relay core."""

from __future__ import annotations


class PairingError(Exception):
    """A pairing operation was refused.

    The message is shown to the initiating client as a ``chat_error`` frame.
    """


class NotFound(PairingError):
    def __init__(self, message: str = "User not found.") -> None:
        super().__init__(message)


class AlreadyPaired(PairingError):
    pass


class SelfPairing(PairingError):
    def __init__(self, message: str = "You cannot start a chat with yourself.") -> None:
        super().__init__(message)


class MalformedFrame(ValueError):
    """Inbound frame is not a valid envelope; it goes to the legacy relay.

    ``parsed`` is True when the frame was JSON but had the wrong shape.
    """

    def __init__(self, message: str, parsed: bool = False) -> None:
        super().__init__(message)
        self.parsed = parsed


__all__ = ["PairingError", "NotFound", "AlreadyPaired", "SelfPairing", "MalformedFrame"]
