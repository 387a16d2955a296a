"""Wire protocol spoken between browser clients and the relay.

Every frame is a UTF-8 JSON object carrying a ``type`` discriminator.  The
inbound kinds the relay acts on form a closed union; anything else (unknown
``type``, non-object JSON, non-JSON text) is handled by the legacy verbatim
broadcast path in :mod:`kyberchat.relay.messaging`.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationError

from .relay.errors import MalformedFrame
from .utils.serialization import loads

# Payload kinds forwarded without interpretation.
PAYLOAD_TYPES = ("message", "kyber_ct", "encrypted_message")


class _UnknownUser:
    """Target of a frame whose user id is not a string; equal to no user id."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<unknown user>"


UNKNOWN_USER = _UnknownUser()


def _as_user_ref(value: Any) -> Any:
    # A non-string id still addresses the frame, just to nobody.
    if value is None or isinstance(value, str):
        return value
    return UNKNOWN_USER


def _as_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


UserRef = Annotated[Any, BeforeValidator(_as_user_ref)]
Text = Annotated[Optional[str], BeforeValidator(_as_text)]


class _Frame(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PubKeyFrame(_Frame):
    """Identification: announces the client's public key."""

    type: Literal["pubkey"]
    key: Any = None
    username: Text = None
    saved_user_id: Text = Field(default=None, alias="savedUserId")


class RequestChatFrame(_Frame):
    type: Literal["request_chat"]
    target_user_id: UserRef = Field(default=None, alias="targetUserId")


class AcceptChatFrame(_Frame):
    type: Literal["accept_chat"]
    from_user_id: UserRef = Field(default=None, alias="fromUserId")
    # Informational only; acceptance is matched on from_user_id.
    request_id: Any = Field(default=None, alias="requestId")


class RejectChatFrame(_Frame):
    type: Literal["reject_chat"]
    from_user_id: UserRef = Field(default=None, alias="fromUserId")


class EndChatFrame(_Frame):
    type: Literal["end_chat"]


class PayloadFrame(_Frame):
    """Chat text, KEM ciphertext or encrypted application payload."""

    type: Literal["message", "kyber_ct", "encrypted_message"]
    target_user_id: UserRef = Field(default=None, alias="targetUserId")


InboundFrame = Annotated[
    Union[
        PubKeyFrame,
        RequestChatFrame,
        AcceptChatFrame,
        RejectChatFrame,
        EndChatFrame,
        PayloadFrame,
    ],
    Field(discriminator="type"),
]

ROUTED_TYPES = frozenset(
    {"pubkey", "request_chat", "accept_chat", "reject_chat", "end_chat", *PAYLOAD_TYPES}
)

_adapter: TypeAdapter = TypeAdapter(InboundFrame)


def parse_frame(raw: str | bytes) -> Optional[InboundFrame]:
    """Parse *raw* into one of the routed frame models.

    Returns ``None`` for well-formed JSON that is not a routed kind.  Raises
    :class:`MalformedFrame` when *raw* is not JSON.  Wrongly typed fields of a
    routed kind are coerced, so such a frame keeps its routing: a payload with
    a non-string ``targetUserId`` is still addressed, just to nobody.
    """

    try:
        data = loads(raw)
    except ValueError as exc:
        raise MalformedFrame("frame is not valid JSON") from exc

    if not isinstance(data, dict):
        return None
    kind = data.get("type")
    if not isinstance(kind, str) or kind not in ROUTED_TYPES:
        return None

    try:
        return _adapter.validate_python(data)
    except ValidationError as exc:
        raise MalformedFrame(f"invalid {kind} frame", parsed=True) from exc


# ------------------------------------------------------------------------------
# Outbound frames
# ------------------------------------------------------------------------------
def user_id_frame(user_id: str, username: str) -> dict:
    return {"type": "user_id", "userId": user_id, "username": username}


def user_list_update_frame(users: list[dict]) -> dict:
    return {"type": "user_list_update", "users": users}


def chat_request_frame(from_user_id: str, from_username: str, request_id: str) -> dict:
    return {
        "type": "chat_request",
        "fromUserId": from_user_id,
        "fromUsername": from_username,
        "requestId": request_id,
    }


def chat_started_frame(chat_id: str, peer_id: str, peer_username: str) -> dict:
    return {
        "type": "chat_started",
        "chatId": chat_id,
        "targetUser": {"userId": peer_id, "username": peer_username},
    }


def notice_frame(kind: str, message: str) -> dict:
    """``chat_request_sent``, ``chat_rejected`` and ``chat_error`` share this shape."""

    return {"type": kind, "message": message}


CHAT_ENDED = {"type": "chat_ended"}


__all__ = [
    "PAYLOAD_TYPES",
    "ROUTED_TYPES",
    "UNKNOWN_USER",
    "InboundFrame",
    "PubKeyFrame",
    "RequestChatFrame",
    "AcceptChatFrame",
    "RejectChatFrame",
    "EndChatFrame",
    "PayloadFrame",
    "parse_frame",
    "user_id_frame",
    "user_list_update_frame",
    "chat_request_frame",
    "chat_started_frame",
    "notice_frame",
    "CHAT_ENDED",
]
