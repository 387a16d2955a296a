import pytest

from kyberchat.protocol import (
    AcceptChatFrame,
    EndChatFrame,
    PayloadFrame,
    PubKeyFrame,
    RejectChatFrame,
    RequestChatFrame,
    UNKNOWN_USER,
    parse_frame,
)
from kyberchat.relay.errors import MalformedFrame


def test_pubkey_frame_aliases():
    frame = parse_frame('{"type":"pubkey","key":[1,2],"username":"alice","savedUserId":"user_4"}')
    assert isinstance(frame, PubKeyFrame)
    assert frame.key == [1, 2]
    assert frame.saved_user_id == "user_4"


def test_pairing_frames():
    assert isinstance(parse_frame(b'{"type":"request_chat","targetUserId":"user_2"}'), RequestChatFrame)
    accept = parse_frame('{"type":"accept_chat","fromUserId":"user_1","requestId":"user_1_user_2_1"}')
    assert isinstance(accept, AcceptChatFrame)
    assert accept.from_user_id == "user_1"
    assert isinstance(parse_frame('{"type":"end_chat"}'), EndChatFrame)


@pytest.mark.parametrize("kind", ["message", "kyber_ct", "encrypted_message"])
def test_payload_kinds(kind):
    frame = parse_frame(f'{{"type":"{kind}","payload":"P"}}')
    assert isinstance(frame, PayloadFrame)
    assert frame.target_user_id is None


@pytest.mark.parametrize("raw", ['{"type":"typing"}', "[1,2]", '"text"', "{}"])
def test_unrouted_json_returns_none(raw):
    assert parse_frame(raw) is None


def test_invalid_json_is_malformed():
    with pytest.raises(MalformedFrame) as excinfo:
        parse_frame("not json")
    assert excinfo.value.parsed is False


def test_wrong_id_types_keep_the_frame_routed():
    frame = parse_frame('{"type":"reject_chat","fromUserId":["user_1"]}')
    assert isinstance(frame, RejectChatFrame)
    assert frame.from_user_id is UNKNOWN_USER

    payload = parse_frame('{"type":"encrypted_message","targetUserId":2}')
    assert isinstance(payload, PayloadFrame)
    assert payload.target_user_id is UNKNOWN_USER
    assert payload.target_user_id != "2"


def test_wrong_text_types_are_ignored():
    frame = parse_frame('{"type":"pubkey","key":"k","username":7,"savedUserId":{"id":1}}')
    assert frame.username is None
    assert frame.saved_user_id is None


@pytest.mark.parametrize("raw", ['{"type":["x"]}', '{"type":{"k":1}}', '{"type":3}'])
def test_non_string_type_returns_none(raw):
    assert parse_frame(raw) is None
