from kyberchat.relay.registry import ConnectionRegistry

from conftest import RecordingConnection


def _registered(registry, count):
    conns = [RecordingConnection() for _ in range(count)]
    for conn in conns:
        registry.register(conn)
    return conns


def test_identify_mints_sequential_ids():
    registry = ConnectionRegistry()
    a, b = _registered(registry, 2)
    assert registry.identify(a, None, "alice") == ("user_1", "alice")
    assert registry.identify(b, None, None) == ("user_2", "User2")


def test_identify_is_sticky():
    registry = ConnectionRegistry()
    (a,) = _registered(registry, 1)
    registry.identify(a, None, "alice")
    assert registry.identify(a, "user_9", "mallory") == ("user_1", "alice")


def test_saved_id_reused_when_free():
    registry = ConnectionRegistry()
    (a,) = _registered(registry, 1)
    assert registry.identify(a, "user_7", None) == ("user_7", "user_7")
    assert registry.lookup("user_7") is a


def test_saved_id_held_by_live_connection_is_not_reassigned():
    registry = ConnectionRegistry()
    a, b = _registered(registry, 2)
    registry.identify(a, None, None)
    user_id, _ = registry.identify(b, "user_1", None)
    assert user_id == "user_2"
    assert registry.lookup("user_1") is a


def test_minting_skips_ids_claimed_by_reuse():
    registry = ConnectionRegistry()
    a, b = _registered(registry, 2)
    registry.identify(a, "user_1", None)
    assert registry.identify(b, None, None)[0] == "user_2"


def test_saved_id_free_again_after_unregister():
    registry = ConnectionRegistry()
    a, b = _registered(registry, 2)
    registry.identify(a, None, None)
    registry.unregister(a)
    assert registry.identify(b, "user_1", None)[0] == "user_1"


def test_deliver_to_offline_user_is_silent():
    registry = ConnectionRegistry()
    (a,) = _registered(registry, 1)
    registry.identify(a, None, None)
    registry.unregister(a)
    assert registry.deliver("user_1", {"type": "chat_ended"}) is False
    assert registry.deliver("nobody", {"type": "chat_ended"}) is False
    assert a.sent == []


def test_deliver_encodes_dicts_and_passes_raw_frames_through():
    registry = ConnectionRegistry()
    (a,) = _registered(registry, 1)
    registry.identify(a, None, None)
    registry.deliver("user_1", {"type": "chat_ended"})
    registry.deliver("user_1", b"\x00\x01")
    assert a.sent == ['{"type":"chat_ended"}', b"\x00\x01"]


def test_broadcast_skips_excluded_connection():
    registry = ConnectionRegistry()
    a, b, c = _registered(registry, 3)
    assert registry.broadcast("hi", exclude=a) == 2
    assert a.sent == []
    assert b.sent == ["hi"] and c.sent == ["hi"]


def test_unregister_is_idempotent():
    registry = ConnectionRegistry()
    (a,) = _registered(registry, 1)
    assert registry.unregister(a) is True
    assert registry.unregister(a) is False
    assert len(registry) == 0
