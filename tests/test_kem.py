import pytest

from kyberchat import kem


def test_encapsulate_decapsulate_agree():
    assert kem.ready()
    pk, sk = kem.keypair()
    ciphertext, shared = kem.encapsulate(pk)
    assert len(ciphertext) == kem.CIPHERTEXT_SIZE
    assert len(shared) == kem.SHARED_SECRET_SIZE
    assert kem.decapsulate(ciphertext, sk) == shared


def test_each_encapsulation_is_fresh():
    pk, _ = kem.keypair()
    assert kem.encapsulate(pk)[1] != kem.encapsulate(pk)[1]


def test_encrypt_decrypt_message():
    pk, sk = kem.keypair()
    blob = kem.encrypt(pk, "안녕하세요, bob")
    assert kem.decrypt(blob, sk) == "안녕하세요, bob"


def test_decrypt_with_wrong_key_fails():
    pk, _ = kem.keypair()
    _, other_sk = kem.keypair()
    with pytest.raises(ValueError):
        kem.decrypt(kem.encrypt(pk, "secret"), other_sk)


def test_short_blob_rejected():
    _, sk = kem.keypair()
    with pytest.raises(ValueError):
        kem.decrypt(b"short", sk)
