"""Client-side key encapsulation used by chat peers.

The relay never imports this module: it only forwards the blobs produced
here.  The primitive is X25519 with an ephemeral sender key.  It is NOT
Kyber and gives no post-quantum security; it only mirrors the call shape of
the browser's Kyber module so Python peers and tests can speak the protocol:

    ready() -> keypair() -> encapsulate(pk) -> decapsulate(ct, sk)

and ``encrypt``/``decrypt`` seal a message under a fresh encapsulated secret.
"""

from __future__ import annotations

from typing import Tuple

from nacl import secret
from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey

PUBLIC_KEY_SIZE = PublicKey.SIZE
SECRET_KEY_SIZE = PrivateKey.SIZE
CIPHERTEXT_SIZE = PublicKey.SIZE
SHARED_SECRET_SIZE = secret.SecretBox.KEY_SIZE


def ready() -> bool:
    """Return ``True`` once the primitive is usable (libsodium is loaded on import)."""

    return True


def keypair() -> Tuple[bytes, bytes]:
    """Return a fresh ``(public_key, secret_key)`` pair."""

    sk = PrivateKey.generate()
    return bytes(sk.public_key), bytes(sk)


def encapsulate(peer_public_key: bytes) -> Tuple[bytes, bytes]:
    """Return ``(ciphertext, shared_secret)`` for *peer_public_key*."""

    if len(peer_public_key) != PUBLIC_KEY_SIZE:
        raise ValueError("public key has the wrong length")
    ephemeral = PrivateKey.generate()
    shared = Box(ephemeral, PublicKey(peer_public_key)).shared_key()
    return bytes(ephemeral.public_key), shared


def decapsulate(ciphertext: bytes, secret_key: bytes) -> bytes:
    if len(ciphertext) != CIPHERTEXT_SIZE:
        raise ValueError("ciphertext has the wrong length")
    return Box(PrivateKey(secret_key), PublicKey(ciphertext)).shared_key()


def encrypt(peer_public_key: bytes, message: str) -> bytes:
    """Seal *message* for the holder of *peer_public_key*: ``ciphertext || box``."""

    ciphertext, shared = encapsulate(peer_public_key)
    sealed = secret.SecretBox(shared).encrypt(message.encode("utf-8"))
    return ciphertext + bytes(sealed)


def decrypt(blob: bytes, secret_key: bytes) -> str:
    if len(blob) < CIPHERTEXT_SIZE:
        raise ValueError(
            f"encrypted data too short: expected at least {CIPHERTEXT_SIZE}, got {len(blob)}"
        )
    shared = decapsulate(blob[:CIPHERTEXT_SIZE], secret_key)
    try:
        plaintext = secret.SecretBox(shared).decrypt(blob[CIPHERTEXT_SIZE:])
    except CryptoError as exc:
        raise ValueError("message could not be decrypted") from exc
    return plaintext.decode("utf-8")


__all__ = [
    "PUBLIC_KEY_SIZE",
    "SECRET_KEY_SIZE",
    "CIPHERTEXT_SIZE",
    "SHARED_SECRET_SIZE",
    "ready",
    "keypair",
    "encapsulate",
    "decapsulate",
    "encrypt",
    "decrypt",
]
