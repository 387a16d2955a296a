"""Pairing relay for end-to-end encrypted browser chat.

Browser peers exchange keys with Kyber and encrypt out of band; the relay in
:mod:`kyberchat.relay` only pairs them and forwards their opaque frames.  The
Python-side key encapsulation in :mod:`kyberchat.kem` is X25519, not Kyber,
and is not post-quantum.
"""

__version__ = "0.1.0"
