# custody/crypto/keys.py
"""
Ed25519 key handling.

Keys travel as PEM text: PKCS8 for private keys, SubjectPublicKeyInfo for
public keys. Storage, rotation and distribution of that text are up to the
caller.
"""

import hashlib
from typing import Optional, Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

PemText = Union[str, bytes]


def _pem_bytes(pem: PemText) -> bytes:
    return pem.encode("ascii") if isinstance(pem, str) else pem


def load_private_key(pem: PemText) -> Ed25519PrivateKey:
    key = serialization.load_pem_private_key(_pem_bytes(pem), password=None)
    if not isinstance(key, Ed25519PrivateKey):
        raise ValueError(f"Expected an Ed25519 private key, got {type(key).__name__}")
    return key


def load_public_key(pem: PemText) -> Ed25519PublicKey:
    key = serialization.load_pem_public_key(_pem_bytes(pem))
    if not isinstance(key, Ed25519PublicKey):
        raise ValueError(f"Expected an Ed25519 public key, got {type(key).__name__}")
    return key


class AgentKeyPair:
    """An agent's signing identity. The private half is optional (verify-only)."""

    def __init__(self, public_key: Ed25519PublicKey, private_key: Optional[Ed25519PrivateKey] = None):
        self._public_key = public_key
        self._private_key = private_key

    @classmethod
    def generate(cls) -> "AgentKeyPair":
        private_key = Ed25519PrivateKey.generate()
        return cls(private_key.public_key(), private_key)

    @classmethod
    def from_private_pem(cls, pem: PemText) -> "AgentKeyPair":
        private_key = load_private_key(pem)
        return cls(private_key.public_key(), private_key)

    @classmethod
    def from_public_pem(cls, pem: PemText) -> "AgentKeyPair":
        return cls(load_public_key(pem))

    @property
    def can_sign(self) -> bool:
        return self._private_key is not None

    @property
    def key_id(self) -> str:
        """Short fingerprint of the raw public key, usable as ``actor.key_id``."""
        raw = self._public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return "ed25519:" + hashlib.sha256(raw).hexdigest()[:16]

    def private_key_pem(self) -> str:
        if self._private_key is None:
            raise ValueError("Key pair has no private key")
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")

    def public_key_pem(self) -> str:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def sign_bytes(self, data: bytes) -> bytes:
        if self._private_key is None:
            raise ValueError("Cannot sign with a verify-only key pair")
        return self._private_key.sign(data)

    def verify_bytes(self, signature: bytes, data: bytes) -> bool:
        try:
            self._public_key.verify(signature, data)
            return True
        except InvalidSignature:
            return False


def generate_ed25519_keypair_pem() -> Tuple[str, str]:
    """Fresh key pair as ``(private_pkcs8_pem, public_spki_pem)``."""
    kp = AgentKeyPair.generate()
    return kp.private_key_pem(), kp.public_key_pem()
