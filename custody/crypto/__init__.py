# custody/crypto/__init__.py
"""
Hashing, key handling and signatures for custody records.
"""

from .hashing import GENESIS, compute_current_hash, event_hash, record_digest
from .keys import AgentKeyPair, generate_ed25519_keypair_pem
from .signing import (
    sign_envelope,
    sign_event_hash,
    verify_envelope_signature,
    verify_event_signature,
)

__all__ = [
    "GENESIS",
    "compute_current_hash",
    "event_hash",
    "record_digest",
    "AgentKeyPair",
    "generate_ed25519_keypair_pem",
    "sign_envelope",
    "sign_event_hash",
    "verify_envelope_signature",
    "verify_event_signature",
]
