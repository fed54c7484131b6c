# custody/__init__.py
"""
Custody — tamper-evident chain-of-custody logs for autonomous agent steps.
Every step is hash-chained to the one before it and optionally Ed25519-signed,
so retroactive edits, reorders, deletions or insertions are detectable offline.
"""

__version__ = "0.1.0-dev"

from custody.chain.builder import build_envelope, build_event
from custody.chain.session import CustodySession, EnvelopeStream
from custody.core.types import GENESIS, Actor, CustodyEnvelope, CustodyEvent
from custody.crypto.keys import AgentKeyPair
from custody.verify.validator import validate_envelope_basics
from custody.verify.verifier import ChainVerifier, VerificationResult, verify_chain

__all__ = [
    "GENESIS",
    "Actor",
    "CustodyEvent",
    "CustodyEnvelope",
    "AgentKeyPair",
    "build_event",
    "build_envelope",
    "CustodySession",
    "EnvelopeStream",
    "ChainVerifier",
    "VerificationResult",
    "verify_chain",
    "validate_envelope_basics",
]
