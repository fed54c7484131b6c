# custody/crypto/signing.py
"""
Signatures over custody records.

Two signing-input conventions, one per profile:

* flat events sign the raw 32 bytes of their own ``currentHash`` (signature
  over the digest), encoded as bare base64;
* envelopes sign the canonical JSON of the whole envelope with derived
  fields stripped (signature over the content), encoded as ``base64:<b64>``.
"""

from typing import Optional, Union

from custody.core.canon import canonical_json
from custody.core.encoding import BASE64_PREFIX, b64_decode, b64_encode, hex_to_bytes
from custody.core.types import ChainRecord, CustodyEnvelope, CustodyEvent
from custody.crypto.keys import AgentKeyPair, PemText

ED25519_SIGNATURE_LENGTH = 64

KeyLike = Union[AgentKeyPair, PemText]


def _signer(key: KeyLike) -> AgentKeyPair:
    return key if isinstance(key, AgentKeyPair) else AgentKeyPair.from_private_pem(key)


def _verifier(key: KeyLike) -> AgentKeyPair:
    return key if isinstance(key, AgentKeyPair) else AgentKeyPair.from_public_pem(key)


def _verify(key: KeyLike, signature_text: Optional[str], data: Optional[bytes]) -> bool:
    if not signature_text or data is None:
        return False
    signature = b64_decode(signature_text)
    if signature is None or len(signature) != ED25519_SIGNATURE_LENGTH:
        return False
    return _verifier(key).verify_bytes(signature, data)


def envelope_signing_input(envelope: CustodyEnvelope) -> bytes:
    return canonical_json(envelope.payload())


def signing_input(record: ChainRecord) -> Optional[bytes]:
    """Exact bytes handed to Ed25519 for ``record``; None if they cannot be derived."""
    if record.PROFILE == CustodyEnvelope.PROFILE:
        return envelope_signing_input(record)
    return hex_to_bytes(record.digest) if record.digest else None


# ── Flat profile ─────────────────────────────────────────────────────────────

def sign_event_hash(current_hash_hex: str, private_key: KeyLike) -> str:
    data = hex_to_bytes(current_hash_hex)
    if not data:
        raise ValueError(f"Not a hex digest: {current_hash_hex!r}")
    return b64_encode(_signer(private_key).sign_bytes(data))


def verify_event_signature(current_hash_hex: str, signature_b64: Optional[str], public_key: KeyLike) -> bool:
    return _verify(public_key, signature_b64, hex_to_bytes(current_hash_hex))


def sign_event(event: CustodyEvent, private_key: KeyLike) -> CustodyEvent:
    """Attach a signature over ``event.current_hash``; the digest must already be set."""
    return event.with_signature(sign_event_hash(event.current_hash, private_key))


# ── Extensible profile ───────────────────────────────────────────────────────

def sign_envelope(envelope: CustodyEnvelope, private_key: KeyLike) -> str:
    sig = _signer(private_key).sign_bytes(envelope_signing_input(envelope))
    return BASE64_PREFIX + b64_encode(sig)


def verify_envelope_signature(envelope: CustodyEnvelope, public_key: KeyLike) -> bool:
    """False for an absent, undecodable or wrong signature. Never raises on those."""
    return _verify(public_key, envelope.signature.sig or "", envelope_signing_input(envelope))


def attach_signature(envelope: CustodyEnvelope, private_key: KeyLike, echo_signed_bytes: bool = False) -> CustodyEnvelope:
    """Sign and return a new envelope carrying ``signature.sig``."""
    sig = sign_envelope(envelope, private_key)
    echo = envelope_signing_input(envelope).decode("utf-8") if echo_signed_bytes else None
    return envelope.with_signature(sig, signed_bytes=echo)


# ── Either profile ───────────────────────────────────────────────────────────

def verify_record_signature(record: ChainRecord, public_key: KeyLike) -> bool:
    return _verify(public_key, record.signature_value, signing_input(record))
