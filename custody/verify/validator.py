# custody/verify/validator.py
"""
Structural gate for incoming envelopes, run before any hashing or signature
work. No cryptography here.
"""

from typing import Any, Mapping, Optional

from custody.core.errors import CustodyError, InvalidSequenceNumber, MissingField

REQUIRED_FIELDS = (
    "schema_version",
    "stream_id",
    "seq",
    "event_type",
    "ts",
    "actor",
    "body",
    "chain",
    "signature",
)

SEQ_REASON = "seq must be an integer >= 1"


def _first_violation(candidate: Mapping[str, Any]) -> Optional[CustodyError]:
    for key in REQUIRED_FIELDS:
        if key not in candidate:
            return MissingField(key)

    actor = candidate["actor"]
    if not isinstance(actor, Mapping) or not actor.get("key_id"):
        return MissingField("actor.key_id")

    chain = candidate["chain"]
    if not isinstance(chain, Mapping) or "prev_event_hash" not in chain:
        return MissingField("chain.prev_event_hash")

    signature = candidate["signature"]
    if not isinstance(signature, Mapping) or not signature.get("sig"):
        return MissingField("signature.sig")

    seq = candidate["seq"]
    if isinstance(seq, bool) or not isinstance(seq, int) or seq < 1:
        return InvalidSequenceNumber(SEQ_REASON, seq=seq)

    return None


def validate_envelope_basics(candidate: Mapping[str, Any]) -> Optional[str]:
    """First violated rule as a readable reason, or None when the shape is sound."""
    if not isinstance(candidate, Mapping):
        return "envelope must be an object"
    violation = _first_violation(candidate)
    return violation.message if violation is not None else None


def check_envelope(candidate: Mapping[str, Any]) -> None:
    """Like validate_envelope_basics, but raises MissingField / InvalidSequenceNumber."""
    if not isinstance(candidate, Mapping):
        raise MissingField("schema_version")
    violation = _first_violation(candidate)
    if violation is not None:
        raise violation
