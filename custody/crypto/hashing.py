# custody/crypto/hashing.py
import hashlib
import re
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from custody.core.canon import canonical_json
from custody.core.types import GENESIS, ChainRecord, CustodyEnvelope, CustodyEvent

_HEX_DIGEST = re.compile(r"^(sha256:)?[0-9a-f]{64}$")


def sha256_hex(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def content_hash(value: Any) -> str:
    """Digest of arbitrary step input/output: raw bytes and str as-is, anything else canonicalized."""
    if isinstance(value, (bytes, str)):
        return sha256_hex(value)
    return sha256_hex(canonical_json(value))


def is_digest(value: Optional[str]) -> bool:
    """True for bare or ``sha256:``-prefixed lowercase hex. GENESIS never qualifies."""
    return bool(value) and _HEX_DIGEST.match(value) is not None


def chain_digest(
    payload: Mapping[str, Any],
    previous_digest: str,
    link_path: Sequence[str],
    prefix: str = "",
) -> str:
    """
    Digest one record: the previous digest is written into the payload at
    ``link_path`` and hashed together with every other non-derived field.
    The input mapping is left untouched.
    """
    # copy only the maps on the link path; everything else is shared, read-only
    doc: Dict[str, Any] = dict(payload)
    target = doc
    for key in link_path[:-1]:
        child = target.get(key)
        target[key] = dict(child) if isinstance(child, Mapping) else {}
        target = target[key]
    target[link_path[-1]] = previous_digest
    return prefix + sha256_hex(canonical_json(doc))


def record_digest(record: ChainRecord, previous_digest: Optional[str] = None) -> str:
    """Recompute a record's digest, optionally against an expected previous link."""
    prev = record.prev_link if previous_digest is None else previous_digest
    return chain_digest(record.payload(), prev, record.LINK_PATH, record.DIGEST_PREFIX)


def compute_current_hash(event: CustodyEvent) -> str:
    """Bare hex digest of a flat-profile event (``currentHash``)."""
    return record_digest(event)


def event_hash(envelope: CustodyEnvelope) -> str:
    """``sha256:<hex>`` digest of an envelope with derived fields stripped."""
    return record_digest(envelope)


__all__ = [
    "GENESIS",
    "sha256_hex",
    "content_hash",
    "is_digest",
    "chain_digest",
    "record_digest",
    "compute_current_hash",
    "event_hash",
]
