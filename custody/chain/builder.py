# custody/chain/builder.py
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from custody.core.types import (
    GENESIS,
    SCHEMA_VERSION,
    Actor,
    ChainLink,
    CustodyEnvelope,
    CustodyEvent,
    EnvelopeSignature,
)
from custody.crypto.hashing import compute_current_hash, event_hash


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_event(
    *,
    session_id: str,
    task_id: str,
    step_index: int,
    timestamp: str,
    agent_id: str,
    model_name: str,
    input_hash: str,
    output_hash: str,
    previous_hash: str = GENESIS,
    tool_name: Optional[str] = None,
) -> CustodyEvent:
    """
    Build a flat-profile event with its ``current_hash`` filled in.
    Pure: same inputs always give the same event.
    """
    unsigned = CustodyEvent(
        session_id=session_id,
        task_id=task_id,
        step_index=step_index,
        timestamp=timestamp,
        agent_id=agent_id,
        model_name=model_name,
        tool_name=tool_name,
        input_hash=input_hash,
        output_hash=output_hash,
        previous_hash=previous_hash,
    )
    return unsigned.with_digest(compute_current_hash(unsigned))


def build_envelope(
    *,
    stream_id: str,
    seq: int,
    event_type: str,
    ts: str,
    actor: Actor,
    body: Dict[str, Any],
    context: Optional[Dict[str, Any]] = None,
    prev_event_hash: str = GENESIS,
    alg: str = "ed25519",
    schema_version: str = SCHEMA_VERSION,
) -> CustodyEnvelope:
    """Build an unsigned envelope with ``chain.event_hash`` derived."""
    unsigned = CustodyEnvelope(
        schema_version=schema_version,
        stream_id=stream_id,
        seq=seq,
        event_type=event_type,
        ts=ts,
        actor=actor,
        context=context,
        body=body,
        chain=ChainLink(prev_event_hash=prev_event_hash),
        signature=EnvelopeSignature(alg=alg),
    )
    return unsigned.with_digest(event_hash(unsigned))
