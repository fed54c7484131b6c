# custody/chain/session.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from custody.chain.builder import build_envelope, build_event, utc_now
from custody.core.errors import StoreNotFound
from custody.core.types import GENESIS, Actor, CustodyEnvelope, CustodyEvent
from custody.crypto.hashing import content_hash
from custody.crypto.keys import AgentKeyPair
from custody.crypto.signing import attach_signature, sign_event
from custody.storage import StorageBackend, create_storage

logger = logging.getLogger(__name__)


def _resolve_storage(storage: Optional[Union[StorageBackend, str]]) -> Optional[StorageBackend]:
    if isinstance(storage, str):
        stripped = storage.strip()
        # empty string → in-memory only
        return create_storage(stripped) if stripped else None
    return storage


def _load_existing(storage: StorageBackend, record_type) -> list:
    """Resume an existing log so new records link to its tail."""
    try:
        loaded = storage.load_records(record_type)
    except StoreNotFound:
        return []
    logger.info("Loaded %d existing %s records", len(loaded), record_type.PROFILE)
    return loaded


@dataclass
class CustodySession:
    """
    Writer for one agent session in the flat profile.
    Keeps the ordered chain in memory, links each new step to the last digest,
    signs it when a signer is set and persists it when storage is set.
    """
    session_id: str
    task_id: str
    agent_id: str
    signer: Optional[AgentKeyPair] = None
    events: List[CustodyEvent] = field(default_factory=list)
    storage: Optional[Union[StorageBackend, str]] = None

    def __post_init__(self):
        self.storage = _resolve_storage(self.storage)
        if self.storage and not self.events:
            self.events = _load_existing(self.storage, CustodyEvent)

    @property
    def length(self) -> int:
        return len(self.events)

    def get_last_hash(self) -> str:
        """Digest the next step must link to (GENESIS before the first step)."""
        return self.events[-1].current_hash if self.events else GENESIS

    def record_step(
        self,
        input_data: Any,
        output_data: Any,
        model_name: str,
        tool_name: Optional[str] = None,
        timestamp: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> CustodyEvent:
        """Hash the step's input and output, chain it, sign it, persist it."""
        return self.append_hashed(
            input_hash=content_hash(input_data),
            output_hash=content_hash(output_data),
            model_name=model_name,
            tool_name=tool_name,
            timestamp=timestamp,
            agent_id=agent_id,
        )

    def append_hashed(
        self,
        input_hash: str,
        output_hash: str,
        model_name: str,
        tool_name: Optional[str] = None,
        timestamp: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> CustodyEvent:
        event = build_event(
            session_id=self.session_id,
            task_id=self.task_id,
            step_index=self.length,
            timestamp=timestamp or utc_now(),
            agent_id=agent_id or self.agent_id,
            model_name=model_name,
            tool_name=tool_name,
            input_hash=input_hash,
            output_hash=output_hash,
            previous_hash=self.get_last_hash(),
        )
        if self.signer is not None:
            event = sign_event(event, self.signer)

        # persist first: a failed write must not advance the in-memory chain
        if self.storage:
            self.storage.append(event)
        self.events.append(event)
        logger.debug("Recorded step %d of session %s", event.step_index, self.session_id)
        return event

    def get_chain(self) -> List[CustodyEvent]:
        """Returns copy of the full chain (immutable view)"""
        return self.events.copy()

    def close(self) -> None:
        if self.storage:
            self.storage.close()
            self.storage = None


@dataclass
class EnvelopeStream:
    """Writer for one envelope stream: seq starts at 1, every envelope is signed."""
    stream_id: str
    actor: Actor
    signer: AgentKeyPair
    envelopes: List[CustodyEnvelope] = field(default_factory=list)
    storage: Optional[Union[StorageBackend, str]] = None
    echo_signed_bytes: bool = False

    def __post_init__(self):
        self.storage = _resolve_storage(self.storage)
        if not self.signer.can_sign:
            raise ValueError("EnvelopeStream needs a signer with a private key")
        if self.storage and not self.envelopes:
            self.envelopes = _load_existing(self.storage, CustodyEnvelope)

    @property
    def next_seq(self) -> int:
        return len(self.envelopes) + 1

    def get_last_hash(self) -> str:
        return self.envelopes[-1].chain.event_hash if self.envelopes else GENESIS

    def emit(
        self,
        event_type: str,
        body: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
        ts: Optional[str] = None,
        actor: Optional[Actor] = None,
        signer: Optional[AgentKeyPair] = None,
    ) -> CustodyEnvelope:
        """Append one signed envelope; ``actor``/``signer`` override the stream defaults."""
        envelope = build_envelope(
            stream_id=self.stream_id,
            seq=self.next_seq,
            event_type=event_type,
            ts=ts or utc_now(),
            actor=actor or self.actor,
            context=context,
            body=body,
            prev_event_hash=self.get_last_hash(),
        )
        envelope = attach_signature(envelope, signer or self.signer, echo_signed_bytes=self.echo_signed_bytes)

        if self.storage:
            self.storage.append(envelope)
        self.envelopes.append(envelope)
        logger.debug("Emitted %s seq=%d on stream %s", event_type, envelope.seq, self.stream_id)
        return envelope

    def get_chain(self) -> List[CustodyEnvelope]:
        return self.envelopes.copy()

    def close(self) -> None:
        if self.storage:
            self.storage.close()
            self.storage = None
