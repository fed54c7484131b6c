# custody/core/types.py
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, Mapping, Optional, Protocol, Tuple, Type, TypeVar

from custody.core.errors import MalformedRecord

# Reserved "no predecessor" link. Not valid hex, so no digest can ever equal it.
GENESIS = "GENESIS"

SCHEMA_VERSION = "1.0"

R = TypeVar("R", bound="ChainRecord")


class ChainRecord(Protocol):
    """What the hasher and verifier need from either record profile."""

    PROFILE: ClassVar[str]
    LINK_PATH: ClassVar[Tuple[str, ...]]
    DIGEST_PREFIX: ClassVar[str]

    @property
    def prev_link(self) -> str: ...

    @property
    def digest(self) -> Optional[str]: ...

    @property
    def signature_value(self) -> Optional[str]: ...

    @property
    def signer_id(self) -> str: ...

    def payload(self) -> Dict[str, Any]: ...

    def to_dict(self) -> Dict[str, Any]: ...

    def with_digest(self: R, digest: str) -> R: ...

    def with_signature(self: R, signature: str) -> R: ...

    @classmethod
    def from_dict(cls: Type[R], data: Mapping[str, Any]) -> R: ...


def _require(data: Mapping[str, Any], key: str, kind: type, where: str = "", optional: bool = False) -> Any:
    label = f"{where}{key}"
    if key not in data or data[key] is None:
        if optional:
            return None
        raise MalformedRecord(f"malformed record: missing {label}", field=label)
    value = data[key]
    # bool is an int subclass; a step index of True is not a step index
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise MalformedRecord(
            f"malformed record: {label} must be {kind.__name__}, got {type(value).__name__}",
            field=label,
        )
    return value


def _as_mapping(data: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise MalformedRecord(f"malformed record: {where or 'record'} must be an object", field=where)
    return data


def _extra(data: Mapping[str, Any], known: Tuple[str, ...]) -> Dict[str, Any]:
    """
    Keys outside the modelled fields, plus explicit nulls on optional ones.
    They ride along in the wire form, so they are hashed and signed as stored.
    """
    return {k: v for k, v in data.items() if k not in known or v is None}


# ── Flat profile ─────────────────────────────────────────────────────────────

_EVENT_WIRE = (
    ("session_id", "sessionId", str),
    ("task_id", "taskId", str),
    ("step_index", "stepIndex", int),
    ("timestamp", "timestamp", str),
    ("agent_id", "agentId", str),
    ("model_name", "modelName", str),
    ("tool_name", "toolName", str),
    ("input_hash", "inputHash", str),
    ("output_hash", "outputHash", str),
    ("previous_hash", "previousHash", str),
)
_EVENT_OPTIONAL = {"tool_name"}
_EVENT_KEYS = frozenset(wire for _, wire, _ in _EVENT_WIRE) | {"currentHash", "signature"}


@dataclass(frozen=True)
class CustodyEvent:
    """One agent step in the flat profile. ``current_hash`` is derived, never authored."""

    PROFILE: ClassVar[str] = "event"
    LINK_PATH: ClassVar[Tuple[str, ...]] = ("previousHash",)
    DIGEST_PREFIX: ClassVar[str] = ""

    session_id: str
    task_id: str
    step_index: int
    timestamp: str
    agent_id: str
    model_name: str
    input_hash: str
    output_hash: str
    previous_hash: str = GENESIS
    tool_name: Optional[str] = None
    current_hash: str = ""
    signature: Optional[str] = None   # bare base64 Ed25519 over the digest bytes

    @property
    def prev_link(self) -> str:
        return self.previous_hash

    @property
    def digest(self) -> Optional[str]:
        return self.current_hash or None

    @property
    def signature_value(self) -> Optional[str]:
        return self.signature

    @property
    def signer_id(self) -> str:
        return self.agent_id

    def payload(self) -> Dict[str, Any]:
        """Every hashed field in wire form (camelCase), absent tool name omitted."""
        d = {}
        for attr, wire, _ in _EVENT_WIRE:
            value = getattr(self, attr)
            if value is None and attr in _EVENT_OPTIONAL:
                continue
            d[wire] = value
        return d

    def to_dict(self) -> Dict[str, Any]:
        d = self.payload()
        d["currentHash"] = self.current_hash
        if self.signature is not None:
            d["signature"] = self.signature
        return d

    def with_digest(self, digest: str) -> "CustodyEvent":
        return replace(self, current_hash=digest)

    def with_signature(self, signature: str) -> "CustodyEvent":
        return replace(self, signature=signature)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustodyEvent":
        data = _as_mapping(data, "")
        # the flat profile hashes a fixed field set, so anything else would go unhashed
        unknown = sorted(set(data) - _EVENT_KEYS)
        if unknown:
            raise MalformedRecord(f"malformed record: unexpected field {unknown[0]}", field=unknown[0])
        kwargs = {
            attr: _require(data, wire, kind, optional=attr in _EVENT_OPTIONAL)
            for attr, wire, kind in _EVENT_WIRE
        }
        kwargs["current_hash"] = _require(data, "currentHash", str)
        kwargs["signature"] = _require(data, "signature", str, optional=True)
        return cls(**kwargs)


# ── Extensible profile ───────────────────────────────────────────────────────

_ACTOR_KEYS = ("agent_id", "key_id", "tenant_id")
_CHAIN_KEYS = ("prev_event_hash", "event_hash")
_SIGNATURE_KEYS = ("alg", "sig", "signed_bytes")
_ENVELOPE_KEYS = (
    "schema_version", "stream_id", "seq", "event_type", "ts",
    "actor", "context", "body", "chain", "signature",
)


@dataclass(frozen=True)
class Actor:
    agent_id: str
    key_id: str
    tenant_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d.update(agent_id=self.agent_id, key_id=self.key_id)
        if self.tenant_id is not None:
            d["tenant_id"] = self.tenant_id
        return d


@dataclass(frozen=True)
class ChainLink:
    prev_event_hash: str = GENESIS
    event_hash: Optional[str] = None        # derived: "sha256:<hex>"
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d["prev_event_hash"] = self.prev_event_hash
        if self.event_hash is not None:
            d["event_hash"] = self.event_hash
        return d


@dataclass(frozen=True)
class EnvelopeSignature:
    alg: str = "ed25519"
    sig: Optional[str] = None               # derived: "base64:<b64>"
    signed_bytes: Optional[str] = None      # derived: echo of the signing input
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d["alg"] = self.alg
        if self.sig is not None:
            d["sig"] = self.sig
        if self.signed_bytes is not None:
            d["signed_bytes"] = self.signed_bytes
        return d


@dataclass(frozen=True)
class CustodyEnvelope:
    """
    Extensible record: free-form ``context``/``body`` maps plus chain and
    signature metadata. ``chain.event_hash`` and the signature values are
    derived and excluded from both the hash and the signing input.
    """

    PROFILE: ClassVar[str] = "envelope"
    LINK_PATH: ClassVar[Tuple[str, ...]] = ("chain", "prev_event_hash")
    DIGEST_PREFIX: ClassVar[str] = "sha256:"

    stream_id: str
    seq: int
    event_type: str
    ts: str
    actor: Actor
    body: Dict[str, Any]
    chain: ChainLink = field(default_factory=ChainLink)
    signature: EnvelopeSignature = field(default_factory=EnvelopeSignature)
    context: Optional[Dict[str, Any]] = None
    schema_version: str = SCHEMA_VERSION
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def prev_link(self) -> str:
        return self.chain.prev_event_hash

    @property
    def digest(self) -> Optional[str]:
        return self.chain.event_hash

    @property
    def signature_value(self) -> Optional[str]:
        return self.signature.sig

    @property
    def signer_id(self) -> str:
        return self.actor.key_id

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d.update({
            "schema_version": self.schema_version,
            "stream_id": self.stream_id,
            "seq": self.seq,
            "event_type": self.event_type,
            "ts": self.ts,
            "actor": self.actor.to_dict(),
            "body": self.body,
            "chain": self.chain.to_dict(),
            "signature": self.signature.to_dict(),
        })
        if self.context is not None:
            d["context"] = self.context
        return d

    def payload(self) -> Dict[str, Any]:
        d = self.to_dict()
        d["chain"].pop("event_hash", None)
        d["signature"].pop("sig", None)
        d["signature"].pop("signed_bytes", None)
        return d

    def with_digest(self, digest: str) -> "CustodyEnvelope":
        return replace(self, chain=replace(self.chain, event_hash=digest))

    def with_signature(self, signature: str, signed_bytes: Optional[str] = None) -> "CustodyEnvelope":
        return replace(self, signature=replace(self.signature, sig=signature, signed_bytes=signed_bytes))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustodyEnvelope":
        data = _as_mapping(data, "")
        actor = _as_mapping(_require(data, "actor", dict), "actor")
        chain = _as_mapping(_require(data, "chain", dict), "chain")
        sig = _as_mapping(_require(data, "signature", dict), "signature")
        return cls(
            schema_version=_require(data, "schema_version", str),
            stream_id=_require(data, "stream_id", str),
            seq=_require(data, "seq", int),
            event_type=_require(data, "event_type", str),
            ts=_require(data, "ts", str),
            actor=Actor(
                agent_id=_require(actor, "agent_id", str, "actor."),
                key_id=_require(actor, "key_id", str, "actor."),
                tenant_id=_require(actor, "tenant_id", str, "actor.", optional=True),
                extra=_extra(actor, _ACTOR_KEYS),
            ),
            context=_require(data, "context", dict, optional=True),
            body=_require(data, "body", dict),
            chain=ChainLink(
                prev_event_hash=_require(chain, "prev_event_hash", str, "chain."),
                event_hash=_require(chain, "event_hash", str, "chain.", optional=True),
                extra=_extra(chain, _CHAIN_KEYS),
            ),
            signature=EnvelopeSignature(
                alg=_require(sig, "alg", str, "signature."),
                sig=_require(sig, "sig", str, "signature.", optional=True),
                signed_bytes=_require(sig, "signed_bytes", str, "signature.", optional=True),
                extra=_extra(sig, _SIGNATURE_KEYS),
            ),
            extra=_extra(data, _ENVELOPE_KEYS),
        )


PROFILES: Dict[str, Type[Any]] = {
    CustodyEvent.PROFILE: CustodyEvent,
    CustodyEnvelope.PROFILE: CustodyEnvelope,
}
