# tests/test_core.py
import pytest
from dataclasses import FrozenInstanceError

from custody.core.canon import canonical_json, canonical_json_str
from custody.core.encoding import b64_decode, b64_encode, hex_to_bytes
from custody.core.errors import CanonicalizationError, MalformedRecord, MissingField
from custody.core.types import GENESIS, Actor, CustodyEnvelope, CustodyEvent


@pytest.fixture
def sample_event():
    return CustodyEvent(
        session_id="sess-20260131-test",
        task_id="task-1",
        step_index=0,
        timestamp="2026-01-31T14:00:00.000Z",
        agent_id="agent:planner",
        model_name="gpt-4o",
        input_hash="a" * 64,
        output_hash="b" * 64,
    )


def test_event_immutable(sample_event):
    with pytest.raises(FrozenInstanceError):
        sample_event.step_index = 99


def test_event_payload_excludes_derived_fields(sample_event):
    signed = sample_event.with_digest("c" * 64).with_signature("sig")
    payload = signed.payload()
    assert "currentHash" not in payload
    assert "signature" not in payload
    assert payload["previousHash"] == GENESIS
    assert payload["stepIndex"] == 0


def test_event_payload_omits_absent_tool_name(sample_event):
    assert "toolName" not in sample_event.payload()
    with_tool = CustodyEvent(**{**sample_event.__dict__, "tool_name": "search"})
    assert with_tool.payload()["toolName"] == "search"


def test_event_wire_roundtrip(sample_event):
    event = sample_event.with_digest("c" * 64)
    assert CustodyEvent.from_dict(event.to_dict()) == event


def test_event_from_dict_rejects_bad_shape(sample_event):
    data = sample_event.with_digest("c" * 64).to_dict()
    data["stepIndex"] = "zero"
    with pytest.raises(MalformedRecord, match="stepIndex"):
        CustodyEvent.from_dict(data)

    data = sample_event.with_digest("c" * 64).to_dict()
    del data["outputHash"]
    with pytest.raises(MalformedRecord, match="outputHash"):
        CustodyEvent.from_dict(data)

    with pytest.raises(MalformedRecord):
        CustodyEvent.from_dict(["not", "an", "object"])


def test_event_from_dict_rejects_bool_step_index(sample_event):
    data = sample_event.with_digest("c" * 64).to_dict()
    data["stepIndex"] = True
    with pytest.raises(MalformedRecord):
        CustodyEvent.from_dict(data)


def test_envelope_payload_strips_derived_fields():
    env = CustodyEnvelope(
        stream_id="stream-1",
        seq=1,
        event_type="tool.call",
        ts="2026-01-31T14:00:00.000Z",
        actor=Actor(agent_id="agent:a", key_id="k1"),
        body={"tool": "ls"},
    )
    env = env.with_digest("sha256:" + "0" * 64).with_signature("base64:AAAA", signed_bytes="{}")
    payload = env.payload()
    assert "event_hash" not in payload["chain"]
    assert payload["chain"]["prev_event_hash"] == GENESIS
    assert payload["signature"] == {"alg": "ed25519"}
    assert "context" not in payload
    assert CustodyEnvelope.from_dict(env.to_dict()) == env


def test_envelope_keeps_unmodelled_keys():
    data = {
        "schema_version": "1.0",
        "stream_id": "s",
        "seq": 1,
        "event_type": "x",
        "ts": "t",
        "actor": {"agent_id": "a", "key_id": "k1", "role": "planner"},
        "body": {},
        "chain": {"prev_event_hash": GENESIS, "branch": "main"},
        "signature": {"alg": "ed25519", "sig": "base64:AAAA", "kid": "k1"},
        "trace_id": "abc",
        "context": None,
    }
    env = CustodyEnvelope.from_dict(data)
    assert env.extra == {"trace_id": "abc", "context": None}
    assert env.actor.extra == {"role": "planner"}
    assert env.to_dict() == data

    payload = env.payload()
    assert payload["trace_id"] == "abc"
    assert payload["signature"] == {"alg": "ed25519", "kid": "k1"}


def test_event_from_dict_rejects_unknown_keys(sample_event):
    data = sample_event.with_digest("c" * 64).to_dict()
    data["approved"] = True
    with pytest.raises(MalformedRecord, match="unexpected field approved"):
        CustodyEvent.from_dict(data)


def test_envelope_from_dict_requires_key_id():
    data = {
        "schema_version": "1.0",
        "stream_id": "s",
        "seq": 1,
        "event_type": "x",
        "ts": "t",
        "actor": {"agent_id": "a"},
        "body": {},
        "chain": {"prev_event_hash": GENESIS},
        "signature": {"alg": "ed25519"},
    }
    with pytest.raises(MalformedRecord, match="actor.key_id"):
        CustodyEnvelope.from_dict(data)


def test_b64_roundtrip_and_prefix():
    original = b'{"hello":"world"}'
    encoded = b64_encode(original)
    assert b64_decode(encoded) == original
    assert b64_decode("base64:" + encoded) == original
    assert b64_decode("!!not base64!!") is None


def test_hex_to_bytes():
    assert hex_to_bytes("00ff") == b"\x00\xff"
    assert hex_to_bytes("sha256:00ff") == b"\x00\xff"
    assert hex_to_bytes(GENESIS) is None
    assert hex_to_bytes("") is None


def test_canonical_json_sorting():
    messy = {
        "z": 1,
        "a": "hello",
        "nested": {"b": 2, "a": [3, {"y": None, "x": True}]},
    }
    assert canonical_json_str(messy) == '{"a":"hello","nested":{"a":[3,{"x":true,"y":null}],"b":2},"z":1}'


def test_canonical_json_order_independent():
    first = {}
    first["outer"] = {"k1": 1, "k2": {"deep": [1, 2], "deeper": {"p": "q", "o": "n"}}}
    first["other"] = "v"

    second = {}
    second["other"] = "v"
    second["outer"] = {"k2": {"deeper": {"o": "n", "p": "q"}, "deep": [1, 2]}, "k1": 1}

    assert canonical_json(first) == canonical_json(second)


def test_canonical_json_keeps_array_order():
    assert canonical_json([2, 1]) != canonical_json([1, 2])


def test_canonical_json_rejects_cycles():
    looped = {"a": 1}
    looped["self"] = looped
    with pytest.raises(CanonicalizationError, match="Circular"):
        canonical_json(looped)

    items = []
    items.append(items)
    with pytest.raises(CanonicalizationError):
        canonical_json(items)


def test_canonical_json_shared_subtree_is_not_a_cycle():
    shared = {"x": 1}
    assert canonical_json({"a": shared, "b": shared}) == b'{"a":{"x":1},"b":{"x":1}}'


def test_canonical_json_rejects_nan_and_non_string_keys():
    with pytest.raises(CanonicalizationError):
        canonical_json({"v": float("nan")})
    with pytest.raises(CanonicalizationError):
        canonical_json({1: "int key"})


def test_missing_field_error_names_field():
    err = MissingField("actor.key_id")
    assert err.field_name == "actor.key_id"
    assert err.as_dict()["code"] == "MissingField"
    assert str(err) == "MissingField: missing field: actor.key_id"


def test_canonical_rejects_too_deep_nesting():
    deep = []
    for _ in range(100_000):
        deep = [deep]
    with pytest.raises(CanonicalizationError, match="nested too deeply"):
        canonical_json(deep)


def test_canonical_rejects_unrepresentable_integer():
    with pytest.raises(CanonicalizationError):
        canonical_json({"i": 10 ** 400})
