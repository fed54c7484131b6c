# custody/integration/autogen.py
from typing import Any, Dict, List, Optional

from custody.chain.session import EnvelopeStream
from custody.core.types import Actor, CustodyEnvelope
from custody.crypto.keys import AgentKeyPair
from custody.verify.verifier import ChainVerifier


class CustodyAuditor:
    """
    Multi-agent integration (AutoGen style): every agent message becomes a
    signed envelope on one shared stream, signed with that agent's own key.
    """

    def __init__(
        self,
        stream_id: str,
        key_registry: Dict[str, AgentKeyPair],
        storage_uri: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ):
        if not key_registry:
            raise ValueError("key_registry needs at least one agent")
        self.key_registry = key_registry
        self.tenant_id = tenant_id
        first = next(iter(key_registry))
        self.stream = EnvelopeStream(
            stream_id=stream_id,
            actor=self._actor(first),
            signer=key_registry[first],
            storage=storage_uri,
        )

    def _actor(self, agent_name: str) -> Actor:
        return Actor(
            agent_id=f"agent:{agent_name}",
            key_id=self.key_registry[agent_name].key_id,
            tenant_id=self.tenant_id,
        )

    def log(
        self,
        content: Any,
        role: str,
        agent_name: str,
        event_type: str = "agent.message",
        context: Optional[Dict[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> CustodyEnvelope:
        if agent_name not in self.key_registry:
            raise ValueError(f"Unknown agent: {agent_name}")
        return self.stream.emit(
            event_type,
            body={"role": role, "content": content},
            context=context,
            ts=timestamp,
            actor=self._actor(agent_name),
            signer=self.key_registry[agent_name],
        )

    def close(self):
        self.stream.close()

    def export_chain(self) -> List[CustodyEnvelope]:
        return self.stream.get_chain()

    def create_verifier(self) -> ChainVerifier:
        trusted_keys = {kp.key_id: kp for kp in self.key_registry.values()}
        return ChainVerifier(CustodyEnvelope, trusted_keys=trusted_keys)
