# custody/integration/langgraph.py
from typing import Any, Dict, List, Optional
from uuid import UUID

from langchain_core.callbacks import BaseCallbackHandler

from custody.chain.session import CustodySession
from custody.core.types import CustodyEvent
from custody.crypto.keys import AgentKeyPair
from custody.verify.verifier import ChainVerifier


def _message_dict(msg: Any) -> Dict[str, Any]:
    return {"type": getattr(msg, "type", "unknown"), "content": getattr(msg, "content", str(msg))}


def _model_name(serialized: Optional[Dict[str, Any]], default: str) -> str:
    if not serialized:
        return default
    kwargs = serialized.get("kwargs") or {}
    return kwargs.get("model_name") or kwargs.get("model") or serialized.get("name") or default


class _CustodyCallbackHandler(BaseCallbackHandler):
    """Turns each chat-model run and each tool run into one custody step."""

    def __init__(self, auditor: "CustodyAuditorLangGraph"):
        self.auditor = auditor
        self._pending: Dict[UUID, Dict[str, Any]] = {}

    def on_chat_model_start(
        self,
        serialized: Dict[str, Any],
        messages: List[List[Any]],
        *,
        run_id: UUID,
        **kwargs: Any,
    ):
        self._pending[run_id] = {
            "model_name": _model_name(serialized, self.auditor.default_model),
            "input": [[_message_dict(m) for m in batch] for batch in messages],
        }

    def on_llm_end(self, response: Any, *, run_id: UUID, **kwargs: Any):
        pending = self._pending.pop(run_id, {})
        output = []
        for gen in getattr(response, "generations", None) or []:
            for g in gen:
                msg = getattr(g, "message", None)
                output.append(_message_dict(msg) if msg is not None else getattr(g, "text", ""))
        self.auditor.log_step(
            pending.get("input"),
            output,
            model_name=pending.get("model_name", self.auditor.default_model),
        )

    def on_tool_start(
        self,
        serialized: Dict[str, Any],
        input_str: str,
        *,
        run_id: UUID,
        **kwargs: Any,
    ):
        self._pending[run_id] = {
            "tool_name": (serialized or {}).get("name", "tool"),
            "input": input_str,
        }

    def on_tool_end(self, output: Any, *, run_id: UUID, **kwargs: Any):
        pending = self._pending.pop(run_id, {})
        self.auditor.log_step(
            pending.get("input"),
            str(output),
            model_name=self.auditor.default_model,
            tool_name=pending.get("tool_name", "tool"),
        )


class CustodyAuditorLangGraph:
    """LangGraph integration: records model and tool steps into a custody chain."""

    def __init__(
        self,
        session_id: str,
        task_id: str,
        agent_id: str,
        signer: Optional[AgentKeyPair] = None,
        storage_uri: Optional[str] = None,
        default_model: str = "unknown",
    ):
        self.session = CustodySession(
            session_id=session_id,
            task_id=task_id,
            agent_id=agent_id,
            signer=signer,
            storage=storage_uri,
        )
        self.signer = signer
        self.default_model = default_model
        self._callback = _CustodyCallbackHandler(self)

    @property
    def callback(self) -> BaseCallbackHandler:
        return self._callback

    def log_step(
        self,
        input_data: Any,
        output_data: Any,
        model_name: str,
        tool_name: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> CustodyEvent:
        return self.session.record_step(
            input_data,
            output_data,
            model_name=model_name,
            tool_name=tool_name,
            timestamp=timestamp,
        )

    def close(self):
        self.session.close()

    def export_chain(self) -> List[CustodyEvent]:
        return self.session.get_chain()

    def create_verifier(self) -> ChainVerifier:
        return ChainVerifier(CustodyEvent, public_key=self.signer)
