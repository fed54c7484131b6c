# examples/tamper_demo.py
# Run with: poetry run python examples/tamper_demo.py
#
# Records a short agent run, verifies it, then edits one stored step and
# shows the verifier pinpointing the corrupted record.

import json
import tempfile
from pathlib import Path

from custody import AgentKeyPair, ChainVerifier, CustodySession


if __name__ == "__main__":
    keys = AgentKeyPair.generate()
    log_path = Path(tempfile.mkdtemp()) / "custody-log.jsonl"

    print("=" * 70)
    print("CUSTODY TAMPER DEMO")
    print("=" * 70)

    session = CustodySession(
        session_id="demo-001",
        task_id="summarize-inbox",
        agent_id="agent:planner",
        signer=keys,
        storage=f"jsonl:{log_path}",
    )
    session.record_step({"prompt": "list unread mail"}, ["msg-1", "msg-2"], model_name="gpt-4o", tool_name="imap")
    session.record_step({"read": "msg-1"}, "Quarterly report attached", model_name="gpt-4o", tool_name="imap")
    session.record_step({"summarize": ["msg-1", "msg-2"]}, "Two emails, one report", model_name="gpt-4o")
    session.close()

    print(f"1. Recorded {session.length} steps to {log_path}")

    verifier = ChainVerifier("event", public_key=keys.public_key_pem())
    print(f"2. Verify untouched log: {verifier.verify_file(log_path)}")

    lines = log_path.read_text(encoding="utf-8").splitlines()
    step = json.loads(lines[1])
    step["toolName"] = "smtp"
    lines[1] = json.dumps(step)
    log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    print("3. Rewrote step 1's toolName in storage")
    print(f"4. Verify tampered log: {verifier.verify_file(log_path)}")
