# custody/cli/main.py
"""
CLI for generating keys, inspecting and verifying tamper-evident custody logs.
"""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from custody.core.errors import StoreNotFound
from custody.crypto.keys import AgentKeyPair
from custody.storage.jsonl import JSONLStorage, default_log_path
from custody.verify.validator import validate_envelope_basics
from custody.verify.verifier import ChainVerifier

app = typer.Typer(
    name="custody",
    help="Generate keys, inspect and verify tamper-evident agent custody logs",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

PROFILE_CHOICES = ("event", "envelope")


def get_log_path(log_flag: Optional[Path] = None) -> Path:
    """Resolve log path in this order:
    1. --log flag
    2. CUSTODY_LOG_PATH environment variable
    3. Default: ~/.custody/custody-log.jsonl
    """
    return (log_flag or default_log_path()).resolve()


def get_public_key_path(key_flag: Optional[Path] = None) -> Optional[Path]:
    if key_flag:
        return key_flag
    env_path = os.environ.get("CUSTODY_PUBLIC_KEY")
    return Path(env_path) if env_path else None


def _load_lines(log_path: Path) -> list:
    try:
        return JSONLStorage(log_path).load_lines()
    except StoreNotFound:
        console.print(f"[red]Log file not found: {log_path}[/]")
        console.print("[yellow]To get started:[/]")
        console.print("  • Record an agent session first (creates the log)")
        console.print("  • Set env var: export CUSTODY_LOG_PATH=/path/to/log.jsonl")
        console.print("  • Or use --log: custody show --log /custom/path.jsonl")
        raise typer.Exit(1)


@app.command()
def keygen(
    out_dir: Path = typer.Option(Path("."), "--out-dir", "-o", help="Directory for the PEM files"),
    name: str = typer.Option("custody", "--name", help="File name stem: <name>.key / <name>.pub"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing key files"),
):
    """Generate an Ed25519 key pair (PKCS8 private / SPKI public PEM)."""
    out_dir.mkdir(parents=True, exist_ok=True)
    private_path = out_dir / f"{name}.key"
    public_path = out_dir / f"{name}.pub"

    if not force and (private_path.exists() or public_path.exists()):
        console.print(f"[red]Key files already exist in {out_dir} (use --force to overwrite)[/]")
        raise typer.Exit(1)

    keys = AgentKeyPair.generate()
    private_path.write_text(keys.private_key_pem(), encoding="utf-8")
    os.chmod(private_path, 0o600)
    public_path.write_text(keys.public_key_pem(), encoding="utf-8")

    console.print(f"[green]Wrote {private_path} and {public_path}[/]")
    console.print(f"  key_id: {keys.key_id}")


@app.command()
def verify(
    log: Optional[Path] = typer.Option(None, "--log", help="Path to NDJSON log (overrides CUSTODY_LOG_PATH)"),
    profile: str = typer.Option("event", "--profile", "-p", help="Record profile: event | envelope"),
    public_key: Optional[Path] = typer.Option(
        None, "--public-key", help="PEM public key; also check every signature (or CUSTODY_PUBLIC_KEY)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Verify the integrity of a log (hash chain, optionally signatures)."""
    if profile not in PROFILE_CHOICES:
        console.print(f"[red]Unknown profile '{profile}' (expected one of: {', '.join(PROFILE_CHOICES)})[/]")
        raise typer.Exit(2)

    log_path = get_log_path(log)
    key_path = get_public_key_path(public_key)

    pem = None
    if key_path is not None:
        try:
            pem = key_path.read_text(encoding="utf-8")
        except OSError as e:
            console.print(f"[red]Cannot read public key {key_path}: {e}[/]")
            raise typer.Exit(1)
    elif not as_json:
        console.print("[yellow]Warning: No public key given — signature checks skipped.[/]")

    try:
        verifier = ChainVerifier(profile, public_key=pem)
    except ValueError as e:
        console.print(f"[red]Invalid public key: {e}[/]")
        raise typer.Exit(1)

    result = verifier.verify_file(log_path)

    if as_json:
        console.print_json(json.dumps(result.as_dict()))
    elif result.ok:
        console.print(f"[green]✓ {log_path} is valid[/]")
        console.print(f"  {result.checked} records verified")
    else:
        console.print(f"[red]✗ Verification failed for {log_path}[/]")
        console.print(f"  • [{result.first_corrupted_index}] {result.kind}: {result.reason}")

    if not result.ok:
        raise typer.Exit(1)


@app.command()
def show(
    log: Optional[Path] = typer.Option(None, "--log", help="Path to NDJSON log"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of recent records to show"),
):
    """Show the most recent records in a log."""
    log_path = get_log_path(log)
    lines = _load_lines(log_path)

    if not lines:
        console.print(f"[yellow]No records in {log_path}[/]")
        return

    start = max(len(lines) - limit, 0)
    table = Table(title=f"Custody log: {log_path.name}")
    table.add_column("#", justify="right")
    table.add_column("Step / Seq")
    table.add_column("Agent")
    table.add_column("Kind")
    table.add_column("Digest")

    for index in range(start, len(lines)):
        try:
            data = json.loads(lines[index])
        except json.JSONDecodeError:
            table.add_row(str(index), "—", "—", "[red]unparseable[/]", "—")
            continue
        if not isinstance(data, dict):
            table.add_row(str(index), "—", "—", "[red]not an object[/]", "—")
            continue
        if "chain" in data:
            actor = data.get("actor") or {}
            step = str(data.get("seq", "—"))
            agent = str(actor.get("agent_id", "—"))
            kind = str(data.get("event_type", "—"))
            digest = str((data.get("chain") or {}).get("event_hash", "—"))
        else:
            step = str(data.get("stepIndex", "—"))
            agent = str(data.get("agentId", "—"))
            kind = str(data.get("toolName") or data.get("modelName", "—"))
            digest = str(data.get("currentHash", "—"))
        table.add_row(str(index), step, agent, kind, digest[:24])

    console.print(table)


@app.command()
def validate(
    log: Optional[Path] = typer.Option(None, "--log", help="Path to NDJSON envelope log"),
):
    """Run structural checks on every envelope in a log (no cryptography)."""
    log_path = get_log_path(log)
    lines = _load_lines(log_path)

    problems = 0
    for index, line in enumerate(lines):
        try:
            candidate = json.loads(line)
        except json.JSONDecodeError as e:
            reason = f"invalid JSON ({e.msg})"
        else:
            reason = validate_envelope_basics(candidate)
        if reason:
            problems += 1
            console.print(f"  • [{index}] {reason}")

    if problems:
        console.print(f"[red]✗ {problems} of {len(lines)} envelopes failed validation[/]")
        raise typer.Exit(1)
    console.print(f"[green]✓ {len(lines)} envelopes are structurally valid[/]")


if __name__ == "__main__":
    app()
