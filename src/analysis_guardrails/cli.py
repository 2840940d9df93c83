from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import typer

from .config import load_settings
from .errors import GuardrailError, InputError, PlanFormatError
from .log import setup_logging
from .pipeline import GuardrailEngine, ReferenceData
from .playbooks.registry import load_playbook_registry
from .plan import build_reissue_prompt, load_plan, telemetry_metrics, validate_actions
from .semantic.dictionary import EntityType, load_semantic_dictionary

app = typer.Typer(add_completion=False, help="Analysis guardrails: playbook selection and plan review")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log decisions at DEBUG level")) -> None:
    # Logs go to stderr so JSON on stdout stays parseable.
    setup_logging(logging.DEBUG if verbose else logging.INFO, stream=sys.stderr)


# ---- Playbook commands ----
playbooks_app = typer.Typer(help="Inspect the playbook registry.")
app.add_typer(playbooks_app, name="playbooks")


@playbooks_app.command("list")
def list_playbooks(
    search: Optional[str] = typer.Option(None, "--search", help="Only playbooks matching this keyword"),
) -> None:
    """
    List registered playbooks with their version.

    The generic exploratory fallback is listed too, marked as such.
    """
    registry = load_playbook_registry()
    ids = [pb.id for pb in registry.search(search)] if search else registry.list_playbooks()
    for playbook_id in sorted(ids):
        meta = registry.describe_playbook(playbook_id)
        suffix = " [fallback]" if meta["is_fallback"] else ""
        typer.echo(f"{playbook_id} (v{meta['version']}){suffix}")


@playbooks_app.command("describe")
def describe_playbook(
    playbook: str = typer.Option(..., "--playbook", help="Playbook id to describe")
) -> None:
    """Show metadata for one playbook as JSON with sorted keys."""
    registry = load_playbook_registry()
    try:
        meta = registry.describe_playbook(playbook)
    except KeyError as exc:
        typer.echo(exc.args[0], err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(meta, indent=2, sort_keys=True, ensure_ascii=False))


@playbooks_app.command("stats")
def playbook_stats() -> None:
    registry = load_playbook_registry()
    out = {"registry_version": registry.version, **registry.stats()}
    typer.echo(json.dumps(out, indent=2, sort_keys=True))


# ---- Dictionary commands ----
dictionary_app = typer.Typer(help="Query the semantic dictionary.")
app.add_typer(dictionary_app, name="dictionary")


@dictionary_app.command("lookup")
def lookup(
    name: str = typer.Argument(..., help="Raw column or metric name"),
    entity_type: EntityType = typer.Option(EntityType.COLUMN, "--entity-type", case_sensitive=False),
) -> None:
    """Print the canonical name for NAME, or exit 1 when the dictionary has no match."""
    dictionary = load_semantic_dictionary()
    canonical = dictionary.lookup(name, entity_type)
    if canonical is None:
        hint = " (ambiguous synonym)" if dictionary.is_ambiguous(name, entity_type) else ""
        typer.echo(f"No canonical {entity_type.value} for '{name}'{hint}.", err=True)
        raise typer.Exit(code=1)
    typer.echo(canonical)


# ---- Analysis ----


def _payload_from_csv(path: Path, sep: Optional[str]) -> dict[str, Any]:
    # Every cell stays a string: decimal locale and types are decided by the engine.
    df = pd.read_csv(path, sep=sep, engine="python", dtype=str, keep_default_na=False)
    headers = [str(c) for c in df.columns]
    return {
        "rows": df.to_dict(orient="records"),
        "headers": headers,
        "telemetry": {
            "ingest_source": "csv",
            "file_size_bytes": path.stat().st_size,
            "detection_confidence": 100,
            "headers_original": headers,
            "row_count": len(df),
            "column_count": len(headers),
            "encoding": "utf-8",
            "dialect": {",": "comma", ";": "semicolon", "\t": "tab", "|": "pipe"}.get(sep) if sep else None,
        },
    }


def _load_payload(path: Path, sep: Optional[str]) -> dict[str, Any]:
    if path.suffix.lower() == ".json":
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise InputError(f"{path.name} must hold an object with 'rows', 'headers' and 'telemetry'.")
        return raw
    return _payload_from_csv(path, sep)


@app.command()
def analyze(
    data: Path = typer.Argument(..., help="CSV file, or JSON ingestion payload"),
    sep: Optional[str] = typer.Option(None, "--sep", help="CSV delimiter (sniffed when omitted)"),
    markdown: bool = typer.Option(False, "--markdown", help="Print the audit card as Markdown instead of JSON"),
) -> None:
    """
    Select a playbook for a dataset and print the guardrail decision.

    Exit codes: 0 on success, 1 for unusable input, 2 when the file does not exist.
    """
    try:
        payload = _load_payload(data, sep)
        engine = GuardrailEngine(ReferenceData.create())
        result = engine.analyze(payload)
    except FileNotFoundError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=2)
    except (GuardrailError, ValueError) as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=1)

    if markdown:
        typer.echo(result.audit_markdown.rstrip())
    else:
        typer.echo(json.dumps(result.envelope(), indent=2, ensure_ascii=False))


@app.command("validate-plan")
def validate_plan_cmd(
    plan: Path = typer.Argument(..., help="JSON file with the action plan"),
    reissue: bool = typer.Option(False, "--reissue", help="Print the correction prompt when the plan fails"),
) -> None:
    """
    Check an action plan against the completeness rules.

    Exit codes: 0 when valid, 1 when invalid or malformed, 2 when the file does not exist.
    """
    try:
        actions = load_plan(plan)
    except FileNotFoundError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=2)
    except PlanFormatError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=1)

    settings = load_settings()
    result = validate_actions(actions, settings)
    typer.echo(json.dumps(telemetry_metrics(result), indent=2, sort_keys=True, ensure_ascii=False))

    for w in result.warnings:
        typer.echo(f"WARN: {w}", err=True)
    if result.is_valid:
        return

    for e in result.errors:
        typer.echo(f"ERROR: {e}", err=True)
    if reissue:
        typer.echo(build_reissue_prompt(result, settings))
    raise typer.Exit(code=1)
