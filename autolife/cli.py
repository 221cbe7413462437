"""
CLI interface for the AI completion layer.

Usage:
    autolife providers list
    autolife providers check
    autolife providers add --name "Local" --kind local --priority 1 --model llama3.2
    autolife summarize notes.txt
    autolife tasks "Build a garden shed"
    autolife ask "When is the deadline?" --context "$(cat project.md)"
"""

import asyncio
import json
import os
import select
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .config import (
    AppConfig,
    build_registry,
    build_tracker,
    get_config_dir,
    load_or_create_config,
    save_config,
)
from .errors import AutolifeError, log_exception
from .logging_config import configure_ops_log, configure_quiet_mode, enable_debug_mode
from .orchestrator import FallbackOrchestrator
from .registry import ProviderRegistry
from .service import AiService
from .types import ProviderConfig, ProviderKind, ProviderStatus


# Configure quiet mode by default (suppress verbose library output)
# Set AUTOLIFE_VERBOSE=1 to enable debug mode via environment
if os.environ.get("AUTOLIFE_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"autolife {version('autolife-ai')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_config_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _config_callback(value: Optional[Path]):
    global _config_override
    if value is not None:
        _config_override = value


app = typer.Typer(
    name="autolife",
    help="AI summarization, tagging and planning with provider fallback.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

providers_app = typer.Typer(
    help="Manage AI providers.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
app.add_typer(providers_app, name="providers")


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    config_dir: Annotated[Optional[Path], typer.Option(
        "--config", "-c",
        envvar="AUTOLIFE_CONFIG_DIR",
        help="Path to the config directory",
        callback=_config_callback,
        is_eager=True,
    )] = None,
):
    """AI summarization, tagging and planning with provider fallback."""


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

class _Runtime:
    """Config, registry and service for one CLI invocation."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.registry: ProviderRegistry = build_registry(config)
        self.orchestrator = FallbackOrchestrator(self.registry, build_tracker(config))
        self.service = AiService(self.orchestrator, timeout=config.timeout)

    def save(self) -> None:
        save_config(self.config, self.registry)


def _get_runtime() -> _Runtime:
    """Load config (creating defaults on first use) and build the service."""
    config_dir = _config_override or get_config_dir()
    try:
        config = load_or_create_config(config_dir)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    configure_ops_log(config_dir)
    return _Runtime(config)


def _has_stdin_data() -> bool:
    """Check if stdin has data available without blocking."""
    if sys.stdin.isatty():
        return False
    try:
        ready, _, _ = select.select([sys.stdin], [], [], 0)
        return bool(ready)
    except (ValueError, OSError):
        return False


def _read_input(text: Optional[str]) -> str:
    """Text argument, a file path, or stdin ("-" or piped)."""
    if text is None or text == "-":
        if text == "-" or _has_stdin_data():
            return sys.stdin.read()
        typer.echo("Error: Provide text, a file path, or pipe content on stdin", err=True)
        raise typer.Exit(1)
    path = Path(text).expanduser()
    try:
        if path.is_file():
            return path.read_text(encoding="utf-8")
    except (OSError, ValueError):
        pass  # Not a readable path; treat as literal text
    return text


def _run_ai(runtime: _Runtime, coro, context: str):
    """Run an AI operation, persist provider health, report errors cleanly."""
    try:
        return asyncio.run(coro)
    except AutolifeError as e:
        log_exception(e, context=f"autolife {context}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        try:
            runtime.save()
        except OSError as e:
            typer.echo(f"Warning: could not save provider health: {e}", err=True)


def _echo_result(result) -> None:
    if _get_json_output():
        typer.echo(json.dumps(result, indent=2, ensure_ascii=False))
    elif isinstance(result, list):
        for item in result:
            typer.echo(item)
    else:
        typer.echo(result)


def _find_provider(runtime: _Runtime, id_or_prefix: str) -> ProviderConfig:
    """Resolve an exact id or an unambiguous id prefix."""
    matches = [p for p in runtime.registry.list_all() if p.id.startswith(id_or_prefix)]
    exact = [p for p in matches if p.id == id_or_prefix]
    if exact:
        return exact[0]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        typer.echo(f"Error: Provider not found: {id_or_prefix}", err=True)
    else:
        typer.echo(f"Error: Ambiguous provider id prefix: {id_or_prefix}", err=True)
    raise typer.Exit(1)


def _format_provider_table(providers: list[ProviderConfig]) -> str:
    if not providers:
        return "No providers configured."
    rows = [("ID", "PRI", "NAME", "KIND", "MODEL", "ENABLED", "STATUS", "FAILS")]
    for p in sorted(providers, key=lambda c: c.priority):
        rows.append((
            p.id[:8], str(p.priority), p.name, p.kind.value, p.model or "-",
            "yes" if p.enabled else "no", p.status.value, str(p.consecutive_failures),
        ))
    widths = [max(len(r[i]) for r in rows) for i in range(len(rows[0]))]
    return "\n".join(
        "  ".join(cell.ljust(w) for cell, w in zip(row, widths)).rstrip()
        for row in rows
    )


# -----------------------------------------------------------------------------
# Provider management
# -----------------------------------------------------------------------------

@providers_app.command("list")
def providers_list():
    """List configured providers in priority order."""
    runtime = _get_runtime()
    providers = runtime.registry.list_all()
    if _get_json_output():
        typer.echo(json.dumps([p.to_dict() for p in providers], indent=2))
    else:
        typer.echo(_format_provider_table(providers))


@providers_app.command("add")
def providers_add(
    name: Annotated[str, typer.Option("--name", "-n", help="Display name")],
    kind: Annotated[ProviderKind, typer.Option("--kind", "-k", help="Provider kind")],
    priority: Annotated[int, typer.Option(
        "--priority", "-p", help="Lower values are tried first",
    )] = 10,
    model: Annotated[str, typer.Option("--model", "-m", help="Model identifier")] = "",
    endpoint: Annotated[Optional[str], typer.Option(
        "--endpoint", help="Base URL override (required for azure)",
    )] = None,
    credential: Annotated[Optional[str], typer.Option(
        "--credential", help="API key (prefer environment variables)",
    )] = None,
    timeout: Annotated[float, typer.Option(
        "--timeout", help="Per-call timeout in seconds",
    )] = 30.0,
    max_retries: Annotated[int, typer.Option(
        "--max-retries", help="Retries inside the vendor client",
    )] = 3,
    disabled: Annotated[bool, typer.Option(
        "--disabled", help="Add without enabling",
    )] = False,
):
    """Add a provider."""
    runtime = _get_runtime()
    config = runtime.registry.add(ProviderConfig(
        name=name,
        kind=kind,
        priority=priority,
        enabled=not disabled,
        credential=credential or "",
        endpoint=endpoint,
        model=model,
        max_retries=max_retries,
        timeout_seconds=timeout,
    ))
    runtime.save()
    if _get_json_output():
        typer.echo(json.dumps(config.to_dict(), indent=2))
    else:
        typer.echo(f"Added: {config.name} ({config.id})")


@providers_app.command("remove")
def providers_remove(
    provider_id: Annotated[str, typer.Argument(help="Provider id (or unique prefix)")],
):
    """Remove a provider."""
    runtime = _get_runtime()
    config = _find_provider(runtime, provider_id)
    runtime.registry.remove(config.id)
    runtime.save()
    typer.echo(f"Removed: {config.name} ({config.id})")


def _set_enabled(provider_id: str, enabled: bool) -> None:
    runtime = _get_runtime()
    config = _find_provider(runtime, provider_id)
    config.enabled = enabled
    runtime.registry.update(config)
    runtime.save()
    typer.echo(f"{'Enabled' if enabled else 'Disabled'}: {config.name}")


@providers_app.command("enable")
def providers_enable(
    provider_id: Annotated[str, typer.Argument(help="Provider id (or unique prefix)")],
):
    """Enable a provider."""
    _set_enabled(provider_id, True)


@providers_app.command("disable")
def providers_disable(
    provider_id: Annotated[str, typer.Argument(help="Provider id (or unique prefix)")],
):
    """Disable a provider."""
    _set_enabled(provider_id, False)


@providers_app.command("reset")
def providers_reset(
    provider_id: Annotated[str, typer.Argument(help="Provider id (or unique prefix)")],
):
    """Clear a provider's failure count so it is tried again."""
    runtime = _get_runtime()
    config = _find_provider(runtime, provider_id)
    runtime.registry.apply(config.id, runtime.orchestrator.tracker.reset)
    runtime.save()
    typer.echo(f"Reset: {config.name}")


@providers_app.command("status")
def providers_status(
    provider_id: Annotated[str, typer.Argument(help="Provider id (or unique prefix)")],
    status: Annotated[ProviderStatus, typer.Argument(help="New status label")],
):
    """Set a provider's status label by hand."""
    runtime = _get_runtime()
    config = _find_provider(runtime, provider_id)
    runtime.registry.set_status(config.id, status)
    runtime.save()
    typer.echo(f"{config.name}: {status.value}")


@providers_app.command("check")
def providers_check(
    provider_id: Annotated[Optional[str], typer.Argument(
        help="Provider id (or unique prefix); all providers when omitted",
    )] = None,
):
    """Check that providers are configured and reachable (no completion is sent)."""
    runtime = _get_runtime()
    if provider_id is None:
        targets = sorted(runtime.registry.list_all(), key=lambda c: c.priority)
    else:
        targets = [_find_provider(runtime, provider_id)]

    async def _check_all():
        return [await runtime.orchestrator.check_provider(c) for c in targets]

    results = asyncio.run(_check_all())
    if _get_json_output():
        typer.echo(json.dumps([
            {"id": c.id, "name": c.name, "healthy": ok, "detail": detail}
            for c, (ok, detail) in zip(targets, results)
        ], indent=2))
    else:
        for c, (ok, detail) in zip(targets, results):
            typer.echo(f"{'ok  ' if ok else 'FAIL'}  {c.name} [{c.kind.value}] {detail}")
    if not all(ok for ok, _ in results):
        raise typer.Exit(1)


# -----------------------------------------------------------------------------
# AI operations
# -----------------------------------------------------------------------------

TextArgument = Annotated[Optional[str], typer.Argument(
    help="Text, a file path, or '-' for stdin",
)]


@app.command()
def summarize(text: TextArgument = None):
    """Summarize text."""
    runtime = _get_runtime()
    content = _read_input(text)
    _echo_result(_run_ai(runtime, runtime.service.generate_summary(content), "summarize"))


@app.command()
def tags(text: TextArgument = None):
    """Generate tags for text."""
    runtime = _get_runtime()
    content = _read_input(text)
    _echo_result(_run_ai(runtime, runtime.service.generate_tags(content), "tags"))


@app.command()
def categories(text: TextArgument = None):
    """Suggest categories for text."""
    runtime = _get_runtime()
    content = _read_input(text)
    _echo_result(_run_ai(runtime, runtime.service.suggest_categories(content), "categories"))


@app.command()
def plan(description: TextArgument = None):
    """Generate a project plan from a description."""
    runtime = _get_runtime()
    content = _read_input(description)
    _echo_result(_run_ai(runtime, runtime.service.generate_project_plan(content), "plan"))


@app.command()
def tasks(description: TextArgument = None):
    """Generate up to 10 tasks for a project description."""
    runtime = _get_runtime()
    content = _read_input(description)
    _echo_result(_run_ai(runtime, runtime.service.generate_tasks(content), "tasks"))


@app.command()
def ask(
    question: Annotated[str, typer.Argument(help="Question to answer")],
    context: Annotated[str, typer.Option(
        "--context", help="Context text, a file path, or '-' for stdin",
    )] = "",
):
    """Answer a question using the given context."""
    runtime = _get_runtime()
    context_text = _read_input(context) if context else ""
    _echo_result(_run_ai(runtime, runtime.service.answer_question(question, context_text), "ask"))


@app.command()
def extract(
    path: Annotated[Path, typer.Argument(help="File to extract text from", exists=True, dir_okay=False)],
    mime_type: Annotated[Optional[str], typer.Option(
        "--mime-type", help="MIME type (guessed from the file name if omitted)",
    )] = None,
):
    """Extract text from a file (plain text only)."""
    import mimetypes

    runtime = _get_runtime()
    mime = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    _echo_result(_run_ai(runtime, runtime.service.extract_text(path.read_bytes(), mime), "extract"))


@app.command("mcp")
def mcp_cmd():
    """Run as an MCP stdio server for AI agent integration."""
    if _config_override is not None:
        os.environ["AUTOLIFE_CONFIG_DIR"] = str(_config_override)
    from .mcp import main as mcp_main
    mcp_main()


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        log_path = log_exception(e, context="autolife CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
