"""
CLI interface for version history.

Usage:
    keepsake save blog hello-world src/content/blog/hello-world.md
    keepsake list blog hello-world
    keepsake restore blog hello-world <version-id> src/content/blog/hello-world.md
"""

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import VersionHistory
from .config import load_config, resolve_config, save_config
from .errors import ConfigError
from .logging_config import configure_ops_log, configure_quiet_mode, enable_debug_mode
from .restore import DEFAULT_SAFETY_LABEL
from .types import Version, VersionEntry, VersionResult

if os.environ.get("KEEPSAKE_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"keepsake {version('keepsake-history')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_root_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _root_callback(value: Optional[Path]):
    global _root_override
    _root_override = value


app = typer.Typer(
    name="keepsake",
    help="Timestamped version history for text documents.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


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
    root: Annotated[Optional[Path], typer.Option(
        "--root", "-r",
        envvar="KEEPSAKE_ROOT",
        help="Project root (default: current directory)",
        callback=_root_callback,
        is_eager=True,
    )] = None,
):
    """Timestamped version history for text documents."""


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

Collection = Annotated[str, typer.Argument(help="Collection the document belongs to")]
Document = Annotated[str, typer.Argument(help="Document id within the collection")]
VersionId = Annotated[str, typer.Argument(help="Version id (see `keepsake list`)")]


def _get_history() -> VersionHistory:
    root = (_root_override or Path.cwd()).expanduser().resolve()
    history = VersionHistory.from_project(root)
    if history.enabled:
        configure_ops_log(history.storage_root)
    return history


def _entry_dict(entry: VersionEntry) -> dict:
    return entry.to_dict()


def _format_entry(entry: VersionEntry) -> str:
    label = f" [{entry.label}]" if entry.label else ""
    preview = entry.preview.replace("\n", " ")
    if len(preview) > 60:
        preview = preview[:57] + "..."
    return f"{entry.id}  {entry.size:>7}B{label}  {preview}"


def _emit_result(result: VersionResult, message: str, **extra) -> None:
    """Print a mutation result and exit 1 on failure."""
    if _json_output:
        data = {"success": result.success}
        if result.version is not None:
            data["version"] = _entry_dict(result.version)
        if result.error:
            data["error"] = result.error
            data["errorKind"] = result.error_kind.value if result.error_kind else None
        data.update(extra)
        typer.echo(json.dumps(data, indent=2, default=str))
    elif result.success:
        typer.echo(message)
    else:
        typer.echo(f"Error: {result.error}", err=True)
    if not result.success:
        raise typer.Exit(1)


def _read_source(source: Optional[str]) -> str:
    if source is None or source == "-":
        return sys.stdin.read()
    path = Path(source).expanduser()
    if not path.is_file():
        typer.echo(f"Error: file not found: {source}", err=True)
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command()
def save(
    collection: Collection,
    document: Document,
    source: Annotated[Optional[str], typer.Argument(
        help="File to snapshot ('-' or omitted reads stdin)",
    )] = None,
    label: Annotated[Optional[str], typer.Option(
        "--label", "-l",
        help="Name this snapshot (labeled snapshots are never pruned)",
    )] = None,
    skip_identical: Annotated[bool, typer.Option(
        "--skip-identical",
        help="Reuse the latest snapshot if the content is unchanged",
    )] = False,
):
    """Save a snapshot of a document."""
    history = _get_history()
    content = _read_source(source)
    result = asyncio.run(history.save(
        collection, document, content, label=label, skip_if_identical=skip_identical,
    ))
    if result.version is None:
        message = "Version history is disabled; nothing saved"
    else:
        message = f"Saved {result.version.id}"
    _emit_result(result, message)


@app.command("list")
def list_versions(
    collection: Collection,
    document: Document,
    limit: Annotated[int, typer.Option(
        "--limit", "-n",
        help="Maximum versions to show (0 for all)",
    )] = 0,
):
    """List snapshots of a document, newest first."""
    history = _get_history()
    entries = asyncio.run(history.list(collection, document))
    if limit > 0:
        entries = entries[:limit]
    if _json_output:
        typer.echo(json.dumps([_entry_dict(e) for e in entries], indent=2))
        return
    if not entries:
        typer.echo("No versions.")
        return
    for entry in entries:
        typer.echo(_format_entry(entry))


@app.command()
def show(
    collection: Collection,
    document: Document,
    version_id: VersionId,
):
    """Print the content of one snapshot."""
    history = _get_history()
    version: Optional[Version] = asyncio.run(history.get(collection, document, version_id))
    if version is None:
        typer.echo(f"Version not found: {version_id}", err=True)
        raise typer.Exit(1)
    if _json_output:
        data = _entry_dict(version)
        data.update(content=version.content, frontmatter=version.frontmatter, body=version.body)
        typer.echo(json.dumps(data, indent=2, default=str))
    else:
        typer.echo(version.content, nl=False)


@app.command()
def delete(
    collection: Collection,
    document: Document,
    version_id: VersionId,
):
    """Delete one snapshot."""
    history = _get_history()
    result = asyncio.run(history.delete(collection, document, version_id))
    _emit_result(result, f"Deleted {version_id}")


@app.command()
def clear(
    collection: Collection,
    document: Document,
    yes: Annotated[bool, typer.Option(
        "--yes", "-y",
        help="Don't ask for confirmation",
    )] = False,
):
    """Delete every snapshot of a document."""
    if not yes:
        typer.confirm(f"Delete all versions of {collection}/{document}?", abort=True)
    history = _get_history()
    result = asyncio.run(history.clear(collection, document))
    _emit_result(result, f"Cleared history of {collection}/{document}")


@app.command()
def prune(
    collection: Collection,
    document: Document,
):
    """Apply the retention limit to a document's history."""
    history = _get_history()
    result = asyncio.run(history.prune(collection, document))
    _emit_result(
        result,
        f"Pruned to at most {history.config.max_versions} unlabeled versions",
    )


@app.command()
def restore(
    collection: Collection,
    document: Document,
    version_id: VersionId,
    live_path: Annotated[Path, typer.Argument(help="The document's live file")],
    label: Annotated[str, typer.Option(
        "--label", "-l",
        help="Label for the safety snapshot of the current content",
    )] = DEFAULT_SAFETY_LABEL,
    no_safety: Annotated[bool, typer.Option(
        "--no-safety",
        help="Don't snapshot the current content first",
    )] = False,
):
    """Overwrite a document's live file with a stored version."""
    history = _get_history()
    result = asyncio.run(history.restore(
        collection, document, version_id, live_path,
        safety_label=label, skip_safety=no_safety,
    ))
    extra = {}
    message = f"Restored {version_id} to {live_path}"
    if result.safety_snapshot is not None:
        extra["safetySnapshot"] = _entry_dict(result.safety_snapshot)
        message += f"\nCurrent content saved as {result.safety_snapshot.id}"
    _emit_result(result, message, **extra)


@app.command()
def config(
    enable: Annotated[Optional[bool], typer.Option(
        "--enable/--disable",
        help="Turn version history on or off",
    )] = None,
    max_versions: Annotated[Optional[int], typer.Option(
        "--max-versions",
        help="Unlabeled versions kept per document",
    )] = None,
    storage_path: Annotated[Optional[str], typer.Option(
        "--storage-path",
        help="Storage directory relative to the project root",
    )] = None,
):
    """Show or update the project's history settings (keepsake.toml)."""
    root = (_root_override or Path.cwd()).expanduser().resolve()
    loaded = load_config(root)
    for warning in loaded.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    current = loaded.config

    if enable is not None or max_versions is not None or storage_path is not None:
        try:
            current = resolve_config({
                "enabled": current.enabled if enable is None else enable,
                "max_versions": current.max_versions if max_versions is None else max_versions,
                "storage_path": storage_path or current.storage_path,
            })
        except ConfigError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
        path = save_config(root, current)
        if not _json_output:
            typer.echo(f"Updated {path}")

    if _json_output:
        typer.echo(json.dumps({
            "enabled": current.enabled,
            "maxVersions": current.max_versions,
            "storagePath": current.storage_path,
        }, indent=2))
    else:
        typer.echo(f"enabled      = {str(current.enabled).lower()}")
        typer.echo(f"max_versions = {current.max_versions}")
        typer.echo(f"storage_path = {current.storage_path}")


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
        from .errors import log_exception
        log_path = log_exception(e, context="keepsake CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
