"""Command-line entry point for the ``brain`` tool.

Subcommands:
    init      create a starter config file
    pull      Notion -> local files
    push      local files -> Notion
    sync      pull, then push
    list      local documents and their sync state (offline)
    resolve   settle a conflict by keeping one side

Reports are printed to stdout; logs and errors go to stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable
from typing import Any

import requests
from dotenv import load_dotenv

from . import __version__
from .bootstrap import AppContext, load_context, load_settings
from .config_loader import ensure_config
from .core.client import NotionAPIError
from .errors import describe_error
from .logger import setup_logging
from .sync.models import SyncReport
from .sync.pull import PullEngine
from .sync.push import PushEngine
from .sync.reporter import (
    documents_to_json,
    format_document_table,
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
    write_conflict_report,
)
from .sync.resolver import Resolution, document_statuses, resolve_conflict

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

# Errors that end a command with a message instead of a traceback.
_COMMAND_ERRORS = (
    NotionAPIError,
    requests.RequestException,
    OSError,
    ValueError,
    RuntimeError,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _engines(ctx: AppContext) -> tuple[PullEngine, PushEngine]:
    sync = ctx.settings.sync
    pull = PullEngine(ctx.client, ctx.store, sync.collections)
    push = PushEngine(
        ctx.client, ctx.store, sync.collections, default_type=sync.default_type
    )
    return pull, push


def _print_report(report: SyncReport, output_format: str) -> None:
    if output_format == "structured":
        print(json.dumps(report_to_json(report), indent=2, ensure_ascii=False))
    elif report.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_sync_report(report))


def _run_engines(ctx: AppContext, args: argparse.Namespace, steps: list[str]) -> int:
    """Run pull and/or push against one ledger state.

    The ledger is saved after every changed document and once more when
    the run ends, even if it ends with an error. Nothing is saved in
    dry-run mode.
    """
    pull_engine, push_engine = _engines(ctx)
    state = ctx.ledger.load()
    on_update = None if args.dry_run else ctx.ledger.save

    failed = False
    try:
        for step in steps:
            if step == "pull":
                report = pull_engine.run(state, dry_run=args.dry_run, on_update=on_update)
            else:
                report = push_engine.run(state, dry_run=args.dry_run, on_update=on_update)
                if not args.dry_run:
                    write_conflict_report(
                        ctx.config.state_dir,
                        report.conflict_records,
                        report.completed_at or report.started_at,
                    )
            logger.debug("%s", report.summary())
            _print_report(report, args.format)
            failed = failed or bool(report.errors)
    finally:
        if not args.dry_run:
            ctx.ledger.save(state)

    return EXIT_FAILURE if failed else EXIT_OK


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init(args: argparse.Namespace, context_args: dict[str, Any]) -> int:
    path = ensure_config()
    print(f"Config: {path}")
    return EXIT_OK


def cmd_pull(args: argparse.Namespace, context_args: dict[str, Any]) -> int:
    return _run_engines(load_context(**context_args), args, ["pull"])


def cmd_push(args: argparse.Namespace, context_args: dict[str, Any]) -> int:
    return _run_engines(load_context(**context_args), args, ["push"])


def cmd_sync(args: argparse.Namespace, context_args: dict[str, Any]) -> int:
    return _run_engines(load_context(**context_args), args, ["pull", "push"])


def cmd_list(args: argparse.Namespace, context_args: dict[str, Any]) -> int:
    ctx = load_context(**context_args, connect=False)
    documents = document_statuses(ctx.store, ctx.ledger.load())
    if args.format == "structured":
        print(json.dumps(documents_to_json(documents), indent=2, ensure_ascii=False))
    else:
        print(format_document_table(documents))
    return EXIT_OK


def cmd_resolve(args: argparse.Namespace, context_args: dict[str, Any]) -> int:
    ctx = load_context(**context_args)
    pull_engine, push_engine = _engines(ctx)
    state = ctx.ledger.load()
    try:
        result = resolve_conflict(
            args.slug,
            Resolution(args.keep),
            pull_engine,
            push_engine,
            state,
            on_update=ctx.ledger.save,
        )
    finally:
        ctx.ledger.save(state)

    if not result.success:
        print(f"{result.slug}: {result.error}")
        return EXIT_FAILURE
    print(f"Resolved {result.slug}: kept {args.keep} version")
    return EXIT_OK


_COMMANDS: dict[str, Callable[[argparse.Namespace, dict[str, Any]], int]] = {
    "init": cmd_init,
    "pull": cmd_pull,
    "push": cmd_push,
    "sync": cmd_sync,
    "list": cmd_list,
    "resolve": cmd_resolve,
}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brain",
        description="Sync a folder of Markdown documents with Notion databases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create ~/.config/brain-cli/config.yml, then fill in the database ids
  brain init

  # Preview what a full sync would do
  brain sync --dry-run

  # Show local documents and whether they need pushing
  brain list

  # Keep the local copy of a conflicted document
  brain resolve meeting-notes --keep local

Reports are printed to stdout, logs to stderr.
        """,
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (same as BRAIN_DEBUG=true)",
    )
    parser.add_argument(
        "--log-file",
        help="Also append logs to this file (default: logging.file in config.yml)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--store",
        help="Override the local document directory "
        "(takes precedence over BRAIN_STORE_DIR and config files)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"brain-cli version {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    subparsers.add_parser("init", help="Create a starter config file")

    for name, help_text in (
        ("pull", "Bring remote changes into the local store"),
        ("push", "Send local edits to Notion"),
        ("sync", "Pull, then push"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without writing anything",
        )
        sub.add_argument(
            "--format",
            choices=["table", "structured"],
            default="table",
            help="Report format: human-readable text or JSON (default: table)",
        )

    list_parser = subparsers.add_parser(
        "list", help="List local documents and their sync state"
    )
    list_parser.add_argument(
        "--format",
        choices=["table", "structured"],
        default="table",
        help="Output format: aligned table or JSON (default: table)",
    )

    resolve_parser = subparsers.add_parser(
        "resolve", help="Resolve a conflict by keeping one version"
    )
    resolve_parser.add_argument("slug", help="Document slug (file name without .md)")
    resolve_parser.add_argument(
        "--keep",
        required=True,
        choices=[r.value for r in Resolution],
        help="Which version wins",
    )

    return parser


def run(argv: list[str] | None = None) -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # .env first so ${VAR} interpolation in config files can see it
    load_dotenv()
    try:
        settings = load_settings()
    except (OSError, ValueError) as e:
        print(describe_error(e), file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or settings.logging.file,
        debug_format=args.log_format,
        default_level=settings.logging.level,
    )

    overrides: dict[str, Any] = {}
    if args.store:
        overrides["store_dir"] = args.store
    if args.debug:
        overrides["debug"] = True
    context_args = {"overrides": overrides, "settings": settings}

    try:
        code = _COMMANDS[args.command](args, context_args)
    except _COMMAND_ERRORS as e:
        logger.debug("Command failed", exc_info=True)
        print(describe_error(e), file=sys.stderr)
        sys.exit(EXIT_FAILURE)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)

    sys.exit(code)


if __name__ == "__main__":
    run()
