"""Report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_report`` -- full post-run summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by action.
- ``report_to_json`` -- structured dict for ``--format structured``.
- ``format_conflict_report`` / ``write_conflict_report`` -- the
  ``conflicts.md`` file describing every unresolved conflict.
- ``format_document_table`` / ``documents_to_json`` -- output of ``list``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from ..file_handler import write_file
from .models import SyncAction

if TYPE_CHECKING:
    from .models import ConflictRecord, DocumentStatus, SyncReport

logger = logging.getLogger(__name__)

CONFLICT_REPORT_FILENAME = "conflicts.md"

_ACTION_LABELS: dict[SyncAction, str] = {
    SyncAction.PULL: "Pulled",
    SyncAction.CREATE_LOCAL: "Created (local)",
    SyncAction.HOLD: "Held (local edits kept)",
    SyncAction.PUSH: "Pushed",
    SyncAction.CREATE_REMOTE: "Created (remote)",
    SyncAction.ORPHANED: "Orphaned (not in ledger)",
    SyncAction.CONFLICT: "Conflicts",
}

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete pull or push report as human-readable text.

    Sections are only included when they contain at least one result.
    Unchanged documents are summarised by count only.

    Args:
        report: The completed report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"{report.command.capitalize()} report"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Processed {len(report.results)} documents: "
        f"{len(report.updated_local) + len(report.updated_remote)} updated, "
        f"{len(report.created_local) + len(report.created_remote)} created, "
        f"{len(report.conflicts)} conflicts, {len(report.errors)} errors"
    )
    lines.append("")

    for action, label in _ACTION_LABELS.items():
        matching = [r for r in report.results if r.action == action and r.success]
        if not matching:
            continue
        lines.append(f"{label}:")
        for r in matching:
            lines.append(f"  {r.slug}" + (f"  ({r.title})" if r.title else ""))
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.slug}: {r.error}")
        lines.append("")

    if report.skipped:
        lines.append(f"Unchanged: {len(report.skipped)} documents")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by action type.

    Each proposed action is shown as ``[ACTION]`` followed by the slugs.

    Args:
        report: A dry-run report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Command: {report.command}")
    lines.append("")

    groups: dict[SyncAction, list[str]] = defaultdict(list)
    for r in report.results:
        groups[r.action].append(r.slug)

    for action in _ACTION_LABELS:
        if action not in groups:
            continue
        label = action.value.upper().replace("_", " ")
        lines.append(f"[{label}]")
        for slug in groups[action]:
            lines.append(f"  {slug}")
        lines.append("")

    skip_count = len(groups.get(SyncAction.SKIP, []))
    if skip_count > 0:
        lines.append(f"Unchanged: {skip_count} documents")
        lines.append("")

    if not any(a != SyncAction.SKIP for a in groups):
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, counts, per-result details and conflicts.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "slug": r.slug,
            "remote_id": r.remote_id,
            "title": r.title,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "command": report.command,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "summary": {
            "total": len(report.results),
            "created_local": len(report.created_local),
            "updated_local": len(report.updated_local),
            "held": len(report.held),
            "created_remote": len(report.created_remote),
            "updated_remote": len(report.updated_remote),
            "orphaned": len(report.orphaned),
            "conflicts": len(report.conflicts),
            "unchanged": len(report.skipped),
            "errors": len(report.errors),
        },
        "results": results_list,
        "conflicts": [c.model_dump() for c in report.conflict_records],
    }


# ------------------------------------------------------------------
# Conflict report
# ------------------------------------------------------------------


def format_conflict_report(
    conflicts: list[ConflictRecord], generated_at: str
) -> str:
    """Render the conflict report as Markdown.

    Args:
        conflicts: Conflicts found by the push run.
        generated_at: ISO 8601 timestamp of the run.

    Returns:
        Markdown text ending with a newline.
    """
    lines = [
        "# Sync conflicts",
        "",
        f"Generated: {generated_at}",
        f"Conflicts: {len(conflicts)}",
        "",
        "These documents changed both locally and in Notion since the last",
        "sync. Nothing was pushed for them. Resolve each one with",
        "`brain resolve <slug> --keep local` or `--keep remote`.",
        "",
    ]
    for c in conflicts:
        lines += [
            f"## {c.file}",
            "",
            f"- Remote id: {c.remote_id}",
            f"- Current local fingerprint: {c.current_hash}",
            f"- Local fingerprint at last sync: {c.local_hash or '-'}",
            f"- Remote fingerprint at last sync: {c.remote_hash or '-'}",
        ]
        if c.url:
            lines.append(f"- Notion: {c.url}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def write_conflict_report(
    state_dir: Path, conflicts: list[ConflictRecord], generated_at: str
) -> Path | None:
    """Write (or clear) ``conflicts.md`` in *state_dir*.

    The file is replaced wholesale when there are conflicts and removed
    when there are none, so it only ever describes the latest push.

    Returns:
        The report path when written, None when there was nothing to report.
    """
    path = state_dir / CONFLICT_REPORT_FILENAME
    if not conflicts:
        if path.exists():
            path.unlink()
            logger.info("No conflicts, removed stale %s", path)
        return None

    write_file(path, format_conflict_report(conflicts, generated_at))
    logger.info("Wrote %d conflicts to %s", len(conflicts), path)
    return path


# ------------------------------------------------------------------
# Document listing
# ------------------------------------------------------------------

_TABLE_COLUMNS = (
    ("slug", "SLUG"),
    ("title", "TITLE"),
    ("type", "TYPE"),
    ("status", "STATUS"),
    ("state", "SYNC"),
)


def format_document_table(documents: list[DocumentStatus]) -> str:
    """Render documents as an aligned plain-text table."""
    if not documents:
        return "No documents."

    rows = [[str(getattr(d, field) or "-") for field, _ in _TABLE_COLUMNS] for d in documents]
    headers = [title for _, title in _TABLE_COLUMNS]
    widths = [
        max(len(headers[i]), *(len(row[i]) for row in rows))
        for i in range(len(headers))
    ]

    def fmt(cells: list[str]) -> str:
        return "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(cells)).rstrip()

    lines = [fmt(headers), fmt(["-" * w for w in widths])]
    lines += [fmt(row) for row in rows]
    return "\n".join(lines)


def documents_to_json(documents: list[DocumentStatus]) -> list[dict]:
    """Convert document statuses to plain dicts for JSON output."""
    return [d.model_dump() for d in documents]
