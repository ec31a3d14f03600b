"""Pydantic models for the pull and push engines.

Defines the core data contracts used across all sync modules:

- ``SyncAction``: Enum of per-document outcomes.
- ``ConflictRecord``: Fingerprints of a document both sides changed.
- ``SyncResult``: Outcome of handling one document.
- ``SyncReport``: Aggregate results for a pull or push run.
- ``DocumentStatus``: One row of the ``list`` command.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SyncAction(str, Enum):
    """Possible outcomes for one document.

    Pull produces SKIP, PULL, CREATE_LOCAL and HOLD. Push produces SKIP,
    PUSH, CREATE_REMOTE, ORPHANED and CONFLICT.
    """

    SKIP = "skip"
    PULL = "pull"
    CREATE_LOCAL = "create_local"
    HOLD = "hold"
    PUSH = "push"
    CREATE_REMOTE = "create_remote"
    ORPHANED = "orphaned"
    CONFLICT = "conflict"


class ConflictRecord(BaseModel):
    """A document changed on both sides since the last sync.

    Attributes:
        file: Local file name (``<slug>.md``).
        remote_id: Notion page id.
        current_hash: Fingerprint of the local body now (C).
        local_hash: Ledger fingerprint of the local body at last sync (L).
        remote_hash: Ledger fingerprint of the remote body (R).
        url: Notion page URL from the document header.
    """

    file: str
    remote_id: str
    current_hash: str
    local_hash: str | None = None
    remote_hash: str | None = None
    url: str = ""

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of handling one document.

    Attributes:
        slug: Local document slug (file name without ``.md``).
        remote_id: Notion page id, if the document has one.
        title: Document title.
        action: What happened (or would happen, in a dry run).
        success: Whether the operation succeeded.
        error: Error message if the operation failed.
    """

    slug: str
    remote_id: str | None = None
    title: str = ""
    action: SyncAction
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for one pull or push run.

    Attributes:
        command: ``pull`` or ``push``.
        dry_run: Whether this was a dry-run (no changes applied).
        results: Per-document results in processing order.
        conflict_records: Details for every CONFLICT result.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    command: str
    dry_run: bool = False
    results: list[SyncResult] = []
    conflict_records: list[ConflictRecord] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[SyncResult]:
        return [r for r in self.results if r.action == action and r.success]

    @property
    def created_local(self) -> list[SyncResult]:
        """Results where action is CREATE_LOCAL."""
        return self._with_action(SyncAction.CREATE_LOCAL)

    @property
    def updated_local(self) -> list[SyncResult]:
        """Results where action is PULL."""
        return self._with_action(SyncAction.PULL)

    @property
    def held(self) -> list[SyncResult]:
        """Results where action is HOLD (remote changed, local edits kept)."""
        return self._with_action(SyncAction.HOLD)

    @property
    def created_remote(self) -> list[SyncResult]:
        """Results where action is CREATE_REMOTE."""
        return self._with_action(SyncAction.CREATE_REMOTE)

    @property
    def updated_remote(self) -> list[SyncResult]:
        """Results where action is PUSH."""
        return self._with_action(SyncAction.PUSH)

    @property
    def skipped(self) -> list[SyncResult]:
        """Results where action is SKIP."""
        return self._with_action(SyncAction.SKIP)

    @property
    def orphaned(self) -> list[SyncResult]:
        """Results where action is ORPHANED."""
        return self._with_action(SyncAction.ORPHANED)

    @property
    def conflicts(self) -> list[SyncResult]:
        """Results where action is CONFLICT."""
        return self._with_action(SyncAction.CONFLICT)

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def summary(self) -> str:
        """Format a human-readable summary of the run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"{self.command.capitalize()} report"
            + (" (dry run)" if self.dry_run else ""),
        ]
        if self.command == "pull":
            lines += [
                f"  Created local:  {len(self.created_local)}",
                f"  Updated local:  {len(self.updated_local)}",
                f"  Held:           {len(self.held)}",
            ]
        else:
            lines += [
                f"  Created remote: {len(self.created_remote)}",
                f"  Updated remote: {len(self.updated_remote)}",
                f"  Orphaned:       {len(self.orphaned)}",
                f"  Conflicts:      {len(self.conflicts)}",
            ]
        lines += [
            f"  Unchanged:      {len(self.skipped)}",
            f"  Errors:         {len(self.errors)}",
            f"  Total:          {len(self.results)}",
        ]
        return "\n".join(lines)


class DocumentStatus(BaseModel):
    """Sync state of one local document, as shown by ``list``.

    ``state`` is one of ``clean``, ``modified``, ``behind``, ``conflict``,
    ``untracked`` or ``orphaned``. ``behind`` means the local file is
    unchanged but the remote page has newer content not yet pulled.
    """

    slug: str
    title: str = ""
    type: str = ""
    status: str = ""
    state: str
    remote_id: str | None = None
    url: str = ""
    last_synced: str = ""

    model_config = {"frozen": True}
