"""Two-way document sync between the local store and Notion.

Architecture
------------
Sync is split into two independent one-directional passes that share a
ledger of fingerprints. Each side is compared against its own recorded
fingerprint from the last sync, so a change is detected on the side
where it happened and both-sided changes surface as conflicts instead of
being overwritten.

Modules:

- ``ledger``    -- ``SyncLedger`` and ``fingerprint``: the per-document
  record of the last sync, persisted atomically.
- ``store``     -- ``LocalStore``: ``<slug>.md`` files with YAML headers.
- ``properties`` -- page title/status extraction and payloads.
- ``pull``      -- ``PullEngine``: remote pages -> local files.
- ``push``      -- ``PushEngine`` and ``classify``: local files -> remote.
- ``resolver``  -- manual conflict resolution and ``list`` statuses.
- ``models``    -- ``SyncAction``, ``SyncResult``, ``SyncReport``,
  ``ConflictRecord``, ``DocumentStatus``.
- ``reporter``  -- human-readable, JSON and conflict report output.

Usage example
-------------
::

    from brain_cli.sync import PullEngine, PushEngine, SyncLedger, LocalStore

    ledger = SyncLedger(state_dir)
    state = ledger.load()
    store = LocalStore(store_dir)
    PullEngine(client, store, collections).run(state, on_update=ledger.save)
    report = PushEngine(client, store, collections).run(state, on_update=ledger.save)
    ledger.save(state)
"""

from .ledger import SyncLedger, fingerprint
from .models import (
    ConflictRecord,
    DocumentStatus,
    SyncAction,
    SyncReport,
    SyncResult,
)
from .pull import PullEngine
from .push import PushEngine, classify
from .reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
    write_conflict_report,
)
from .resolver import Resolution, document_statuses, resolve_conflict
from .store import LocalStore

__all__ = [
    "ConflictRecord",
    "DocumentStatus",
    "LocalStore",
    "PullEngine",
    "PushEngine",
    "Resolution",
    "SyncAction",
    "SyncLedger",
    "SyncReport",
    "SyncResult",
    "classify",
    "document_statuses",
    "fingerprint",
    "format_dry_run_preview",
    "format_sync_report",
    "report_to_json",
    "resolve_conflict",
    "write_conflict_report",
]
