"""Manual conflict resolution and per-document sync status.

Conflicts are never merged automatically. After reading ``conflicts.md``
the user picks a side for each document:

- ``Resolution.LOCAL``: the local body replaces the remote page
  (a forced push).
- ``Resolution.REMOTE``: the remote page overwrites the local file
  (a forced pull).

Either way the ledger ends with ``local_hash == remote_hash`` so the
document is clean again.

``document_statuses`` reports, without touching the network, what the
next push would make of every local document.
"""

from __future__ import annotations

import logging
from enum import Enum

from .ledger import fingerprint, get_entry
from .models import DocumentStatus, SyncAction, SyncResult
from .pull import PullEngine, StateCallback
from .push import PushEngine, classify
from .store import DOCUMENT_SUFFIX, LocalStore

logger = logging.getLogger(__name__)


class Resolution(str, Enum):
    """Which side wins a conflict."""

    LOCAL = "local"
    REMOTE = "remote"


def resolve_conflict(
    slug: str,
    keep: Resolution,
    pull_engine: PullEngine,
    push_engine: PushEngine,
    state: dict,
    on_update: StateCallback | None = None,
) -> SyncResult:
    """Resolve one document by keeping the local or the remote version.

    Args:
        slug: Document slug (a trailing ``.md`` is accepted).
        keep: The side that wins.
        pull_engine: Engine used for ``Resolution.REMOTE``.
        push_engine: Engine used for ``Resolution.LOCAL``.
        state: Ledger state dict (mutated).
        on_update: Called with *state* once it has changed.

    Returns:
        The result of the forced push or pull.

    Raises:
        ValueError: If the document does not exist, is untracked, or is
            not in the ledger.
    """
    store = push_engine.store
    path = store.path_for(slug.removesuffix(DOCUMENT_SUFFIX))
    if not path.exists():
        raise ValueError(f"No document named '{slug}' in {store.root}")

    doc = store.read(path)
    if not doc.meta.id:
        raise ValueError(
            f"'{path.name}' has never been pushed; run `brain push` to create it"
        )
    if get_entry(state, doc.meta.id) is None:
        raise ValueError(
            f"'{path.name}' is not in the sync ledger; run `brain pull` first"
        )

    match keep:
        case Resolution.LOCAL:
            logger.info("Resolving %s: keeping local version", path.name)
            result, _ = push_engine.push_document(
                doc, state, force=True, on_update=on_update
            )
            return result
        case Resolution.REMOTE:
            logger.info("Resolving %s: keeping remote version", path.name)
            page = pull_engine.client.retrieve_page(doc.meta.id)
            doc_type = pull_engine.collection_for_page(page) or doc.meta.type
            return pull_engine.pull_page(
                page, doc_type, state, force=True, on_update=on_update
            )
        case _:
            raise ValueError(f"Unknown resolution '{keep}'")


_STATE_NAMES: dict[SyncAction, str] = {
    SyncAction.CREATE_REMOTE: "untracked",
    SyncAction.ORPHANED: "orphaned",
    SyncAction.SKIP: "clean",
    SyncAction.PUSH: "modified",
    SyncAction.CONFLICT: "conflict",
}


def document_statuses(store: LocalStore, state: dict) -> list[DocumentStatus]:
    """Describe the sync state of every document in *store*."""
    statuses = []
    for path in store.discover():
        doc = store.read(path)
        entry = get_entry(state, doc.meta.id) if doc.meta.id else None
        action = classify(doc.meta.id, fingerprint(doc.body), entry)
        state_name = _STATE_NAMES[action]
        held = entry is not None and entry.get("local_hash") != entry.get("remote_hash")
        if action is SyncAction.SKIP and held:
            # Local file untouched, remote moved on during a held pull.
            state_name = "behind"
        statuses.append(
            DocumentStatus(
                slug=doc.slug,
                title=doc.meta.title,
                type=doc.meta.type,
                status=doc.meta.status,
                state=state_name,
                remote_id=doc.meta.id or None,
                url=doc.meta.url,
                last_synced=doc.meta.last_synced,
            )
        )
    return statuses
