"""Push engine: send local edits up to Notion.

Every local document is classified by comparing three fingerprints: the
current body (C) and the ledger's local (L) and remote (R) fingerprints
from the last sync.

=====================  ===========================  ==================
Header id / ledger     Fingerprints                 Outcome
=====================  ===========================  ==================
no id                  --                           Create
id, no ledger entry    --                           Orphaned (skipped)
id, entry              C == L                       Unchanged
id, entry              C != L, L == R               Push (replace)
id, entry              C != L, L != R               Conflict (reported)
=====================  ===========================  ==================

Push replaces the remote body wholesale: existing top-level blocks are
deleted and the encoded document is appended in batches of 100. Child
pages and databases embedded in the page are never deleted.

Conflicts are never written to Notion; they are collected on the report
for the conflict reporter. Remote errors propagate and abort the run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from ..config_schema import CollectionConfig
from ..converters import markdown_to_block_batches
from ..core.client import NotionClient, paginate
from .ledger import fingerprint, get_entry, update_entry
from .models import ConflictRecord, SyncAction, SyncReport, SyncResult
from .properties import build_properties
from .store import DocumentMeta, LocalDocument, LocalStore

logger = logging.getLogger(__name__)

StateCallback = Callable[[dict], None]

# Deleting these would archive a whole sub-page.
_PRESERVED_BLOCK_TYPES = frozenset({"child_page", "child_database"})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def classify(remote_id: str, current_hash: str, entry: dict | None) -> SyncAction:
    """Decide what push does with a document.

    Args:
        remote_id: Page id from the document header (empty if none).
        current_hash: Fingerprint of the current local body (C).
        entry: Ledger entry for *remote_id*, or None.

    Returns:
        CREATE_REMOTE, ORPHANED, SKIP, PUSH or CONFLICT.
    """
    if not remote_id:
        return SyncAction.CREATE_REMOTE
    if entry is None:
        return SyncAction.ORPHANED
    if current_hash == entry.get("local_hash"):
        return SyncAction.SKIP
    if entry.get("local_hash") == entry.get("remote_hash"):
        return SyncAction.PUSH
    return SyncAction.CONFLICT


class PushEngine:
    """Publish local documents to their Notion databases.

    Args:
        client: Notion gateway.
        store: Local document store.
        collections: Document type name -> collection config.
        default_type: Type used for new documents without a ``type``.
        clock: Returns the current time (aware UTC datetime).
    """

    def __init__(
        self,
        client: NotionClient,
        store: LocalStore,
        collections: dict[str, CollectionConfig],
        default_type: str = "notes",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.client = client
        self.store = store
        self.collections = collections
        self.default_type = default_type
        self._clock = clock

    def _now(self) -> str:
        return self._clock().isoformat()

    def run(
        self,
        state: dict,
        dry_run: bool = False,
        on_update: StateCallback | None = None,
    ) -> SyncReport:
        """Classify and push every document in the store.

        Args:
            state: Ledger state dict; mutated as documents complete
                (never in dry-run).
            dry_run: If True, classify only. No remote call is made.
            on_update: Called with *state* after each document that changed
                it, so the caller can persist incrementally.

        Returns:
            SyncReport with one result per local document and a
            ConflictRecord per conflict.
        """
        started_at = self._now()
        results: list[SyncResult] = []
        conflicts: list[ConflictRecord] = []
        seen: dict[str, str] = {}

        for path in self.store.discover():
            doc = self.store.read(path)
            remote_id = doc.meta.id

            if remote_id and remote_id in seen:
                logger.error(
                    "%s has the same id as %s, skipping", path.name, seen[remote_id]
                )
                results.append(
                    SyncResult(
                        slug=doc.slug,
                        remote_id=remote_id,
                        title=doc.meta.title,
                        action=SyncAction.SKIP,
                        success=False,
                        error=f"duplicate id, also used by {seen[remote_id]}",
                    )
                )
                continue
            if remote_id:
                seen[remote_id] = path.name

            result, conflict = self.push_document(
                doc, state, dry_run=dry_run, on_update=on_update
            )
            results.append(result)
            if conflict is not None:
                conflicts.append(conflict)

        return SyncReport(
            command="push",
            dry_run=dry_run,
            results=results,
            conflict_records=conflicts,
            started_at=started_at,
            completed_at=self._now(),
        )

    def push_document(
        self,
        doc: LocalDocument,
        state: dict,
        dry_run: bool = False,
        force: bool = False,
        on_update: StateCallback | None = None,
    ) -> tuple[SyncResult, ConflictRecord | None]:
        """Classify and push a single document.

        Args:
            doc: The parsed local document.
            state: Ledger state dict.
            dry_run: If True, classify only.
            force: Push even when unchanged or conflicted (used to resolve a
                conflict in favour of the local copy).
            on_update: See ``run``.

        Returns:
            Tuple of (result, conflict record or None).
        """
        current_hash = fingerprint(doc.body)
        remote_id = doc.meta.id
        entry = get_entry(state, remote_id) if remote_id else None
        action = classify(remote_id, current_hash, entry)
        if force and action in (SyncAction.SKIP, SyncAction.CONFLICT):
            action = SyncAction.PUSH

        result = SyncResult(
            slug=doc.slug,
            remote_id=remote_id or None,
            title=doc.meta.title,
            action=action,
        )

        match action:
            case SyncAction.CREATE_REMOTE:
                return self._create(doc, current_hash, state, dry_run, on_update), None

            case SyncAction.ORPHANED:
                logger.warning(
                    "%s names page %s which is not in the sync ledger, skipping",
                    doc.path.name,
                    remote_id,
                )
                return result, None

            case SyncAction.SKIP:
                logger.debug("Unchanged: %s", doc.slug)
                return result, None

            case SyncAction.CONFLICT:
                logger.warning("Conflict: %s changed locally and remotely", doc.slug)
                conflict = ConflictRecord(
                    file=doc.path.name,
                    remote_id=remote_id,
                    current_hash=current_hash,
                    local_hash=entry.get("local_hash"),
                    remote_hash=entry.get("remote_hash"),
                    url=doc.meta.url,
                )
                return result, conflict

            case _:
                self._update(doc, entry, current_hash, state, dry_run, on_update)
                return result, None

    # ------------------------------------------------------------------
    # Remote writes
    # ------------------------------------------------------------------

    def _create(
        self,
        doc: LocalDocument,
        current_hash: str,
        state: dict,
        dry_run: bool,
        on_update: StateCallback | None,
    ) -> SyncResult:
        doc_type = doc.meta.type or self.default_type
        title = doc.meta.title or doc.slug
        collection = self.collections.get(doc_type)

        def result(**kwargs) -> SyncResult:
            return SyncResult(
                slug=doc.slug, title=title, action=SyncAction.CREATE_REMOTE, **kwargs
            )

        if collection is None or not collection.database_id:
            logger.error("%s: unknown document type '%s'", doc.path.name, doc_type)
            return result(success=False, error=f"unknown document type '{doc_type}'")

        batches = markdown_to_block_batches(doc.body)
        if dry_run:
            logger.info("Would create %s in '%s'", doc.slug, doc_type)
            return result()

        page = self.client.create_page(
            collection.database_id,
            build_properties(collection, title, doc.meta.status),
            batches[0] if batches else None,
        )
        remote_id = page["id"]
        identity = {
            "id": remote_id,
            "title": title,
            "type": doc_type,
            "url": page.get("url", ""),
        }

        # The page is tracked before the remaining batches go out. Until the
        # body is complete the entry has L == R == "", which push reads as
        # a local edit to replace.
        self.store.write(
            doc.path, DocumentMeta(**{**doc.meta.model_dump(), **identity}), doc.body
        )
        update_entry(
            state,
            remote_id,
            slug=doc.slug,
            title=title,
            last_edited_time="",
            local_hash="",
            remote_hash="",
        )
        if on_update:
            on_update(state)

        for batch in batches[1:]:
            self.client.append_block_children(remote_id, batch)

        now = self._now()
        meta = DocumentMeta(
            **{
                **doc.meta.model_dump(),
                **identity,
                "last_synced": now,
                "content_hash": current_hash,
            }
        )
        self.store.write(doc.path, meta, doc.body)
        update_entry(
            state,
            remote_id,
            slug=doc.slug,
            title=title,
            last_edited_time=now,
            local_hash=current_hash,
            remote_hash=current_hash,
        )
        if on_update:
            on_update(state)
        logger.info("Created %s in '%s'", doc.slug, doc_type)
        return result(remote_id=remote_id)

    def _update(
        self,
        doc: LocalDocument,
        entry: dict,
        current_hash: str,
        state: dict,
        dry_run: bool,
        on_update: StateCallback | None,
    ) -> None:
        remote_id = doc.meta.id
        batches = markdown_to_block_batches(doc.body)
        if dry_run:
            logger.info("Would push %s", doc.slug)
            return

        existing = list(
            paginate(lambda cursor: self.client.get_block_children(remote_id, cursor))
        )
        for block in existing:
            if block.get("type") in _PRESERVED_BLOCK_TYPES:
                continue
            self.client.delete_block(block["id"])
        for batch in batches:
            self.client.append_block_children(remote_id, batch)

        collection = self.collections.get(doc.meta.type)
        if collection is not None and doc.meta.title:
            self.client.update_page_properties(
                remote_id,
                build_properties(collection, doc.meta.title, doc.meta.status),
            )
        elif collection is None:
            logger.warning(
                "%s: unknown document type '%s', properties not updated",
                doc.path.name,
                doc.meta.type,
            )

        now = self._now()
        meta = DocumentMeta(
            **{
                **doc.meta.model_dump(),
                "last_synced": now,
                "content_hash": current_hash,
            }
        )
        self.store.write(doc.path, meta, doc.body)
        update_entry(
            state,
            remote_id,
            slug=doc.slug,
            title=doc.meta.title or entry.get("title", ""),
            last_edited_time=now,
            local_hash=current_hash,
            remote_hash=current_hash,
        )
        if on_update:
            on_update(state)
        logger.info("Pushed %s", doc.slug)
