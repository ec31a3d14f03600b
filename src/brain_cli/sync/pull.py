"""Pull engine: bring remote Notion pages down into the local store.

For every page of every configured collection:

1. **Unchanged** -- the ledger has an entry, the local file exists and
   the stored edit marker equals the page's ``last_edited_time``: nothing
   is fetched.
2. **Held** -- the remote changed but so did the local body since the
   last sync. The file is left alone; only the remote fingerprint and
   marker are recorded so the next push reports a conflict.
3. **Pulled / Created** -- otherwise all blocks are fetched, decoded to
   Markdown and written with a fresh header; the ledger entry records
   ``local_hash == remote_hash`` and the new marker.

Remote errors propagate and abort the run. Nothing is written to disk
or to the state in dry-run mode, but all reads and comparisons happen.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from ..config_schema import CollectionConfig
from ..converters import blocks_to_markdown
from ..core.client import NotionClient, paginate
from ..validators import normalize_notion_id
from .ledger import fingerprint, get_entry, slugs_in_use, update_entry
from .models import SyncAction, SyncReport, SyncResult
from .properties import page_database_id, page_status, page_title
from .store import DocumentMeta, LocalStore

logger = logging.getLogger(__name__)

StateCallback = Callable[[dict], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PullEngine:
    """Mirror remote pages into the local store.

    Args:
        client: Notion gateway.
        store: Local document store.
        collections: Document type name -> collection config, in the order
            they are pulled.
        clock: Returns the current time (aware UTC datetime).
    """

    def __init__(
        self,
        client: NotionClient,
        store: LocalStore,
        collections: dict[str, CollectionConfig],
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.client = client
        self.store = store
        self.collections = collections
        self._clock = clock

    def _now(self) -> str:
        return self._clock().isoformat()

    def run(
        self,
        state: dict,
        dry_run: bool = False,
        on_update: StateCallback | None = None,
    ) -> SyncReport:
        """Pull every page of every configured collection.

        Args:
            state: Ledger state dict; mutated as documents complete
                (never in dry-run).
            dry_run: If True, compare only.
            on_update: Called with *state* after each document that changed
                it, so the caller can persist incrementally.

        Returns:
            SyncReport with one result per remote page.

        Raises:
            ValueError: If no collections are configured or one lacks a
                database id.
            NotionAPIError: On any remote failure.
        """
        if not self.collections:
            raise ValueError(
                "No collections configured. Add sync.collections to config.yml "
                "(run `brain init` for a template)."
            )

        started_at = self._now()
        results: list[SyncResult] = []

        for doc_type, collection in self.collections.items():
            if not collection.database_id:
                raise ValueError(
                    f"Collection '{doc_type}' has no database_id configured"
                )
            logger.info("Pulling collection '%s'", doc_type)
            pages = paginate(
                lambda cursor, db=collection.database_id: self.client.query_database(
                    db, cursor
                )
            )
            for page in pages:
                if page.get("archived") or page.get("in_trash"):
                    continue
                results.append(
                    self.pull_page(
                        page, doc_type, state, dry_run=dry_run, on_update=on_update
                    )
                )

        return SyncReport(
            command="pull",
            dry_run=dry_run,
            results=results,
            started_at=started_at,
            completed_at=self._now(),
        )

    def collection_for_page(self, page: dict[str, Any]) -> str | None:
        """Return the configured type name whose database holds *page*."""
        database_id = page_database_id(page)
        for doc_type, collection in self.collections.items():
            if normalize_notion_id(collection.database_id) == database_id:
                return doc_type
        return None

    def pull_page(
        self,
        page: dict[str, Any],
        doc_type: str,
        state: dict,
        dry_run: bool = False,
        force: bool = False,
        on_update: StateCallback | None = None,
    ) -> SyncResult:
        """Pull one remote page.

        Args:
            page: Page object from a database query or page retrieval.
            doc_type: Collection name, written to the header ``type``.
            state: Ledger state dict.
            dry_run: If True, compare only.
            force: Overwrite the local file even when it is unchanged or
                has local edits (used to resolve a conflict in favour of
                the remote).
            on_update: See ``run``.
        """
        remote_id = page["id"]
        title = page_title(page)
        marker = page.get("last_edited_time", "")
        entry = get_entry(state, remote_id)

        if entry and entry.get("slug"):
            slug = entry["slug"]
        else:
            slug = self.store.unique_slug(
                title, remote_id, slugs_in_use(state, exclude_id=remote_id)
            )
        path = self.store.path_for(slug)
        local = self.store.read(path) if path.exists() else None

        def result(action: SyncAction) -> SyncResult:
            return SyncResult(
                slug=slug, remote_id=remote_id, title=title, action=action
            )

        if (
            not force
            and entry is not None
            and local is not None
            and entry.get("last_edited_time") == marker
            and entry.get("local_hash") == entry.get("remote_hash")
        ):
            # A held entry (local_hash != remote_hash) is always fetched again.
            logger.debug("Unchanged: %s", slug)
            return result(SyncAction.SKIP)

        blocks = list(
            paginate(
                lambda cursor: self.client.get_block_children(remote_id, cursor)
            )
        )
        conversion = blocks_to_markdown(blocks)
        for warning in conversion.warnings:
            logger.debug("%s: %s", slug, warning)
        body = conversion.text
        remote_hash = fingerprint(body)

        if not force and entry is not None and local is not None:
            current_hash = fingerprint(local.body)
            if current_hash != entry.get("local_hash") and current_hash != remote_hash:
                logger.warning(
                    "Held %s: changed remotely and locally, local file kept", slug
                )
                if not dry_run:
                    update_entry(
                        state,
                        remote_id,
                        last_edited_time=marker,
                        remote_hash=remote_hash,
                    )
                    if on_update:
                        on_update(state)
                return result(SyncAction.HOLD)

        collection = self.collections.get(doc_type)
        status = page_status(page, collection) if collection else ""

        if (
            not force
            and entry is not None
            and local is not None
            and fingerprint(local.body) == remote_hash
            and (local.meta.title, local.meta.status) == (title, status)
        ):
            # Content identical (e.g. our own push bumped the marker).
            logger.debug("Unchanged content: %s", slug)
            if not dry_run:
                update_entry(
                    state,
                    remote_id,
                    last_edited_time=marker,
                    local_hash=remote_hash,
                    remote_hash=remote_hash,
                )
                if on_update:
                    on_update(state)
            return result(SyncAction.SKIP)

        action = SyncAction.PULL if local is not None else SyncAction.CREATE_LOCAL
        if dry_run:
            logger.info("Would pull %s", slug)
            return result(action)

        existing = local.meta.model_dump() if local is not None else {}
        meta = DocumentMeta(
            **{
                **existing,
                "id": remote_id,
                "title": title,
                "type": doc_type,
                "status": status,
                "url": page.get("url", ""),
                "last_synced": self._now(),
                "content_hash": remote_hash,
            }
        )
        self.store.write(path, meta, body)
        update_entry(
            state,
            remote_id,
            slug=slug,
            title=title,
            last_edited_time=marker,
            local_hash=remote_hash,
            remote_hash=remote_hash,
        )
        if on_update:
            on_update(state)
        logger.info("Pulled %s", slug)
        return result(action)
