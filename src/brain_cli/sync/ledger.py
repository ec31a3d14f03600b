"""Sync ledger persistence and content fingerprints.

The ledger is a JSON file (``<state_dir>/ledger.json``) recording, per
Notion page id, what both sides looked like at the last successful sync:

* ``slug`` -- local file name without ``.md``; fixed once assigned.
* ``title`` -- title at last sync.
* ``last_edited_time`` -- the remote edit marker at last sync.
* ``local_hash`` -- fingerprint of the local body at last sync (L).
* ``remote_hash`` -- fingerprint of the remote body at last sync (R).

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Dict-based state** -- state is a plain ``dict`` handed to the engines,
  which mutate it as documents complete. The caller persists it, after
  every document and once more at the end of a run.
* **Exact fingerprints** -- only the BOM and CRLF line endings are
  normalised, so any edit to the text changes the fingerprint.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

LEDGER_FILENAME = "ledger.json"
LEDGER_VERSION = 1
FINGERPRINT_LENGTH = 16


def fingerprint(body: str | bytes) -> str:
    """Return a short, stable fingerprint of a document body.

    The body is decoded as UTF-8 when given as bytes, stripped of a
    leading BOM and converted to LF line endings, then hashed with
    SHA-256. The first 16 hex characters are returned.
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    text = body.lstrip("\ufeff").replace("\r\n", "\n")
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def empty_state() -> dict:
    """Return a fresh ledger state."""
    return {"version": LEDGER_VERSION, "last_sync": None, "documents": {}}


class SyncLedger:
    """Load, save, and query the sync ledger.

    Args:
        state_dir: Directory holding ``ledger.json`` (created on first save).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def path(self) -> Path:
        return self._state_dir / LEDGER_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load the ledger from disk.

        Returns:
            The state dict. If the file does not exist an empty state is
            returned.

        Raises:
            ValueError: If the file is not valid JSON or has the wrong shape.
            OSError: If the file exists but cannot be read.
        """
        if not self.path.exists():
            return empty_state()
        with open(self.path, encoding="utf-8") as fh:
            try:
                state = json.load(fh)
            except json.JSONDecodeError as e:
                raise ValueError(f"Sync ledger {self.path} is corrupt: {e}") from e
        if not isinstance(state, dict) or not isinstance(
            state.get("documents", {}), dict
        ):
            raise ValueError(f"Sync ledger {self.path} has an unexpected format")
        state.setdefault("documents", {})
        return state

    def save(self, state: dict) -> None:
        """Persist the ledger to disk atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target. Creates ``state_dir`` if it does not exist.
        ``last_sync`` is set to the current UTC time before writing.

        Args:
            state: The state dict to persist.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["last_sync"] = datetime.now(timezone.utc).isoformat()

        fd, tmp_path = tempfile.mkstemp(dir=str(self._state_dir), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise


# ----------------------------------------------------------------------
# Entry helpers
# ----------------------------------------------------------------------


def get_entry(state: dict, remote_id: str) -> dict | None:
    """Return the entry for *remote_id*, or ``None`` if absent."""
    return state.get("documents", {}).get(remote_id)


def update_entry(state: dict, remote_id: str, **fields: str | None) -> dict:
    """Upsert fields of the entry for *remote_id*. Mutates *state* in place.

    Returns:
        The updated entry.
    """
    entry = state.setdefault("documents", {}).setdefault(remote_id, {})
    entry.update(fields)
    return entry


def slugs_in_use(state: dict, exclude_id: str | None = None) -> set[str]:
    """Return the slugs of every ledger entry except *exclude_id*'s."""
    return {
        entry["slug"]
        for remote_id, entry in state.get("documents", {}).items()
        if remote_id != exclude_id and entry.get("slug")
    }
