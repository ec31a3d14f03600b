"""Tests for the sync ledger and content fingerprints.

Covers:
- fingerprint is stable, 16 hex chars, normalises BOM and CRLF only
- Load returns empty state when the file doesn't exist
- Save is atomic, creates the state dir, sets last_sync
- Save/load round-trip preserves entries
- Corrupt ledgers are reported, not silently reset
- get_entry / update_entry / slugs_in_use
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from brain_cli.sync.ledger import (
    SyncLedger,
    empty_state,
    fingerprint,
    get_entry,
    slugs_in_use,
    update_entry,
)

# ---------------------------------------------------------------------------
# fingerprint
# ---------------------------------------------------------------------------


class TestFingerprint:
    def test_is_sixteen_hex_characters(self):
        fp = fingerprint("hello\n")
        assert len(fp) == 16
        int(fp, 16)

    def test_known_value(self):
        # sha256("") prefix
        assert fingerprint("") == "e3b0c44298fc1c14"

    def test_identical_content_same_fingerprint(self):
        assert fingerprint("Body text\n") == fingerprint("Body text\n")

    def test_different_content_different_fingerprint(self):
        assert fingerprint("Body text\n") != fingerprint("Body text!\n")

    def test_crlf_equals_lf(self):
        assert fingerprint("a\r\nb\r\n") == fingerprint("a\nb\n")

    def test_bom_is_ignored(self):
        assert fingerprint("\ufeffhello") == fingerprint("hello")

    def test_trailing_whitespace_is_significant(self):
        assert fingerprint("hello") != fingerprint("hello\n")
        assert fingerprint("hello ") != fingerprint("hello")

    def test_bytes_and_str_agree(self):
        assert fingerprint("héllo".encode()) == fingerprint("héllo")


# ---------------------------------------------------------------------------
# Load / Save
# ---------------------------------------------------------------------------


class TestSyncLedgerLoad:
    def test_load_returns_empty_state_when_file_missing(self, tmp_path: Path):
        ledger = SyncLedger(tmp_path / "nonexistent")
        assert ledger.load() == {"version": 1, "last_sync": None, "documents": {}}

    def test_corrupt_json_raises(self, tmp_path: Path):
        (tmp_path / "ledger.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="corrupt"):
            SyncLedger(tmp_path).load()

    def test_wrong_shape_raises(self, tmp_path: Path):
        (tmp_path / "ledger.json").write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError, match="unexpected format"):
            SyncLedger(tmp_path).load()


class TestSyncLedgerSave:
    def test_save_creates_state_dir_and_file(self, tmp_path: Path):
        state_dir = tmp_path / "nested" / "state"
        ledger = SyncLedger(state_dir)
        ledger.save(ledger.load())
        assert (state_dir / "ledger.json").is_file()

    def test_save_sets_last_sync_timestamp(self, tmp_path: Path):
        ledger = SyncLedger(tmp_path)
        state = ledger.load()
        ledger.save(state)
        assert state["last_sync"] is not None
        assert "T" in state["last_sync"]

    def test_round_trip(self, tmp_path: Path):
        ledger = SyncLedger(tmp_path)
        state = empty_state()
        update_entry(
            state,
            "page1",
            slug="alpha",
            title="Alpha",
            last_edited_time="2024-01-01T00:00:00.000Z",
            local_hash="1111111111111111",
            remote_hash="2222222222222222",
        )
        ledger.save(state)

        loaded = ledger.load()

        assert loaded["documents"] == state["documents"]
        assert loaded["last_sync"] == state["last_sync"]

    def test_file_is_readable_json(self, tmp_path: Path):
        ledger = SyncLedger(tmp_path)
        state = empty_state()
        update_entry(state, "p", slug="ünïcode")
        ledger.save(state)
        data = json.loads((tmp_path / "ledger.json").read_text(encoding="utf-8"))
        assert data["documents"]["p"]["slug"] == "ünïcode"

    def test_no_temp_files_left_behind(self, tmp_path: Path):
        ledger = SyncLedger(tmp_path)
        ledger.save(empty_state())
        ledger.save(empty_state())
        assert [p.name for p in tmp_path.iterdir()] == ["ledger.json"]


# ---------------------------------------------------------------------------
# Entry helpers
# ---------------------------------------------------------------------------


class TestEntries:
    def test_get_missing_entry(self):
        assert get_entry(empty_state(), "nope") is None

    def test_update_creates_then_merges(self):
        state = empty_state()
        update_entry(state, "p", slug="a", local_hash="1")
        entry = update_entry(state, "p", local_hash="2")
        assert entry == {"slug": "a", "local_hash": "2"}
        assert get_entry(state, "p") is entry

    def test_slugs_in_use_excludes_given_id(self):
        state = empty_state()
        update_entry(state, "p1", slug="alpha")
        update_entry(state, "p2", slug="beta")
        update_entry(state, "p3", title="no slug yet")
        assert slugs_in_use(state) == {"alpha", "beta"}
        assert slugs_in_use(state, exclude_id="p1") == {"beta"}
