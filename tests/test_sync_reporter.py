"""Tests for report formatting and the conflict report file."""

from __future__ import annotations

import json

from brain_cli.sync.models import ConflictRecord, DocumentStatus, SyncAction, SyncReport, SyncResult
from brain_cli.sync.reporter import (
    CONFLICT_REPORT_FILENAME,
    documents_to_json,
    format_conflict_report,
    format_document_table,
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
    write_conflict_report,
)

STARTED = "2024-06-01T12:00:00+00:00"
COMPLETED = "2024-06-01T12:00:05+00:00"


def _result(slug, action, success=True, error=None, title=""):
    return SyncResult(slug=slug, action=action, success=success, error=error, title=title)


def _conflict(name="alpha"):
    return ConflictRecord(
        file=f"{name}.md",
        remote_id="0" * 31 + "1",
        current_hash="c" * 16,
        local_hash="l" * 16,
        remote_hash="r" * 16,
        url="https://www.notion.so/x",
    )


def _push_report(**kwargs):
    defaults = dict(
        command="push",
        results=[
            _result("alpha", SyncAction.PUSH, title="Alpha"),
            _result("beta", SyncAction.SKIP),
            _result("gamma", SyncAction.CONFLICT),
            _result("delta", SyncAction.CREATE_REMOTE, success=False, error="unknown document type 'x'"),
        ],
        conflict_records=[_conflict("gamma")],
        started_at=STARTED,
        completed_at=COMPLETED,
    )
    defaults.update(kwargs)
    return SyncReport(**defaults)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestSyncReport:
    def test_properties_only_count_successes(self):
        report = _push_report()
        assert [r.slug for r in report.updated_remote] == ["alpha"]
        assert [r.slug for r in report.conflicts] == ["gamma"]
        assert report.created_remote == []
        assert [r.slug for r in report.errors] == ["delta"]

    def test_summary_for_push(self):
        summary = _push_report().summary()
        assert summary.startswith("Push report")
        assert "Updated remote: 1" in summary
        assert "Conflicts:      1" in summary
        assert "Errors:         1" in summary

    def test_summary_for_pull(self):
        report = SyncReport(
            command="pull",
            dry_run=True,
            results=[_result("a", SyncAction.HOLD)],
            started_at=STARTED,
        )
        summary = report.summary()
        assert summary.startswith("Pull report (dry run)")
        assert "Held:           1" in summary


# ---------------------------------------------------------------------------
# Human-readable reports
# ---------------------------------------------------------------------------


class TestFormatSyncReport:
    def test_header_and_counts(self):
        text = format_sync_report(_push_report())
        assert text.startswith("Push report\n")
        assert f"Completed: {COMPLETED}" in text
        assert "Processed 4 documents: 1 updated, 0 created, 1 conflicts, 1 errors" in text

    def test_sections(self):
        text = format_sync_report(_push_report())
        assert "Pushed:\n  alpha  (Alpha)" in text
        assert "Conflicts:\n  gamma" in text
        assert "Errors:\n  delta: unknown document type 'x'" in text
        assert "Unchanged: 1 documents" in text

    def test_empty_sections_are_omitted(self):
        text = format_sync_report(_push_report())
        assert "Created (remote):" not in text
        assert "Orphaned" not in text

    def test_dry_run_marker(self):
        assert "(DRY RUN)" in format_sync_report(_push_report(dry_run=True))


class TestFormatDryRunPreview:
    def test_groups_by_action(self):
        text = format_dry_run_preview(_push_report(dry_run=True))
        assert text.startswith("DRY RUN -- No changes will be made\nCommand: push")
        assert "[PUSH]\n  alpha" in text
        assert "[CONFLICT]\n  gamma" in text
        assert "[CREATE REMOTE]\n  delta" in text
        assert "Unchanged: 1 documents" in text

    def test_nothing_to_do(self):
        report = SyncReport(
            command="pull",
            dry_run=True,
            results=[_result("a", SyncAction.SKIP)],
            started_at=STARTED,
        )
        text = format_dry_run_preview(report)
        assert "No changes needed." in text
        assert "[" not in text


class TestReportToJson:
    def test_structure(self):
        data = report_to_json(_push_report())
        assert data["command"] == "push"
        assert data["summary"]["total"] == 4
        assert data["summary"]["updated_remote"] == 1
        assert data["summary"]["unchanged"] == 1
        assert data["summary"]["errors"] == 1
        assert data["results"][0] == {
            "slug": "alpha",
            "remote_id": None,
            "title": "Alpha",
            "action": "push",
            "success": True,
        }
        assert data["results"][3]["error"] == "unknown document type 'x'"
        assert data["conflicts"][0]["file"] == "gamma.md"

    def test_is_json_serialisable(self):
        json.dumps(report_to_json(_push_report()))


# ---------------------------------------------------------------------------
# Conflict report
# ---------------------------------------------------------------------------


class TestConflictReport:
    def test_format(self):
        text = format_conflict_report([_conflict("alpha"), _conflict("beta")], STARTED)
        assert text.startswith("# Sync conflicts\n")
        assert f"Generated: {STARTED}" in text
        assert "Conflicts: 2" in text
        assert "## alpha.md" in text
        assert "## beta.md" in text
        assert f"- Current local fingerprint: {'c' * 16}" in text
        assert "- Notion: https://www.notion.so/x" in text
        assert "brain resolve" in text
        assert text.endswith("\n")

    def test_write_creates_file(self, tmp_path):
        path = write_conflict_report(tmp_path, [_conflict()], STARTED)
        assert path == tmp_path / CONFLICT_REPORT_FILENAME
        assert "## alpha.md" in path.read_text(encoding="utf-8")

    def test_write_replaces_previous_report(self, tmp_path):
        write_conflict_report(tmp_path, [_conflict("old")], STARTED)
        write_conflict_report(tmp_path, [_conflict("new")], COMPLETED)
        text = (tmp_path / CONFLICT_REPORT_FILENAME).read_text(encoding="utf-8")
        assert "## new.md" in text
        assert "old.md" not in text

    def test_no_conflicts_removes_stale_report(self, tmp_path):
        write_conflict_report(tmp_path, [_conflict()], STARTED)
        assert write_conflict_report(tmp_path, [], COMPLETED) is None
        assert not (tmp_path / CONFLICT_REPORT_FILENAME).exists()

    def test_no_conflicts_and_no_file(self, tmp_path):
        assert write_conflict_report(tmp_path, [], STARTED) is None


# ---------------------------------------------------------------------------
# Document listing
# ---------------------------------------------------------------------------


class TestDocumentTable:
    def test_empty(self):
        assert format_document_table([]) == "No documents."

    def test_aligned_columns(self):
        docs = [
            DocumentStatus(slug="alpha", title="Alpha", type="notes", status="Draft", state="clean"),
            DocumentStatus(slug="a-longer-slug", state="untracked"),
        ]
        lines = format_document_table(docs).splitlines()
        assert lines[0].split() == ["SLUG", "TITLE", "TYPE", "STATUS", "SYNC"]
        assert lines[2].split() == ["alpha", "Alpha", "notes", "Draft", "clean"]
        assert lines[3].split() == ["a-longer-slug", "-", "-", "-", "untracked"]
        assert lines[2].index("Alpha") == lines[0].index("TITLE")

    def test_documents_to_json(self):
        docs = [DocumentStatus(slug="alpha", state="clean", remote_id="x")]
        assert documents_to_json(docs)[0]["remote_id"] == "x"
