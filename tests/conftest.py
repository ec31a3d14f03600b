"""Shared pytest fixtures for brain-cli tests."""

from __future__ import annotations

import copy
import itertools
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from brain_cli.config import Config
from brain_cli.config_schema import CollectionConfig
from brain_cli.core.client import NotionAPIError
from brain_cli.sync.ledger import SyncLedger
from brain_cli.sync.store import LocalStore

load_dotenv()

NOTES_DB = "a" * 32
TASKS_DB = "b" * 32


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Notion workspace",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Notion workspace"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# In-memory Notion
# ---------------------------------------------------------------------------


class FakeNotionClient:
    """In-memory stand-in for ``NotionClient``.

    Pages live in ``self.pages`` and their top-level blocks in
    ``self.blocks``. Every call is recorded in ``self.calls`` as
    ``(method, first_arg)`` and every mutation bumps the page's
    ``last_edited_time``.
    """

    _MUTATIONS = frozenset(
        {"create_page", "append_block_children", "delete_block", "update_page_properties"}
    )

    def __init__(self, page_size: int = 100) -> None:
        self.page_size = page_size
        self.pages: dict[str, dict[str, Any]] = {}
        self.blocks: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str]] = []
        self._ids = itertools.count(1)
        self._tick = itertools.count(1)
        self.fail_on: dict[str, NotionAPIError] = {}

    # -- helpers --------------------------------------------------------

    def _next_id(self) -> str:
        return f"{next(self._ids):032x}"

    def _timestamp(self) -> str:
        moment = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(
            minutes=next(self._tick)
        )
        return moment.strftime("%Y-%m-%dT%H:%M:00.000Z")

    def _record(self, method: str, arg: str) -> None:
        self.calls.append((method, arg))
        if method in self.fail_on:
            raise self.fail_on[method]

    def _touch(self, page_id: str) -> None:
        self.pages[page_id]["last_edited_time"] = self._timestamp()

    def _listing(self, items: list[Any], cursor: str | None) -> dict[str, Any]:
        start = int(cursor) if cursor else 0
        end = start + self.page_size
        return {
            "object": "list",
            "results": copy.deepcopy(items[start:end]),
            "next_cursor": str(end) if end < len(items) else None,
            "has_more": end < len(items),
        }

    def _store_block(self, page_id: str, block: dict[str, Any]) -> None:
        block = copy.deepcopy(block)
        children = block[block["type"]].pop("children", None)
        block["id"] = self._next_id()
        block["has_children"] = bool(children)
        self.blocks[page_id].append(block)

    def calls_to(self, *methods: str) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] in methods]

    @property
    def mutation_count(self) -> int:
        return sum(1 for method, _ in self.calls if method in self._MUTATIONS)

    def add_page(
        self,
        database_id: str,
        title: str,
        blocks: list[dict[str, Any]] | None = None,
        title_property: str = "Name",
        status: str | None = None,
    ) -> str:
        """Seed a page without recording a call; returns its id."""
        page_id = self._next_id()
        properties: dict[str, Any] = {
            title_property: {
                "type": "title",
                "title": [{"type": "text", "plain_text": title, "text": {"content": title}}],
            }
        }
        if status is not None:
            properties["Status"] = {"type": "select", "select": {"name": status}}
        self.pages[page_id] = {
            "object": "page",
            "id": page_id,
            "parent": {"type": "database_id", "database_id": database_id},
            "properties": properties,
            "url": f"https://www.notion.so/{page_id}",
            "archived": False,
            "last_edited_time": self._timestamp(),
        }
        self.blocks[page_id] = []
        for block in blocks or []:
            self._store_block(page_id, block)
        return page_id

    def edit_remote(self, page_id: str, blocks: list[dict[str, Any]]) -> None:
        """Replace a page's content as if edited in the Notion UI."""
        self.blocks[page_id] = []
        for block in blocks:
            self._store_block(page_id, block)
        self._touch(page_id)

    # -- NotionClient interface ----------------------------------------

    def validate_connection(self) -> str:
        return "Test Bot"

    def query_database(self, database_id: str, start_cursor: str | None = None):
        self._record("query_database", database_id)
        rows = [
            page
            for page in self.pages.values()
            if page["parent"]["database_id"] == database_id
        ]
        return self._listing(rows, start_cursor)

    def get_block_children(self, block_id: str, start_cursor: str | None = None):
        self._record("get_block_children", block_id)
        return self._listing(self.blocks.get(block_id, []), start_cursor)

    def retrieve_page(self, page_id: str):
        self._record("retrieve_page", page_id)
        if page_id not in self.pages:
            raise NotionAPIError(404, "object_not_found", f"Could not find page {page_id}")
        return copy.deepcopy(self.pages[page_id])

    def delete_block(self, block_id: str):
        self._record("delete_block", block_id)
        for page_id, blocks in self.blocks.items():
            for block in blocks:
                if block["id"] == block_id:
                    blocks.remove(block)
                    self._touch(page_id)
                    return {"id": block_id, "archived": True}
        raise NotionAPIError(404, "object_not_found", f"Could not find block {block_id}")

    def append_block_children(self, block_id: str, children: list[dict[str, Any]]):
        self._record("append_block_children", block_id)
        assert len(children) <= 100
        for block in children:
            self._store_block(block_id, block)
        self._touch(block_id)
        return {"object": "list", "results": []}

    def create_page(
        self,
        database_id: str,
        properties: dict[str, Any],
        children: list[dict[str, Any]] | None = None,
    ):
        self._record("create_page", database_id)
        assert children is None or len(children) <= 100
        page_id = self._next_id()
        self.pages[page_id] = {
            "object": "page",
            "id": page_id,
            "parent": {"type": "database_id", "database_id": database_id},
            "properties": _with_types(properties),
            "url": f"https://www.notion.so/{page_id}",
            "archived": False,
            "last_edited_time": self._timestamp(),
        }
        self.blocks[page_id] = []
        for block in children or []:
            self._store_block(page_id, block)
        return copy.deepcopy(self.pages[page_id])

    def update_page_properties(self, page_id: str, properties: dict[str, Any]):
        self._record("update_page_properties", page_id)
        self.pages[page_id]["properties"].update(_with_types(properties))
        self._touch(page_id)
        return copy.deepcopy(self.pages[page_id])


def _with_types(properties: dict[str, Any]) -> dict[str, Any]:
    """Echo request properties back the way the API returns them."""
    typed: dict[str, Any] = {}
    for name, value in properties.items():
        kind = next(iter(value))
        value = copy.deepcopy(value)
        if kind == "title":
            for span in value["title"]:
                span.setdefault("plain_text", span["text"]["content"])
        typed[name] = {"type": kind, **value}
    return typed


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config(tmp_path: Path):
    """Create a Config instance pointing at temporary directories."""
    return Config(
        api_key="secret_test",
        store_dir=tmp_path / "brain",
        state_dir=tmp_path / "state",
    )


@pytest.fixture
def fake_notion():
    """An empty in-memory Notion workspace."""
    return FakeNotionClient()


@pytest.fixture
def collections():
    """Two collections: notes (with status) and tasks (without)."""
    return {
        "notes": CollectionConfig(database_id=NOTES_DB),
        "tasks": CollectionConfig(
            database_id=TASKS_DB, title_property="Task", status_property=None
        ),
    }


@pytest.fixture
def store(mock_config):
    return LocalStore(mock_config.store_dir)


@pytest.fixture
def ledger(mock_config):
    return SyncLedger(mock_config.state_dir)


@pytest.fixture
def clock():
    """Deterministic clock returning 2024-06-01T12:00Z, then +1s per call."""
    ticks = itertools.count()

    def _now() -> datetime:
        return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc) + timedelta(
            seconds=next(ticks)
        )

    return _now


@pytest.fixture
def paragraph():
    """Factory fixture building a paragraph block from plain text."""

    def _create(text: str) -> dict[str, Any]:
        return {
            "object": "block",
            "type": "paragraph",
            "paragraph": {
                "rich_text": [
                    {"type": "text", "text": {"content": text}, "plain_text": text}
                ]
            },
        }

    return _create
