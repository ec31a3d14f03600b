"""Tests for brain_cli.config_schema: unified config models."""

import pytest
from pydantic import ValidationError

from brain_cli.config_schema import (
    CollectionConfig,
    LoggingConfig,
    NotionConfig,
    SyncConfig,
    UnifiedConfig,
    build_config,
    yaml_fallbacks,
)

# -------------------------------------------------------------------------
# Section models
# -------------------------------------------------------------------------


class TestNotionConfig:
    def test_all_optional(self):
        config = NotionConfig()
        assert config.api_key is None
        assert config.requests_per_second is None

    @pytest.mark.parametrize("rate", [0, -2, 100])
    def test_rate_bounds(self, rate):
        with pytest.raises(ValidationError):
            NotionConfig(requests_per_second=rate)

    def test_frozen(self):
        config = NotionConfig(api_key="secret")
        with pytest.raises(ValidationError):
            config.api_key = "other"


class TestCollectionConfig:
    def test_defaults(self):
        collection = CollectionConfig(database_id="abc")
        assert collection.title_property == "Name"
        assert collection.status_property == "Status"
        assert collection.status_type == "select"

    def test_database_id_required(self):
        with pytest.raises(ValidationError):
            CollectionConfig()

    def test_status_property_can_be_disabled(self):
        assert CollectionConfig(database_id="abc", status_property=None).status_property is None

    def test_unknown_status_type_rejected(self):
        with pytest.raises(ValidationError):
            CollectionConfig(database_id="abc", status_type="multi_select")


class TestSyncConfig:
    def test_defaults(self):
        sync = SyncConfig()
        assert sync.default_type == "notes"
        assert sync.collections == {}
        assert sync.store_dir is None

    def test_collections_from_dicts(self):
        sync = SyncConfig(
            collections={
                "notes": {"database_id": "a"},
                "tasks": {"database_id": "b", "title_property": "Task"},
            }
        )
        assert sync.collections["tasks"].title_property == "Task"

    def test_default_type_must_be_a_collection(self):
        with pytest.raises(ValidationError, match="default_type 'ideas'"):
            SyncConfig(
                default_type="ideas",
                collections={"notes": {"database_id": "a"}},
            )

    def test_default_type_unchecked_without_collections(self):
        assert SyncConfig(default_type="ideas").default_type == "ideas"


class TestLoggingConfig:
    def test_defaults(self):
        assert LoggingConfig().level == "INFO"
        assert LoggingConfig().file is None


# -------------------------------------------------------------------------
# Factory functions
# -------------------------------------------------------------------------


class TestBuildConfig:
    def test_empty_dict_gives_defaults(self):
        assert build_config({}) == UnifiedConfig()

    def test_full_config(self):
        unified = build_config(
            {
                "notion": {"api_key": "secret", "requests_per_second": 2},
                "sync": {
                    "store_dir": "~/brain",
                    "default_type": "tasks",
                    "collections": {
                        "tasks": {
                            "database_id": "b" * 32,
                            "title_property": "Task",
                            "status_type": "status",
                        }
                    },
                },
                "logging": {"level": "DEBUG", "file": "/tmp/brain.log"},
            }
        )
        assert unified.notion.requests_per_second == 2
        assert unified.sync.collections["tasks"].status_type == "status"
        assert unified.logging.file == "/tmp/brain.log"

    def test_unknown_top_level_section_ignored(self):
        assert build_config({"extras": {"x": 1}}) == UnifiedConfig()

    def test_invalid_section_raises(self):
        with pytest.raises(ValidationError):
            build_config({"sync": {"collections": {"notes": {}}}})


class TestYamlFallbacks:
    def test_zero_config_is_empty(self):
        assert yaml_fallbacks(UnifiedConfig()) == {}

    def test_drops_none_and_flattens_paths(self):
        unified = build_config(
            {
                "notion": {"api_key": "secret"},
                "sync": {"store_dir": "~/brain", "state_dir": "~/state"},
            }
        )
        assert yaml_fallbacks(unified) == {
            "api_key": "secret",
            "store_dir": "~/brain",
            "state_dir": "~/state",
        }
