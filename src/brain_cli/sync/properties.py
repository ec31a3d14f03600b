"""Reading and building Notion page properties.

Only two properties take part in sync: the page title and an optional
status (``select`` or native ``status`` property), configured per
collection.
"""

from __future__ import annotations

from typing import Any

from ..config_schema import CollectionConfig
from ..converters.common import MAX_TEXT_LENGTH, plain_text
from ..validators import normalize_notion_id


def page_title(page: dict[str, Any]) -> str:
    """Return the plain text of the page's title property."""
    for prop in (page.get("properties") or {}).values():
        if prop.get("type") == "title":
            return plain_text(prop.get("title"))
    return ""


def page_status(page: dict[str, Any], collection: CollectionConfig) -> str:
    """Return the page's status name, or an empty string."""
    if not collection.status_property:
        return ""
    prop = (page.get("properties") or {}).get(collection.status_property) or {}
    value = prop.get(prop.get("type") or collection.status_type) or {}
    return value.get("name", "") if isinstance(value, dict) else ""


def page_database_id(page: dict[str, Any]) -> str:
    """Return the normalised id of the database a page belongs to."""
    parent = page.get("parent") or {}
    return normalize_notion_id(parent.get("database_id") or "")


def build_properties(
    collection: CollectionConfig, title: str, status: str = ""
) -> dict[str, Any]:
    """Build the ``properties`` payload for a create or update call."""
    properties: dict[str, Any] = {
        collection.title_property: {
            "title": [
                {"type": "text", "text": {"content": title[:MAX_TEXT_LENGTH]}}
            ]
        }
    }
    if collection.status_property and status:
        properties[collection.status_property] = {
            collection.status_type: {"name": status}
        }
    return properties
