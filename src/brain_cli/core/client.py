"""Notion REST API client.

Thin wrapper over ``requests`` exposing exactly the calls the sync
engines need. Every request passes through a ``TokenBucket`` so the
client stays under Notion's rate limit. Non-2xx responses raise
``NotionAPIError``; connection failures surface as the underlying
``requests.RequestException``. Nothing is retried.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

import requests

from ..config import Config
from ..validators import validate_notion_id
from .rate_limit import TokenBucket

logger = logging.getLogger(__name__)

NOTION_API_BASE = "https://api.notion.com/v1"

# Notion caps children per append/create request and page size per list call.
MAX_CHILDREN_PER_REQUEST = 100
PAGE_SIZE = 100


class NotionAPIError(Exception):
    """A non-success response from the Notion API.

    Attributes:
        status: HTTP status code.
        code: Notion error code (e.g. ``object_not_found``), or
            ``http_error`` when the body was not a Notion error object.
        message: Human-readable error message.
    """

    def __init__(self, status: int, code: str, message: str) -> None:
        super().__init__(f"Notion API error {status} ({code}): {message}")
        self.status = status
        self.code = code
        self.message = message

    @classmethod
    def from_response(cls, response: requests.Response) -> NotionAPIError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            response.status_code,
            body.get("code") or "http_error",
            body.get("message") or response.reason or "request failed",
        )


def paginate(fetch: Callable[[str | None], dict[str, Any]]) -> Iterator[Any]:
    """Yield every result of a cursor-paginated Notion listing.

    Args:
        fetch: Called with the continuation cursor (``None`` for the first
            page); must return a Notion list object with ``results`` and
            ``next_cursor``.

    Yields:
        Items of ``results`` across all pages, in order.
    """
    cursor: str | None = None
    while True:
        response = fetch(cursor)
        yield from response.get("results", [])
        cursor = response.get("next_cursor")
        if not cursor:
            return


def _require_id(value: str, field_name: str) -> None:
    is_valid, error = validate_notion_id(value, field_name)
    if not is_valid:
        raise ValueError(error)


class NotionClient:
    def __init__(
        self,
        config: Config,
        limiter: TokenBucket | None = None,
        base_url: str = NOTION_API_BASE,
    ):
        self.config = config
        self.base_url = base_url.rstrip("/")
        self.limiter = limiter or TokenBucket(config.requests_per_second)
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        """Lazily created session carrying the auth and version headers."""
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.api_key}",
                "Notion-Version": self.config.notion_version,
                "Content-Type": "application/json",
            }
        )
        return session

    def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make a rate-limited request and return the decoded JSON body.
        """
        self.limiter.acquire()
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("%s %s", method, url)
        response = self.session.request(
            method,
            url,
            json=payload,
            params=params,
            timeout=(10, 60),
        )
        if not response.ok:
            raise NotionAPIError.from_response(response)
        return response.json()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query_database(
        self, database_id: str, start_cursor: str | None = None
    ) -> dict[str, Any]:
        """
        Fetch one page of a database query (all rows, no filter).
        """
        _require_id(database_id, "Database id")
        payload: dict[str, Any] = {"page_size": PAGE_SIZE}
        if start_cursor:
            payload["start_cursor"] = start_cursor
        return self._request("POST", f"databases/{database_id}/query", payload)

    def get_block_children(
        self, block_id: str, start_cursor: str | None = None
    ) -> dict[str, Any]:
        """
        Fetch one page of a block's (or page's) direct children.
        """
        _require_id(block_id, "Block id")
        params: dict[str, Any] = {"page_size": PAGE_SIZE}
        if start_cursor:
            params["start_cursor"] = start_cursor
        return self._request("GET", f"blocks/{block_id}/children", params=params)

    def retrieve_page(self, page_id: str) -> dict[str, Any]:
        """
        Fetch a page object (properties, url, last_edited_time).
        """
        _require_id(page_id, "Page id")
        return self._request("GET", f"pages/{page_id}")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def delete_block(self, block_id: str) -> dict[str, Any]:
        """
        Delete (archive) a single block.
        """
        _require_id(block_id, "Block id")
        return self._request("DELETE", f"blocks/{block_id}")

    def append_block_children(
        self, block_id: str, children: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """
        Append up to 100 blocks to the end of a page or block.

        Raises:
            ValueError: If more than 100 children are given.
        """
        _require_id(block_id, "Block id")
        if len(children) > MAX_CHILDREN_PER_REQUEST:
            raise ValueError(
                f"Cannot append {len(children)} blocks in one request "
                f"(maximum {MAX_CHILDREN_PER_REQUEST})"
            )
        return self._request(
            "PATCH", f"blocks/{block_id}/children", {"children": children}
        )

    def create_page(
        self,
        database_id: str,
        properties: dict[str, Any],
        children: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """
        Create a page in a database, optionally with up to 100 initial blocks.

        Returns:
            The created page object (including ``id`` and ``url``).
        """
        _require_id(database_id, "Database id")
        children = children or []
        if len(children) > MAX_CHILDREN_PER_REQUEST:
            raise ValueError(
                f"Cannot create a page with {len(children)} blocks "
                f"(maximum {MAX_CHILDREN_PER_REQUEST})"
            )
        payload: dict[str, Any] = {
            "parent": {"database_id": database_id},
            "properties": properties,
        }
        if children:
            payload["children"] = children
        return self._request("POST", "pages", payload)

    def update_page_properties(
        self, page_id: str, properties: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Patch page properties (title, status).
        """
        _require_id(page_id, "Page id")
        return self._request(
            "PATCH", f"pages/{page_id}", {"properties": properties}
        )

    # ------------------------------------------------------------------
    # Connection check
    # ------------------------------------------------------------------

    def validate_connection(self) -> str:
        """
        Validate the token by fetching the integration's bot user.

        Returns:
            The bot user's name.
        """
        user = self._request("GET", "users/me")
        return user.get("name") or user.get("id", "unknown")
