"""Local document store.

Every document is one Markdown file ``<store>/<slug>.md`` with a YAML
front-matter header followed by a blank line and the body::

    ---
    id: 1f2e...
    title: Alpha
    type: notes
    status: Draft
    url: https://www.notion.so/Alpha-1f2e...
    last_synced: '2024-05-01T12:00:00+00:00'
    content_hash: 3b1f0c...
    ---

    Body text...

The header is read and written with PyYAML so values containing colons
(URLs, timestamps) round-trip exactly. A file without a header is an
untracked draft; a header that cannot be parsed is treated the same way
instead of aborting the run.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, field_validator

from ..file_handler import read_file_with_encoding, write_file

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"
MAX_SLUG_LENGTH = 60

_FRONT_MATTER = re.compile(
    r"\A---[ \t]*\r?\n(?P<header>.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL
)


class DocumentMeta(BaseModel):
    """Header fields of a local document. Missing fields are empty strings.

    Keys a user adds by hand are kept (``extra="allow"``) and written back
    unchanged.
    """

    id: str = ""
    title: str = ""
    type: str = ""
    status: str = ""
    url: str = ""
    last_synced: str = ""
    content_hash: str = ""

    model_config = {"frozen": True, "extra": "allow"}

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return str(value)


class LocalDocument(BaseModel):
    """A parsed local document.

    Attributes:
        path: File location.
        meta: Header fields (empty when untracked).
        body: Everything after the header separator, exactly as stored.
        has_header: Whether a well-formed header was found.
    """

    path: Path
    meta: DocumentMeta
    body: str
    has_header: bool = False

    model_config = {"frozen": True}

    @property
    def slug(self) -> str:
        return self.path.stem


# ----------------------------------------------------------------------
# Parsing and rendering
# ----------------------------------------------------------------------


def parse_document(text: str) -> tuple[DocumentMeta, str, bool]:
    """Split *text* into header metadata and body.

    Returns:
        Tuple of (meta, body, has_header). When no header fence is present
        the whole text is the body. When the fence is present but its YAML
        is unusable, the metadata is empty and the body is what follows.
    """
    text = text.lstrip("\ufeff")
    match = _FRONT_MATTER.match(text)
    if not match:
        return (DocumentMeta(), text, False)

    body = text[match.end() :]
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]

    try:
        data = yaml.safe_load(match.group("header"))
    except yaml.YAMLError as e:
        logger.warning("Ignoring malformed document header: %s", e)
        return (DocumentMeta(), body, False)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring document header that is not a mapping (%s)",
            type(data).__name__,
        )
        return (DocumentMeta(), body, False)

    return (DocumentMeta(**{str(k): v for k, v in data.items()}), body, True)


def render_document(meta: DocumentMeta, body: str) -> str:
    """Serialise *meta* and *body* into the on-disk document format."""
    header = yaml.safe_dump(
        meta.model_dump(),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=2**31 - 1,
    )
    return f"---\n{header}---\n\n{body}"


def slugify(title: str) -> str:
    """Derive a file-name slug from a title.

    Accents are folded to ASCII, everything else outside ``[a-z0-9]``
    collapses to single hyphens, and the result is capped at 60
    characters. Titles with no usable characters become ``untitled``.
    """
    folded = (
        unicodedata.normalize("NFKD", title)
        .encode("ascii", "ignore")
        .decode("ascii")
        .lower()
    )
    slug = re.sub(r"[^a-z0-9]+", "-", folded).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].rstrip("-")
    return slug or "untitled"


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------


class LocalStore:
    """Read and write the documents in one directory.

    Args:
        root: Store directory (created on first write).
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, slug: str) -> Path:
        """Return the file path for *slug*.

        Raises:
            ValueError: If *slug* would escape the store directory.
        """
        if not slug or "/" in slug or "\\" in slug or slug.startswith("."):
            raise ValueError(f"Invalid document slug '{slug}'")
        return self.root / f"{slug}{DOCUMENT_SUFFIX}"

    def discover(self) -> list[Path]:
        """Return the document files in the store, sorted by name.

        Only ``*.md`` files directly inside the store count; names starting
        with ``.`` or ``_`` are ignored.
        """
        if not self.root.is_dir():
            return []
        return sorted(
            path
            for path in self.root.glob(f"*{DOCUMENT_SUFFIX}")
            if path.is_file() and not path.name.startswith((".", "_"))
        )

    def read(self, path: Path) -> LocalDocument:
        """Read and parse the document at *path*."""
        text, encoding = read_file_with_encoding(path)
        if encoding != "utf-8":
            logger.debug("Read %s as %s", path.name, encoding)
        meta, body, has_header = parse_document(text)
        return LocalDocument(path=path, meta=meta, body=body, has_header=has_header)

    def write(self, path: Path, meta: DocumentMeta, body: str) -> None:
        """Write a document (header and body) to *path*, always as UTF-8."""
        write_file(path, render_document(meta, body))

    def unique_slug(
        self, title: str, remote_id: str, reserved: set[str] | None = None
    ) -> str:
        """Pick a slug for a new remote document.

        The slug derived from *title* is used unless another document
        already claims it, either through the ledger (*reserved*) or
        through an existing file whose header names a different page. In
        that case ``-2``, ``-3``, ... are appended.
        """
        reserved = reserved or set()
        base = slugify(title)
        candidate = base
        counter = 1
        while self._is_taken(candidate, remote_id, reserved):
            counter += 1
            suffix = f"-{counter}"
            candidate = base[: MAX_SLUG_LENGTH - len(suffix)].rstrip("-") + suffix
        return candidate

    def _is_taken(self, slug: str, remote_id: str, reserved: set[str]) -> bool:
        if slug in reserved:
            return True
        path = self.path_for(slug)
        if not path.exists():
            return False
        return self.read(path).meta.id != remote_id
