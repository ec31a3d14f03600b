"""
Notion blocks to Markdown converter.

Renders the top-level block list of a Notion page as Markdown text.
Only the block types that have a faithful Markdown form are rendered;
everything else is skipped and reported as a warning on the
``ConversionResult``. Child blocks are never fetched, so toggle contents
and nested list items are dropped (also with a warning).

Inline annotations are applied in a fixed order, each wrapping the
previous result: bold, italic, inline code, strikethrough, link.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Any

from .common import ConversionResult, notion_to_markdown_lang, plain_text

logger = logging.getLogger(__name__)

_LIST_KINDS = frozenset({"bulleted_list_item", "numbered_list_item", "to_do"})

DEFAULT_CALLOUT_ICON = "💡"

# =============================================================================
# Escaping
# =============================================================================

_ESCAPE_ALWAYS = re.compile(r"([\\`*\[\]~])")
_ESCAPE_UNDERSCORE = re.compile(r"(?<![0-9A-Za-z])_|_(?![0-9A-Za-z])")
_ESCAPE_ANGLE = re.compile(r"<(?=[A-Za-z/!?])")
_ESCAPE_ENTITY = re.compile(r"&(?=#?[0-9A-Za-z]+;)")

# Line prefixes that would start a block construct
_BLOCK_START = re.compile(
    r"^(?P<indent> {0,3})(?P<marker>"
    r"#{1,6}(?=[ \t]|$)"
    r"|>"
    r"|[-+](?=[ \t]|$)"
    r"|\d{1,9}[.)](?=[ \t]|$)"
    r"|=+[ \t]*$"
    r"|-+[ \t]*$"
    r")"
)

_SURROUNDING_WS = re.compile(r"^(\s*)(.*?)(\s*)$", re.DOTALL)


def escape_markdown(text: str) -> str:
    """Backslash-escape characters that would be read as inline Markdown."""
    text = _ESCAPE_ALWAYS.sub(r"\\\1", text)
    text = _ESCAPE_UNDERSCORE.sub(r"\\_", text)
    text = _ESCAPE_ANGLE.sub(r"\\<", text)
    return _ESCAPE_ENTITY.sub(r"\\&", text)


def _escape_line_start(line: str) -> str:
    match = _BLOCK_START.match(line)
    if not match:
        return line
    indent = match.group("indent")
    marker = match.group("marker")
    if marker[0].isdigit():
        number = marker.rstrip(".)")
        rest = line[len(indent) + len(number) :]
        return f"{indent}{number}\\{rest}"
    return f"{indent}\\{line[len(indent):]}"


def _escape_lines(text: str) -> list[str]:
    # Leading spaces or tabs would open an indented code block or join the
    # line to a preceding list item, so they are dropped.
    return [_escape_line_start(line.lstrip(" \t")) for line in text.split("\n")]


# =============================================================================
# Inline rendering
# =============================================================================


def _span_key(span: dict[str, Any]) -> tuple:
    annotations = span.get("annotations") or {}
    href = span.get("href")
    if href is None:
        link = (span.get("text") or {}).get("link") or {}
        href = link.get("url")
    return (
        bool(annotations.get("bold")),
        bool(annotations.get("italic")),
        bool(annotations.get("code")),
        bool(annotations.get("strikethrough")),
        href or None,
    )


def _code_span(text: str) -> str:
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    fence = "`" * (longest + 1)
    if text.startswith("`") or text.endswith("`"):
        text = f" {text} "
    return f"{fence}{text}{fence}"


def _link_target(href: str) -> str:
    if re.search(r"[\s()<>]", href):
        return f"<{href}>"
    return href


def _render_span(text: str, key: tuple) -> str:
    bold, italic, code, strike, href = key
    lead, core, trail = _SURROUNDING_WS.match(text).groups()
    if not core:
        return escape_markdown(text)

    out = core if code else escape_markdown(core)
    if bold:
        out = f"**{out}**"
    if italic:
        out = f"*{out}*"
    if code:
        out = _code_span(out)
    if strike:
        out = f"~~{out}~~"
    if href:
        out = f"[{out}]({_link_target(href)})"
    return f"{lead}{out}{trail}"


def render_rich_text(rich_text: list[dict[str, Any]] | None) -> str:
    """Render a Notion rich-text array as inline Markdown.

    Adjacent spans with identical annotations and link are merged before
    rendering so that ``**a****b**`` never appears in the output.
    """
    merged: list[tuple[str, tuple]] = []
    for span in rich_text or []:
        text = plain_text([span])
        if not text:
            continue
        key = _span_key(span)
        if merged and merged[-1][1] == key:
            merged[-1] = (merged[-1][0] + text, key)
        else:
            merged.append((text, key))
    return "".join(_render_span(text, key) for text, key in merged)


# =============================================================================
# Block rendering
# =============================================================================


def _rich_text_of(block: dict[str, Any], kind: str) -> list[dict[str, Any]]:
    return (block.get(kind) or {}).get("rich_text") or []


def _list_item(marker: str, body: str, indent: int) -> str:
    lines = _escape_lines(body)
    pad = " " * indent
    rest = [f"{pad}{line}" if line else "" for line in lines[1:]]
    return "\n".join([f"{marker}{lines[0]}".rstrip(), *rest])


def _render_code(block: dict[str, Any]) -> str:
    data = block.get("code") or {}
    code = plain_text(data.get("rich_text"))
    lang = notion_to_markdown_lang(data.get("language"))
    longest = max((len(run) for run in re.findall(r"`+", code)), default=0)
    fence = "`" * max(3, longest + 1)
    return f"{fence}{lang}\n{code}\n{fence}"


def _render_block(
    block: dict[str, Any], kind: str, number: int, warnings: list[str]
) -> str | None:
    match kind:
        case "paragraph":
            body = render_rich_text(_rich_text_of(block, kind))
            if not body.strip():
                return None
            return "\n".join(_escape_lines(body))

        case "heading_1" | "heading_2" | "heading_3":
            level = int(kind[-1])
            body = render_rich_text(_rich_text_of(block, kind)).replace("\n", " ")
            body = _escape_line_start(body.strip())
            if body.endswith("#"):
                body = body[:-1] + "\\#"
            return f"{'#' * level} {body}".rstrip()

        case "bulleted_list_item":
            body = render_rich_text(_rich_text_of(block, kind))
            return _list_item("- ", body, 2)

        case "numbered_list_item":
            body = render_rich_text(_rich_text_of(block, kind))
            marker = f"{number}. "
            return _list_item(marker, body, len(marker))

        case "to_do":
            data = block.get("to_do") or {}
            box = "[x]" if data.get("checked") else "[ ]"
            body = render_rich_text(data.get("rich_text"))
            return _list_item(f"- {box} ", body, 2)

        case "toggle":
            summary = plain_text(_rich_text_of(block, kind)).replace("\n", " ")
            if block.get("has_children"):
                warnings.append(
                    f"Contents of toggle '{summary}' are not synced"
                )
            return f"<details><summary>{html.escape(summary)}</summary></details>"

        case "code":
            return _render_code(block)

        case "quote":
            body = render_rich_text(_rich_text_of(block, kind))
            return "\n".join(
                f"> {line}" if line else ">" for line in _escape_lines(body)
            )

        case "divider":
            return "---"

        case "callout":
            data = block.get("callout") or {}
            icon = data.get("icon") or {}
            emoji = icon.get("emoji") if icon.get("type") == "emoji" else None
            body = render_rich_text(data.get("rich_text"))
            lines = _escape_lines(body)
            first = f"> [!{emoji or DEFAULT_CALLOUT_ICON}] {lines[0]}".rstrip()
            rest = [f"> {line}" if line else ">" for line in lines[1:]]
            return "\n".join([first, *rest])

        case _:
            warnings.append(f"Skipped unsupported block type '{kind}'")
            return None


def blocks_to_markdown(blocks: list[dict[str, Any]]) -> ConversionResult:
    """
    Convert a page's top-level Notion blocks to Markdown.

    Consecutive items of the same list kind are separated by a single
    newline; every other pair of blocks by a blank line. Numbered items
    are renumbered from 1 within each run. Non-empty output always ends
    with a newline.

    Args:
        blocks: Block objects as returned by the block children endpoint.

    Returns:
        ConversionResult with ``text`` set and warnings for dropped content.
    """
    result = ConversionResult()
    chunks: list[tuple[str, str]] = []
    number = 0

    for block in blocks:
        kind = block.get("type", "")
        if kind == "numbered_list_item":
            number = number + 1 if chunks and chunks[-1][0] == kind else 1

        rendered = _render_block(block, kind, number, result.warnings)
        if rendered is None:
            continue

        if block.get("has_children") and kind != "toggle":
            result.warnings.append(f"Nested content under {kind} is not synced")
        chunks.append((kind, rendered))

    parts: list[str] = []
    previous: str | None = None
    for kind, rendered in chunks:
        if parts:
            same_list = kind == previous and kind in _LIST_KINDS
            parts.append("\n" if same_list else "\n\n")
        parts.append(rendered)
        previous = kind

    text = "".join(parts)
    result.text = f"{text}\n" if text else ""
    for warning in result.warnings:
        logger.debug("Decode: %s", warning)
    return result
