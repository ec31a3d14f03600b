"""
Markdown to Notion blocks converter.

Parses Markdown with mistune's AST mode (``renderer=None``) and maps the
token tree onto the Notion block types the decoder understands:

    heading (1-6)        -> heading_1 / heading_2 / heading_3
    paragraph            -> paragraph
    list / list_item     -> bulleted_list_item / numbered_list_item
    task_list_item       -> to_do
    block_code           -> code
    block_quote          -> quote, or callout when it starts with [!X]
    thematic_break       -> divider
    <details> html       -> toggle

Nested list items are flattened into the top-level sequence. Rich text
is split into 2000-character spans to respect the API limit.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Any

import mistune

from .common import (
    MAX_TEXT_LENGTH,
    ConversionResult,
    batch_blocks,
    markdown_to_notion_lang,
)

logger = logging.getLogger(__name__)

_parse = mistune.create_markdown(
    renderer=None, plugins=["strikethrough", "task_lists"]
)

_CALLOUT_PREFIX = re.compile(r"^\[!([^\]\s]+)\][ \t]?")
_DETAILS = re.compile(
    r"^\s*<details>\s*<summary>(?P<summary>.*?)</summary>(?P<body>.*?)</details>\s*$",
    re.DOTALL | re.IGNORECASE,
)
_ALLOWED_LINK = re.compile(r"^(https?://|mailto:)", re.IGNORECASE)

# GitHub alert keywords -> callout emoji
_ALERT_ICONS: dict[str, str] = {
    "NOTE": "ℹ️",
    "TIP": "💡",
    "IMPORTANT": "❗",
    "WARNING": "⚠️",
    "CAUTION": "🛑",
}

RichText = list[dict[str, Any]]


# =============================================================================
# Rich text
# =============================================================================


def _text_span(
    content: str, annotations: dict[str, bool], link: str | None
) -> dict[str, Any]:
    text: dict[str, Any] = {"content": content}
    if link:
        text["link"] = {"url": link}
    span: dict[str, Any] = {"type": "text", "text": text}
    if annotations:
        span["annotations"] = dict(annotations)
    return span


def _collect_inline(
    nodes: list[dict[str, Any]],
    annotations: dict[str, bool],
    link: str | None,
    out: list[tuple[str, dict[str, bool], str | None]],
    warnings: list[str],
) -> None:
    for node in nodes:
        match node.get("type"):
            case "text":
                out.append((node.get("raw", ""), annotations, link))
            case "codespan":
                out.append((node.get("raw", ""), {**annotations, "code": True}, link))
            case "strong":
                _collect_inline(
                    node.get("children", []),
                    {**annotations, "bold": True}, link, out, warnings,
                )
            case "emphasis":
                _collect_inline(
                    node.get("children", []),
                    {**annotations, "italic": True}, link, out, warnings,
                )
            case "strikethrough":
                _collect_inline(
                    node.get("children", []),
                    {**annotations, "strikethrough": True}, link, out, warnings,
                )
            case "link" | "image":
                url = (node.get("attrs") or {}).get("url", "")
                if not _ALLOWED_LINK.match(url):
                    warnings.append(f"Dropped unsupported link target '{url}'")
                    url = None
                _collect_inline(
                    node.get("children", []), annotations, url or link, out, warnings
                )
            case "softbreak" | "linebreak":
                out.append(("\n", annotations, link))
            case "inline_html":
                out.append((node.get("raw", ""), annotations, link))
            case _:
                if "children" in node:
                    _collect_inline(node["children"], annotations, link, out, warnings)
                elif node.get("raw"):
                    out.append((node["raw"], annotations, link))


def _spans_to_rich_text(
    spans: list[tuple[str, dict[str, bool], str | None]],
) -> RichText:
    merged: list[tuple[str, dict[str, bool], str | None]] = []
    for text, annotations, link in spans:
        if not text:
            continue
        if merged and merged[-1][1] == annotations and merged[-1][2] == link:
            merged[-1] = (merged[-1][0] + text, annotations, link)
        else:
            merged.append((text, annotations, link))

    rich_text: RichText = []
    for text, annotations, link in merged:
        for start in range(0, len(text), MAX_TEXT_LENGTH):
            rich_text.append(
                _text_span(text[start : start + MAX_TEXT_LENGTH], annotations, link)
            )
    return rich_text


def _inline_to_rich_text(
    nodes: list[dict[str, Any]], warnings: list[str]
) -> RichText:
    spans: list[tuple[str, dict[str, bool], str | None]] = []
    _collect_inline(nodes, {}, None, spans, warnings)
    return _spans_to_rich_text(spans)


def _plain_rich_text(text: str) -> RichText:
    return _spans_to_rich_text([(text, {}, None)])


# =============================================================================
# Blocks
# =============================================================================


def _block(kind: str, **payload: Any) -> dict[str, Any]:
    return {"object": "block", "type": kind, kind: payload}


def _item_rich_text(
    item: dict[str, Any], warnings: list[str]
) -> tuple[RichText, list[dict[str, Any]]]:
    """Split a list item into its own text and any nested block tokens."""
    spans: list[tuple[str, dict[str, bool], str | None]] = []
    nested: list[dict[str, Any]] = []
    for child in item.get("children", []):
        if child.get("type") in ("block_text", "paragraph"):
            if spans:
                spans.append(("\n\n", {}, None))
            _collect_inline(child.get("children", []), {}, None, spans, warnings)
        elif child.get("type") != "blank_line":
            nested.append(child)
    return _spans_to_rich_text(spans), nested


def _list_blocks(token: dict[str, Any], warnings: list[str]) -> list[dict[str, Any]]:
    ordered = bool((token.get("attrs") or {}).get("ordered"))
    kind = "numbered_list_item" if ordered else "bulleted_list_item"
    blocks: list[dict[str, Any]] = []
    for item in token.get("children", []):
        rich_text, nested = _item_rich_text(item, warnings)
        if item.get("type") == "task_list_item":
            checked = bool((item.get("attrs") or {}).get("checked"))
            blocks.append(_block("to_do", rich_text=rich_text, checked=checked))
        else:
            blocks.append(_block(kind, rich_text=rich_text))
        blocks.extend(_tokens_to_blocks(nested, warnings))
    return blocks


def _quote_blocks(token: dict[str, Any], warnings: list[str]) -> list[dict[str, Any]]:
    spans: list[tuple[str, dict[str, bool], str | None]] = []
    trailing: list[dict[str, Any]] = []
    for child in token.get("children", []):
        if child.get("type") == "paragraph" and not trailing:
            if spans:
                spans.append(("\n", {}, None))
            _collect_inline(child.get("children", []), {}, None, spans, warnings)
        elif child.get("type") != "blank_line":
            trailing.append(child)

    rich_text = _spans_to_rich_text(spans)
    match = None
    if rich_text and not rich_text[0].get("annotations"):
        match = _CALLOUT_PREFIX.match(rich_text[0]["text"]["content"])

    if match:
        icon = match.group(1)
        emoji = _ALERT_ICONS.get(icon.upper(), "💡") if icon.isascii() else icon
        first = rich_text[0]["text"]["content"][match.end() :]
        if first:
            rich_text[0]["text"]["content"] = first
        else:
            rich_text = rich_text[1:]
        block = _block(
            "callout", rich_text=rich_text, icon={"type": "emoji", "emoji": emoji}
        )
    else:
        block = _block("quote", rich_text=rich_text)

    return [block, *_tokens_to_blocks(trailing, warnings)]


def _html_blocks(token: dict[str, Any], warnings: list[str]) -> list[dict[str, Any]]:
    raw = token.get("raw", "")
    match = _DETAILS.match(raw)
    if not match:
        return [_block("paragraph", rich_text=_plain_rich_text(raw.strip()))]

    summary = html.unescape(re.sub(r"<[^>]+>", "", match.group("summary"))).strip()
    payload: dict[str, Any] = {"rich_text": _plain_rich_text(summary)}
    body = match.group("body").strip()
    if body:
        payload["children"] = markdown_to_blocks(body).blocks
    return [{"object": "block", "type": "toggle", "toggle": payload}]


def _tokens_to_blocks(
    tokens: list[dict[str, Any]], warnings: list[str]
) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for token in tokens:
        match token.get("type"):
            case "heading":
                level = min((token.get("attrs") or {}).get("level", 1), 3)
                rich_text = _inline_to_rich_text(token.get("children", []), warnings)
                blocks.append(_block(f"heading_{level}", rich_text=rich_text))
            case "paragraph" | "block_text":
                rich_text = _inline_to_rich_text(token.get("children", []), warnings)
                if rich_text:
                    blocks.append(_block("paragraph", rich_text=rich_text))
            case "list":
                blocks.extend(_list_blocks(token, warnings))
            case "block_code":
                code = token.get("raw", "")
                if code.endswith("\n"):
                    code = code[:-1]
                info = (token.get("attrs") or {}).get("info")
                blocks.append(
                    _block(
                        "code",
                        rich_text=_plain_rich_text(code),
                        language=markdown_to_notion_lang(info),
                    )
                )
            case "block_quote":
                blocks.extend(_quote_blocks(token, warnings))
            case "thematic_break":
                blocks.append(_block("divider"))
            case "block_html":
                blocks.extend(_html_blocks(token, warnings))
            case "blank_line":
                continue
            case other:
                raw = token.get("raw") or token.get("text") or ""
                warnings.append(f"Converted unsupported Markdown '{other}' to text")
                if raw.strip():
                    blocks.append(_block("paragraph", rich_text=_plain_rich_text(raw.strip())))
    return blocks


def markdown_to_blocks(text: str) -> ConversionResult:
    """
    Convert Markdown text to a list of Notion block objects.

    Args:
        text: Markdown document body.

    Returns:
        ConversionResult with ``blocks`` set (ready to append, before
        batching) and warnings for lossy conversions.
    """
    result = ConversionResult()
    if not text.strip():
        return result

    tokens = _parse(text)
    result.blocks = _tokens_to_blocks(tokens, result.warnings)
    for warning in result.warnings:
        logger.debug("Encode: %s", warning)
    return result


def markdown_to_block_batches(text: str) -> list[list[dict[str, Any]]]:
    """Encode *text* and split the blocks into request-sized batches."""
    return batch_blocks(markdown_to_blocks(text).blocks)
