"""Common types and utilities for block/Markdown conversion."""

from dataclasses import dataclass, field
from typing import Any

# Notion rejects more than 100 children per request and more than 2000
# characters in a single rich-text object.
MAX_BLOCKS_PER_REQUEST = 100
MAX_TEXT_LENGTH = 2000

# =============================================================================
# Code Block Language Mapping
# =============================================================================
#
# Bidirectional mapping between Markdown code fence info strings and the
# fixed set of languages Notion code blocks accept.
#
# Markdown: ```cpp
# Notion:   {"type": "code", "code": {"language": "c++", ...}}
#
# - Notion only accepts names from NOTION_LANGUAGES; anything else is
#   stored as "plain text".
# - "plain text" decodes to a fence with no info string.
# - Names containing spaces or symbols get a Markdown-friendly canonical
#   form that encodes back to the same Notion name.
# =============================================================================

NOTION_LANGUAGES: frozenset[str] = frozenset(
    {
        "abap", "agda", "arduino", "ascii art", "assembly", "bash", "basic",
        "bnf", "c", "c#", "c++", "clojure", "coffeescript", "coq", "css",
        "dart", "dhall", "diff", "docker", "ebnf", "elixir", "elm", "erlang",
        "f#", "flow", "fortran", "gherkin", "glsl", "go", "graphql",
        "groovy", "haskell", "hcl", "html", "idris", "java", "javascript",
        "json", "julia", "kotlin", "latex", "less", "lisp", "livescript",
        "llvm ir", "lua", "makefile", "markdown", "markup", "matlab",
        "mathematica", "mermaid", "nix", "notion formula", "objective-c",
        "ocaml", "pascal", "perl", "php", "plain text", "powershell",
        "prolog", "protobuf", "purescript", "python", "r", "racket",
        "reason", "ruby", "rust", "sass", "scala", "scheme", "scss", "shell",
        "smalltalk", "solidity", "sql", "swift", "toml", "typescript",
        "vb.net", "verilog", "vhdl", "visual basic", "webassembly", "xml",
        "yaml", "java/c/c++/c#",
    }
)

# Markdown info string -> Notion language, for names Notion spells differently
_MARKDOWN_TO_NOTION_MAP: dict[str, str] = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "sh": "shell",
    "zsh": "shell",
    "console": "shell",
    "yml": "yaml",
    "cpp": "c++",
    "cxx": "c++",
    "cc": "c++",
    "cs": "c#",
    "csharp": "c#",
    "fsharp": "f#",
    "objc": "objective-c",
    "vbnet": "vb.net",
    "vb": "visual basic",
    "rb": "ruby",
    "rs": "rust",
    "golang": "go",
    "kt": "kotlin",
    "dockerfile": "docker",
    "make": "makefile",
    "tex": "latex",
    "proto": "protobuf",
    "ps1": "powershell",
    "pwsh": "powershell",
    "wasm": "webassembly",
    "md": "markdown",
    "llvm": "llvm ir",
    "asm": "assembly",
    "hs": "haskell",
    "ex": "elixir",
    "exs": "elixir",
    "clj": "clojure",
    "tf": "hcl",
    "jl": "julia",
    "htm": "html",
    "text": "plain text",
    "txt": "plain text",
    "plain": "plain text",
    "plaintext": "plain text",
}

# Notion language -> Markdown info string (canonical form)
_NOTION_TO_MARKDOWN_CANONICAL: dict[str, str] = {
    "plain text": "",
    "c++": "cpp",
    "c#": "csharp",
    "f#": "fsharp",
    "objective-c": "objc",
    "vb.net": "vbnet",
    "visual basic": "vb",
    "llvm ir": "llvm",
    "java/c/c++/c#": "java",
}


def markdown_to_notion_lang(info: str | None) -> str:
    """
    Convert a Markdown code fence info string to a Notion code language.

    Only the first word of the info string is considered.

    Examples:
        >>> markdown_to_notion_lang("cpp")
        'c++'
        >>> markdown_to_notion_lang("ascii-art")
        'ascii art'
        >>> markdown_to_notion_lang("brainfuck")
        'plain text'
    """
    words = (info or "").split()
    if not words:
        return "plain text"
    lang = words[0].lower()

    if lang in _MARKDOWN_TO_NOTION_MAP:
        return _MARKDOWN_TO_NOTION_MAP[lang]
    if lang in NOTION_LANGUAGES:
        return lang
    spaced = lang.replace("-", " ")
    if spaced in NOTION_LANGUAGES:
        return spaced
    return "plain text"


def notion_to_markdown_lang(language: str | None) -> str:
    """
    Convert a Notion code language to a Markdown code fence info string.

    Examples:
        >>> notion_to_markdown_lang("c++")
        'cpp'
        >>> notion_to_markdown_lang("plain text")
        ''
        >>> notion_to_markdown_lang("notion formula")
        'notion-formula'
    """
    lang = (language or "plain text").lower()
    if lang in _NOTION_TO_MARKDOWN_CANONICAL:
        return _NOTION_TO_MARKDOWN_CANONICAL[lang]
    return lang.replace(" ", "-")


@dataclass
class ConversionResult:
    """Result of a conversion with warnings about lossy parts.

    Attributes:
        text: Markdown output (decode)
        blocks: Notion block list output (encode)
        warnings: Skipped block types, dropped children and similar notes
    """

    text: str = ""
    blocks: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def batch_blocks(
    blocks: list[dict[str, Any]], size: int = MAX_BLOCKS_PER_REQUEST
) -> list[list[dict[str, Any]]]:
    """Split *blocks* into consecutive batches of at most *size* blocks."""
    return [blocks[i : i + size] for i in range(0, len(blocks), size)]


def plain_text(rich_text: list[dict[str, Any]] | None) -> str:
    """Concatenate the plain text of a Notion rich-text array."""
    parts = []
    for span in rich_text or []:
        text = span.get("plain_text")
        if text is None:
            text = (span.get("text") or {}).get("content", "")
        parts.append(text)
    return "".join(parts)
