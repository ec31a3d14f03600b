"""Conversion between Notion blocks and Markdown.

Modules:
    common: Shared constants, language maps and the ConversionResult type
    blocks_to_markdown: Notion block list -> Markdown text (decode)
    markdown_to_blocks: Markdown text -> Notion block list (encode)
"""

from .blocks_to_markdown import blocks_to_markdown
from .common import ConversionResult, batch_blocks
from .markdown_to_blocks import markdown_to_block_batches, markdown_to_blocks

__all__ = [
    "ConversionResult",
    "batch_blocks",
    "blocks_to_markdown",
    "markdown_to_block_batches",
    "markdown_to_blocks",
]
