"""brain-cli: keep a folder of Markdown notes in sync with Notion databases."""

__version__ = "0.4.0"
