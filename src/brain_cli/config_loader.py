"""
Config file discovery and loading for brain_cli.

A run reads up to four YAML files, from the most specific to the most
general::

    $BRAIN_CONFIG
    ./.brain/config.yml
    ./.brain/config.yaml
    ~/.config/brain-cli/config.yml

Files may pull in other files with ``!include`` and reference environment
variables as ``${VAR}`` or ``${VAR:-default}``. Top-level sections of a
more specific file replace the same sections of a more general one.

Usage:
    from brain_cli.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

GLOBAL_CONFIG_PATH = Path(".config") / "brain-cli" / "config.yml"
PROJECT_CONFIG_DIR = ".brain"

# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _global_config_path() -> Path:
    return Path.home() / GLOBAL_CONFIG_PATH


def discover_config_files() -> list[Path]:
    """Return the config files that exist, most specific first.

    ``BRAIN_CONFIG`` names an explicit file. It is resolved to an absolute
    path; the other candidates are relative to the current directory and
    the home directory.
    """
    candidates: list[Path] = []

    explicit = os.environ.get("BRAIN_CONFIG")
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates += [project_dir / "config.yml", project_dir / "config.yaml"]
    candidates.append(_global_config_path())

    found = [path for path in candidates if path.exists()]
    logger.debug("Config files found: %s", [str(p) for p in found])
    return found


# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class _IncludeLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include <path>``.

    Relative include paths are taken from the including file's directory.
    Each loader carries the chain of files currently being loaded so an
    include cycle is reported instead of recursing forever.
    ``yaml.SafeLoader`` itself is left untouched.
    """

    def __init__(self, stream, source: Path, chain: list[Path]) -> None:
        super().__init__(stream)
        self.source = source
        self.chain = chain

    def include(self, node: yaml.ScalarNode) -> Any:
        target = Path(self.construct_scalar(node)).expanduser()
        if not target.is_absolute():
            target = self.source.parent / target
        target = target.resolve()

        if target in self.chain:
            cycle = " -> ".join(str(p) for p in [*self.chain, target])
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.exists():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {self.source})"
            )
        return _load_yaml_with_includes(target, _include_stack=[*self.chain, target])


_IncludeLoader.add_constructor("!include", _IncludeLoader.include)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Parse one YAML file, expanding ``!include`` tags recursively."""
    path = path.resolve()
    chain = _include_stack if _include_stack is not None else [path]

    with open(path, "r", encoding="utf-8") as fh:
        loader = _IncludeLoader(fh, source=path, chain=chain)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# ${VAR} interpolation
# ---------------------------------------------------------------------------

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none. A ``${`` without a closing brace is kept as written.
    """
    return _ENV_REFERENCE.sub(
        lambda m: os.environ.get(m["name"]) or m["default"] or "", value
    )


def _interpolate_recursive(obj: Any) -> Any:
    """Apply ``interpolate_env_vars`` to every string inside *obj*."""
    match obj:
        case str():
            return interpolate_env_vars(obj)
        case dict():
            return {key: _interpolate_recursive(val) for key, val in obj.items()}
        case list():
            return [_interpolate_recursive(item) for item in obj]
        case _:
            return obj


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Read every discovered config file into one dict.

    Files are applied from the most general to the most specific, so a
    top-level section (``notion``, ``sync``, ``logging``) from a project
    file replaces the whole section from the global file. Interpolation
    runs once, on the merged result.

    Returns:
        The merged settings, or an empty dict when there are no files.

    Raises:
        yaml.YAMLError: If a file is not valid YAML.
        ValueError: On an include cycle.
        FileNotFoundError: If an included file is missing.
    """
    files = discover_config_files()
    if not files:
        logger.debug("No config files, running with defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(files):
        try:
            data = _load_yaml_with_includes(path)
        except Exception:
            logger.error("Could not load config file %s", path)
            raise

        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: expected a mapping at the top level, got %s",
                path,
                type(data).__name__,
            )
            continue
        logger.debug("Applying config file %s (sections: %s)", path, ", ".join(data))
        merged.update(data)

    return _interpolate_recursive(merged)


# ---------------------------------------------------------------------------
# Starter config
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# brain-cli configuration
#
# The Notion token can also be set via the NOTION_API_KEY environment
# variable or stored in ~/.config/notion/api_key.
#
# notion:
#   api_key: ${NOTION_API_KEY}
#   requests_per_second: 3
#
# Each collection maps a document type to a Notion database. Share every
# database with your integration before running `brain pull`.
#
sync:
  store_dir: ~/brain
  state_dir: ~/.cache/brain-cli
  default_type: notes
  collections:
    ideas:
      database_id: ""
      title_property: Name
    tasks:
      database_id: ""
      title_property: Task
    notes:
      database_id: ""
      title_property: Topic
    decisions:
      database_id: ""
      title_property: Decision
    projects:
      database_id: ""
      title_property: Project Name

# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the config file ``brain init`` should use.

    That is the most specific existing file, or the global path when none
    exists yet. Nothing is created.
    """
    found = discover_config_files()
    return found[0] if found else _global_config_path()


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter one if there is none.

    Args:
        target: Where to write the starter file. Defaults to
            ``resolve_config_path()``.

    Returns:
        Path of the existing or newly written config file.
    """
    found = discover_config_files()
    if found:
        logger.debug("Using existing config file %s", found[0])
        return found[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path
