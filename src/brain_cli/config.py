"""Runtime configuration for the brain CLI.

Reads Notion credentials and local paths from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    NOTION_API_KEY: Notion integration token (required for remote commands)
    BRAIN_STORE_DIR: Directory holding the local Markdown documents
        (optional, default: ~/brain)
    BRAIN_STATE_DIR: Directory for the sync ledger and conflict report
        (optional, default: ~/.cache/brain-cli)
    BRAIN_REQUESTS_PER_SECOND: Client-side rate limit (optional, default: 3)
    BRAIN_DEBUG: Enable debug logging (optional, default: false)

When no API key is configured anywhere else, the key file
``~/.config/notion/api_key`` is read as a last resort.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_NOTION_VERSION = "2022-06-28"
DEFAULT_STORE_DIR = "~/brain"
DEFAULT_STATE_DIR = "~/.cache/brain-cli"
DEFAULT_REQUESTS_PER_SECOND = 3.0
API_KEY_FILE = Path("~/.config/notion/api_key")


@dataclass
class Config:
    api_key: str
    store_dir: Path
    state_dir: Path
    notion_version: str = DEFAULT_NOTION_VERSION
    requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND
    debug: bool = False


def validate_config(config: Config, require_api_key: bool = True) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.
        require_api_key: Whether an empty API key is an error. Offline
            commands (``list``, ``init``) pass False.

    Raises:
        ValueError: If the API key is missing or a numeric value is out of range.
    """
    config.api_key = config.api_key.strip()

    if require_api_key and not config.api_key:
        raise ValueError(
            "Notion API key not found. Set NOTION_API_KEY environment variable, "
            "add 'api_key' to the notion section of config.yml, "
            f"or write it to {API_KEY_FILE}."
        )

    if not (0 < config.requests_per_second <= 50):
        raise ValueError(
            f"Invalid requests_per_second '{config.requests_per_second}': "
            "must be a number greater than 0 and at most 50"
        )

    if not config.notion_version.strip():
        raise ValueError("Notion API version cannot be empty.")


def _read_key_file(path: Path = API_KEY_FILE) -> str | None:
    """Return the API key stored in *path*, or None when it is absent."""
    key_path = path.expanduser()
    if not key_path.is_file():
        return None
    key = key_path.read_text(encoding="utf-8").strip()
    return key or None


def load_config(
    api_key: str | None = None,
    store_dir: str | None = None,
    state_dir: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
    require_api_key: bool = True,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        api_key: Override Notion API key.
        store_dir: Override local document directory.
        state_dir: Override ledger directory.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML ``notion`` and
            ``sync`` sections. Used when CLI arg and env var are both unset.
        require_api_key: Raise when no API key can be found.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If required config is missing or a value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > key file / default ---

    final_key = (
        api_key
        or os.getenv("NOTION_API_KEY")
        or fb.get("api_key")
        or _read_key_file()
        or ""
    )

    final_store = (
        store_dir
        or os.getenv("BRAIN_STORE_DIR")
        or fb.get("store_dir")
        or DEFAULT_STORE_DIR
    )
    final_state = (
        state_dir
        or os.getenv("BRAIN_STATE_DIR")
        or fb.get("state_dir")
        or DEFAULT_STATE_DIR
    )
    final_version = fb.get("notion_version") or DEFAULT_NOTION_VERSION

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("BRAIN_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    rate_raw = os.getenv("BRAIN_REQUESTS_PER_SECOND")
    if rate_raw is not None:
        try:
            final_rate = float(rate_raw)
        except ValueError:
            raise ValueError(
                f"Invalid BRAIN_REQUESTS_PER_SECOND '{rate_raw}': must be a number greater than 0"
            ) from None
    elif "requests_per_second" in fb:
        final_rate = float(fb["requests_per_second"])
    else:
        final_rate = DEFAULT_REQUESTS_PER_SECOND

    config = Config(
        api_key=final_key,
        store_dir=Path(final_store).expanduser(),
        state_dir=Path(final_state).expanduser(),
        notion_version=final_version,
        requests_per_second=final_rate,
        debug=final_debug,
    )

    validate_config(config, require_api_key=require_api_key)

    return config
