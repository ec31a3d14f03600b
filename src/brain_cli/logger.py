import json
import logging
import os
import sys

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured debug output.

    Produces one JSON object per log record with fields: ts, level, logger, msg.
    Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATE_FORMAT)
    fmt = "[%(asctime)s] [%(levelname)s] "
    if with_name:
        fmt += "%(name)s "
    return logging.Formatter(fmt + "%(message)s", datefmt=_DATE_FORMAT)


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    default_level: str = "INFO",
) -> None:
    """
    Configure logging for a CLI invocation.

    Logs always go to stderr so that reports printed on stdout stay
    machine-readable. When a log file is given, records are also appended
    to it (with the logger name included).

    Args:
        debug: If True, overrides LOG_LEVEL to DEBUG.
        log_file: Optional log file path.
        debug_format: "text" (default) or "json" for structured output.
        default_level: Level used when LOG_LEVEL is unset, typically the
            ``logging.level`` value of the config file.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    env_level = os.getenv("LOG_LEVEL", default_level).upper()

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(_make_formatter(debug_format, with_name=False))
    handlers: list[logging.Handler] = [stderr_handler]

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(_make_formatter(debug_format, with_name=True))
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
    )

    # Silence third-party libs unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
