import json
import logging
import os
import sys


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
        return JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    fmt = (
        "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
        if with_name
        else "[%(asctime)s] [%(levelname)s] %(message)s"
    )
    return logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure logging for a sync run.

    Messages always go to stderr so that stdout stays free for the report.
    When a log file is given (argument or LOG_FILE env var) records are
    also appended to that file.

    Args:
        debug: If True, overrides LOG_LEVEL to DEBUG.
        log_file: Custom log file path (overrides LOG_FILE env var).
        debug_format: "text" (default) or "json" for structured output.
        level: Level name from the YAML config; LOG_LEVEL env var wins.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO.
        LOG_FILE: Log file path used when no log_file argument is given.
    """
    env_level = os.getenv("LOG_LEVEL", level or "INFO").upper()

    # debug parameter overrides environment
    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    handlers: list[logging.Handler] = []
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(_make_formatter(debug_format, with_name=False))
    handlers.append(stderr_handler)

    final_log_file = log_file or os.getenv("LOG_FILE")
    if final_log_file:
        file_handler = logging.FileHandler(final_log_file, mode="a")
        file_handler.setFormatter(_make_formatter(debug_format, with_name=True))
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
    )

    # charset_normalizer is chatty at INFO while probing encodings
    if log_level != logging.DEBUG:
        logging.getLogger("charset_normalizer").setLevel(logging.WARNING)
