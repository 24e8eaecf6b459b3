import json
import logging
import os
import sys

# Level names accepted in config files and on the command line.
LOG_LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


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


def resolve_log_level(name: str | None, default: int = logging.WARNING) -> int:
    """Map a level name (``error``, ``warn``, ``DEBUG`` ...) to a logging level.

    Unknown or empty names fall back to *default*.
    """
    if not name:
        return default
    return LOG_LEVELS.get(name.strip().lower(), default)


def setup_logging(
    mode: str = "cli",
    level: str | None = None,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "mcp" for file logging (never stdout), "cli" for stderr logging.
        level: Level name (error, warn, info, debug). Overrides LOG_LEVEL.
        log_file: Custom log file path (overrides LOG_FILE env var).
        debug_format: "text" (default) or "json" for structured output.

    Environment variables:
        LOG_LEVEL: Level name used when *level* is not given.
                   Default: warn.
        LOG_FILE: Custom log file path for MCP mode.
                  Default: /tmp/omnivore-sync.log
    """
    log_level = resolve_log_level(level or os.getenv("LOG_LEVEL"))

    text_format = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if mode == "mcp":
        # stdio transport uses stdout for JSON-RPC messages
        final_log_file = log_file or os.getenv(
            "LOG_FILE", "/tmp/omnivore-sync.log"
        )
        logging.basicConfig(
            level=log_level,
            format="[%(asctime)s] [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            filename=final_log_file,
            filemode="a",
        )
    else:
        handlers: list[logging.Handler] = []
        stderr_handler = logging.StreamHandler(sys.stderr)

        if debug_format == "json":
            stderr_handler.setFormatter(
                JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
            )
        else:
            stderr_handler.setFormatter(
                logging.Formatter(
                    "[%(asctime)s] [%(levelname)s] %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
        handlers.append(stderr_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            if debug_format == "json":
                file_handler.setFormatter(
                    JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
                )
            else:
                file_handler.setFormatter(text_format)
            handlers.append(file_handler)

        logging.basicConfig(
            level=log_level,
            handlers=handlers,
        )

    # Silence third-party libs unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("apscheduler").setLevel(logging.WARNING)


def apply_logging_config(
    level: str | None = None, log_file: str | None = None
) -> None:
    """Apply the ``logging`` config section after the config files are read.

    Logging is configured before config discovery, so the file values are
    applied afterwards: *level* only when LOG_LEVEL is not set, *log_file*
    only when the root logger has no file handler yet.
    """
    root = logging.getLogger()
    if level and not os.getenv("LOG_LEVEL"):
        log_level = resolve_log_level(level)
        root.setLevel(log_level)
        if log_level == logging.DEBUG:
            logging.getLogger("urllib3").setLevel(logging.NOTSET)
            logging.getLogger("apscheduler").setLevel(logging.NOTSET)

    if log_file and not any(
        isinstance(h, logging.FileHandler) for h in root.handlers
    ):
        file_handler = logging.FileHandler(
            os.path.expanduser(log_file), mode="a"
        )
        file_handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(file_handler)
