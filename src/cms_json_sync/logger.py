import json
import logging
import os
import sys

DEFAULT_MCP_LOG_FILE = "/tmp/cms-json-sync.log"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, msg (and exc if any)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    name = " %(name)s" if with_name else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s", datefmt=_DATEFMT
    )


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """
    Configure logging for the CLI or the MCP server.

    Args:
        mode: "mcp" logs to a file only, since stdout carries JSON-RPC.
            "cli" logs to stderr, so exported JSON on stdout stays clean.
        debug: Force DEBUG level regardless of LOG_LEVEL.
        log_file: Log file path. In CLI mode it is written in addition to
            stderr; in MCP mode it replaces LOG_FILE.
        debug_format: "text" (default) or "json".

    Environment variables:
        LOG_LEVEL: DEBUG, INFO, WARNING or ERROR.
                   Default: WARNING for MCP mode, INFO for CLI mode.
        LOG_FILE: Log file for MCP mode.
                  Default: /tmp/cms-json-sync.log
    """
    default_level = "WARNING" if mode == "mcp" else "INFO"
    if debug:
        log_level = logging.DEBUG
    else:
        env_level = os.getenv("LOG_LEVEL", default_level).upper()
        log_level = getattr(logging, env_level, logging.INFO)

    if mode == "mcp":
        logging.basicConfig(
            level=log_level,
            format="[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
            datefmt=_DATEFMT,
            filename=log_file or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE),
            filemode="a",
        )
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_formatter(debug_format, with_name=False))
        handlers: list[logging.Handler] = [stderr_handler]

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setFormatter(_formatter(debug_format, with_name=True))
            handlers.append(file_handler)

        logging.basicConfig(level=log_level, handlers=handlers)

    # The MCP SDK logs every request at INFO.
    if log_level != logging.DEBUG:
        logging.getLogger("mcp").setLevel(logging.WARNING)
