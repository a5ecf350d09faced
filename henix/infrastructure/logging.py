"""
Centralized Logging

Architectural Intent:
- Provides human-readable or structured JSON logging for all henix components
- Configured exactly once, from the loaded HenixConfig and CLI flags
- Node runs log through NodeLoggerAdapter so every line names its node
"""

import json
import logging
import sys
from datetime import datetime, UTC
from typing import Any, MutableMapping


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        node = getattr(record, "node", None)
        if node:
            log_entry["node"] = node
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class NodeLoggerAdapter(logging.LoggerAdapter):
    """Prefixes messages with the node name and tags records with it."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("node", self.extra["node"])
        kwargs["extra"] = extra
        return f"[{self.extra['node']}] {msg}", kwargs


def node_logger(logger: logging.Logger, node: str) -> NodeLoggerAdapter:
    return NodeLoggerAdapter(logger, {"node": node})


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
) -> None:
    """Configure logging for the henix application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, etc.)
        json_format: If True, use JSON structured output. Otherwise human-readable.
    """
    root = logging.getLogger("henix")
    root.setLevel(level)

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )

    root.addHandler(handler)


def parse_level(name: str, default: int = logging.INFO) -> int:
    """Map a level name like "debug" or "WARNING" to its logging constant."""
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else default
