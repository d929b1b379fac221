"""
Structured Logging Setup

All component loggers hang off one "zkmirror" parent that owns the
only stdout handler. Components (mirror, mirror.watcher, ...) set their
own level and propagate to it. Uses JSON format for structured logs in
production.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

ROOT_LOGGER_NAME = "zkmirror"

# Prefix of per-leaf reactor thread names
WATCH_THREAD_PREFIX = "zkmirror-watch:"

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "component",
    "message", "taskName",
))


class JsonFormatter(logging.Formatter):
    """One JSON object per record; extras become top-level fields"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }

        # Reactor threads are named after the leaf they watch
        if record.threadName and record.threadName.startswith(WATCH_THREAD_PREFIX):
            log_data["watch"] = record.threadName[len(WATCH_THREAD_PREFIX):]

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """Stamps the component name on every record, keeping caller extras"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**kwargs.get("extra", {}), "component": self.extra["component"]}
        return msg, kwargs


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _configure_root(log_level: str, json_format: bool) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        if json_format:
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
        root.addHandler(handler)
        root.setLevel(_level(log_level))
        # Host applications keep their own root logger untouched
        root.propagate = False
    return root


def setup_logging(
    component: str,
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """
    Set up structured logging for a component.

    The shared handler is installed on first use; later calls only
    create the component logger and set its level.

    Args:
        component: Dotted component name (e.g., "mirror", "mirror.watcher")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (True for production, False for dev)

    Returns:
        Configured logger instance
    """
    _configure_root(log_level, json_format)
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
    logger.setLevel(_level(log_level))
    return logger


def get_service_logger(component: str) -> ComponentLoggerAdapter:
    """Component logger configured from ZKMIRROR_LOG_LEVEL / ZKMIRROR_LOG_FORMAT"""
    log_level = os.environ.get("ZKMIRROR_LOG_LEVEL", "INFO")
    json_format = os.environ.get("ZKMIRROR_LOG_FORMAT", "json").lower() == "json"

    logger = setup_logging(component, log_level, json_format)
    return ComponentLoggerAdapter(logger, {"component": component})


def set_log_level(log_level: str) -> None:
    """Change the level of the parent and every component logger already created"""
    numeric_level = _level(log_level)
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(numeric_level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith(f"{ROOT_LOGGER_NAME}.") and isinstance(logger, logging.Logger):
            logger.setLevel(numeric_level)


# Convenience loggers for common operations
def log_document_written(
    logger: logging.LoggerAdapter,
    path: str,
    byte_count: int,
) -> None:
    """Log a completed document write"""
    logger.info(
        f"Wrote {byte_count} bytes to {path}",
        extra={"path": path, "bytes": byte_count},
    )


def log_node_change(
    logger: logging.LoggerAdapter,
    path: str,
    event_type: str,
) -> None:
    """Log a change notification on a watched leaf"""
    logger.info(
        f"Node value has been changed: {path} ({event_type})",
        extra={"path": path, "event_type": event_type},
    )
