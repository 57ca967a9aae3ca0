"""Logging setup shared by the ingest API and the worker."""

import json
import logging
import sys
from datetime import datetime, timezone

from ..config.settings import LoggingConfig


TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(service)s %(name)s: %(message)s"

# Attributes every LogRecord carries; anything else was passed through `extra`
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

NOISY_LOGGERS = ("asyncpg", "aiohttp.access", "redis")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with `extra` fields carried through."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        )
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ServiceContextFilter(logging.Filter):
    """Stamps every record with the emitting service's name."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service_name
        return True


def _make_handler(output: str) -> logging.Handler:
    if output.lower() == "stdout":
        return logging.StreamHandler(sys.stdout)
    if output.lower() == "stderr":
        return logging.StreamHandler(sys.stderr)
    return logging.FileHandler(output)


def setup_logging(config: LoggingConfig, service_name: str = "site-analytics") -> None:
    """
    Route all records through one handler on the root logger.

    `config.format` selects `json` or plain text; `config.output` is
    `stdout`, `stderr` or a file path.
    """
    handler = _make_handler(config.output)
    if config.format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    handler.addFilter(ServiceContextFilter(service_name))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(config.level.upper())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={config.level}, format={config.format}, service={service_name}"
    )


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log `message` with each keyword attached as a `ctx_<name>` field."""
    logger.log(level, message, extra={f"ctx_{key}": value for key, value in context.items()})
