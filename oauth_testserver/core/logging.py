"""Logging configuration for the test server.

Every LogRecord created while a request is in flight carries the
request's context: ``request_id`` (set by RequestContextMiddleware) and
``client_id`` (bound by the OAuth endpoints once the client is known).
The context is attached by a LogRecord factory rather than a logger
filter, so records from any logger get it, including the ones pytest's
caplog captures.

Two formatters, picked by ``LOG_JSON``:

  _ContainerFormatter: one line per record, for pytest output or a
    terminal.  Request-scoped records are tagged ``[req=... client=...]``
    and WARNING and above carry [file:line].

  _JsonFormatter: one JSON object per line with the context fields as
    top-level keys.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
client_id_var: ContextVar[str | None] = ContextVar("client_id", default=None)

_QUIET_LOGGERS = ("httpcore", "httpx", "asyncio")


def _context_record_factory(base):
    def factory(*args, **kwargs) -> logging.LogRecord:
        record = base(*args, **kwargs)
        record.request_id = request_id_var.get()
        record.client_id = client_id_var.get()
        return record

    factory._oauth_context = True  # type: ignore[attr-defined]
    return factory


def install_record_context() -> None:
    """Wrap the LogRecord factory once, however often it is called."""
    current = logging.getLogRecordFactory()
    if not getattr(current, "_oauth_context", False):
        logging.setLogRecordFactory(_context_record_factory(current))


class _ContainerFormatter(logging.Formatter):
    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s%(context)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        # .NNN goes before the +HHMM offset
        return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"

    @staticmethod
    def _context(record: logging.LogRecord) -> str:
        request_id = getattr(record, "request_id", None)
        if request_id is None:
            return ""
        client_id = getattr(record, "client_id", None)
        if client_id is None:
            return f" [req={request_id[:8]}]"
        return f" [req={request_id[:8]} client={client_id}]"

    def format(self, record: logging.LogRecord) -> str:
        record.context = self._context(record)
        fmt = self._BASE_FMT
        if record.levelno >= logging.WARNING:
            fmt += self._LOC_SUFFIX
        self._style._fmt = fmt
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter."""

    _CONTEXT_FIELDS = (
        "request_id",
        "client_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "hook",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value)
            for key in self._CONTEXT_FIELDS
            if (value := getattr(record, key, None)) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Send all records to stdout through one handler.

    Unknown level names fall back to INFO.  httpx and friends never log
    below WARNING, since every send would otherwise add transport noise.
    """
    install_record_context()
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
