# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Logging setup for starbridge.

Everything here sits on the standard :mod:`logging` module.  Plain, colored
and structured JSON output are supported; the JSON serializer is pluggable
so applications can bring ``orjson`` or similar without starbridge depending
on it.

Records carrying a ``duration_ms`` attribute (the adapter attaches one to its
per-request debug lines) get a ``[12.35 ms]`` suffix in the text formats.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
import os
from typing import Any, ClassVar, Final


RESET: Final[str] = "\033[0m"

DEBUG_COLOR: Final[str] = "\033[36m"
INFO_COLOR: Final[str] = "\033[32m"
WARNING_COLOR: Final[str] = "\033[33m"
ERROR_COLOR: Final[str] = "\033[1;31m"
CRITICAL_COLOR: Final[str] = "\033[1;35m"
LOGGER_COLOR: Final[str] = "\033[94m"
DURATION_COLOR: Final[str] = "\033[90m"

DEFAULT_LOGGER_NAME: Final[str] = "starbridge"
ENV_LOG_LEVEL: Final[str] = "STARBRIDGE_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "STARBRIDGE_LOG_JSON"
ENV_NO_COLOR: Final[str] = "NO_COLOR"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

JsonSerializer = Callable[[dict[str, Any]], str]
PayloadTransformer = Callable[[dict[str, Any]], dict[str, Any]]

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "context", "taskName"}


def _duration_suffix(record: logging.LogRecord) -> str:
    duration = getattr(record, "duration_ms", None)
    if not isinstance(duration, (int, float)):
        return ""
    return f" [{duration:.2f} ms]"


class PlainFormatter(logging.Formatter):
    """Text formatter that appends the request duration when present."""

    def format(self, record: logging.LogRecord) -> str:
        return super().format(record) + _duration_suffix(record)


class ColoredFormatter(PlainFormatter):
    """ANSI-colored variant of :class:`PlainFormatter`.

    Override ``LEVEL_COLORS`` to change the palette.
    """

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": DEBUG_COLOR,
        "INFO": INFO_COLOR,
        "WARNING": WARNING_COLOR,
        "ERROR": ERROR_COLOR,
        "CRITICAL": CRITICAL_COLOR,
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname, name = record.levelname, record.name
        record.levelname = f"{self.LEVEL_COLORS.get(levelname, '')}{levelname}{RESET}"
        record.name = f"{LOGGER_COLOR}{name}{RESET}"
        try:
            rendered = logging.Formatter.format(self, record)
        finally:
            record.levelname, record.name = levelname, name

        suffix = _duration_suffix(record)
        if suffix:
            rendered += f"{DURATION_COLOR}{suffix}{RESET}"
        return rendered


class StarbridgeHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Stream handler installed by :func:`setup_logger`.

    The marker class lets :func:`setup_logger` find and replace its own
    handler without touching handlers the host application installed.
    """


class StructuredJSONFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def __init__(
        self,
        serializer: JsonSerializer,
        *,
        datefmt: str | None = None,
        payload_transformer: PayloadTransformer | None = None,
    ) -> None:
        super().__init__(datefmt=datefmt)
        self._serializer = serializer
        self._transformer = payload_transformer

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        context: dict[str, Any] = {}
        explicit = getattr(record, "context", None)
        if isinstance(explicit, dict):
            context.update(explicit)
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                context.setdefault(key, value)
        if context:
            payload["context"] = context

        if self._transformer is not None:
            payload = self._transformer(payload)
        return self._serializer(payload)


def _json_dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _env_flag(key: str) -> bool:
    value = os.getenv(key)
    return value is not None and value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _installed_handlers(root: logging.Logger) -> list[StarbridgeHandler]:
    return [handler for handler in root.handlers if isinstance(handler, StarbridgeHandler)]


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    use_color: bool | None = None,
    json_serializer: JsonSerializer | None = None,
    payload_transformer: PayloadTransformer | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    force: bool = False,
) -> None:
    """Attach a starbridge handler to the root logger.

    Args:
        level: Log level. Falls back to ``STARBRIDGE_LOG_LEVEL``, then INFO.
        use_json: Emit JSON lines. Defaults to ``STARBRIDGE_LOG_JSON``.
        use_color: Colorize text output. Defaults to on unless ``NO_COLOR``
            is set or JSON output is selected.
        json_serializer: Turns the payload dict into a string.
        payload_transformer: Rewrites the payload before serialization.
        fmt: Format string for text output.
        datefmt: Date format for both outputs.
        force: Replace a previously installed starbridge handler.
    """
    root = logging.getLogger()
    existing = _installed_handlers(root)
    if existing and not force:
        return
    for handler in existing:
        root.removeHandler(handler)
        handler.close()

    resolved_level = _resolve_level(level)
    root.setLevel(resolved_level)

    as_json = _env_flag(ENV_LOG_JSON) if use_json is None else use_json
    if use_color is None:
        use_color = not as_json and not os.getenv(ENV_NO_COLOR)

    formatter: logging.Formatter
    if as_json:
        formatter = StructuredJSONFormatter(
            json_serializer or _json_dumps, datefmt=datefmt, payload_transformer=payload_transformer
        )
    elif use_color:
        formatter = ColoredFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)
    else:
        formatter = PlainFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)

    handler = StarbridgeHandler()
    handler.setLevel(resolved_level)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger, installing the default handler on first use."""
    if not _installed_handlers(logging.getLogger()):
        setup_logger()
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "ColoredFormatter",
    "PlainFormatter",
    "StarbridgeHandler",
    "StructuredJSONFormatter",
    "get_logger",
    "setup_logger",
]
