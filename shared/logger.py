"""
Objlens Structured Logger
==========================

Provides :class:`ObjLensLogger`, a small facade over :mod:`logging` that
can emit Rich console output and plain-text or JSON-lines log files.

Records carry the emitting *component* (``"loader"``, ...) and, inside an
:meth:`ObjLensLogger.operation` block, the current *operation* name, so a
JSON log can be filtered by either.

References:
    - Python logging HOWTO. https://docs.python.org/3/howto/logging.html
    - Rich library. https://github.com/Textualize/rich
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

if TYPE_CHECKING:
    from shared.config import ObjLensConfig

_LOG_THEME = Theme(
    {
        "log.level.debug": "dim cyan",
        "log.level.info": "bold bright_blue",
        "log.level.warning": "bold yellow",
        "log.level.error": "bold red",
    }
)

_ROOT_LOGGER_NAME = "objlens"

# Attribute set on handlers this module installs.
_OWNED_MARK = "_objlens_owned"


# ========================== JSON Formatter =================================


class _JSONFormatter(logging.Formatter):
    """Format each record as one JSON object per line.

    Output fields::

        {
          "timestamp": "2024-05-01T12:00:00+00:00",
          "level": "INFO",
          "logger": "objlens.loader",
          "message": "...",
          "component": "loader",
          "operation": "detect",
          "extra": { ... }
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr in ("component", "operation"):
            val = getattr(record, attr, None)
            if val is not None:
                entry[attr] = val

        extra = getattr(record, "objlens_extra", None)
        if extra is not None:
            entry["extra"] = extra

        if record.exc_info and record.exc_info[1] is not None:
            entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def _console_handler(level: int) -> RichHandler:
    return RichHandler(
        console=Console(theme=_LOG_THEME, stderr=True),
        level=level,
        show_path=False,
        show_time=True,
        rich_tracebacks=True,
        markup=False,
    )


# ========================== ObjLensLogger ==================================


class ObjLensLogger:
    """Context-aware logger bound to one objlens component.

    Usage::

        log = ObjLensLogger("loader", log_file="objlens.log", json_logs=True)
        with log.operation("detect"):
            log.debug("Trying %s", "ELF")

    Args:
        component:       Component name; the stdlib logger is
                         ``objlens.<component>``.
        log_level:       Minimum severity name.  Applied only when a handler
                         is attached; otherwise the host controls the level.
        log_file:        Rotating log file path, or ``None`` for no file.
        json_logs:       Write JSON lines instead of plain text to the file.
        max_bytes:       Log-file size that triggers rotation.
        backup_count:    Rotated files to keep.
        console_output:  Attach a Rich stderr handler.
    """

    def __init__(
        self,
        component: str,
        *,
        log_level: str = "WARNING",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 10_485_760,
        backup_count: int = 3,
        console_output: bool = False,
    ) -> None:
        self._component = component
        self._operation: str | None = None

        level = getattr(logging, log_level.upper(), logging.WARNING)
        self._logger = logging.getLogger(f"{_ROOT_LOGGER_NAME}.{component}")

        # Re-instantiation replaces our handlers instead of stacking them.
        # Handlers the host application attached are left in place.
        owned = [h for h in self._logger.handlers if getattr(h, _OWNED_MARK, False)]
        for handler in owned:
            self._logger.removeHandler(handler)
            handler.close()

        if not (console_output or log_file):
            # Level and propagation stay under the host application's control;
            # only undo the propagation switch an earlier instance made.
            if owned:
                self._logger.propagate = True
            return

        self._logger.setLevel(level)
        self._logger.propagate = False

        if console_output:
            self._add_handler(_console_handler(level))

        if log_file is not None:
            file_path = Path(log_file)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                filename=str(file_path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            fh.setLevel(level)
            if json_logs:
                fh.setFormatter(_JSONFormatter())
            else:
                fh.setFormatter(
                    logging.Formatter(
                        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                        datefmt="%Y-%m-%dT%H:%M:%S%z",
                    )
                )
            self._add_handler(fh)

    def _add_handler(self, handler: logging.Handler) -> None:
        setattr(handler, _OWNED_MARK, True)
        self._logger.addHandler(handler)

    @classmethod
    def from_config(cls, component: str, config: ObjLensConfig) -> ObjLensLogger:
        """Build a logger from the ``[logging]`` section of *config*."""
        settings = config.logging
        return cls(
            component,
            log_level=settings.log_level,
            log_file=settings.log_file,
            json_logs=settings.log_json,
            console_output=settings.console_output,
        )

    # ------------------------------------------------------------------ #
    #  Context management -- operation scope
    # ------------------------------------------------------------------ #

    class _OperationContext:
        """Temporarily binds an operation name to the parent logger."""

        def __init__(self, parent: ObjLensLogger, operation: str) -> None:
            self._parent = parent
            self._operation = operation
            self._prev: str | None = None

        def __enter__(self) -> ObjLensLogger:
            self._prev = self._parent._operation
            self._parent._operation = self._operation
            return self._parent

        def __exit__(self, *exc: Any) -> None:
            self._parent._operation = self._prev

    def operation(self, name: str) -> _OperationContext:
        """Stamp every record logged inside the block with *name*."""
        return self._OperationContext(self, name)

    # ------------------------------------------------------------------ #
    #  Log methods
    # ------------------------------------------------------------------ #

    def _enrich(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        extra = kwargs.pop("extra", None) or {}

        # Non-standard keyword arguments travel as structured extra data.
        custom: dict[str, Any] = {}
        for key in list(kwargs):
            if key not in ("exc_info", "stack_info", "stacklevel"):
                custom[key] = kwargs.pop(key)

        extra["component"] = self._component
        extra["operation"] = self._operation
        if custom:
            extra["objlens_extra"] = custom

        kwargs["extra"] = extra
        return kwargs

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **self._enrich(kwargs))

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **self._enrich(kwargs))

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **self._enrich(kwargs))

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **self._enrich(kwargs))

    # ------------------------------------------------------------------ #
    #  Timing helper
    # ------------------------------------------------------------------ #

    class _TimingContext:
        """Logs the elapsed time of a block at DEBUG level."""

        def __init__(self, logger_inst: ObjLensLogger, label: str) -> None:
            self._logger = logger_inst
            self._label = label
            self._start: float = 0.0

        def __enter__(self) -> ObjLensLogger._TimingContext:
            self._start = time.perf_counter()
            return self

        def __exit__(self, *exc: Any) -> None:
            self._logger.debug(
                "%s took %.3f ms", self._label, self.elapsed * 1000.0
            )

        @property
        def elapsed(self) -> float:
            """Seconds elapsed since entering the block."""
            return time.perf_counter() - self._start

    def timed(self, label: str) -> _TimingContext:
        """Context manager that logs how long the block took."""
        return self._TimingContext(self, label)

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def component(self) -> str:
        return self._component

    @property
    def underlying(self) -> logging.Logger:
        """Direct access to the stdlib :class:`logging.Logger`."""
        return self._logger
