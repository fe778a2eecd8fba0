"""Structured logging for RepoPlane.

Events are snake_case structlog events rendered through stdlib logging, so
each configured output (stderr, stdout or a file) gets its own level and
its own renderer (console or JSON).

Two processors run on every event:
- request correlation: the id set by set_request_id() is attached as
  ``request_id``; it is metadata only and never read by authorization
- credential scrubbing: raw project tokens (``rpt_...``) are masked
  wherever they appear in event values
"""

from __future__ import annotations

import logging
import re
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from repoplane.config.models import LoggingConfig

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

# Same shape as repoplane.auth.credentials.generate_token output
_RAW_TOKEN_RE = re.compile(r"rpt_[A-Za-z0-9_-]{8,}")
_MASK = "rpt_***"

# Library loggers that are noisy below WARNING
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set or generate the correlation id for the current request."""
    rid = request_id or uuid4().hex[:12]
    _request_id.set(rid)
    return rid


def clear_request_id() -> None:
    _request_id.set(None)


def _add_request_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if rid := get_request_id():
        event_dict["request_id"] = rid
    return event_dict


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        return _RAW_TOKEN_RE.sub(_MASK, value)
    if isinstance(value, dict):
        return {k: _scrub(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_scrub(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_scrub(v) for v in value)
    return value


def scrub_tokens(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Mask raw project tokens in every event value."""
    return {key: _scrub(value) for key, value in event_dict.items()}


def _level(name: str | None, default: int = logging.INFO) -> int:
    if not name:
        return default
    return logging.getLevelNamesMapping().get(name.upper(), default)


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str | None = None,
) -> None:
    """Configure structlog and the root logger's handlers.

    Safe to call repeatedly; handlers from a previous call are replaced.

    Args:
        config: Logging section of RepoPlaneConfig. Defaults to one
            stderr output.
        json_format: Render the default stderr output as JSON. Ignored
            when config is given.
        level: Overrides config.level (and per-output levels above it),
            e.g. from the CLI's --verbose flag.
    """
    from repoplane.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _level(level or config.level)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _add_request_id,  # type: ignore[list-item]
        scrub_tokens,  # type: ignore[list-item]
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))

    for output in config.outputs:
        output_level = _level(output.level, root_level)
        if level is not None:
            output_level = min(output_level, root_level)
        handler = _create_handler(output.destination)
        handler.setLevel(output_level)
        handler.setFormatter(_formatter(output.format, output.destination, shared_processors))
        root_logger.addHandler(handler)


def _formatter(
    fmt: str, destination: str, shared_processors: list[structlog.types.Processor]
) -> logging.Formatter:
    if fmt == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        is_tty = destination in ("stderr", "stdout") and sys.stderr.isatty()
        renderer = structlog.dev.ConsoleRenderer(colors=is_tty, pad_event_to=0, pad_level=False)
    return structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )


def _create_handler(destination: str) -> logging.Handler:
    if destination == "stderr":
        return logging.StreamHandler(sys.stderr)
    if destination == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a")


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
