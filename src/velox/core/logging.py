"""structlog setup for velox.

Everything is written to stderr so stdout carries only query output.
Connection targets and DSNs flow through log events, so a redaction
processor masks credentials before rendering.
"""

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

_SECRET_KEYS = frozenset({"password", "passwd", "dsn_password", "sentry_dsn"})
_URL_CREDENTIALS_RE = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)(?P<user>[^:/@\s]+):[^@/\s]+@", re.I)


def _redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in event_dict.items():
        if key in _SECRET_KEYS and value is not None:
            event_dict[key] = "***"
        elif isinstance(value, str) and "://" in value:
            event_dict[key] = _URL_CREDENTIALS_RE.sub(r"\g<scheme>\g<user>:***@", value)
    return event_dict


class _StderrLoggerFactory:
    # Looks sys.stderr up per logger; CliRunner swaps the stream between runs.
    def __call__(self, *args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=sys.stderr)


def setup_logging(verbose: bool = False, json_output: bool = False) -> None:
    """Configure structlog.

    Args:
        verbose: Log at DEBUG instead of INFO (statement text, step progress).
        json_output: Render one JSON object per line instead of console text.
    """
    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.INFO
        ),
        context_class=dict,
        logger_factory=_StderrLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger bound to ``name``.

    Call inside functions, not at import time, so setup_logging() has run.
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger


@contextmanager
def bound_context(**values: Any) -> Iterator[None]:
    """Attach key/values to every log event emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield
