"""Structured logging for Inkwell.

Every module logs through ``get_logger(__name__)`` with a snake_case event
name and keyword fields. The CLI calls ``configure_logging()`` once; from
then on both the proxy (``inkwell serve``) and the client commands append
JSON lines to one file, so a request can be followed from
``assistant_ask_started`` through ``proxy_request_received`` to
``llm_request_completed``.

Message bodies and section text are logged only at DEBUG. API keys and
access tokens are never logged.
"""

import os
from pathlib import Path
from typing import Any, Optional

import structlog


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def default_log_file() -> Path:
    """``~/.cache/inkwell/logs/inkwell.log``, creating the directory."""
    log_dir = Path.home() / ".cache" / "inkwell" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "inkwell.log"


def _log_level() -> str:
    level = os.environ.get("INKWELL_LOG_LEVEL", "INFO").upper()
    return level if level in LOG_LEVELS else "INFO"


def configure_logging(log_file: Optional[Path] = None) -> None:
    """
    Send JSON log lines to ``log_file`` (default: ``default_log_file()``).

    ``INKWELL_LOG_LEVEL`` picks the threshold (DEBUG, INFO, WARNING or
    ERROR; anything else means INFO). DEBUG adds outbound message lists
    and raw upstream replies.

    Example:
        INKWELL_LOG_LEVEL=DEBUG inkwell serve
        tail -f ~/.cache/inkwell/logs/inkwell.log | jq .
    """
    log_file = log_file or default_log_file()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            # Keep the warning glyph and non-Latin text readable in the file
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_log_level()),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_file, "a", encoding="utf-8")),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Structured logger for a module (pass ``__name__``)."""
    return structlog.get_logger(name)
