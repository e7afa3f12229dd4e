"""
Structured logging for scan workers.

Log lines emitted while a scan job runs carry the job's ``job_id`` and
``tenant_id`` through structlog context variables, so repository and engine
messages can be traced back to the job without passing ids around.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from ..config.settings import Settings, get_settings

_configured = False


def configure_logging(settings: Optional[Settings] = None, force: bool = False) -> bool:
    """
    Configure structlog on top of the standard library logger.

    Console rendering is used in debug mode or with ``log_format=console``,
    JSON otherwise. Repeated calls are ignored unless ``force`` is set.

    Returns:
        True if logging was configured by this call
    """
    global _configured
    if _configured and not force:
        return False

    settings = settings or get_settings()
    use_console = settings.app_debug or settings.log_format.lower() == "console"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if use_console else structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True
    return True


@contextmanager
def job_log_context(job_id: str, tenant_id: Optional[str] = None) -> Iterator[None]:
    """Bind a scan job's identity to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(job_id=job_id, tenant_id=tenant_id):
        yield
