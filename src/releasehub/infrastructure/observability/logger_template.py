"""Shared logger helpers.

USAGE:
    from releasehub.infrastructure.observability.logger_template import (
        get_module_logger,
        log_operation,
    )

    logger = get_module_logger(__name__)

    async with log_operation(logger, "scan_recent_releases", days_back=7):
        await scan()
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from releasehub.domain.exceptions import DomainException


def get_module_logger(name: str) -> logging.Logger:
    """Get logger for module (use __name__)."""
    return logging.getLogger(name)


# Yo, every Façade operation runs inside one of these. Start/end lines with duration_ms, and
# the failure line tells you WHAT went wrong. Domain errors (bad link, not logged in, rate
# limit) are expected outcomes the UI shows to the user - warning, no traceback. Anything
# else is a bug: error + full traceback. Always re-raises, never swallows.
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncIterator[None]:
    """Log {operation}.started / .completed / .failed with automatic timing.

    Args:
        logger: Logger instance from get_module_logger()
        operation: Operation name (e.g. "analyze_playlist")
        **context: Extra fields for all three log lines (never pass tokens here!)
    """
    start = time.monotonic()
    logger.info(f"{operation}.started", extra=context)

    try:
        yield
    except DomainException as e:
        logger.warning(
            f"{operation}.failed",
            extra={
                **context,
                "duration_ms": int((time.monotonic() - start) * 1000),
                "error": e.message,
                "error_type": type(e).__name__,
            },
        )
        raise
    except Exception as e:
        logger.error(
            f"{operation}.failed",
            extra={
                **context,
                "duration_ms": int((time.monotonic() - start) * 1000),
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise

    logger.info(
        f"{operation}.completed",
        extra={**context, "duration_ms": int((time.monotonic() - start) * 1000)},
    )


__all__ = ["get_module_logger", "log_operation"]
