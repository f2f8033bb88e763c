"""Progress reporting helper."""

import logging

from releasehub.domain.dtos import ProgressUpdate
from releasehub.domain.ports import ProgressCallback

logger = logging.getLogger(__name__)


# Hey future me - progress is a side channel. A UI callback that blows up must NOT kill a
# scan that's 80% done, so we log and move on.
def emit_progress(
    callback: ProgressCallback | None, current: int, total: int, message: str
) -> None:
    """Send a ProgressUpdate to the callback, if there is one."""
    if callback is None:
        return
    try:
        callback(ProgressUpdate(current=current, total=total, message=message))
    except Exception:
        logger.warning(f"Progress callback failed for '{message}'", exc_info=True)


__all__ = ["emit_progress"]
