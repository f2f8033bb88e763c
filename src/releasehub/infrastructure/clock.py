"""System clock adapter."""

import asyncio
import time

from releasehub.domain.ports import IClock


class SystemClock(IClock):
    """Real time and real asyncio sleeps."""

    def time(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
        else:
            # still yield so other tasks get a turn
            await asyncio.sleep(0)
