import asyncio
from contextlib import asynccontextmanager


class PoolRejected(Exception):
    """Raised when every slot is busy and the waiting queue is full."""


class JudgePool:
    """Fixed number of concurrent judge calls with a bounded waiting queue.

    Arrivals beyond ``max_pending`` waiters are rejected immediately
    instead of queuing without bound.
    """

    def __init__(self, size: int, max_pending: int):
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self.size = size
        self.max_pending = max(max_pending, 0)
        self._semaphore = asyncio.Semaphore(size)
        self.active = 0
        self.waiting = 0

    @asynccontextmanager
    async def slot(self):
        if self.active >= self.size and self.waiting >= self.max_pending:
            raise PoolRejected(f"Judge queue is full ({self.waiting} waiting)")
        self.waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self.waiting -= 1
        self.active += 1
        try:
            yield
        finally:
            self.active -= 1
            self._semaphore.release()
