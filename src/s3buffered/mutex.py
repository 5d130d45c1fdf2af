"""Single-slot asyncio mutex with an acquisition timeout.

Every mutating UploadSession operation runs inside one of these, which is
what keeps part numbering and buffer contents consistent when several tasks
drive the same session.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

from s3buffered import metrics
from s3buffered.errors import ConfigurationError, LockTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default acquisition timeout in seconds (1 minute)
DEFAULT_LOCK_TIMEOUT = 60.0


class AsyncMutex:
    """An asyncio lock that refuses to wait forever.

    Attributes:
        timeout: Seconds to wait for the lock before raising LockTimeoutError.
    """

    def __init__(self, timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        """Initialize the mutex.

        Args:
            timeout: Acquisition timeout in seconds; must be greater than zero.

        Raises:
            ConfigurationError: If timeout is not positive.
        """
        if timeout <= 0:
            raise ConfigurationError("Lock timeout must be greater than zero")
        self.timeout = timeout
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def _acquire(self) -> None:
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Lock not acquired within %.3fs", self.timeout)
            if metrics.lock_timeouts_total is not None:
                metrics.lock_timeouts_total.inc()
            raise LockTimeoutError(self.timeout) from None

    @contextlib.asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        """Hold the lock for the duration of an ``async with`` block."""
        await self._acquire()
        try:
            yield
        finally:
            self._lock.release()

    async def run(self, operation: Callable[[], Awaitable[None]]) -> None:
        """Run a no-result operation while holding the lock.

        Raises:
            LockTimeoutError: If the lock was not acquired in time. The
                operation is not started in that case.
        """
        async with self.hold():
            await operation()

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an operation while holding the lock and return its result.

        Raises:
            LockTimeoutError: If the lock was not acquired in time. The
                operation is not started in that case.
        """
        async with self.hold():
            return await operation()
