"""
Memory Persistence Worker.

Explicit scheduled task that flushes conversation memory to disk on a
fixed interval and once more on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from .conversation import ConversationMemory

logger = logging.getLogger(__name__)


@dataclass
class PersistenceMetrics:
    """Metrics for monitoring memory persistence."""

    flushes: int = 0
    skipped: int = 0  # Nothing changed since the last flush
    failures: int = 0
    last_flush_at: Optional[float] = None
    last_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "flushes": self.flushes,
            "skipped": self.skipped,
            "failures": self.failures,
            "last_flush_at": self.last_flush_at,
            "last_error": self.last_error,
        }


class MemoryPersistenceWorker:
    """Periodic memory flusher.

    Usage:
        worker = MemoryPersistenceWorker(memory, interval_seconds=30)
        await worker.start()

        # On shutdown (performs a final flush)
        await worker.stop()
    """

    def __init__(self, memory: ConversationMemory, interval_seconds: float = 30.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.memory = memory
        self.interval_seconds = interval_seconds

        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._metrics = PersistenceMetrics()

    @property
    def metrics(self) -> PersistenceMetrics:
        return self._metrics

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the flush loop."""
        if self._running:
            return

        self._running = True
        self._shutdown_event.clear()
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Memory persistence worker started (every {self.interval_seconds:g}s)")

    async def stop(self, timeout: float = 10.0) -> None:
        """Stop the loop and flush once more.

        Args:
            timeout: Maximum time to wait for the loop to exit
        """
        if not self._running:
            return

        self._running = False
        self._shutdown_event.set()

        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Memory persistence loop did not exit in time, cancelling")
                self._task.cancel()
                await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        await self.flush_now()
        logger.info("Memory persistence worker stopped")

    async def flush_now(self) -> bool:
        """Persist memory immediately. Failures are counted, not raised.

        Returns:
            True if a snapshot was written
        """
        try:
            written = await self.memory.save()
        except Exception as e:
            self._metrics.failures += 1
            self._metrics.last_error = str(e)
            logger.exception(f"Memory flush failed: {e}")
            return False

        if written:
            self._metrics.flushes += 1
            self._metrics.last_flush_at = time.time()
        else:
            self._metrics.skipped += 1
        return written

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(), timeout=self.interval_seconds
                )
            except asyncio.TimeoutError:
                await self.flush_now()
