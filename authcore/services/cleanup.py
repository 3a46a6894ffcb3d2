"""Expired-credential cleanup background worker.

Runs AuthenticationEngine.cleanup() on a configurable interval (daily by
default). Sweeping is housekeeping only: every read path already rejects
expired token records and codes.
"""

import asyncio
import contextlib
import logging
from datetime import datetime

from authcore.core.clock import Clock, utc_now
from authcore.schemas.auth import CleanupResult
from authcore.services.authentication import AuthenticationEngine

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 24 * 60 * 60


class CleanupScheduler:
    """Background worker that periodically sweeps expired credentials.

    Lifecycle:
    - start() creates an asyncio task that runs the sweep loop.
    - stop() cancels the task and waits for it to finish.
    - run_once() executes a single sweep.

    Args:
        engine: Authentication engine whose cleanup() is invoked.
        interval_seconds: Seconds between sweeps.
        clock: Source of the last_run_at timestamp.
    """

    def __init__(
        self,
        engine: AuthenticationEngine,
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._engine = engine
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._last_run_at: datetime | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    @property
    def last_run_at(self) -> datetime | None:
        """Timestamp of the most recent completed sweep."""
        return self._last_run_at

    def start(self) -> None:
        """Start the sweep loop. No-op if already running.

        Must be called with a running event loop.
        """
        if self.is_running:
            logger.warning("Cleanup scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Cleanup scheduler started (interval=%ds)", self._interval_seconds)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Cleanup scheduler stopped")

    async def run_once(self) -> CleanupResult:
        """Execute a single sweep.

        Raises:
            InternalError: If the store fails.
        """
        result = await self._engine.cleanup()
        self._last_run_at = self._clock()
        logger.info(
            "Cleanup sweep: %d session tokens, %d verification codes deleted",
            result.deleted_tokens,
            result.deleted_codes,
        )
        return result

    async def _run_loop(self) -> None:
        """Background loop: sweep, sleep, repeat."""
        try:
            while self._running:
                try:
                    await self.run_once()
                except Exception:  # noqa: BLE001
                    logger.exception("Error in cleanup sweep")
                await asyncio.sleep(self._interval_seconds)
        except asyncio.CancelledError:
            logger.debug("Cleanup loop cancelled")
            raise
