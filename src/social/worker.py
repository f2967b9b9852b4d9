"""
Time-based trigger for the publishing pipeline.

Runs one tick every poll interval in a single asyncio task. A tick that runs
longer than the interval delays the next one instead of overlapping it.
"""

import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.types.social import TickSummary

from .pipeline import PublishingPipeline
from .store import StoreError

logger = logging.getLogger(__name__)


class SchedulerWorker:
    """
    Background worker that periodically runs publishing ticks.

    Handles graceful shutdown on SIGTERM/SIGINT.
    """

    def __init__(
        self,
        pipeline: PublishingPipeline,
        poll_interval_seconds: int = 60,
    ) -> None:
        """
        Initialize the worker.

        Args:
            pipeline: The pipeline each tick runs
            poll_interval_seconds: Seconds between ticks
        """
        self._pipeline = pipeline
        self._poll_interval = poll_interval_seconds

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._wakeup = asyncio.Event()

        self._metrics: Dict[str, Any] = {
            "ticks": 0,
            "ticks_failed": 0,
            "posts_processed": 0,
            "posts_posted": 0,
            "posts_failed": 0,
            "last_tick_at": None,
            "started_at": None,
        }

        logger.info(f"Worker initialized (poll_interval={poll_interval_seconds}s)")

    @property
    def is_running(self) -> bool:
        """Check if worker is currently running."""
        return self._running

    @property
    def metrics(self) -> Dict[str, Any]:
        """Get worker metrics."""
        return {**self._metrics, "is_running": self._running}

    async def start(self) -> None:
        """Start the background worker."""
        if self._running:
            logger.warning("Worker is already running")
            return

        self._running = True
        self._wakeup.clear()
        self._metrics["started_at"] = datetime.now(timezone.utc)

        logger.info("Starting scheduled post worker")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except (NotImplementedError, RuntimeError):
                # Not available on Windows or outside the main thread
                pass

        self._task = asyncio.create_task(self._run_loop())

    async def stop(self, timeout: float = 30.0) -> None:
        """
        Stop the worker, letting an in-flight tick finish.

        Args:
            timeout: Max seconds to wait for the current tick
        """
        if not self._running and self._task is None:
            return

        logger.info("Stopping scheduled post worker")
        self._handle_shutdown()

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Worker stop timed out, cancelling")
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    logger.info("Worker task cancelled")
            self._task = None

        logger.info("Worker stopped")

    def _handle_shutdown(self) -> None:
        self._running = False
        self._wakeup.set()

    async def run_once(self) -> Optional[TickSummary]:
        """Run a single tick, recording metrics. Returns None if the tick failed."""
        self._metrics["ticks"] += 1
        self._metrics["last_tick_at"] = datetime.now(timezone.utc)

        try:
            summary = await self._pipeline.run_tick()
        except StoreError as e:
            self._metrics["ticks_failed"] += 1
            logger.error(f"Tick failed to read due posts: {e.message}")
            return None

        self._metrics["posts_processed"] += summary.processed
        self._metrics["posts_posted"] += summary.posted
        self._metrics["posts_failed"] += summary.failed
        return summary

    async def _run_loop(self) -> None:
        """Main worker loop."""
        logger.info("Worker loop started")

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                self._metrics["ticks_failed"] += 1
                logger.exception(f"Error in worker loop: {e}")

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                continue

        logger.info("Worker loop ended")


async def run_worker() -> None:
    """Run the worker as a standalone process."""
    from src.config import get_settings
    from src.utils.logging import setup_logging

    setup_logging(service_name="mailtosocial-worker")
    settings = get_settings()

    logger.info("Starting scheduled post worker process", extra=settings.get_config_summary())

    if not settings.worker.social_scheduler_enabled:
        logger.warning("Scheduler is disabled (SOCIAL_SCHEDULER_ENABLED != true)")
        return

    worker = SchedulerWorker(
        pipeline=PublishingPipeline.from_settings(settings),
        poll_interval_seconds=settings.worker.social_worker_poll_interval,
    )

    await worker.start()
    try:
        while worker.is_running:
            await asyncio.sleep(1)
    finally:
        await worker.stop()


def main() -> None:
    """Entry point for running the worker as a standalone script."""
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
