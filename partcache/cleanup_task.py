"""Background task for sweeping expired upload parts."""

import asyncio

from common.logging_config import get_logger
from partcache.config import SWEEP_INTERVAL_SECONDS
from partcache.exceptions import StorageUnavailableError
from partcache.repositories.upload_part_repository import UploadPartRepository

logger = get_logger(__name__)


class ExpiredPartCleaner:
    """
    Background task that periodically deletes expired upload parts.
    """

    def __init__(self, repository: UploadPartRepository, interval_seconds: float = SWEEP_INTERVAL_SECONDS):
        """
        Initialize cleaner task.

        Args:
            repository: Upload part repository to sweep
            interval_seconds: Time between sweeps (default 1 hour)
        """
        self.repository = repository
        self.interval_seconds = interval_seconds
        self._running = False
        self._task = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Sweep task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started expired part sweep task (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Stopped expired part sweep task")

    async def run_once(self) -> int:
        """
        Execute one sweep.

        Returns:
            Number of parts removed

        Raises:
            StorageUnavailableError: If the database cannot be reached
        """
        removed = await asyncio.to_thread(self.repository.remove_expired)
        logger.debug(f"Sweep complete: {removed} expired parts removed")
        return removed

    async def _run(self) -> None:
        """Main loop for sweep task."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await self.run_once()

            except asyncio.CancelledError:
                break
            except StorageUnavailableError as e:
                logger.warning(f"Skipping sweep, storage unavailable: {e}")
            except Exception as e:
                logger.error(f"Error in sweep task: {e}", exc_info=True)
