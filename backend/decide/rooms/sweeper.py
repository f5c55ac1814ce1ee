from __future__ import annotations

import asyncio
import logging
from typing import Optional

from decide.db import StoreUnavailable
from decide.rooms.coordinator import RoomCoordinator

logger = logging.getLogger("decide.rooms")


class RetentionSweeper:
    """
    Background task deleting inactive rooms.

    - start() schedules the loop on the running event loop
    - stop() is idempotent
    """

    def __init__(self, coordinator: RoomCoordinator, interval_seconds: float):
        self._coordinator = coordinator
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        try:
            return await self._coordinator.sweep()
        except StoreUnavailable:
            logger.exception("Room cleanup failed")
            return 0

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Unexpected error in room cleanup; retrying next interval")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
