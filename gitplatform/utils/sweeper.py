"""
Periodic background sweeps bound to the running event loop.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Run ``func`` every ``interval`` seconds until stopped.

    The task is created on the running loop by ``start()`` and cancelled by
    ``stop()``; a connector stops its sweeps on ``close()`` so no timers
    outlive it.
    """

    def __init__(self, name: str, func: Callable[[], object], interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.func = func
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        Start the sweep on the running loop.

        :return: True if a task was started, False if already running or no
                 loop is running.
        """
        if self.running:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._task = loop.create_task(self._run(), name=self.name)
        return True

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.func()
            except Exception as e:
                logger.warning(f"Periodic task {self.name} failed: {e}")
