# portflow/agent/scheduler.py
"""
Periodic refresh loop.
Refreshes immediately, then every interval while the view is visible.
Hiding the view suspends the loop; showing it again refreshes at once.
"""
import asyncio
from typing import Callable, List, Optional

from portflow.agent.engine import PortflowAgent
from portflow.core.schemas import AggregatedSnapshot
from portflow.utils.logger import Logger

SnapshotListener = Callable[[AggregatedSnapshot], None]


class RefreshScheduler:
    def __init__(self, agent: PortflowAgent, interval_ms: Optional[int] = None):
        self.agent = agent
        self.interval = (interval_ms or agent.config.refresh_interval_ms) / 1000.0
        self.logger = Logger()
        self.latest: Optional[AggregatedSnapshot] = None
        self.cycles = 0
        self.listeners: List[SnapshotListener] = []

        self._visible = True
        self._running = False
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(self, listener: SnapshotListener) -> None:
        self.listeners.append(listener)

    def snapshot(self) -> Optional[AggregatedSnapshot]:
        """Copy of the latest complete snapshot, or None before the first cycle."""
        return self.latest.model_copy(deep=True) if self.latest else None

    async def refresh_now(self) -> Optional[AggregatedSnapshot]:
        """Runs one cycle. A failed cycle keeps the previous snapshot."""
        try:
            snapshot = await self.agent.refresh()
        except Exception as e:
            self.logger.error(f"Refresh cycle failed: {e}")
            return self.latest

        self.latest = snapshot
        self.cycles += 1
        for listener in self.listeners:
            try:
                listener(snapshot.model_copy(deep=True))
            except Exception as e:
                self.logger.error(f"Snapshot listener failed: {e}")
        return snapshot

    def set_visible(self, visible: bool) -> None:
        if visible == self._visible:
            return
        self._visible = visible
        self.logger.info("View visible, resuming refresh." if visible else "View hidden, refresh suspended.")
        self._wake.set()

    async def _sleep(self) -> None:
        """Waits one interval, or until visibility changes or stop() is called."""
        try:
            await asyncio.wait_for(self._wake.wait(), self.interval)
        except asyncio.TimeoutError:
            pass
        self._wake.clear()

    async def run(self) -> None:
        self._running = True
        self.logger.info(f"Refresh loop started (every {self.interval:.1f}s).")
        try:
            while self._running:
                if self._visible:
                    await self.refresh_now()
                    await self._sleep()
                else:
                    await self._wake.wait()
                    self._wake.clear()
        finally:
            self._running = False
            self.logger.info("Refresh loop stopped.")

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        self._running = False
        self._wake.set()
        if self._task is not None:
            await self._task
            self._task = None
