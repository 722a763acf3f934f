"""QueueStatusBroadcaster — pushes the wait-list snapshot to engineers on a timer."""

from __future__ import annotations

import asyncio
import logging

from supportdesk.application.events import OutboundEvent
from supportdesk.application.services.connection_registry import ConnectionRegistry
from supportdesk.application.services.queue_manager import QueueManager
from supportdesk.domain.value_objects.enums import Role

logger = logging.getLogger(__name__)


class QueueStatusBroadcaster:
    def __init__(self, queue: QueueManager, connections: ConnectionRegistry, interval: float = 10.0):
        if interval <= 0:
            raise ValueError("Broadcast interval must be positive")
        self._queue = queue
        self._connections = connections
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def broadcast_once(self) -> int:
        """Send one snapshot to every connected engineer; returns deliveries."""
        status = self._queue.status()
        return await self._connections.broadcast(
            OutboundEvent.QUEUE_UPDATE.value, status.to_dict(), role=Role.ENGINEER
        )

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="queue-status-broadcaster")
        logger.info("Queue status broadcast every %.1fs", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.broadcast_once()
            except Exception:
                logger.exception("Queue status broadcast failed")
