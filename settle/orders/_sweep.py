"""
Background sweep of unpaid orders.

    sweeper = PendingOrderSweeper(manager)
    task = asyncio.create_task(sweeper.run(interval=60))
    ...
    sweeper.stop()
    await task
"""

from __future__ import annotations

import asyncio
import logging

from kungfu import Error, Ok

from settle.orders._manager import OrderManager
from settle.orders._types import Order

logger = logging.getLogger(__name__)


class PendingOrderSweeper:
    def __init__(self, manager: OrderManager) -> None:
        self._manager = manager
        self._stopped = asyncio.Event()

    async def sweep_once(self) -> tuple[Order, ...]:
        """Cancel expired pending orders once. Store errors are logged."""
        match await self._manager.sweep():
            case Ok(cancelled):
                if cancelled:
                    logger.info("sweep cancelled %d order(s)", len(cancelled))
                return cancelled
            case Error(err):
                logger.error("sweep failed: %s", err.message)
                return ()

    async def run(self, interval: float = 60.0) -> None:
        """Sweep every `interval` seconds until `stop()`."""
        self._stopped.clear()
        while not self._stopped.is_set():
            await self.sweep_once()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=interval)
            except TimeoutError:
                continue

    def stop(self) -> None:
        self._stopped.set()


__all__ = ("PendingOrderSweeper",)
