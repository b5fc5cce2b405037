"""Supervised set of position monitors keyed by pair address."""

import asyncio
from collections.abc import Callable
from functools import partial

import structlog

from ..core.interfaces import PositionStore
from ..core.types import Position
from .position_monitor import MonitorState, PositionMonitor

logger = structlog.get_logger(__name__)

MonitorFactory = Callable[[Position], PositionMonitor]


class MonitorRegistry:
    """Owns one monitoring task per open position.

    Tasks remove themselves when they finish. On restart the registry is
    rebuilt from the open rows in the store.
    """

    def __init__(self, factory: MonitorFactory) -> None:
        self._factory = factory
        self._monitors: dict[str, PositionMonitor] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def __contains__(self, pair_address: str) -> bool:
        return pair_address in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, pair_address: str) -> PositionMonitor | None:
        return self._monitors.get(pair_address)

    def active(self) -> list[str]:
        return list(self._tasks)

    def spawn(self, position: Position) -> PositionMonitor:
        """Start watching a position. A second spawn for the same pair is a no-op."""
        existing = self._monitors.get(position.pair_address)
        if existing is not None and position.pair_address in self._tasks:
            logger.debug("Monitor already running", pair_address=position.pair_address)
            return existing

        monitor = self._factory(position)
        task = asyncio.create_task(
            monitor.run(), name=f"monitor:{position.pair_address}"
        )
        self._monitors[position.pair_address] = monitor
        self._tasks[position.pair_address] = task
        task.add_done_callback(partial(self._on_done, position.pair_address))

        logger.info(
            "Monitor spawned",
            pair_address=position.pair_address,
            symbol=position.symbol,
            active=len(self._tasks),
        )
        return monitor

    def _on_done(self, pair_address: str, task: asyncio.Task) -> None:
        if self._tasks.get(pair_address) is task:
            del self._tasks[pair_address]
            self._monitors.pop(pair_address, None)

        if task.cancelled():
            logger.info("Monitor task cancelled", pair_address=pair_address)
        elif task.exception() is not None:
            logger.error(
                "Monitor task crashed",
                pair_address=pair_address,
                error=str(task.exception()),
            )

    def cancel(self, pair_address: str) -> bool:
        """Signal a monitor to stop. Returns False if none is running."""
        monitor = self._monitors.get(pair_address)
        if monitor is None:
            return False
        monitor.cancel()
        return True

    async def rehydrate(self, store: PositionStore) -> int:
        """Spawn a monitor for every open position in the store."""
        positions = await store.list_open_positions()
        for position in positions:
            self.spawn(position)
        logger.info("Monitors rehydrated", count=len(positions))
        return len(positions)

    async def shutdown(self, wait_for_exits: bool = True) -> None:
        """Stop every monitor.

        Args:
            wait_for_exits: Let exits already in progress finish; otherwise
                cancel every task immediately
        """
        tasks = list(self._tasks.values())
        if not tasks:
            return

        in_flight = [
            pair
            for pair, monitor in self._monitors.items()
            if monitor.state == MonitorState.EXIT_TRIGGERED
        ]
        logger.info(
            "Stopping monitors",
            count=len(tasks),
            exits_in_flight=in_flight,
            wait_for_exits=wait_for_exits,
        )

        for monitor in list(self._monitors.values()):
            monitor.cancel()
        if not wait_for_exits:
            for task in tasks:
                task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Monitors stopped")
