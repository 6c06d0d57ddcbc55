"""
Background timer that drives phase deadlines, admin failover and the
disconnected-player sweep for every room.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

from .engine import GameSession, SessionRegistry
from .errors import ConflictError

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str], Awaitable[None]]


def run_room_timers(session: GameSession, now: float) -> bool:
    """
    Apply every time-based rule to one session.

    Returns:
        True if the session changed and clients need a fresh state
    """
    changed = False
    try:
        if session.check_admin_failover(now=now):
            changed = True
        if session.cleanup_disconnected(now=now):
            changed = True
        if session.expire_phase(now=now):
            changed = True
    except ConflictError:
        # A transition is running; the next tick will pick this room up again
        logger.debug(f"Room {session.room_id} busy, skipping timer tick")
    return changed


class PhaseTimer:
    """Polls all rooms of a registry at a fixed interval."""

    def __init__(
        self,
        registry: SessionRegistry,
        on_change: Optional[ChangeCallback] = None,
        interval: float = 1.0,
        clock: Callable[[], float] = time.time
    ):
        self.registry = registry
        self.on_change = on_change
        self.interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    async def tick(self) -> List[str]:
        """Run one pass over every room and return the ids of changed rooms."""
        now = self._clock()
        changed = []
        for room_id, session in list(self.registry.rooms.items()):
            if run_room_timers(session, now):
                changed.append(room_id)
                if self.on_change is not None:
                    try:
                        await self.on_change(room_id)
                    except Exception as e:
                        logger.error(f"Broadcast after timer failed for room {room_id}: {e}")
            if not session.players:
                self.registry.remove_room(room_id)
                logger.info(f"Removed empty room {room_id}")
        return changed

    async def run(self) -> None:
        logger.info(f"Phase timer started (interval {self.interval}s)")
        try:
            while True:
                await self.tick()
                await asyncio.sleep(self.interval)
        except asyncio.CancelledError:
            logger.info("Phase timer stopped")
            raise

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
