"""
Single polling point for the event schedule.

The clock keeps the latest settings snapshot, re-reads it on a fixed
interval and answers every phase question from that snapshot and the
current time. Nothing else in the portal runs its own timer.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from . import phase as engine
from .phase import DisplayState, EventPhase, EventSettings, GateDecision

logger = logging.getLogger(__name__)

PhaseListener = Callable[[EventPhase, EventPhase], Any]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventClock:
    """Holds the event settings snapshot and feeds it to the phase engine."""

    def __init__(
        self,
        db_manager: Any,
        refresh_interval: float = 30,
        now_func: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db = db_manager
        self.refresh_interval = refresh_interval
        self.now_func = now_func
        self.settings = EventSettings()
        self._listeners: List[PhaseListener] = []
        self._last_phase: Optional[EventPhase] = None
        self._task: Optional[asyncio.Task] = None

    def subscribe(self, listener: PhaseListener) -> None:
        """
        Register a callback for phase transitions.

        @param listener: Called as listener(previous, current); may be async
        """
        self._listeners.append(listener)

    async def refresh(self) -> EventSettings:
        """
        Re-read the settings row. On failure the previous snapshot is kept.

        @return: The snapshot now in use
        """
        try:
            self.settings = await self.db.get_event_settings()
        except Exception:
            logger.exception("Could not refresh event settings, keeping previous snapshot")
        await self.tick()
        return self.settings

    async def update(self, settings: EventSettings) -> None:
        """Swap in a freshly saved snapshot without waiting for the next poll."""
        self.settings = settings
        await self.tick()

    async def tick(self) -> EventPhase:
        """
        Recompute the phase and notify listeners if it changed.

        @return: The current phase
        """
        current = self.phase()
        previous = self._last_phase
        self._last_phase = current

        if previous is not None and previous is not current:
            logger.info("Event phase changed: %s -> %s", previous.value, current.value)
            for listener in list(self._listeners):
                try:
                    result = listener(previous, current)
                    if asyncio.iscoroutine(result):
                        await result
                except Exception:
                    logger.exception("Phase listener %r failed", listener)

        return current

    def now(self) -> datetime:
        return self.now_func()

    def phase(self, now: Optional[datetime] = None) -> EventPhase:
        return engine.compute_phase(self.settings, now or self.now())

    def gates(self, now: Optional[datetime] = None) -> GateDecision:
        return engine.gates(self.phase(now))

    def registration_open(self, now: Optional[datetime] = None) -> bool:
        return engine.can_register(self.settings, now or self.now())

    def status(self, now: Optional[datetime] = None) -> DisplayState:
        return engine.display_state(self.settings, now or self.now())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh()

    async def start(self) -> None:
        """Load the snapshot once and start the background refresh task."""
        await self.refresh()
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
