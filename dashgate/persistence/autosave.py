"""
Autosave Loop — periodic durable snapshot of the live draft.

Runs independently of editing. Each tick captures the draft as it is at
that moment (last write wins). A failed tick is reported through the
session's persistence_error and never stops the loop.
"""

import asyncio
from typing import Optional, Protocol

from dashgate.core.logging import get_logger
from dashgate.models.persistence import AutosaveResult

logger = get_logger(__name__)


class Autosavable(Protocol):
    def autosave(self) -> AutosaveResult: ...


class AutosaveLoop:
    def __init__(self, session: Autosavable, interval_seconds: float = 30):
        self.session = session
        self.interval_seconds = interval_seconds
        self.ticks = 0
        self._running = False

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    def tick(self) -> AutosaveResult:
        self.ticks += 1
        return self.session.autosave()

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Autosave every interval until stop_event is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()
        logger.info("autosave_loop_started", interval_seconds=self.interval_seconds)

        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.interval_seconds,
                    )
                except asyncio.TimeoutError:
                    self.tick()
        finally:
            self._running = False
            logger.info("autosave_loop_stopped", ticks=self.ticks)
