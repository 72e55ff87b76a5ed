"""Per-frame update scheduling.

:class:`UpdateScheduler` is the power state machine run once per display
frame. :class:`FrameLoop` is the host side: it paces ticks with a
``pygame.time.Clock`` and hands each tick one complete console snapshot.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from importlib import import_module
from typing import Any, Callable, Optional

from .backend import ToneBackend
from .console import ConsoleState, ControlStore
from .levels import LevelSnapshot, compute_levels, zero_levels
from .mapper import map_parameters

logger = logging.getLogger(__name__)

Publisher = Callable[[LevelSnapshot], None]


class PowerState(Enum):
    MUTED = "muted"
    ACTIVE = "active"


class UpdateScheduler:
    """Muted/Active state machine feeding the backend and the meters.

    While muted each tick publishes silence and neither the level engine
    nor the mapper runs. While active each tick computes levels, forwards
    the mapped targets to the backend and publishes the snapshot. Ticks are
    never skipped or coalesced.
    """

    def __init__(self, backend: ToneBackend, publish: Optional[Publisher] = None) -> None:
        self.backend = backend
        self.publish = publish
        self.state = PowerState.MUTED
        self.last_snapshot: LevelSnapshot = zero_levels()
        self.ticks = 0

    @property
    def is_active(self) -> bool:
        return self.state is PowerState.ACTIVE

    def power_on(self) -> None:
        if self.is_active:
            return
        try:
            self.backend.start()
        except Exception:
            logger.exception("Backend failed to start")
            raise
        self.state = PowerState.ACTIVE
        logger.info("Console powered on")

    def power_off(self) -> None:
        if not self.is_active:
            return
        self.backend.suspend()
        self.state = PowerState.MUTED
        logger.info("Console powered off")

    def toggle_power(self) -> PowerState:
        if self.is_active:
            self.power_off()
        else:
            self.power_on()
        return self.state

    def tick(self, console: ConsoleState) -> LevelSnapshot:
        if self.is_active:
            snapshot = compute_levels(console.channels, console.subgroups, console.master, console.aux_pre)
            params = map_parameters(console)
            self.backend.set_channel_parameters(params.volumes, params.pans)
            self.backend.set_master_volume(params.master_volume)
        else:
            snapshot = zero_levels()
        self.ticks += 1
        self.last_snapshot = snapshot
        if self.publish is not None:
            self.publish(snapshot)
        return snapshot


def _default_clock() -> Any:
    os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
    pygame = import_module("pygame")
    return pygame.time.Clock()


class FrameLoop:
    """Drive an :class:`UpdateScheduler` at display cadence.

    ``clock`` only needs a ``tick(framerate)`` method; by default a
    ``pygame.time.Clock`` is used. Frame durations vary and are only logged.
    """

    def __init__(
        self,
        scheduler: UpdateScheduler,
        store: ControlStore,
        *,
        rate_hz: float = 60.0,
        clock: Optional[Any] = None,
    ) -> None:
        if rate_hz <= 0:
            raise ValueError("rate_hz must be positive")
        self.scheduler = scheduler
        self.store = store
        self.rate_hz = rate_hz
        self._clock = clock
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def stop(self) -> None:
        self._running = False

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Tick until :meth:`stop` or ``max_ticks``; return ticks executed."""

        if self._clock is None:
            self._clock = _default_clock()
        self._running = True
        ticks = 0
        try:
            while self._running and (max_ticks is None or ticks < max_ticks):
                self.scheduler.tick(self.store.snapshot())
                ticks += 1
                elapsed_ms = self._clock.tick(self.rate_hz)
                logger.debug("frame %d took %s ms", ticks, elapsed_ms)
        finally:
            self._running = False
        return ticks


__all__ = ["FrameLoop", "PowerState", "Publisher", "UpdateScheduler"]
