"""Signal-flow engine for an instructional four-channel mixing console."""

from __future__ import annotations

from .console import ConsoleState, ControlStore, default_console
from .levels import LevelSnapshot, compute_levels, zero_levels
from .mapper import map_parameters
from .scheduler import FrameLoop, PowerState, UpdateScheduler

__all__ = [
    "ConsoleState",
    "ControlStore",
    "FrameLoop",
    "LevelSnapshot",
    "PowerState",
    "UpdateScheduler",
    "compute_levels",
    "default_console",
    "map_parameters",
    "zero_levels",
]
