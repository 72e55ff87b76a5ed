"""Logging setup and meter reporting."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from .levels import LevelSnapshot

_LEVEL_ENV = "EDUMIXER_LOG_LEVEL"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

__all__ = ["MeterLogger", "configure_logging", "format_meters"]


def configure_logging(level: Optional[str] = None) -> int:
    """Install one stderr handler on the ``edumixer`` logger.

    ``EDUMIXER_LOG_LEVEL`` overrides ``level``. Returns the numeric level.
    """

    name = os.environ.get(_LEVEL_ENV) or level or "INFO"
    numeric = logging.getLevelName(name.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {name}")
    root = logging.getLogger("edumixer")
    root.setLevel(numeric)
    for existing in [h for h in root.handlers if getattr(h, "_edumixer", False)]:
        root.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._edumixer = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    return numeric


def format_meters(snapshot: LevelSnapshot) -> str:
    channels = " ".join(f"{level:.2f}" for level in snapshot.channels.values())
    subgroups = " ".join(f"{level:.2f}" for level in snapshot.subgroups.values())
    aux = " ".join(f"{level:.2f}" for level in snapshot.aux_outputs)
    return (
        f"CH [{channels}] SUB [{subgroups}] "
        f"MAIN L {snapshot.master.left:.2f} R {snapshot.master.right:.2f} AUX [{aux}]"
    )


class MeterLogger:
    """Publisher that logs a meter line every ``every`` snapshots."""

    def __init__(self, every: int = 30, logger: Optional[logging.Logger] = None) -> None:
        self.every = every
        self.logger = logger or logging.getLogger("edumixer.meters")
        self.count = 0
        self.last: Optional[LevelSnapshot] = None

    def __call__(self, snapshot: LevelSnapshot) -> None:
        self.count += 1
        self.last = snapshot
        if self.every and self.count % self.every == 0:
            self.logger.info(format_meters(snapshot))
