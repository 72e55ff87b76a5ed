"""High level application orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .backend import BackendUnavailableError, NullBackend, SoundDeviceBackend, ToneBackend, ToneBank
from .config import AppConfig, load_configuration
from .console import ConsoleState, ControlStore, default_console, with_channel
from .diagnostics import MeterLogger
from .scheduler import FrameLoop, UpdateScheduler
from .state import CHANNEL_IDS

logger = logging.getLogger(__name__)

DEMO_GAIN = 0.8


def demo_console() -> ConsoleState:
    """Factory console with every gain raised so all four voices sound."""

    state = default_console()
    for channel_id in CHANNEL_IDS:
        state = with_channel(state, channel_id, gain=DEMO_GAIN)
    return state


def build_backend(config: AppConfig, *, no_audio: bool = False) -> tuple[ToneBackend, Optional[str]]:
    """Return the configured backend and, on fallback, the reason."""

    if no_audio or not config.audio.enabled:
        return NullBackend(), None
    bank = ToneBank(
        config.audio.sample_rate,
        config.audio.voices,
        smoothing_seconds=config.audio.smoothing_seconds,
        channel_scale=config.audio.channel_scale,
    )
    try:
        return SoundDeviceBackend(bank, block_size=config.audio.block_size), None
    except BackendUnavailableError as exc:
        logger.warning("Audio output disabled: %s", exc)
        return NullBackend(), str(exc)


@dataclass(slots=True)
class MixerApplication:
    """Runtime container for the console, its backend and the tick loop."""

    config: AppConfig
    store: ControlStore
    backend: ToneBackend
    scheduler: UpdateScheduler
    meters: MeterLogger
    backend_error: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        console: Optional[ConsoleState] = None,
        backend: Optional[ToneBackend] = None,
        no_audio: bool = False,
    ) -> "MixerApplication":
        backend_error: Optional[str] = None
        if backend is None:
            backend, backend_error = build_backend(config, no_audio=no_audio)
        meters = MeterLogger(every=config.logging.meter_every)
        scheduler = UpdateScheduler(backend, publish=meters)
        store = ControlStore(console if console is not None else default_console())
        return cls(
            config=config,
            store=store,
            backend=backend,
            scheduler=scheduler,
            meters=meters,
            backend_error=backend_error,
        )

    @classmethod
    def from_file(cls, path: str, **kwargs: Any) -> "MixerApplication":
        return cls.from_config(load_configuration(path), **kwargs)

    def frame_loop(self, *, clock: Optional[Any] = None, rate_hz: Optional[float] = None) -> FrameLoop:
        return FrameLoop(
            self.scheduler,
            self.store,
            rate_hz=rate_hz or self.config.tick_rate_hz,
            clock=clock,
        )

    def run(
        self,
        ticks: Optional[int] = None,
        *,
        powered: bool = True,
        clock: Optional[Any] = None,
        rate_hz: Optional[float] = None,
    ) -> int:
        """Run the frame loop and return the number of ticks executed."""

        loop = self.frame_loop(clock=clock, rate_hz=rate_hz)
        try:
            if powered:
                self.scheduler.power_on()
            return loop.run(max_ticks=ticks)
        finally:
            self.close()

    def close(self) -> None:
        self.scheduler.power_off()
        self.backend.close()

    def summary(self) -> str:
        audio = self.config.audio
        lines = [f"Tick rate: {self.config.tick_rate_hz:g} Hz"]
        if isinstance(self.backend, SoundDeviceBackend):
            lines.append(f"Audio: sounddevice @ {audio.sample_rate} Hz, block {audio.block_size}")
        elif self.backend_error:
            lines.append(f"Audio: unavailable ({self.backend_error})")
        else:
            lines.append("Audio: disabled")
        lines.append(f"Power: {self.scheduler.state.value}")
        state = self.store.snapshot()
        lines.append("Channels:")
        for channel in state.channels:
            routes = [flag for flag in ("to_main", "to_sub12", "to_sub34") if getattr(channel.routing, flag)]
            lines.append(
                f"  - {channel.name or channel.id}: gain {channel.gain:.2f} pan {channel.pan:+.2f} "
                f"fader {channel.fader:.2f} -> {', '.join(routes) or 'unrouted'}"
            )
        lines.append("Subgroups:")
        for subgroup in state.subgroups:
            sides = [side for side in ("to_master_left", "to_master_right") if getattr(subgroup.routing, side)]
            lines.append(
                f"  - {subgroup.name or subgroup.id}: fader {subgroup.fader:.2f} -> {', '.join(sides) or 'unrouted'}"
            )
        lines.append(f"Master fader: {state.master.fader:.2f}")
        taps = ", ".join("pre" if pre else "post" for pre in state.aux_pre)
        lines.append(f"Aux taps: {taps}")
        return "\n".join(lines)


__all__ = ["DEMO_GAIN", "MixerApplication", "build_backend", "demo_console"]
