"""Tone-generation backends driven by the update scheduler.

The scheduler only needs the :class:`ToneBackend` surface. :class:`ToneBank`
is the numpy synthesiser behind :class:`SoundDeviceBackend`: four fixed
voices whose volume, pan and master targets are approached with one-pole
smoothing, so per-tick target changes never click.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from importlib import import_module
from threading import Lock
from types import ModuleType
from typing import Any, Optional, Protocol, Sequence

import numpy as np

from .levels import RAW_DTYPE

logger = logging.getLogger(__name__)

WAVEFORMS = ("sine", "triangle")

DEFAULT_SMOOTHING_SECONDS = 0.05
DEFAULT_CHANNEL_SCALE = 0.15


class BackendUnavailableError(RuntimeError):
    """Raised when the audio output stack cannot be loaded."""


class ToneBackend(Protocol):
    def start(self) -> None: ...

    def suspend(self) -> None: ...

    def set_channel_parameters(self, volumes: Sequence[float], pans: Sequence[float]) -> None: ...

    def set_master_volume(self, volume: float) -> None: ...

    def close(self) -> None: ...


@dataclass(frozen=True, slots=True)
class Voice:
    frequency: float
    wave: str = "sine"

    def __post_init__(self) -> None:
        if self.wave not in WAVEFORMS:
            raise ValueError(f"Unknown waveform: {self.wave}")
        if self.frequency <= 0.0:
            raise ValueError(f"Voice frequency must be positive, got {self.frequency}")


# C3, E3, G3, B3 so the four channels are distinguishable by ear.
DEFAULT_VOICES = (
    Voice(130.81, "sine"),
    Voice(164.81, "triangle"),
    Voice(196.00, "sine"),
    Voice(246.94, "triangle"),
)


class ToneBank:
    """Four-voice oscillator bank with smoothed volume, pan and master."""

    def __init__(
        self,
        sample_rate: int,
        voices: Sequence[Voice] = DEFAULT_VOICES,
        *,
        smoothing_seconds: float = DEFAULT_SMOOTHING_SECONDS,
        channel_scale: float = DEFAULT_CHANNEL_SCALE,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.sample_rate = int(sample_rate)
        self.voices = tuple(voices)
        self.channel_scale = float(channel_scale)
        count = len(self.voices)
        self._increment = np.array(
            [2.0 * math.pi * v.frequency / self.sample_rate for v in self.voices], dtype=RAW_DTYPE
        )
        self._triangle = np.array([v.wave == "triangle" for v in self.voices], dtype=bool)
        self._phase = np.zeros(count, dtype=RAW_DTYPE)
        self._volume = np.zeros(count, dtype=RAW_DTYPE)
        self._pan = np.zeros(count, dtype=RAW_DTYPE)
        self._master = 0.0
        self._target_volume = np.zeros(count, dtype=RAW_DTYPE)
        self._target_pan = np.zeros(count, dtype=RAW_DTYPE)
        self._target_master = 0.0
        # Per-sample retention factor of the one-pole approach.
        if smoothing_seconds > 0.0:
            self._retain = math.exp(-1.0 / (smoothing_seconds * self.sample_rate))
        else:
            self._retain = 0.0
        self._lock = Lock()

    def set_targets(self, volumes: Sequence[float], pans: Sequence[float]) -> None:
        volumes = np.asarray(volumes, dtype=RAW_DTYPE)
        pans = np.asarray(pans, dtype=RAW_DTYPE)
        if volumes.shape != self._target_volume.shape or pans.shape != self._target_pan.shape:
            raise ValueError(
                f"expected {len(self.voices)} volumes and pans, got {volumes.shape} and {pans.shape}"
            )
        with self._lock:
            self._target_volume[:] = volumes
            self._target_pan[:] = pans

    def set_master(self, volume: float) -> None:
        with self._lock:
            self._target_master = float(volume)

    def _ramp(self, current: np.ndarray, target: np.ndarray, decay: np.ndarray) -> np.ndarray:
        return target[..., None] + (current - target)[..., None] * decay

    def render(self, frames: int) -> np.ndarray:
        """Render ``frames`` stereo samples shaped ``(frames, 2)`` as float32."""

        if frames <= 0:
            return np.zeros((0, 2), dtype=np.float32)
        with self._lock:
            target_volume = self._target_volume.copy()
            target_pan = self._target_pan.copy()
            target_master = self._target_master

        decay = self._retain ** np.arange(1, frames + 1, dtype=RAW_DTYPE)
        volume = self._ramp(self._volume, target_volume, decay)
        pan = self._ramp(self._pan, target_pan, decay)
        master = self._ramp(np.asarray(self._master), np.asarray(target_master), decay)

        steps = np.arange(frames, dtype=RAW_DTYPE)
        phase = self._phase[:, None] + self._increment[:, None] * steps
        wave = np.sin(phase)
        wave[self._triangle] = (2.0 / math.pi) * np.arcsin(wave[self._triangle])

        theta = (pan + 1.0) * (math.pi / 4.0)
        voiced = wave * volume * self.channel_scale
        left = np.sum(voiced * np.cos(theta), axis=0) * master
        right = np.sum(voiced * np.sin(theta), axis=0) * master

        self._phase = np.mod(self._phase + self._increment * frames, 2.0 * math.pi)
        self._volume = volume[:, -1].copy()
        self._pan = pan[:, -1].copy()
        self._master = float(master[-1])
        return np.stack((left, right), axis=1).astype(np.float32)


class NullBackend:
    """Backend that accepts every call and produces no sound."""

    def __init__(self) -> None:
        self.running = False

    def start(self) -> None:
        self.running = True

    def suspend(self) -> None:
        self.running = False

    def set_channel_parameters(self, volumes: Sequence[float], pans: Sequence[float]) -> None:
        return None

    def set_master_volume(self, volume: float) -> None:
        return None

    def close(self) -> None:
        self.running = False


def _load_sounddevice() -> ModuleType:
    try:
        return import_module("sounddevice")
    except (ImportError, OSError) as exc:
        # sounddevice raises OSError when the PortAudio library is missing.
        raise BackendUnavailableError(f"sounddevice unavailable: {exc}") from exc


class SoundDeviceBackend:
    """Play a :class:`ToneBank` through a ``sounddevice`` output stream."""

    def __init__(
        self,
        bank: ToneBank,
        *,
        block_size: int = 256,
        device: Optional[Any] = None,
        sd_module: Optional[ModuleType] = None,
    ) -> None:
        self.bank = bank
        self.block_size = int(block_size)
        self.device = device
        self._sd = sd_module if sd_module is not None else _load_sounddevice()
        self._stream = None

    @property
    def active(self) -> bool:
        return bool(self._stream is not None and self._stream.active)

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.warning("Output stream status: %s", status)
        outdata[:] = self.bank.render(frames)

    def start(self) -> None:
        try:
            if self._stream is None:
                self._stream = self._sd.OutputStream(
                    device=self.device,
                    channels=2,
                    dtype="float32",
                    samplerate=self.bank.sample_rate,
                    blocksize=self.block_size,
                    latency="low",
                    callback=self._callback,
                )
                logger.info(
                    "Opened output stream @ %d Hz, block %d", self.bank.sample_rate, self.block_size
                )
            if not self._stream.active:
                self._stream.start()
        except Exception as exc:
            self.close()
            raise BackendUnavailableError(f"could not open audio output: {exc}") from exc

    def suspend(self) -> None:
        if self._stream is not None and self._stream.active:
            self._stream.stop()

    def set_channel_parameters(self, volumes: Sequence[float], pans: Sequence[float]) -> None:
        self.bank.set_targets(volumes, pans)

    def set_master_volume(self, volume: float) -> None:
        self.bank.set_master(volume)

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None


__all__ = [
    "BackendUnavailableError",
    "DEFAULT_CHANNEL_SCALE",
    "DEFAULT_SMOOTHING_SECONDS",
    "DEFAULT_VOICES",
    "NullBackend",
    "SoundDeviceBackend",
    "ToneBackend",
    "ToneBank",
    "Voice",
    "WAVEFORMS",
]
