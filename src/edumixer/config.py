"""Runtime configuration loading."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping

from .backend import DEFAULT_CHANNEL_SCALE, DEFAULT_SMOOTHING_SECONDS, DEFAULT_VOICES, WAVEFORMS, Voice
from .state import CHANNEL_IDS

_REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = _REPO_ROOT / "configs" / "default.json"

DEFAULT_TICK_RATE_HZ = 60.0
DEFAULT_SAMPLE_RATE = 44100
DEFAULT_BLOCK_SIZE = 256


@dataclass(slots=True)
class AudioConfig:
    """Tone backend settings."""

    enabled: bool = True
    sample_rate: int = DEFAULT_SAMPLE_RATE
    block_size: int = DEFAULT_BLOCK_SIZE
    smoothing_seconds: float = DEFAULT_SMOOTHING_SECONDS
    channel_scale: float = DEFAULT_CHANNEL_SCALE
    voices: List[Voice] = field(default_factory=lambda: list(DEFAULT_VOICES))


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    meter_every: int = 30


@dataclass(slots=True)
class AppConfig:
    tick_rate_hz: float = DEFAULT_TICK_RATE_HZ
    audio: AudioConfig = field(default_factory=AudioConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _normalise_voices(items: Any) -> List[Voice]:
    if items is None:
        return list(DEFAULT_VOICES)
    if not isinstance(items, list) or len(items) != len(CHANNEL_IDS):
        raise ValueError(f"audio.voices must list exactly {len(CHANNEL_IDS)} voices")
    voices = []
    for index, item in enumerate(items):
        wave = str(item.get("wave", "sine"))
        if wave not in WAVEFORMS:
            raise ValueError(f"audio.voices[{index}].wave must be one of {WAVEFORMS}, got {wave!r}")
        frequency = float(item["frequency"])
        if frequency <= 0.0:
            raise ValueError(f"audio.voices[{index}].frequency must be positive")
        voices.append(Voice(frequency=frequency, wave=wave))
    return voices


def _normalise_audio(data: Mapping[str, Any]) -> AudioConfig:
    audio = AudioConfig(
        enabled=bool(data.get("enabled", True)),
        sample_rate=int(data.get("sample_rate", DEFAULT_SAMPLE_RATE)),
        block_size=int(data.get("block_size", DEFAULT_BLOCK_SIZE)),
        smoothing_seconds=float(data.get("smoothing_seconds", DEFAULT_SMOOTHING_SECONDS)),
        channel_scale=float(data.get("channel_scale", DEFAULT_CHANNEL_SCALE)),
        voices=_normalise_voices(data.get("voices")),
    )
    if audio.sample_rate <= 0:
        raise ValueError("audio.sample_rate must be positive")
    if audio.block_size <= 0:
        raise ValueError("audio.block_size must be positive")
    if audio.smoothing_seconds < 0.0:
        raise ValueError("audio.smoothing_seconds must not be negative")
    return audio


def _normalise_logging(data: Mapping[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"logging.level must be a standard level name, got {level!r}")
    meter_every = int(data.get("meter_every", 30))
    if meter_every < 0:
        raise ValueError("logging.meter_every must not be negative")
    return LoggingConfig(level=level, meter_every=meter_every)


def parse_configuration(raw: Mapping[str, Any]) -> AppConfig:
    tick_rate = float(raw.get("tick_rate_hz", DEFAULT_TICK_RATE_HZ))
    if tick_rate <= 0.0:
        raise ValueError("tick_rate_hz must be positive")
    return AppConfig(
        tick_rate_hz=tick_rate,
        audio=_normalise_audio(dict(raw.get("audio", {}) or {})),
        logging=_normalise_logging(dict(raw.get("logging", {}) or {})),
    )


def load_configuration(path: str | Path) -> AppConfig:
    """Load an :class:`AppConfig` from ``path``."""

    with open(path, "r", encoding="utf8") as fh:
        raw = json.load(fh)
    return parse_configuration(raw)


__all__ = [
    "AppConfig",
    "AudioConfig",
    "DEFAULT_CONFIG_PATH",
    "LoggingConfig",
    "load_configuration",
    "parse_configuration",
]
