"""Signal-flow level computation.

:func:`compute_levels` walks the fixed console graph once and returns a
fresh :class:`LevelSnapshot`. The routing helpers below are shared with the
parameter mapper so the meter display and the tone backend always derive a
channel's contribution the same way.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, NamedTuple, Sequence, Tuple

import numpy as np

from .console import ChannelState, MasterState, SubgroupState
from .state import (
    AUX_BUS_COUNT,
    AUX_TO_HEADPHONE,
    CHANNEL_IDS,
    CHANNEL_ROUTES,
    MAIN_LEFT,
    MAIN_RIGHT,
    SUBGROUP_BUSES,
    SUBGROUP_IDS,
    SUBGROUP_ROUTES,
    subgroup_bus,
)

RAW_DTYPE = np.float64


class MasterLevels(NamedTuple):
    left: float
    right: float


class SourceLevels(NamedTuple):
    """One headphone side broken down by originating channel."""

    ch1: float = 0.0
    ch2: float = 0.0
    ch3: float = 0.0
    ch4: float = 0.0


class HeadphoneLevels(NamedTuple):
    left: SourceLevels
    right: SourceLevels


class ChannelSignal(NamedTuple):
    """A channel's levels at each point of its strip."""

    pre_fader: float
    post_fader: float
    left: float
    right: float


@dataclass(frozen=True, slots=True)
class LevelSnapshot:
    """Levels at every metered node for a single tick."""

    channels: Mapping[int, float]
    subgroups: Mapping[int, float]
    master: MasterLevels
    aux_outputs: Tuple[float, ...]
    headphones: Tuple[HeadphoneLevels, ...]

    def headphone(self, number: int) -> HeadphoneLevels:
        return self.headphones[number - 1]

    def is_silent(self) -> bool:
        values = [*self.channels.values(), *self.subgroups.values(), *self.master, *self.aux_outputs]
        for phones in self.headphones:
            values.extend(phones.left)
            values.extend(phones.right)
        return all(value == 0.0 for value in values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channels": {str(cid): level for cid, level in self.channels.items()},
            "subgroups": {str(sid): level for sid, level in self.subgroups.items()},
            "master": self.master._asdict(),
            "aux_outputs": list(self.aux_outputs),
            "headphones": {
                f"hp{index}": {"left": phones.left._asdict(), "right": phones.right._asdict()}
                for index, phones in enumerate(self.headphones, start=1)
            },
        }


def pan_law(pan: float) -> Tuple[float, float]:
    """Return constant-power ``(left, right)`` gains for ``pan`` in [-1, 1]."""

    theta = (pan + 1.0) * (math.pi / 4.0)
    return math.cos(theta), math.sin(theta)


def channel_signal(channel: ChannelState) -> ChannelSignal:
    """Return the pre-fader, post-fader and panned left/right levels of a channel."""

    pre_fader = channel.input_level * channel.gain
    post_fader = pre_fader * channel.fader
    pan_left, pan_right = pan_law(channel.pan)
    return ChannelSignal(pre_fader, post_fader, post_fader * pan_left, post_fader * pan_right)


def channel_sends(channel: ChannelState, signal: ChannelSignal) -> Iterator[Tuple[str, float]]:
    """Yield ``(bus, level)`` for every destination the channel is switched to."""

    for flag, (left_bus, right_bus) in CHANNEL_ROUTES.items():
        if getattr(channel.routing, flag):
            yield left_bus, signal.left
            yield right_bus, signal.right


def subgroup_sends(subgroup: SubgroupState, level: float) -> Iterator[Tuple[str, float]]:
    """Yield ``(master side, level)`` for each master side the subgroup feeds."""

    for flag, side in SUBGROUP_ROUTES.items():
        if getattr(subgroup.routing, flag):
            yield side, level


def aux_matrix(
    channels: Sequence[ChannelState],
    signals: Sequence[ChannelSignal],
    aux_pre: Sequence[bool],
) -> np.ndarray:
    """Return per-channel aux send levels shaped ``(channel, bus)``.

    Each bus taps all channels at the same point: pre-fader when its flag is
    set, post-fader otherwise.
    """

    pre = np.array([signal.pre_fader for signal in signals], dtype=RAW_DTYPE)
    post = np.array([signal.post_fader for signal in signals], dtype=RAW_DTYPE)
    taps = np.where(np.asarray(aux_pre, dtype=bool)[None, :], pre[:, None], post[:, None])
    sends = np.array([channel.aux for channel in channels], dtype=RAW_DTYPE).reshape(
        len(channels), AUX_BUS_COUNT
    )
    return taps * sends


def compute_levels(
    channels: Sequence[ChannelState],
    subgroups: Sequence[SubgroupState],
    master: MasterState,
    aux_pre: Sequence[bool] = (True,) * AUX_BUS_COUNT,
) -> LevelSnapshot:
    """Derive every node level from one complete set of controls.

    Pure: no state is kept between calls and nothing passed in is mutated.
    """

    buses: Dict[str, float] = {MAIN_LEFT: 0.0, MAIN_RIGHT: 0.0}
    buses.update({subgroup_bus(sid): 0.0 for sid in SUBGROUP_IDS})

    signals = [channel_signal(channel) for channel in channels]
    channel_levels = {}
    for channel, signal in zip(channels, signals):
        channel_levels[channel.id] = signal.post_fader
        for bus, level in channel_sends(channel, signal):
            buses[bus] += level

    subgroup_levels = {}
    by_id = {subgroup.id: subgroup for subgroup in subgroups}
    for bus, sid in SUBGROUP_BUSES.items():
        subgroup = by_id[sid]
        level = buses[bus] * subgroup.fader
        subgroup_levels[sid] = level
        for side, value in subgroup_sends(subgroup, level):
            buses[side] += value

    master_levels = MasterLevels(buses[MAIN_LEFT] * master.fader, buses[MAIN_RIGHT] * master.fader)

    sends = aux_matrix(channels, signals, aux_pre)
    per_bus = [SourceLevels(*(float(v) for v in sends[:, k])) for k in range(AUX_BUS_COUNT)]
    headphones = []
    for number in sorted({hp for hp, _ in AUX_TO_HEADPHONE}):
        sides = {side: per_bus[k] for k, (hp, side) in enumerate(AUX_TO_HEADPHONE) if hp == number}
        headphones.append(HeadphoneLevels(left=sides["left"], right=sides["right"]))

    return LevelSnapshot(
        channels=MappingProxyType(channel_levels),
        subgroups=MappingProxyType(subgroup_levels),
        master=master_levels,
        aux_outputs=tuple(float(total) for total in sends.sum(axis=0)),
        headphones=tuple(headphones),
    )


def zero_levels() -> LevelSnapshot:
    """Snapshot published while the console is powered off."""

    silent = SourceLevels()
    return LevelSnapshot(
        channels=MappingProxyType({cid: 0.0 for cid in CHANNEL_IDS}),
        subgroups=MappingProxyType({sid: 0.0 for sid in SUBGROUP_IDS}),
        master=MasterLevels(0.0, 0.0),
        aux_outputs=(0.0,) * AUX_BUS_COUNT,
        headphones=(HeadphoneLevels(silent, silent), HeadphoneLevels(silent, silent)),
    )


__all__ = [
    "ChannelSignal",
    "HeadphoneLevels",
    "LevelSnapshot",
    "MasterLevels",
    "RAW_DTYPE",
    "SourceLevels",
    "aux_matrix",
    "channel_sends",
    "channel_signal",
    "compute_levels",
    "pan_law",
    "subgroup_sends",
    "zero_levels",
]
