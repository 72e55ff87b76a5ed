"""Reduce each channel's path to the master bus into backend volume/pan.

The tone backend only understands one mono volume and one pan position per
voice. Aggregated bus sums mix channels together, so every channel's route
is replayed on its own through the same helpers the level engine uses.
"""

from __future__ import annotations

from typing import Dict, Mapping, NamedTuple, Sequence, Tuple

from .console import ChannelState, ConsoleState, SubgroupState
from .levels import MasterLevels, channel_sends, channel_signal, subgroup_sends
from .state import MAIN_LEFT, MAIN_RIGHT, SUBGROUP_BUSES

PAN_EPSILON = 1e-4


class ChannelParameters(NamedTuple):
    volume: float
    pan: float


class BackendParameters(NamedTuple):
    """Targets forwarded to the tone backend for one tick."""

    volumes: Tuple[float, ...]
    pans: Tuple[float, ...]
    master_volume: float


def channel_master_contribution(
    channel: ChannelState, subgroups: Mapping[int, SubgroupState]
) -> MasterLevels:
    """Return what ``channel`` alone adds to each master side.

    Direct main sends count as-is; sends into a subgroup are scaled by that
    subgroup's fader and land on whichever master sides it is routed to.
    The master fader is not applied.
    """

    sides: Dict[str, float] = {MAIN_LEFT: 0.0, MAIN_RIGHT: 0.0}
    for bus, level in channel_sends(channel, channel_signal(channel)):
        if bus in SUBGROUP_BUSES:
            subgroup = subgroups[SUBGROUP_BUSES[bus]]
            for side, value in subgroup_sends(subgroup, level * subgroup.fader):
                sides[side] += value
        else:
            sides[bus] += level
    return MasterLevels(sides[MAIN_LEFT], sides[MAIN_RIGHT])


def collapse(contribution: MasterLevels) -> ChannelParameters:
    """Fold a stereo contribution into ``(volume, pan)``.

    Silent channels have no meaningful pan and report centre.
    """

    volume = contribution.left + contribution.right
    if volume <= PAN_EPSILON:
        return ChannelParameters(volume, 0.0)
    pan = (contribution.right - contribution.left) / volume
    return ChannelParameters(volume, min(1.0, max(-1.0, pan)))


def map_channels(
    channels: Sequence[ChannelState], subgroups: Sequence[SubgroupState]
) -> Tuple[ChannelParameters, ...]:
    by_id = {subgroup.id: subgroup for subgroup in subgroups}
    return tuple(collapse(channel_master_contribution(channel, by_id)) for channel in channels)


def map_parameters(state: ConsoleState) -> BackendParameters:
    params = map_channels(state.channels, state.subgroups)
    return BackendParameters(
        volumes=tuple(p.volume for p in params),
        pans=tuple(p.pan for p in params),
        master_volume=state.master.fader,
    )


__all__ = [
    "BackendParameters",
    "ChannelParameters",
    "PAN_EPSILON",
    "channel_master_contribution",
    "collapse",
    "map_channels",
    "map_parameters",
]
