"""Console topology and control state.

Every object here is immutable. The host changes the console by building a
new :class:`ConsoleState` through the ``with_*`` helpers and publishing it to
a :class:`ControlStore`; the tick loop reads one complete snapshot per tick
and never sees a half-applied edit.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .state import AUX_BUS_COUNT, CHANNEL_IDS, SUBGROUP_IDS, build_default_console


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, float(value)))


@dataclass(frozen=True, slots=True)
class ChannelRouting:
    """Independent routing switches; any combination may be on at once."""

    to_main: bool = True
    to_sub12: bool = False
    to_sub34: bool = False


@dataclass(frozen=True, slots=True)
class ChannelState:
    """Input channel strip.

    Attributes:
        id: Fixed channel number (1-4)
        gain: Input trim (0.0-1.0)
        pan: Stereo position (-1.0=left, 0.0=centre, 1.0=right)
        fader: Channel fader (0.0-1.0)
        input_level: Simulated source presence (0.0-1.0)
        aux: Send level per aux bus (0.0-1.0 each)
        routing: Destination switches

    Bare instances start with the fader fully down; default_console()
    supplies the factory positions.
    """

    id: int
    name: str = ""
    color: str = ""
    gain: float = 0.0
    pan: float = 0.0
    fader: float = 0.0
    input_level: float = 1.0
    aux: Tuple[float, ...] = (0.0,) * AUX_BUS_COUNT
    routing: ChannelRouting = field(default_factory=ChannelRouting)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "gain": self.gain,
            "pan": self.pan,
            "fader": self.fader,
            "input_level": self.input_level,
            "aux": list(self.aux),
            "routing": dataclasses.asdict(self.routing),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChannelState":
        routing = data.get("routing", {}) or {}
        aux = tuple(float(v) for v in data.get("aux", (0.0,) * AUX_BUS_COUNT))
        if len(aux) != AUX_BUS_COUNT:
            raise ValueError(f"channel aux must hold {AUX_BUS_COUNT} sends, got {len(aux)}")
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            color=str(data.get("color", "")),
            gain=float(data.get("gain", 0.0)),
            pan=float(data.get("pan", 0.0)),
            fader=float(data.get("fader", 0.0)),
            input_level=float(data.get("input_level", 1.0)),
            aux=aux,
            routing=ChannelRouting(
                to_main=bool(routing.get("to_main", True)),
                to_sub12=bool(routing.get("to_sub12", False)),
                to_sub34=bool(routing.get("to_sub34", False)),
            ),
        )


@dataclass(frozen=True, slots=True)
class SubgroupRouting:
    to_master_left: bool = False
    to_master_right: bool = False


@dataclass(frozen=True, slots=True)
class SubgroupState:
    """Subgroup strip. A bare instance has its fader fully down."""

    id: int
    name: str = ""
    fader: float = 0.0
    routing: SubgroupRouting = field(default_factory=SubgroupRouting)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "fader": self.fader,
            "routing": dataclasses.asdict(self.routing),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SubgroupState":
        routing = data.get("routing", {}) or {}
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            fader=float(data.get("fader", 0.0)),
            routing=SubgroupRouting(
                to_master_left=bool(routing.get("to_master_left", False)),
                to_master_right=bool(routing.get("to_master_right", False)),
            ),
        )


@dataclass(frozen=True, slots=True)
class MasterState:
    """Master section; one fader shared by both stereo sides.

    The bare default is 0.0; the factory console sets 0.8.
    """

    fader: float = 0.0


@dataclass(frozen=True, slots=True)
class ConsoleState:
    """Complete control state for one tick.

    ``aux_pre`` holds one flag per aux bus: ``True`` taps every channel
    before its fader, ``False`` after it.
    """

    channels: Tuple[ChannelState, ...]
    subgroups: Tuple[SubgroupState, ...]
    master: MasterState = field(default_factory=MasterState)
    aux_pre: Tuple[bool, ...] = (True,) * AUX_BUS_COUNT

    def __post_init__(self) -> None:
        if tuple(ch.id for ch in self.channels) != CHANNEL_IDS:
            raise ValueError(f"console requires channels {CHANNEL_IDS} in order")
        if tuple(sg.id for sg in self.subgroups) != SUBGROUP_IDS:
            raise ValueError(f"console requires subgroups {SUBGROUP_IDS} in order")
        if len(self.aux_pre) != AUX_BUS_COUNT:
            raise ValueError(f"aux_pre must hold {AUX_BUS_COUNT} flags")

    def channel(self, channel_id: int) -> ChannelState:
        if channel_id not in CHANNEL_IDS:
            raise KeyError(f"unknown channel {channel_id}")
        return self.channels[channel_id - 1]

    def subgroup(self, subgroup_id: int) -> SubgroupState:
        if subgroup_id not in SUBGROUP_IDS:
            raise KeyError(f"unknown subgroup {subgroup_id}")
        return self.subgroups[subgroup_id - 1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channels": [ch.to_dict() for ch in self.channels],
            "subgroups": [sg.to_dict() for sg in self.subgroups],
            "master": {"fader": self.master.fader},
            "aux_pre": list(self.aux_pre),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConsoleState":
        return cls(
            channels=tuple(ChannelState.from_dict(item) for item in data["channels"]),
            subgroups=tuple(SubgroupState.from_dict(item) for item in data["subgroups"]),
            master=MasterState(fader=float((data.get("master") or {}).get("fader", 0.0))),
            aux_pre=tuple(bool(flag) for flag in data.get("aux_pre", (True,) * AUX_BUS_COUNT)),
        )


def default_console() -> ConsoleState:
    """Return the factory console."""

    return ConsoleState.from_dict(build_default_console())


# =========================
# Copy-on-write edits
# =========================


def with_channel(state: ConsoleState, channel_id: int, **changes: Any) -> ConsoleState:
    """Return ``state`` with one channel edited.

    Values are clamped to their documented ranges. ``routing`` may be a
    partial mapping such as ``{"to_sub12": True}``; ``aux`` may be a full
    sequence or a ``{bus_index: level}`` mapping.
    """

    current = state.channel(channel_id)
    for key in ("gain", "fader", "input_level"):
        if key in changes:
            changes[key] = _clamp(changes[key], 0.0, 1.0)
    if "pan" in changes:
        changes["pan"] = _clamp(changes["pan"], -1.0, 1.0)
    if "aux" in changes:
        aux = changes["aux"]
        if isinstance(aux, Mapping):
            levels = list(current.aux)
            for index, value in aux.items():
                levels[index] = value
            aux = levels
        if len(aux) != AUX_BUS_COUNT:
            raise ValueError(f"aux must hold {AUX_BUS_COUNT} sends, got {len(aux)}")
        changes["aux"] = tuple(_clamp(v, 0.0, 1.0) for v in aux)
    if "routing" in changes:
        routing = changes["routing"]
        if isinstance(routing, Mapping):
            routing = dataclasses.replace(current.routing, **{k: bool(v) for k, v in routing.items()})
        changes["routing"] = routing
    updated = dataclasses.replace(current, **changes)
    channels = tuple(updated if ch.id == channel_id else ch for ch in state.channels)
    return dataclasses.replace(state, channels=channels)


def with_subgroup(state: ConsoleState, subgroup_id: int, **changes: Any) -> ConsoleState:
    current = state.subgroup(subgroup_id)
    if "fader" in changes:
        changes["fader"] = _clamp(changes["fader"], 0.0, 1.0)
    if "routing" in changes:
        routing = changes["routing"]
        if isinstance(routing, Mapping):
            routing = dataclasses.replace(current.routing, **{k: bool(v) for k, v in routing.items()})
        changes["routing"] = routing
    updated = dataclasses.replace(current, **changes)
    subgroups = tuple(updated if sg.id == subgroup_id else sg for sg in state.subgroups)
    return dataclasses.replace(state, subgroups=subgroups)


def with_master_fader(state: ConsoleState, value: float) -> ConsoleState:
    return dataclasses.replace(state, master=MasterState(fader=_clamp(value, 0.0, 1.0)))


def with_aux_pre(state: ConsoleState, bus_index: int, pre: bool) -> ConsoleState:
    """Set the tap point of aux bus ``bus_index`` (0-based) for every channel."""

    flags = list(state.aux_pre)
    flags[bus_index] = bool(pre)
    return dataclasses.replace(state, aux_pre=tuple(flags))


def toggle_aux_pre(state: ConsoleState, bus_index: int) -> ConsoleState:
    return with_aux_pre(state, bus_index, not state.aux_pre[bus_index])


class ControlStore:
    """Holds the current console snapshot and swaps it atomically."""

    def __init__(self, initial: Optional[ConsoleState] = None) -> None:
        self._lock = Lock()
        self._state = initial if initial is not None else default_console()

    def snapshot(self) -> ConsoleState:
        with self._lock:
            return self._state

    def publish(self, state: ConsoleState) -> None:
        with self._lock:
            self._state = state

    def update(self, edit: Callable[[ConsoleState], ConsoleState]) -> ConsoleState:
        """Apply ``edit`` to the current snapshot and publish the result."""

        with self._lock:
            self._state = edit(self._state)
            return self._state


__all__ = [
    "ChannelRouting",
    "ChannelState",
    "ConsoleState",
    "ControlStore",
    "MasterState",
    "SubgroupRouting",
    "SubgroupState",
    "default_console",
    "toggle_aux_pre",
    "with_aux_pre",
    "with_channel",
    "with_master_fader",
    "with_subgroup",
]
