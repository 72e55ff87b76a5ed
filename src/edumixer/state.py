"""Console dimensions, routing tables and factory defaults."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

# =========================
# Console shape
# =========================
CHANNEL_IDS: Tuple[int, ...] = (1, 2, 3, 4)
SUBGROUP_IDS: Tuple[int, ...] = (1, 2, 3, 4)
AUX_BUS_COUNT = 4

# =========================
# Bus names
# =========================
MAIN_LEFT = "main_left"
MAIN_RIGHT = "main_right"


def subgroup_bus(subgroup_id: int) -> str:
    """Return the accumulation bus name feeding ``subgroup_id``."""

    return f"sub{subgroup_id}"


# =========================
# Routing tables
# =========================
# Channel routing flag -> (bus receiving the left side, bus receiving the right side).
# Odd subgroups carry the left side of a pair, even subgroups the right.
CHANNEL_ROUTES: Mapping[str, Tuple[str, str]] = {
    "to_main": (MAIN_LEFT, MAIN_RIGHT),
    "to_sub12": (subgroup_bus(1), subgroup_bus(2)),
    "to_sub34": (subgroup_bus(3), subgroup_bus(4)),
}

# Subgroup routing flag -> master side.
SUBGROUP_ROUTES: Mapping[str, str] = {
    "to_master_left": MAIN_LEFT,
    "to_master_right": MAIN_RIGHT,
}

SUBGROUP_BUSES: Mapping[str, int] = {subgroup_bus(sid): sid for sid in SUBGROUP_IDS}

# Aux bus index (0-based) -> (headphone number, side). Fixed wiring.
AUX_TO_HEADPHONE: Tuple[Tuple[int, str], ...] = (
    (1, "left"),
    (1, "right"),
    (2, "left"),
    (2, "right"),
)

# =========================
# Factory defaults
# =========================
CHANNEL_COLOURS: Tuple[str, ...] = ("#f97316", "#3b82f6", "#eab308", "#a855f7")

DEFAULT_CHANNEL_FADER = 0.75
DEFAULT_SUBGROUP_FADER = 0.75
DEFAULT_MASTER_FADER = 0.8
DEFAULT_INPUT_LEVEL = 1.0


def build_default_console() -> Dict[str, Any]:
    """Return the factory console layout as plain data.

    Channels start with gain at zero so nothing is audible until the user
    raises a gain. Odd subgroups sit on master-left, even on master-right,
    and every aux bus taps pre-fader.
    """

    channels = [
        {
            "id": cid,
            "name": f"CH {cid}",
            "color": CHANNEL_COLOURS[cid - 1],
            "gain": 0.0,
            "pan": 0.0,
            "fader": DEFAULT_CHANNEL_FADER,
            "input_level": DEFAULT_INPUT_LEVEL,
            "aux": [0.0] * AUX_BUS_COUNT,
            "routing": {"to_main": True, "to_sub12": False, "to_sub34": False},
        }
        for cid in CHANNEL_IDS
    ]
    subgroups = [
        {
            "id": sid,
            "name": f"SUB {sid}",
            "fader": DEFAULT_SUBGROUP_FADER,
            "routing": {"to_master_left": sid % 2 == 1, "to_master_right": sid % 2 == 0},
        }
        for sid in SUBGROUP_IDS
    ]
    return {
        "channels": channels,
        "subgroups": subgroups,
        "master": {"fader": DEFAULT_MASTER_FADER},
        "aux_pre": [True] * AUX_BUS_COUNT,
    }


__all__ = [
    "AUX_BUS_COUNT",
    "AUX_TO_HEADPHONE",
    "CHANNEL_COLOURS",
    "CHANNEL_IDS",
    "CHANNEL_ROUTES",
    "DEFAULT_CHANNEL_FADER",
    "DEFAULT_INPUT_LEVEL",
    "DEFAULT_MASTER_FADER",
    "DEFAULT_SUBGROUP_FADER",
    "MAIN_LEFT",
    "MAIN_RIGHT",
    "SUBGROUP_BUSES",
    "SUBGROUP_IDS",
    "SUBGROUP_ROUTES",
    "build_default_console",
    "subgroup_bus",
]
