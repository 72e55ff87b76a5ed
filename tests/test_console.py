import dataclasses
import threading

import pytest

from edumixer.console import (
    ChannelState,
    ConsoleState,
    ControlStore,
    MasterState,
    SubgroupState,
    default_console,
    toggle_aux_pre,
    with_aux_pre,
    with_channel,
    with_master_fader,
    with_subgroup,
)


def test_default_console_matches_factory_layout() -> None:
    state = default_console()

    assert [ch.name for ch in state.channels] == ["CH 1", "CH 2", "CH 3", "CH 4"]
    assert state.channel(1).color == "#f97316"
    assert all(ch.gain == 0.0 and ch.fader == 0.75 for ch in state.channels)
    assert all(ch.routing.to_main and not ch.routing.to_sub12 for ch in state.channels)
    assert state.subgroup(1).routing.to_master_left and not state.subgroup(1).routing.to_master_right
    assert state.subgroup(2).routing.to_master_right and not state.subgroup(2).routing.to_master_left
    assert state.master.fader == pytest.approx(0.8)
    assert state.aux_pre == (True, True, True, True)


def test_console_state_is_immutable() -> None:
    state = default_console()
    with pytest.raises(dataclasses.FrozenInstanceError):
        state.channel(1).gain = 1.0  # type: ignore[misc]


def test_with_channel_returns_new_state() -> None:
    state = default_console()
    edited = with_channel(state, 2, gain=0.4, pan=-0.2)

    assert edited is not state
    assert state.channel(2).gain == 0.0
    assert edited.channel(2).gain == pytest.approx(0.4)
    assert edited.channel(2).pan == pytest.approx(-0.2)
    assert edited.channel(1) is state.channel(1)


def test_channel_edits_are_clamped() -> None:
    state = with_channel(default_console(), 1, gain=1.4, fader=-0.2, pan=3.0, aux=[2.0, -1.0, 0.5, 0.5])
    channel = state.channel(1)

    assert channel.gain == 1.0
    assert channel.fader == 0.0
    assert channel.pan == 1.0
    assert channel.aux == (1.0, 0.0, 0.5, 0.5)


def test_partial_routing_and_aux_updates() -> None:
    state = with_channel(default_console(), 3, routing={"to_sub34": True}, aux={2: 0.7})
    channel = state.channel(3)

    assert channel.routing.to_main and channel.routing.to_sub34
    assert not channel.routing.to_sub12
    assert channel.aux == (0.0, 0.0, 0.7, 0.0)


def test_subgroup_master_and_aux_edits() -> None:
    state = with_subgroup(default_console(), 4, fader=0.3, routing={"to_master_left": True})
    state = with_master_fader(state, 1.7)
    state = with_aux_pre(state, 1, False)

    assert state.subgroup(4).fader == pytest.approx(0.3)
    assert state.subgroup(4).routing.to_master_left and state.subgroup(4).routing.to_master_right
    assert state.master.fader == 1.0
    assert state.aux_pre == (True, False, True, True)
    assert toggle_aux_pre(state, 1).aux_pre == (True, True, True, True)


def test_unknown_ids_and_fields_are_rejected() -> None:
    state = default_console()
    with pytest.raises(KeyError):
        with_channel(state, 5, gain=0.5)
    with pytest.raises(KeyError):
        with_subgroup(state, 0, fader=0.5)
    with pytest.raises(TypeError):
        with_channel(state, 1, volume=0.5)


def test_console_requires_fixed_shape() -> None:
    state = default_console()
    with pytest.raises(ValueError):
        ConsoleState(channels=state.channels[:3], subgroups=state.subgroups)
    with pytest.raises(ValueError):
        ConsoleState(channels=state.channels + (ChannelState(id=5),), subgroups=state.subgroups)


def test_dict_round_trip_preserves_state() -> None:
    state = with_channel(default_console(), 1, gain=0.9, routing={"to_sub12": True})
    assert ConsoleState.from_dict(state.to_dict()) == state


def test_control_store_swaps_whole_snapshots() -> None:
    store = ControlStore()
    before = store.snapshot()

    after = store.update(lambda s: with_channel(s, 1, gain=0.5))

    assert store.snapshot() is after
    assert before.channel(1).gain == 0.0
    store.publish(before)
    assert store.snapshot() is before


def test_control_store_updates_are_atomic() -> None:
    store = ControlStore(with_master_fader(default_console(), 0.0))

    def bump() -> None:
        for _ in range(200):
            store.update(lambda s: with_master_fader(s, s.master.fader + 0.001))

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.snapshot().master.fader == pytest.approx(0.8, abs=1e-9)


def test_bare_strips_start_fully_down_unlike_factory_console() -> None:
    assert ChannelState(id=1).fader == 0.0
    assert SubgroupState(id=1).fader == 0.0
    assert MasterState().fader == 0.0

    factory = default_console()
    assert factory.channel(1).fader == pytest.approx(0.75)
    assert factory.subgroup(1).fader == pytest.approx(0.75)
    assert factory.master.fader == pytest.approx(0.8)
