import math
import sys

import numpy as np
import pytest

from edumixer.backend import (
    BackendUnavailableError,
    NullBackend,
    SoundDeviceBackend,
    ToneBank,
    Voice,
)


def immediate_bank(**kwargs) -> ToneBank:
    return ToneBank(8000, smoothing_seconds=0.0, **kwargs)


def test_bank_is_silent_without_targets() -> None:
    bank = ToneBank(44100)
    block = bank.render(64)
    assert block.shape == (64, 2)
    assert block.dtype == np.float32
    assert not block.any()


def test_single_centred_voice_matches_reference() -> None:
    bank = immediate_bank(channel_scale=0.5)
    bank.set_targets([1.0, 0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 0.0])
    bank.set_master(1.0)

    block = bank.render(16)

    n = np.arange(16)
    expected = np.sin(2.0 * math.pi * 130.81 / 8000 * n) * 0.5 * math.sqrt(0.5)
    np.testing.assert_allclose(block[:, 0], expected, atol=1e-6)
    np.testing.assert_allclose(block[:, 1], expected, atol=1e-6)


def test_hard_panned_voice_stays_on_one_side() -> None:
    bank = immediate_bank()
    bank.set_targets([0.0, 1.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0])
    bank.set_master(1.0)

    block = bank.render(128)

    np.testing.assert_allclose(block[:, 0], 0.0, atol=1e-7)
    assert np.abs(block[:, 1]).max() > 0.05


def test_phase_continues_across_blocks() -> None:
    whole = immediate_bank()
    split = immediate_bank()
    for bank in (whole, split):
        bank.set_targets([1.0, 1.0, 1.0, 1.0], [-0.5, 0.0, 0.5, 1.0])
        bank.set_master(0.8)

    joined = np.concatenate([split.render(40), split.render(24)])

    np.testing.assert_allclose(joined, whole.render(64), atol=1e-6)


def test_targets_are_approached_smoothly() -> None:
    bank = ToneBank(1000, smoothing_seconds=0.05)
    bank.set_targets([1.0, 0.0, 0.0, 0.0], [0.0] * 4)
    bank.set_master(1.0)

    bank.render(50)

    # One time constant of a one-pole approach covers 1 - 1/e of the distance.
    assert bank._volume[0] == pytest.approx(1.0 - math.exp(-1.0), rel=1e-9)
    assert bank._master == pytest.approx(1.0 - math.exp(-1.0), rel=1e-9)


def test_triangle_voice_is_bounded() -> None:
    bank = immediate_bank(voices=[Voice(440.0, "triangle")] * 4, channel_scale=1.0)
    bank.set_targets([1.0, 0.0, 0.0, 0.0], [-1.0, 0.0, 0.0, 0.0])
    bank.set_master(1.0)

    block = bank.render(400)

    assert np.abs(block[:, 0]).max() <= 1.0 + 1e-6
    assert np.abs(block[:, 0]).max() > 0.9


def test_set_targets_rejects_wrong_length() -> None:
    with pytest.raises(ValueError):
        ToneBank(44100).set_targets([1.0, 1.0], [0.0, 0.0])


def test_voice_validation() -> None:
    with pytest.raises(ValueError):
        Voice(220.0, "square")
    with pytest.raises(ValueError):
        Voice(0.0)


def test_null_backend_tracks_running() -> None:
    backend = NullBackend()
    backend.start()
    assert backend.running
    backend.set_channel_parameters([0.0] * 4, [0.0] * 4)
    backend.set_master_volume(0.5)
    backend.suspend()
    assert not backend.running


class _FakeStream:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.active = False
        self.started = 0
        self.closed = False

    def start(self) -> None:
        self.active = True
        self.started += 1

    def stop(self) -> None:
        self.active = False

    def close(self) -> None:
        self.closed = True


class _FakeSoundDevice:
    def __init__(self) -> None:
        self.streams: list[_FakeStream] = []

    def OutputStream(self, **kwargs) -> _FakeStream:
        stream = _FakeStream(**kwargs)
        self.streams.append(stream)
        return stream


def test_sounddevice_backend_lifecycle() -> None:
    sd = _FakeSoundDevice()
    backend = SoundDeviceBackend(ToneBank(48000), block_size=128, sd_module=sd)

    backend.start()
    backend.start()
    assert len(sd.streams) == 1
    stream = sd.streams[0]
    assert stream.started == 1
    assert stream.kwargs["samplerate"] == 48000
    assert stream.kwargs["blocksize"] == 128
    assert stream.kwargs["channels"] == 2

    backend.suspend()
    assert not backend.active
    backend.start()
    assert stream.started == 2
    assert len(sd.streams) == 1

    backend.close()
    assert stream.closed


def test_sounddevice_callback_fills_output() -> None:
    backend = SoundDeviceBackend(ToneBank(8000, smoothing_seconds=0.0), sd_module=_FakeSoundDevice())
    backend.set_channel_parameters([1.0, 1.0, 1.0, 1.0], [0.0] * 4)
    backend.set_master_volume(1.0)
    outdata = np.zeros((32, 2), dtype=np.float32)

    backend._callback(outdata, 32, None, None)

    assert np.abs(outdata).max() > 0.0


def test_missing_sounddevice_raises_unavailable(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "sounddevice", None)
    with pytest.raises(BackendUnavailableError):
        SoundDeviceBackend(ToneBank(44100))


class _PortAudioError(Exception):
    pass


class _DeviceLessSoundDevice:
    def OutputStream(self, **kwargs):
        raise _PortAudioError("Error querying device -1")


class _UnstartableStream(_FakeStream):
    def start(self) -> None:
        raise _PortAudioError("Device unavailable")


class _UnstartableSoundDevice(_FakeSoundDevice):
    def OutputStream(self, **kwargs) -> _FakeStream:
        stream = _UnstartableStream(**kwargs)
        self.streams.append(stream)
        return stream


def test_stream_open_failure_raises_unavailable() -> None:
    backend = SoundDeviceBackend(ToneBank(44100), sd_module=_DeviceLessSoundDevice())

    with pytest.raises(BackendUnavailableError, match="device -1") as excinfo:
        backend.start()

    assert isinstance(excinfo.value.__cause__, _PortAudioError)
    assert not backend.active


def test_stream_start_failure_closes_stream() -> None:
    sd = _UnstartableSoundDevice()
    backend = SoundDeviceBackend(ToneBank(44100), sd_module=sd)

    with pytest.raises(BackendUnavailableError):
        backend.start()

    assert sd.streams[0].closed
    assert backend._stream is None
