"""Shared fixtures: a fake sounddevice backend."""

from types import SimpleNamespace

import numpy as np
import pytest

from nodoze.audio import devices


class FakePortAudioError(Exception):
    pass


class FakeCallbackFlags:
    def __init__(self, output_underflow: bool = False):
        self.output_underflow = output_underflow

    def __bool__(self):
        return self.output_underflow


def _device(index, name, outputs, samplerate=48000.0, hostapi=0, inputs=0):
    return {
        'index': index,
        'name': name,
        'hostapi': hostapi,
        'max_input_channels': inputs,
        'max_output_channels': outputs,
        'default_samplerate': samplerate,
    }


class FakeOutputStream:
    """Output stream whose callback only runs when the test pumps it."""

    def __init__(self, backend, samplerate, blocksize, device, channels, dtype, callback):
        if backend.build_error:
            raise backend.PortAudioError(backend.build_error)
        self.backend = backend
        self.samplerate = samplerate
        self.blocksize = blocksize
        self.device = device
        self.channels = channels
        self.dtype = dtype
        self.callback = callback
        self.blocks: list[np.ndarray] = []
        self._active = False
        self.closed = False
        self.underflow_next = False
        backend.streams.append(self)

    @property
    def active(self):
        if self.backend.active_error:
            raise self.backend.PortAudioError(self.backend.active_error)
        return self._active

    @active.setter
    def active(self, value):
        self._active = value

    def start(self):
        if self.backend.start_error:
            raise self.backend.PortAudioError(self.backend.start_error)
        self.active = True

    def stop(self):
        self.active = False

    def close(self):
        self._active = False
        if self.backend.close_error:
            raise self.backend.PortAudioError(self.backend.close_error)
        self.closed = True

    def pump(self):
        outdata = np.empty((self.blocksize, self.channels), dtype=self.dtype)
        flags = FakeCallbackFlags(self.underflow_next)
        self.underflow_next = False
        self.callback(outdata, self.blocksize, None, flags)
        self.blocks.append(outdata)

    def rendered(self) -> np.ndarray:
        return np.concatenate(self.blocks)


class FakeSounddevice:
    """Stand-in for the sounddevice module."""

    PortAudioError = FakePortAudioError

    def __init__(self):
        self.devices = [
            _device(0, 'Built-in Microphone', outputs=0, inputs=2),
            _device(1, 'MacBook Pro Speakers', outputs=2),
            _device(2, 'DELL U2720Q (HDMI)', outputs=8, samplerate=44100.0),
            _device(3, 'DELL U2720Q (HDMI)', outputs=2, hostapi=1),
            _device(4, 'USB Audio DAC', outputs=2),
        ]
        self.default = SimpleNamespace(
            device=[0, 1],
            hostapi=0,
            dtype=['float32', 'float32'],
        )
        self.streams: list[FakeOutputStream] = []
        self.query_error = None
        self.build_error = None
        self.start_error = None
        self.active_error = None
        self.close_error = None

    def query_devices(self, device=None, kind=None):
        if self.query_error:
            raise self.PortAudioError(self.query_error)
        if device is None and kind is None:
            return list(self.devices)
        if device is None:
            device = self.default.device[1 if kind == 'output' else 0]
        if not 0 <= device < len(self.devices):
            raise self.PortAudioError(f'Error querying device {device}')
        return self.devices[device]

    def OutputStream(self, **kwargs):
        return FakeOutputStream(self, **kwargs)

    def pump(self, *_):
        """Run one callback on every active stream; usable as a sleep function."""
        for stream in self.streams:
            if stream._active:
                stream.pump()


@pytest.fixture
def fake_sd(monkeypatch):
    """Replace sounddevice with a FakeSounddevice."""
    backend = FakeSounddevice()
    monkeypatch.setattr(devices, 'sd', backend)
    return backend


@pytest.fixture
def no_sd(monkeypatch):
    """Simulate sounddevice failing to load PortAudio."""
    monkeypatch.setattr(devices, 'sd', None)
    monkeypatch.setattr(devices, 'SOUNDDEVICE_ERROR', 'PortAudio library not found')
