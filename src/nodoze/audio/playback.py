"""Tone playback on an output device.

A PlaybackSession owns one output stream for one tone:

    IDLE -> OPENING -> PLAYING -> DRAINING -> CLOSED

The stream's callback runs on the PortAudio thread. It advances the
session's SampleClock, renders the block and sets the CompletionFlag once
the end of the tone has been rendered. The calling thread polls the flag,
waits a short drain delay so the last buffer reaches the hardware, and
then closes the stream. Sessions are single use.
"""

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

import numpy as np

from . import devices
from .devices import DeviceHandle, OutputSettings
from .errors import AudioError, StreamBuildFailed, StreamStartFailed
from .formats import write_frames
from .synth import ToneGenerator, sample_count
from .sync import CompletionFlag, SampleClock

log = logging.getLogger(__name__)


# Timing constants
BLOCKSIZE = 4096       # frames per callback
POLL_INTERVAL = 0.1    # completion poll period in seconds
DRAIN_DELAY = 0.05     # grace period before closing the stream


@dataclass(frozen=True)
class PlaybackParameters:
    """Everything needed to play one tone."""
    frequency: float = 20.0
    amplitude: float = 0.05
    duration: float = 15.0
    fade_duration: float = 1.0
    device: str = ""
    sample_format: str = ""

    def __post_init__(self):
        if self.frequency <= 0:
            raise ValueError(f"frequency must be positive, got {self.frequency}")
        for name in ("frequency", "duration", "fade_duration"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite, got {getattr(self, name)}")
        amplitude = float(self.amplitude)
        if math.isnan(amplitude):
            amplitude = 0.0
        object.__setattr__(self, "amplitude", min(max(amplitude, 0.0), 1.0))

    @classmethod
    def from_config(cls, config) -> "PlaybackParameters":
        """Build parameters from a Config (or anything with the same fields)."""
        return cls(
            frequency=config.frequency,
            amplitude=config.volume,
            duration=config.duration,
            fade_duration=config.fade_duration,
            device=config.device,
            sample_format=getattr(config, "sample_format", ""),
        )


class SessionState(Enum):
    """Playback session lifecycle."""
    IDLE = auto()
    OPENING = auto()
    PLAYING = auto()
    DRAINING = auto()
    CLOSED = auto()


class PlaybackSession:
    """Plays one tone through one output stream."""

    def __init__(
        self,
        params: PlaybackParameters,
        blocksize: int = BLOCKSIZE,
        poll_interval: float = POLL_INTERVAL,
        drain_delay: float = DRAIN_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize session.

        Args:
            params: Tone and device parameters
            blocksize: Frames requested per callback
            poll_interval: Seconds between completion checks
            drain_delay: Seconds to wait after completion before closing
            sleep: Sleep function used by the controlling thread
        """
        self.params = params
        self.blocksize = blocksize
        self.poll_interval = poll_interval
        self.drain_delay = drain_delay
        self._sleep = sleep

        self.state = SessionState.IDLE
        self.device: Optional[DeviceHandle] = None
        self.settings: Optional[OutputSettings] = None
        self.total_samples = 0
        self.fade_samples = 0

        self.clock = SampleClock()
        self.done = CompletionFlag()
        self.underflows = 0

        self._generator: Optional[ToneGenerator] = None
        self._stream = None

    def open(self) -> None:
        """Resolve the device, negotiate settings and build the stream.

        Raises:
            AudioError: On any failure; partially acquired resources are
                released and the session is closed
        """
        if self.state != SessionState.IDLE:
            raise RuntimeError(f"Session cannot be opened from state {self.state.name}")
        self.state = SessionState.OPENING

        try:
            self.device = devices.resolve_device(self.params.device)
            self.settings = devices.query_output_settings(
                self.device, self.params.sample_format or None
            )

            rate = self.settings.samplerate
            self.total_samples = sample_count(self.params.duration, rate)
            self.fade_samples = sample_count(self.params.fade_duration, rate)
            self.clock = SampleClock()
            self.done = CompletionFlag()
            self._generator = ToneGenerator(
                sample_rate=rate,
                frequency=self.params.frequency,
                total_samples=self.total_samples,
                fade_samples=self.fade_samples,
                gain=self.params.amplitude,
            )

            self._stream = self._build_stream()
        except AudioError:
            self.close()
            raise

    def _build_stream(self):
        backend = devices.get_backend()
        try:
            return backend.OutputStream(
                samplerate=self.settings.samplerate,
                blocksize=self.blocksize,
                device=self.device.index,
                channels=self.settings.channels,
                dtype=self.settings.sample_format,
                callback=self._callback,
            )
        except (backend.PortAudioError, ValueError, TypeError) as e:
            raise StreamBuildFailed(f"Failed to build output stream: {e}") from e

    def _callback(
        self,
        outdata: np.ndarray,
        frames: int,
        time_info,
        status,
    ) -> None:
        """Stream callback - render the next block of the tone."""
        if status.output_underflow:
            self.underflows += 1

        start = self.clock.advance(frames)
        samples = self._generator.render(start, frames, self.done)
        write_frames(outdata, samples, self.settings.sample_format)

    def start(self) -> None:
        """Start the opened stream.

        Raises:
            StreamStartFailed: If the backend refuses to start the stream
        """
        if self.state != SessionState.OPENING or self._stream is None:
            raise RuntimeError(f"Session cannot be started from state {self.state.name}")

        backend = devices.get_backend()
        try:
            self._stream.start()
        except backend.PortAudioError as e:
            self.close()
            raise StreamStartFailed(f"Failed to play stream: {e}") from e
        self.state = SessionState.PLAYING

    def wait(self) -> None:
        """Block until the whole tone has been rendered, then drain.

        Raises:
            StreamStartFailed: If the stream stops before the tone finished
        """
        backend = devices.get_backend()
        while not self.done.is_set():
            try:
                active = self._stream.active
            except backend.PortAudioError as e:
                self.close()
                raise StreamStartFailed(f"Output stream failed during playback: {e}") from e
            if not active:
                self.close()
                raise StreamStartFailed("Output stream stopped before the tone finished")
            self._sleep(self.poll_interval)

        self.state = SessionState.DRAINING
        self._sleep(self.drain_delay)

    def close(self) -> None:
        """Release the stream. Safe to call more than once."""
        stream, self._stream = self._stream, None
        if stream is not None:
            backend = devices.get_backend()
            try:
                stream.stop()
            except backend.PortAudioError as e:
                log.warning("Failed to stop output stream: %s", e)
            try:
                stream.close()
            except backend.PortAudioError as e:
                log.warning("Failed to close output stream: %s", e)
        self.state = SessionState.CLOSED

    def play(self) -> None:
        """Open, play to completion, drain and close."""
        self.open()
        log.info(
            "Playing %gHz tone for %gs at %.0f%% volume on '%s'",
            self.params.frequency,
            self.params.duration,
            self.params.amplitude * 100,
            self.device.name,
        )
        self.start()
        try:
            self.wait()
        finally:
            self.close()

        if self.underflows:
            log.warning("Output underflowed %d time(s) during playback", self.underflows)


def play_tone(config, **session_options) -> None:
    """Play one tone synchronously.

    Args:
        config: PlaybackParameters, or a Config to derive them from
        **session_options: Forwarded to PlaybackSession

    Raises:
        AudioError: If the tone could not be played
    """
    if isinstance(config, PlaybackParameters):
        params = config
    else:
        params = PlaybackParameters.from_config(config)

    PlaybackSession(params, **session_options).play()
    log.info("Tone playback complete")


def list_devices() -> list[str]:
    """List output device names; the default device is marked '(default)'.

    Raises:
        EnumerationFailed: If the backend cannot list devices
    """
    return devices.enumerate_devices()
