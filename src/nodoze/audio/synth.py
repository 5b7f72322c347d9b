"""Sine tone synthesis with linear fade in/out.

A sample is a pure function of its index:

    value    = sin(2 * pi * frequency * n / sample_rate)
    envelope = n / fade                    for n < fade
             = (total - n) / fade          for n > total - fade
             = 1.0                         otherwise
    sample   = value * envelope * gain     (0.0 once n >= total)

The envelope is not clamped. When the fade is longer than half the tone,
the fade-in branch wins until n reaches the fade length and the fade-out
branch takes over from there.
"""

import math
from typing import Optional

import numpy as np

from .sync import CompletionFlag


def sample_count(seconds: float, sample_rate: float) -> int:
    """Convert a duration to a whole number of frames (truncating)."""
    return int(seconds * sample_rate)


def envelope(n: int, total_samples: int, fade_samples: int) -> float:
    """Fade envelope at sample index `n`."""
    if fade_samples <= 0:
        return 1.0
    if n < fade_samples:
        return n / fade_samples
    if n > total_samples - fade_samples:
        return (total_samples - n) / fade_samples
    return 1.0


def synthesize(
    n: int,
    sample_rate: float,
    frequency: float,
    total_samples: int,
    fade_samples: int,
    gain: float = 1.0,
) -> float:
    """Enveloped sine sample at index `n`, in [-1, 1] for gain <= 1."""
    if n >= total_samples:
        return 0.0
    value = math.sin(2.0 * math.pi * frequency * (n / sample_rate))
    return value * envelope(n, total_samples, fade_samples) * gain


class ToneGenerator:
    """Render blocks of consecutive tone samples.

    Block form of `synthesize`, used from the audio callback so that a
    whole hardware buffer is computed with a handful of numpy operations
    instead of a Python loop per frame.
    """

    def __init__(
        self,
        sample_rate: float,
        frequency: float,
        total_samples: int,
        fade_samples: int,
        gain: float = 1.0,
    ):
        """Initialize generator.

        Args:
            sample_rate: Output sample rate in Hz
            frequency: Tone frequency in Hz
            total_samples: Tone length in frames
            fade_samples: Fade in/out length in frames
            gain: Output gain, expected in [0, 1]
        """
        self.sample_rate = float(sample_rate)
        self.frequency = float(frequency)
        self.total_samples = int(total_samples)
        self.fade_samples = int(fade_samples)
        self.gain = float(gain)
        self._offsets = np.arange(0, dtype=np.int64)

    def envelope(self, n: np.ndarray) -> np.ndarray:
        """Fade envelope for an array of sample indices."""
        env = np.ones(n.shape, dtype=np.float64)
        fade = self.fade_samples
        if fade <= 0:
            return env
        fade_in = n < fade
        fade_out = ~fade_in & (n > self.total_samples - fade)
        env[fade_in] = n[fade_in] / fade
        env[fade_out] = (self.total_samples - n[fade_out]) / fade
        return env

    def render(
        self,
        start: int,
        frames: int,
        done: Optional[CompletionFlag] = None,
    ) -> np.ndarray:
        """Render `frames` samples starting at index `start`.

        Samples at or past the end of the tone are silent. If any such
        sample is rendered, `done` is set.

        Returns:
            float32 array of shape (frames,)
        """
        if self._offsets.size != frames:
            self._offsets = np.arange(frames, dtype=np.int64)
        n = self._offsets + start

        t = n / self.sample_rate
        samples = np.sin(2.0 * np.pi * self.frequency * t)
        samples *= self.envelope(n)
        samples *= self.gain

        if start + frames > self.total_samples:
            samples[n >= self.total_samples] = 0.0
            if done is not None:
                done.set()

        return samples.astype(np.float32)
