"""Cross-thread playback signal.

The audio callback is the only writer of both values; the controlling
thread only reads them. Single attribute loads and stores are atomic
under the GIL, so neither side takes a lock. The audio thread must never
block.
"""


class SampleClock:
    """Frame counter advanced by the audio callback."""

    __slots__ = ("_next",)

    def __init__(self) -> None:
        self._next = 0

    def advance(self, frames: int) -> int:
        """Claim the next `frames` sample indices.

        Returns:
            Index of the first claimed frame
        """
        start = self._next
        self._next = start + frames
        return start

    @property
    def value(self) -> int:
        """Index of the next frame to be rendered."""
        return self._next


class CompletionFlag:
    """Set once by the audio callback when the tone has been fully rendered."""

    __slots__ = ("_done",)

    def __init__(self) -> None:
        self._done = False

    def set(self) -> None:
        # Idempotent; the callback sets it on every block past the end.
        self._done = True

    def is_set(self) -> bool:
        return self._done
