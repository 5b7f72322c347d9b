"""Periodic tone scheduling.

A tone is due when at least `interval` seconds of wall-clock time have
passed since the last successful tone started. Wall-clock time keeps
running while the machine sleeps, so after a long suspend the next tone
plays on the first poll after wake instead of a full interval later.
"""

import logging
import time
from typing import Callable, NoReturn, Optional

from .audio.errors import AudioError
from .audio.playback import PlaybackParameters, play_tone
from .config import Config

log = logging.getLogger(__name__)


POLL_INTERVAL = 1.0   # seconds between due checks
RETRY_DELAY = 5.0     # seconds to back off after a failed tone


class Scheduler:
    """Plays a tone every `interval` seconds of wall-clock time."""

    def __init__(
        self,
        config: Config,
        play: Callable[[PlaybackParameters], None] = play_tone,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        poll_interval: float = POLL_INTERVAL,
        retry_delay: float = RETRY_DELAY,
    ):
        """Initialize scheduler.

        Args:
            config: Tone and interval settings
            play: Plays one tone, raising AudioError on failure
            clock: Wall-clock time source (not a monotonic clock)
            sleep: Sleep function
            poll_interval: Seconds between due checks
            retry_delay: Seconds to wait after a failed tone
        """
        self.config = config
        self.params = PlaybackParameters.from_config(config)
        self.interval = float(config.interval)
        self._play = play
        self._clock = clock
        self._sleep = sleep
        self.poll_interval = poll_interval
        self.retry_delay = retry_delay

        self.last_play: Optional[float] = None
        self.failures = 0

    def is_due(self, now: Optional[float] = None) -> bool:
        """Whether the interval has elapsed since the last successful tone."""
        if self.last_play is None:
            return True
        if now is None:
            now = self._clock()
        return now - self.last_play >= self.interval

    def tick(self) -> bool:
        """Run one poll: play a tone if one is due.

        Returns:
            True if a tone was played successfully
        """
        started = self._clock()
        if not self.is_due(started):
            return False

        try:
            self._play(self.params)
        except AudioError as e:
            self.failures += 1
            log.error("Failed to play tone: %s", e)
            log.debug("Retrying in %gs", self.retry_delay)
            self._sleep(self.retry_delay)
            return False

        self.last_play = started
        self.failures = 0
        log.debug("Tone played; next in %gs", self.interval)
        return True

    def run(self) -> NoReturn:
        """Poll forever."""
        log.info(
            "Starting nodoze daemon: %gHz tone, %ds duration, every %ds",
            self.config.frequency,
            self.config.duration,
            self.config.interval,
        )
        while True:
            self.tick()
            self._sleep(self.poll_interval)


def run_scheduler(config: Config) -> NoReturn:
    """Run the tone loop until the process is stopped."""
    Scheduler(config).run()
