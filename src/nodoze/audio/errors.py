"""Errors raised by the audio core.

Every failure of a playback attempt or a device listing is reported as
one of these. None of them are retried inside the audio core.
"""


class AudioError(Exception):
    """Base class for audio core failures."""


class EnumerationFailed(AudioError):
    """The audio backend could not enumerate output devices."""


class DeviceNotFound(AudioError):
    """No output device matched the requested name, or no default exists."""


class DeviceQueryFailed(AudioError):
    """The device's output settings could not be queried."""


class UnsupportedFormat(AudioError):
    """The negotiated sample format has no converter."""


class StreamBuildFailed(AudioError):
    """The output stream could not be opened."""


class StreamStartFailed(AudioError):
    """The output stream was opened but could not be started."""
