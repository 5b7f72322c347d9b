"""Audio core - tone synthesis and playback."""

__all__ = [
    "AudioError",
    "DeviceHandle",
    "PlaybackParameters",
    "PlaybackSession",
    "list_devices",
    "play_tone",
    "resolve_device",
]


def __getattr__(name):
    """Lazy imports (playback and devices require numpy/sounddevice)."""
    if name == "AudioError":
        from .errors import AudioError
        return AudioError
    if name in ("DeviceHandle", "resolve_device"):
        from .devices import DeviceHandle, resolve_device
        return DeviceHandle if name == "DeviceHandle" else resolve_device
    if name in ("PlaybackParameters", "PlaybackSession", "play_tone", "list_devices"):
        from . import playback
        return getattr(playback, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
