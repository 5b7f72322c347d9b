"""Output device discovery using sounddevice.

Devices are looked up on the default host API only, so each physical
output appears once (Windows lists the same endpoint under MME,
DirectSound and WASAPI).

Cross-platform notes:
- Windows: WASAPI/DirectSound (works out of box)
- macOS: CoreAudio
- Linux: ALSA/PulseAudio/PipeWire (needs libportaudio2)
"""

from dataclasses import dataclass
from typing import Optional

try:
    import sounddevice as sd
    SOUNDDEVICE_AVAILABLE = True
    SOUNDDEVICE_ERROR = None
except (ImportError, OSError) as e:
    sd = None  # type: ignore
    SOUNDDEVICE_AVAILABLE = False
    SOUNDDEVICE_ERROR = str(e)

from .errors import DeviceNotFound, DeviceQueryFailed, EnumerationFailed
from .formats import normalize_format


DEFAULT_MARKER = " (default)"

# The tone is mono; more than two channels only multiplies the copying.
MAX_CHANNELS = 2


@dataclass(frozen=True)
class DeviceHandle:
    """A concrete output device."""
    index: int
    name: str
    max_output_channels: int
    default_samplerate: float

    @classmethod
    def from_info(cls, info) -> "DeviceHandle":
        return cls(
            index=int(info["index"]),
            name=str(info["name"]),
            max_output_channels=int(info["max_output_channels"]),
            default_samplerate=float(info["default_samplerate"]),
        )


@dataclass(frozen=True)
class OutputSettings:
    """Stream parameters negotiated for a device."""
    samplerate: float
    channels: int
    sample_format: str


def get_backend():
    """Return the sounddevice module.

    Raises:
        EnumerationFailed: If PortAudio could not be loaded
    """
    if sd is None:
        raise EnumerationFailed(f"sounddevice not available: {SOUNDDEVICE_ERROR}")
    return sd


def _output_devices(backend) -> list[DeviceHandle]:
    """Output devices on the default host API, in backend order."""
    try:
        devices = backend.query_devices()
        hostapi = backend.default.hostapi
    except (backend.PortAudioError, ValueError) as e:
        raise EnumerationFailed(f"Failed to enumerate devices: {e}") from e

    return [
        DeviceHandle.from_info(dev)
        for dev in devices
        if dev["max_output_channels"] > 0 and dev["hostapi"] == hostapi
    ]


def _default_output_index(backend) -> Optional[int]:
    index = backend.default.device[1]
    if index is None or index < 0:
        return None
    return int(index)


def default_device() -> DeviceHandle:
    """Return the host's default output device.

    Raises:
        DeviceNotFound: If the host has no default output device
    """
    try:
        backend = get_backend()
    except EnumerationFailed as e:
        raise DeviceNotFound(str(e)) from e

    if _default_output_index(backend) is None:
        raise DeviceNotFound("No default output device found")
    try:
        info = backend.query_devices(kind="output")
    except (backend.PortAudioError, ValueError) as e:
        raise DeviceNotFound(f"No default output device found: {e}") from e
    return DeviceHandle.from_info(info)


def resolve_device(name: str = "") -> DeviceHandle:
    """Find an output device by name, or return the default.

    Args:
        name: Case-insensitive substring of the device name, or empty
            for the system default

    Returns:
        First matching device

    Raises:
        DeviceNotFound: If nothing matches
        EnumerationFailed: If the backend cannot list devices
    """
    if not name:
        return default_device()

    wanted = name.lower()
    for device in _output_devices(get_backend()):
        if wanted in device.name.lower():
            return device

    raise DeviceNotFound(f"No output device matching '{name}' found")


def enumerate_devices() -> list[str]:
    """List output device names, marking the default one.

    Raises:
        EnumerationFailed: If the backend cannot list devices
    """
    backend = get_backend()
    devices = _output_devices(backend)
    default_index = _default_output_index(backend)

    names = []
    for device in devices:
        if device.index == default_index:
            names.append(device.name + DEFAULT_MARKER)
        else:
            names.append(device.name)
    return names


def query_output_settings(
    device: DeviceHandle,
    sample_format: Optional[str] = None,
) -> OutputSettings:
    """Negotiate sample rate, channel count and sample format for `device`.

    Args:
        device: Device to query
        sample_format: Requested format, or None for the backend default

    Raises:
        DeviceQueryFailed: If the device cannot be queried or has no outputs
        UnsupportedFormat: If the format has no converter
    """
    try:
        backend = get_backend()
    except EnumerationFailed as e:
        raise DeviceQueryFailed(str(e)) from e

    try:
        info = backend.query_devices(device.index)
    except (backend.PortAudioError, ValueError) as e:
        raise DeviceQueryFailed(f"Failed to query device '{device.name}': {e}") from e

    channels = min(int(info["max_output_channels"]), MAX_CHANNELS)
    if channels <= 0:
        raise DeviceQueryFailed(f"Device '{device.name}' has no output channels")

    samplerate = float(info["default_samplerate"])
    if samplerate <= 0:
        raise DeviceQueryFailed(f"Device '{device.name}' reports no sample rate")

    fmt = normalize_format(sample_format or backend.default.dtype[1])
    return OutputSettings(samplerate=samplerate, channels=channels, sample_format=fmt)
