"""Conversion of mono float samples to the output device's wire format.

Supported formats:
- float32: passthrough, range [-1, 1]
- int16:   sample * 32767
- uint16:  (sample * 0.5 + 0.5) * 65535

Integer formats truncate toward zero, the same as a plain float -> int
cast. Silence (0.0) therefore maps to 0 for int16 and 32767 for uint16.
"""

from typing import Optional

import numpy as np

from .errors import UnsupportedFormat


INT16_SCALE = 32767.0
UINT16_SCALE = 65535.0

SUPPORTED_FORMATS = ("float32", "int16", "uint16")


def _to_float32(samples: np.ndarray) -> np.ndarray:
    return samples.astype(np.float32)


def _to_int16(samples: np.ndarray) -> np.ndarray:
    return (samples.astype(np.float32) * np.float32(INT16_SCALE)).astype(np.int16)


def _to_uint16(samples: np.ndarray) -> np.ndarray:
    scaled = samples.astype(np.float32) * np.float32(0.5) + np.float32(0.5)
    return (scaled * np.float32(UINT16_SCALE)).astype(np.uint16)


_CONVERTERS = {
    "float32": _to_float32,
    "int16": _to_int16,
    "uint16": _to_uint16,
}


def normalize_format(sample_format) -> str:
    """Return the canonical name of a sample format.

    Accepts format names ('float32', 'int16', ...) or numpy dtypes.

    Raises:
        UnsupportedFormat: If the format has no converter
    """
    try:
        name = np.dtype(sample_format).name
    except TypeError as e:
        raise UnsupportedFormat(f"Unsupported sample format: {sample_format!r}") from e
    if name not in _CONVERTERS:
        raise UnsupportedFormat(f"Unsupported sample format: {name}")
    return name


def convert(samples: np.ndarray, sample_format: str) -> np.ndarray:
    """Convert float samples in [-1, 1] to `sample_format`.

    Pure function: the input is not modified.
    """
    return _CONVERTERS[normalize_format(sample_format)](samples)


def write_frames(
    outdata: np.ndarray,
    samples: np.ndarray,
    sample_format: Optional[str] = None,
) -> None:
    """Write one mono sample per frame into every channel of `outdata`.

    Args:
        outdata: Output buffer of shape (frames, channels)
        samples: Float samples of shape (frames,)
        sample_format: Target format, defaults to the buffer's dtype
    """
    fmt = sample_format or outdata.dtype.name
    outdata[:] = convert(samples, fmt)[:, np.newaxis]
