"""Shared signal-processing helpers used by the analysis modules."""
import math
from typing import Sequence, Tuple

import numpy as np
from scipy import signal
from scipy.fft import rfft

from .errors import UnsupportedInput

# Spectrum levels are floored here instead of going to -inf
DB_FLOOR = -160.0

_WINDOW_ALIASES = {
    'hann': 'hann',
    'hanning': 'hann',
    'hamming': 'hamming',
    'blackman': 'blackman',
    'blackmanharris': 'blackmanharris',
    'blackman-harris': 'blackmanharris',
    'flattop': 'flattop',
    'flat-top': 'flattop',
    'kaiser': ('kaiser', 12.0),
}


def mix_to_mono(channels: Sequence[np.ndarray]) -> np.ndarray:
    """Average all channels into a new float64 array."""
    if len(channels) == 1:
        return np.asarray(channels[0], dtype=np.float64)
    return np.mean(np.vstack([np.asarray(ch, dtype=np.float64) for ch in channels]), axis=0)


def select_channel(channels: Sequence[np.ndarray], channel) -> np.ndarray:
    """Pick one channel by index, or mix to mono when ``channel`` is None."""
    if channel is None:
        return mix_to_mono(channels)
    if not 0 <= channel < len(channels):
        raise UnsupportedInput(f"Channel {channel} out of range (have {len(channels)})")
    return np.asarray(channels[channel], dtype=np.float64)


def get_window(name: str, size: int) -> np.ndarray:
    """Symmetric analysis window by name."""
    window_spec = _WINDOW_ALIASES.get(str(name).lower())
    if window_spec is None:
        raise UnsupportedInput(f"Unknown window: {name!r}")
    return signal.get_window(window_spec, size, fftbins=False)


def spread_frames(mono: np.ndarray, fft_size: int, max_frames: int) -> Tuple[np.ndarray, float]:
    """Cut non-overlapping frames spread evenly over the signal.

    Returns ``(frames, frame_count)``.  A signal shorter than one frame is
    zero-padded into a single frame and counts as a fraction of a frame.
    """
    if fft_size < 2:
        raise UnsupportedInput(f"FFT size too small: {fft_size}")
    n = len(mono)
    if n < fft_size:
        frame = np.zeros(fft_size)
        frame[:n] = mono
        return frame[np.newaxis, :], n / fft_size

    num_frames = n // fft_size
    step = max(1, num_frames // max(1, max_frames))
    starts = np.arange(0, num_frames, step)[:max_frames] * fft_size
    frames = np.stack([mono[s:s + fft_size] for s in starts])
    return frames, float(len(starts))


def average_power_spectrum(mono: np.ndarray, fft_size: int, max_frames: int = 200,
                           window: str = 'hann') -> Tuple[np.ndarray, float]:
    """Frame-averaged power spectrum (fft_size // 2 bins, DC included).

    Power is normalised by N^2, so a full-scale sine centred on a bin peaks
    near -12 dB under a Hann window.
    """
    frames, count = spread_frames(mono, fft_size, max_frames)
    win = get_window(window, fft_size)
    half = fft_size // 2
    spectrum = rfft(frames * win, axis=1)[:, :half]
    power = (spectrum.real ** 2 + spectrum.imag ** 2) / float(fft_size * fft_size)
    return power.mean(axis=0), count


def average_magnitude_spectrum(mono: np.ndarray, fft_size: int, max_frames: int = 200,
                               window: str = 'hann') -> Tuple[np.ndarray, float]:
    """Frame-averaged linear magnitude spectrum normalised by N."""
    frames, count = spread_frames(mono, fft_size, max_frames)
    win = get_window(window, fft_size)
    half = fft_size // 2
    spectrum = rfft(frames * win, axis=1)[:, :half]
    return (np.abs(spectrum) / fft_size).mean(axis=0), count


def power_to_db(power: np.ndarray, floor_db: float = DB_FLOOR) -> np.ndarray:
    """10*log10 with non-positive power mapped to ``floor_db``."""
    power = np.asarray(power, dtype=np.float64)
    out = np.full(power.shape, floor_db)
    positive = power > 0
    out[positive] = np.maximum(10.0 * np.log10(power[positive]), floor_db)
    return out


def amplitude_to_db(value: float) -> float:
    """20*log10 of a linear amplitude; zero maps to -inf."""
    if value <= 0:
        return -math.inf
    return 20.0 * math.log10(value)


def moving_average(values: np.ndarray, radius: int) -> np.ndarray:
    """Centred moving average over +/- radius bins, truncated at the edges."""
    values = np.asarray(values, dtype=np.float64)
    n = len(values)
    if radius <= 0 or n == 0:
        return values.copy()
    csum = np.concatenate(([0.0], np.cumsum(values)))
    idx = np.arange(n)
    lo = np.maximum(0, idx - radius)
    hi = np.minimum(n, idx + radius + 1)
    return (csum[hi] - csum[lo]) / (hi - lo)
