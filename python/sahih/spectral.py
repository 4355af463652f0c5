"""
Spectral views: averaged spectrum, STFT spectrogram and waveform envelope.

These feed display layers, so every array is returned read-only and in a
compact dtype where the values only need display precision.
"""

import logging
from typing import Optional, Sequence

import numpy as np
from scipy import signal

from .dsp import (
    DB_FLOOR, average_magnitude_spectrum, get_window, mix_to_mono, power_to_db,
    select_channel,
)
from .errors import UnsupportedInput
from .types import (
    SpectrogramResult, SpectrumResult, WaveformResult, require_samples, timed,
)

logger = logging.getLogger(__name__)

# ISO 266 third-octave centre frequencies
THIRD_OCTAVE_CENTRES = [
    20, 25, 31.5, 40, 50, 63, 80, 100, 125, 160, 200, 250, 315, 400, 500,
    630, 800, 1000, 1250, 1600, 2000, 2500, 3150, 4000, 5000, 6300, 8000,
    10000, 12500, 16000, 20000,
]

SPECTRUM_MAX_FRAMES = 200
STFT_CHUNK_FRAMES = 256


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


def _magnitude_db(magnitude: np.ndarray) -> np.ndarray:
    return power_to_db(np.square(magnitude), DB_FLOOR)


def third_octave_bands(frequencies: np.ndarray, magnitudes: np.ndarray):
    """Average linear magnitude into ISO 1/3-octave bands.

    Returns a tuple of ``(centre_hz, level_db)``; bands that contain no FFT
    bin are skipped.
    """
    edge = 2 ** (1 / 6)
    bands = []
    for centre in THIRD_OCTAVE_CENTRES:
        in_band = (frequencies >= centre / edge) & (frequencies <= centre * edge)
        if not in_band.any():
            continue
        level = float(_magnitude_db(np.array([magnitudes[in_band].mean()]))[0])
        bands.append((float(centre), level))
    return tuple(bands)


@timed
def compute_spectrum(channel_data: Sequence[np.ndarray], sample_rate: int,
                     fft_size: int = 8192, window: str = 'hann',
                     octave_bands: bool = True) -> SpectrumResult:
    """Frame-averaged magnitude spectrum of the mono mixdown."""
    channels = require_samples(channel_data)
    if not sample_rate or sample_rate <= 0:
        raise UnsupportedInput(f"Invalid sample rate: {sample_rate}")

    magnitude, frame_count = average_magnitude_spectrum(
        mix_to_mono(channels), fft_size, SPECTRUM_MAX_FRAMES, window)
    frequencies = np.arange(len(magnitude)) * sample_rate / fft_size

    return SpectrumResult(
        frequencies=_readonly(frequencies),
        magnitudes_db=_readonly(_magnitude_db(magnitude)),
        frame_count=int(np.ceil(frame_count)),
        octave_bands=third_octave_bands(frequencies, magnitude) if octave_bands else (),
    )


@timed
def compute_spectrogram(channel_data: Sequence[np.ndarray], sample_rate: int,
                        fft_size: int = 4096, hop_size: int = 1024,
                        window: str = 'hann', channel: Optional[int] = 0) -> SpectrogramResult:
    """Short-time Fourier transform in dB, shaped (time, frequency).

    Args:
        channel_data: Per-channel float samples.
        sample_rate: Sample rate in Hz.
        fft_size: Frame length.
        hop_size: Frame advance in samples.
        window: Window function name.
        channel: Channel index, or None for the mono mixdown.
    """
    channels = require_samples(channel_data)
    if not sample_rate or sample_rate <= 0:
        raise UnsupportedInput(f"Invalid sample rate: {sample_rate}")
    if fft_size < 2 or not 1 <= hop_size <= fft_size:
        raise UnsupportedInput(f"Invalid STFT geometry: fft={fft_size}, hop={hop_size}")

    x = select_channel(channels, channel)
    if len(x) < fft_size:
        x = np.concatenate([x, np.zeros(fft_size - len(x))])

    win = get_window(window, fft_size)
    half = fft_size // 2
    num_frames = (len(x) - fft_size) // hop_size + 1
    # stft scales by 1/sum(window); rescale to 1/N like the averaged spectrum
    rescale = win.sum() / fft_size
    out = np.empty((num_frames, half), dtype=np.float32)
    for start in range(0, num_frames, STFT_CHUNK_FRAMES):
        count = min(STFT_CHUNK_FRAMES, num_frames - start)
        segment = x[start * hop_size:(start + count - 1) * hop_size + fft_size]
        _, _, zxx = signal.stft(segment, fs=sample_rate, window=win, nperseg=fft_size,
                                noverlap=fft_size - hop_size, boundary=None, padded=False,
                                detrend=False)
        mag = np.abs(zxx[:half, :count].T) * rescale
        out[start:start + count] = _magnitude_db(mag)

    times = np.arange(num_frames) * hop_size / sample_rate
    frequencies = np.arange(half) * sample_rate / fft_size

    return SpectrogramResult(
        magnitudes_db=_readonly(out),
        frequencies=_readonly(frequencies),
        times=_readonly(times),
        fft_size=fft_size,
        hop_size=hop_size,
        sample_rate=int(sample_rate),
    )


@timed
def compute_waveform(channel_data: Sequence[np.ndarray], sample_rate: Optional[int] = None,
                     target_width: int = 2000, channel: Optional[int] = 0) -> WaveformResult:
    """Min/max/peak/RMS envelope with about ``target_width`` buckets."""
    channels = require_samples(channel_data)
    if target_width < 1:
        raise UnsupportedInput(f"Invalid waveform width: {target_width}")

    x = select_channel(channels, channel)
    spp = max(1, len(x) // target_width)
    starts = np.arange(0, len(x), spp)
    counts = np.diff(np.append(starts, len(x)))

    mins = np.minimum.reduceat(x, starts)
    maxs = np.maximum.reduceat(x, starts)
    peaks = np.maximum(np.abs(mins), np.abs(maxs))
    rms = np.sqrt(np.add.reduceat(x * x, starts) / counts)

    return WaveformResult(
        mins=_readonly(mins.astype(np.float32)),
        maxs=_readonly(maxs.astype(np.float32)),
        peaks=_readonly(peaks.astype(np.float32)),
        rms=_readonly(rms.astype(np.float32)),
        samples_per_pixel=spp,
    )
