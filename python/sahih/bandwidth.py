"""
Bandwidth / upsampling detection.

Finds the highest frequency that carries real content.  A brick-wall cliff
well below Nyquist points at a lossy encoder's lowpass; a gradual roll-off
far below Nyquist in a high-rate file points at a resampled CD master.
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np

from .dsp import average_power_spectrum, mix_to_mono, moving_average, power_to_db
from .errors import UnsupportedInput
from .types import BandwidthResult, require_samples, timed

logger = logging.getLogger(__name__)

THRESHOLDS = {
    'max_frames': 200,
    'smooth_radius': 8,         # bins either side
    'floor_percentile': 10,
    'cliff_drop_db': 15.0,      # drop over cliff_window bins
    'cliff_window': 10,
    'cliff_min_above_floor_db': 15.0,
    'gradual_above_floor_db': 6.0,
    'sharpness_window': 20,
    'frames_for_confidence': 20,
    'dynamic_for_confidence_db': 30.0,
}

# (upper bound Hz, source guess, upsampled) for brick-wall cutoffs.
# ``None`` for upsampled means "only when the file rate exceeds 48 kHz".
CLIFF_PROFILES = [
    (16500, 'MP3/AAC (<=128kbps)', True),
    (18000, 'Lossy (likely MP3/OGG <=192kbps)', True),
    (20500, 'Lossy (high-bitrate MP3/AAC)', None),
]


def _classify(ceiling: float, cutoff_type: str, sample_rate: int):
    if cutoff_type == 'cliff':
        for upper, guess, upsampled in CLIFF_PROFILES:
            if ceiling < upper:
                return guess, (sample_rate > 48000) if upsampled is None else upsampled
        if ceiling < 24000 and sample_rate > 48000:
            return 'Likely 48kHz source (brick-wall at ceiling)', True
        return 'High-resolution content', False

    if ceiling < 16000 and sample_rate >= 44100:
        return 'Likely lossy source (low bandwidth)', True
    if ceiling < 20000 and sample_rate > 48000:
        return 'CD-quality content (gradual rolloff)', True
    return 'Genuine high-resolution content', False


def _cutoff_sharpness(smooth: np.ndarray, ceiling_bin: int) -> float:
    """Level drop around the ceiling in dB per octave."""
    half = len(smooth)
    window = min(THRESHOLDS['sharpness_window'], half - ceiling_bin)
    if window <= 2:
        return 0.0
    lo = max(0, ceiling_bin - window)
    hi = min(half - 1, ceiling_bin + window)
    octaves = math.log2(hi / max(lo, 1))
    if octaves <= 0:
        return 0.0
    return float(smooth[lo] - smooth[hi]) / octaves


@timed
def analyze_bandwidth(channel_data: Sequence[np.ndarray], sample_rate: int,
                      fft_size: int = 8192, window: str = 'hann') -> BandwidthResult:
    """Estimate the frequency ceiling of the content and guess its source.

    Args:
        channel_data: Per-channel float samples.
        sample_rate: Sample rate in Hz.
        fft_size: Analysis frame length.
        window: Window function name.

    Returns:
        BandwidthResult.  Silent input yields ceiling 0, cutoff type
        ``none`` and confidence 0.
    """
    channels = require_samples(channel_data)
    if not sample_rate or sample_rate <= 0:
        raise UnsupportedInput(f"Invalid sample rate: {sample_rate}")

    mono = mix_to_mono(channels)
    power, frame_count = average_power_spectrum(
        mono, fft_size, THRESHOLDS['max_frames'], window)
    half = len(power)
    db = power_to_db(power)
    smooth = moving_average(db, THRESHOLDS['smooth_radius'])
    noise_floor = float(np.percentile(db, THRESHOLDS['floor_percentile']))
    spectral_dynamic = float(smooth.max()) - noise_floor

    if not np.any(power > 0) or spectral_dynamic <= 0:
        logger.debug("Bandwidth: no spectral content above the floor")
        return BandwidthResult(
            frequency_ceiling=0.0,
            cutoff_sharpness=0.0,
            cutoff_type='none',
            noise_floor_db=noise_floor,
            source_guess='Insufficient signal',
            is_upsampled=False,
            confidence=0,
        )

    cliff_window = THRESHOLDS['cliff_window']
    ceiling_bin: Optional[int] = None
    cutoff_type = 'gradual'

    # Scan down from Nyquist for a brick-wall drop
    for i in range(half - cliff_window - 1, cliff_window - 1, -1):
        drop = smooth[i] - smooth[i + cliff_window]
        if drop > THRESHOLDS['cliff_drop_db'] and \
                smooth[i] > noise_floor + THRESHOLDS['cliff_min_above_floor_db']:
            ceiling_bin = i + cliff_window // 2
            cutoff_type = 'cliff'
            break

    if ceiling_bin is None:
        above = np.nonzero(smooth > noise_floor + THRESHOLDS['gradual_above_floor_db'])[0]
        ceiling_bin = int(above[-1]) if above.size else half - 1

    frequency_ceiling = ceiling_bin * sample_rate / fft_size
    sharpness = _cutoff_sharpness(smooth, ceiling_bin)
    source_guess, is_upsampled = _classify(frequency_ceiling, cutoff_type, sample_rate)

    frame_factor = min(1.0, frame_count / THRESHOLDS['frames_for_confidence'])
    dynamic_factor = float(np.clip(
        spectral_dynamic / THRESHOLDS['dynamic_for_confidence_db'], 0.0, 1.0))
    confidence = int(round(100 * frame_factor * dynamic_factor))

    logger.debug(f"Bandwidth: {cutoff_type} ceiling at {frequency_ceiling:.0f} Hz ({source_guess})")

    return BandwidthResult(
        frequency_ceiling=float(frequency_ceiling),
        cutoff_sharpness=sharpness,
        cutoff_type=cutoff_type,
        noise_floor_db=noise_floor,
        source_guess=source_guess,
        is_upsampled=bool(is_upsampled),
        confidence=confidence,
    )
