"""
Lossy-transcode detection.

Perceptual coders split the spectrum into subbands and drop the ones they
consider inaudible, leaving "holes" in an otherwise continuous spectrum, and
most encoders apply a fixed lowpass.  Both survive decoding and re-encoding
to a lossless container.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from .dsp import average_power_spectrum, mix_to_mono, power_to_db
from .errors import UnsupportedInput
from .types import LossyDetectResult, require_samples, timed

logger = logging.getLogger(__name__)

THRESHOLDS = {
    'max_frames': 150,
    'subbands': 32,             # MPEG-1 layer III filterbank
    'hole_db': 20.0,            # band this far below its neighbours is a hole
    'hole_count': 5,            # more than this many holes -> lossy
    'cutoff_drop_db': 30.0,
    'cutoff_offset_bins': 5,
    'floor_percentile': 10,
    'hf_low_hz': 4000.0,
    'hf_high_hz': 16000.0,
    'hf_evidence_db': 20.0,
}

# Typical encoder lowpass frequencies, checked in order
ENCODER_CUTOFFS = [16000, 16500, 17000, 18000, 19000, 20000]

SCORES = {
    'per_hole': 15,
    'fingerprint': 40,
    'frames_weight': 0.4,
    'frames_cap': 20,
}


def _band_mean(db: np.ndarray, start: int, width: int) -> float:
    end = min(start + width, len(db))
    start = max(0, start)
    if end <= start:
        return float(db[-1])
    return float(db[start:end].mean())


def count_spectral_holes(db: np.ndarray) -> int:
    """Count subbands sitting far below the mean of their two neighbours."""
    width = max(1, int(round(len(db) / THRESHOLDS['subbands'])))
    holes = 0
    for band in range(1, THRESHOLDS['subbands'] - 1):
        level = _band_mean(db, band * width, width)
        neighbours = (_band_mean(db, (band - 1) * width, width) +
                      _band_mean(db, (band + 1) * width, width)) / 2
        if neighbours - level > THRESHOLDS['hole_db']:
            holes += 1
    return holes


def find_encoder_cutoff(db: np.ndarray, sample_rate: int) -> Optional[str]:
    """Describe the first known encoder lowpass found in the spectrum, if any."""
    half = len(db)
    nyquist = sample_rate / 2
    offset = THRESHOLDS['cutoff_offset_bins']
    for freq in ENCODER_CUTOFFS:
        if freq >= nyquist:
            continue
        bin_ = int(round(freq / nyquist * half))
        if bin_ - offset < 0 or bin_ + offset >= half:
            continue
        if db[bin_ - offset] - db[bin_ + offset] > THRESHOLDS['cutoff_drop_db']:
            return f"Sharp cutoff at ~{freq}Hz (likely MP3)"
    return None


def _hf_evidence(db: np.ndarray, sample_rate: int, floor_db: float) -> float:
    """0..1 factor for how far the 4-16 kHz region rises above the floor."""
    half = len(db)
    nyquist = sample_rate / 2
    lo = int(THRESHOLDS['hf_low_hz'] / nyquist * half)
    hi = int(min(THRESHOLDS['hf_high_hz'], nyquist) / nyquist * half)
    if hi <= lo:
        return 0.0
    hf_mean = float(db[lo:hi].mean())
    return float(np.clip((hf_mean - floor_db) / THRESHOLDS['hf_evidence_db'], 0.0, 1.0))


@timed
def detect_lossy(channel_data: Sequence[np.ndarray], sample_rate: int,
                 fft_size: int = 8192) -> LossyDetectResult:
    """Look for signs that lossless audio was decoded from a lossy file.

    Args:
        channel_data: Per-channel float samples.
        sample_rate: Sample rate in Hz.
        fft_size: Analysis frame length.

    Returns:
        LossyDetectResult with the hole count and encoder fingerprint.
    """
    channels = require_samples(channel_data)
    if not sample_rate or sample_rate <= 0:
        raise UnsupportedInput(f"Invalid sample rate: {sample_rate}")

    power, frame_count = average_power_spectrum(
        mix_to_mono(channels), fft_size, THRESHOLDS['max_frames'])
    db = power_to_db(power)

    holes = count_spectral_holes(db)
    fingerprint = find_encoder_cutoff(db, sample_rate)
    is_lossy = holes > THRESHOLDS['hole_count'] or fingerprint is not None

    floor_db = float(np.percentile(db, THRESHOLDS['floor_percentile']))
    evidence = _hf_evidence(db, sample_rate, floor_db)

    raw = (holes * SCORES['per_hole'] +
           (SCORES['fingerprint'] if fingerprint else 0) +
           min(SCORES['frames_cap'], frame_count * SCORES['frames_weight']))
    confidence = int(round(min(100.0, raw) * evidence))

    if is_lossy:
        logger.debug(f"Lossy: {holes} holes, fingerprint={fingerprint}")

    return LossyDetectResult(
        is_lossy=bool(is_lossy),
        spectral_holes=holes,
        encoder_fingerprint=fingerprint,
        confidence=int(np.clip(confidence, 0, 100)),
    )
