"""
Dynamic range (DR score), crest factor and clipping.

Follows the TT Dynamic Range Meter method: per channel, the second-highest
block peak against the RMS of the loudest fifth of the blocks.
"""

import logging
import math
from typing import Sequence

import numpy as np

from .dsp import amplitude_to_db
from .errors import UnsupportedInput
from .types import DynamicRangeResult, require_samples, timed

logger = logging.getLogger(__name__)

THRESHOLDS = {
    'loudest_fraction': 0.2,
    'clip_level': 10 ** (-0.01 / 20),   # -0.01 dBFS
    'max_score': 20,
}


def channel_dr(x: np.ndarray, block: int) -> float:
    """DR value of one channel in dB (0 when silent)."""
    n_blocks = max(1, len(x) // block)
    if len(x) >= block:
        blocks = x[:n_blocks * block].reshape(n_blocks, block)
    else:
        blocks = x.reshape(1, -1)

    # sqrt(2) scaling puts a full-scale sine at 0 dB
    rms = np.sqrt(2.0 * np.mean(blocks * blocks, axis=1))
    peaks = np.max(np.abs(blocks), axis=1)

    sorted_peaks = np.sort(peaks)[::-1]
    peak = sorted_peaks[1] if len(sorted_peaks) > 1 else sorted_peaks[0]

    top = max(1, int(round(n_blocks * THRESHOLDS['loudest_fraction'])))
    loudest = np.sort(rms)[::-1][:top]
    rms_top = math.sqrt(float(np.mean(loudest * loudest)))

    if peak <= 0 or rms_top <= 0:
        return 0.0
    return 20.0 * math.log10(peak / rms_top)


@timed
def measure_dynamic_range(channel_data: Sequence[np.ndarray], sample_rate: int,
                          block_seconds: float = 3.0) -> DynamicRangeResult:
    """Measure DR score, peak/RMS levels, crest factor and clipped samples."""
    channels = require_samples(channel_data)
    if not sample_rate or sample_rate <= 0:
        raise UnsupportedInput(f"Invalid sample rate: {sample_rate}")
    if block_seconds <= 0:
        raise UnsupportedInput(f"Invalid block length: {block_seconds}")

    block = max(1, int(round(sample_rate * block_seconds)))
    data = [np.asarray(ch, dtype=np.float64) for ch in channels]

    scores = tuple(channel_dr(x, block) for x in data)
    dr_score = int(np.clip(round(float(np.mean(scores))), 0, THRESHOLDS['max_score']))

    peak = max(float(np.max(np.abs(x))) for x in data)
    mean_square = sum(float(np.sum(x * x)) for x in data) / sum(len(x) for x in data)
    rms = math.sqrt(mean_square)
    peak_db = amplitude_to_db(peak)
    rms_db = amplitude_to_db(rms)
    crest = peak_db - rms_db if peak > 0 and rms > 0 else 0.0

    clipped = sum(int(np.count_nonzero(np.abs(x) >= THRESHOLDS['clip_level'])) for x in data)

    if peak == 0:
        logger.debug("Dynamic range: silent buffer")

    return DynamicRangeResult(
        dr_score=dr_score,
        channel_scores=scores,
        crest_factor_db=crest,
        peak_db=peak_db,
        rms_db=rms_db,
        clipped_samples=clipped,
    )
