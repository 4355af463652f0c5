"""
Effective bit-depth analysis.

A file padded from 16 to 24 bits carries samples whose low-order bits are
always zero.  Quantising the float samples back onto the reported integer
grid and counting how many least-significant bits never toggle reveals the
resolution that is actually in use.
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np

from .dsp import amplitude_to_db
from .types import BitDepthResult, require_samples, timed

logger = logging.getLogger(__name__)

THRESHOLDS = {
    'max_samples': 2_000_000,     # strided down to this many samples
    'zero_ratio': 0.999,          # bit counts as unused above this zero ratio
    'stable_count': 100_000,      # samples needed for full confidence
    'noise_block': 2048,          # block length for noise-floor estimation
    'noise_percentile': 10,       # quietest non-silent blocks
    'floor_full_scale_db': -6.0,  # floor at or above this -> zero confidence
    'floor_range_db': 54.0,       # zero to full confidence over this span
}


def _noise_floor_db(channels: Sequence[np.ndarray]) -> float:
    """Level of the quietest non-silent blocks, in dBFS (-inf if all silent)."""
    block = THRESHOLDS['noise_block']
    levels = []
    for ch in channels:
        x = np.asarray(ch, dtype=np.float64)
        n_blocks = len(x) // block
        if n_blocks == 0:
            levels.append(np.sqrt(np.array([np.mean(x * x)])))
            continue
        blocks = x[:n_blocks * block].reshape(n_blocks, block)
        levels.append(np.sqrt(np.mean(blocks * blocks, axis=1)))
    rms = np.concatenate(levels)
    active = rms[rms > 0]
    if active.size == 0:
        return -math.inf
    return amplitude_to_db(float(np.percentile(active, THRESHOLDS['noise_percentile'])))


@timed
def analyze_bit_depth(channel_data: Sequence[np.ndarray], sample_rate: Optional[int] = None,
                      reported_bit_depth: int = 16) -> BitDepthResult:
    """Estimate the effective bit depth of PCM data.

    Args:
        channel_data: Per-channel float samples in [-1, 1].
        sample_rate: Unused; accepted for the common analyzer signature.
        reported_bit_depth: Bit depth claimed by the file header.

    Returns:
        BitDepthResult.  An all-zero buffer reports 1 bit with confidence 0.
    """
    channels = require_samples(channel_data)
    reported = int(reported_bit_depth or 16)
    max_bit = int(np.clip(reported, 1, 32))

    total = sum(len(ch) for ch in channels)
    step = max(1, total // THRESHOLDS['max_samples'])
    strided = np.concatenate([np.asarray(ch, dtype=np.float64)[::step] for ch in channels])
    scale = float(2 ** (max_bit - 1))
    int_vals = np.rint(strided * scale).astype(np.int64)
    n = len(int_vals)

    # Run of always-zero bits starting at the LSB
    unused_bits = 0
    lsb_zero_ratio = 0.0
    for bit in range(max_bit):
        ratio = np.count_nonzero(((int_vals >> bit) & 1) == 0) / n
        if ratio <= THRESHOLDS['zero_ratio']:
            break
        unused_bits += 1
        lsb_zero_ratio = float(ratio)

    effective = max(1, max_bit - unused_bits)

    noise_floor_db = _noise_floor_db(channels)

    count_factor = min(1.0, n / THRESHOLDS['stable_count'])
    if math.isfinite(noise_floor_db):
        floor_factor = float(np.clip(
            (THRESHOLDS['floor_full_scale_db'] - noise_floor_db) / THRESHOLDS['floor_range_db'],
            0.0, 1.0))
    else:
        floor_factor = 0.0
    nonzero_fraction = np.count_nonzero(int_vals) / n
    activity_factor = min(1.0, nonzero_fraction / 0.5)
    confidence = int(round(100 * count_factor * floor_factor * activity_factor))

    if unused_bits == max_bit:
        logger.debug("Bit depth: buffer quantises to all zeros, reporting 1 bit")

    return BitDepthResult(
        effective_bit_depth=effective,
        reported_bit_depth=reported,
        lsb_zero_ratio=lsb_zero_ratio,
        noise_floor_db=noise_floor_db,
        confidence=int(np.clip(confidence, 0, 100)),
    )
