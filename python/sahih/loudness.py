"""
ITU-R BS.1770-4 loudness measurement.

K-weighting, momentary and short-term series, gated integrated loudness,
loudness range, and sample / true peak levels.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import signal

from .dsp import amplitude_to_db
from .errors import UnsupportedInput
from .types import LoudnessResult, require_samples, timed

logger = logging.getLogger(__name__)

# Stage 1: high shelf modelling the acoustic effect of the head
SHELF_FC = 1681.974450955533
SHELF_GAIN_DB = 3.999843853973347
SHELF_Q = 0.7071752369554196
SHELF_VB_EXPONENT = 0.4996667741545416

# Stage 2: revised low-frequency B-curve high-pass
HIGHPASS_FC = 38.13547087602444
HIGHPASS_Q = 0.5003270373238773

LOUDNESS_OFFSET = -0.691

THRESHOLDS = {
    'momentary_seconds': 0.4,
    'momentary_hop_seconds': 0.1,
    'short_term_seconds': 3.0,
    'short_term_hop_seconds': 1.0,
    'absolute_gate_lufs': -70.0,
    'relative_gate_lu': -10.0,
    'lra_relative_gate_lu': -20.0,
    'lra_low_percentile': 10,
    'lra_high_percentile': 95,
}

# Surround channel weights (L, R, C, [LFE], Ls, Rs)
CHANNEL_WEIGHTS = {
    5: [1.0, 1.0, 1.0, 1.41, 1.41],
    6: [1.0, 1.0, 1.0, 0.0, 1.41, 1.41],
}


def k_weighting_coefficients(sample_rate: int) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Biquad (b, a) pairs of the two K-weighting stages for ``sample_rate``.

    The shelf stage needs its corner below Nyquist, so rates at or under
    about 3.4 kHz are rejected.
    """
    if sample_rate <= 2 * SHELF_FC:
        raise UnsupportedInput(
            f"Sample rate {sample_rate} Hz is too low for K-weighting "
            f"(needs more than {2 * SHELF_FC:.0f} Hz)")
    k = math.tan(math.pi * SHELF_FC / sample_rate)
    vh = 10 ** (SHELF_GAIN_DB / 20)
    vb = vh ** SHELF_VB_EXPONENT
    a0 = 1 + k / SHELF_Q + k * k
    shelf_b = np.array([
        (vh + vb * k / SHELF_Q + k * k) / a0,
        2 * (k * k - vh) / a0,
        (vh - vb * k / SHELF_Q + k * k) / a0,
    ])
    shelf_a = np.array([1.0, 2 * (k * k - 1) / a0, (1 - k / SHELF_Q + k * k) / a0])

    k = math.tan(math.pi * HIGHPASS_FC / sample_rate)
    a0 = 1 + k / HIGHPASS_Q + k * k
    hp_b = np.array([1.0, -2.0, 1.0])
    hp_a = np.array([1.0, 2 * (k * k - 1) / a0, (1 - k / HIGHPASS_Q + k * k) / a0])

    return [(shelf_b, shelf_a), (hp_b, hp_a)]


def k_weight(x: np.ndarray, sample_rate: int) -> np.ndarray:
    """Apply both K-weighting stages to one channel."""
    y = np.asarray(x, dtype=np.float64)
    for b, a in k_weighting_coefficients(sample_rate):
        y = signal.lfilter(b, a, y)
    return y


def channel_weights(num_channels: int) -> List[float]:
    return CHANNEL_WEIGHTS.get(num_channels, [1.0] * num_channels)


def block_energies(filtered: Sequence[np.ndarray], weights: Sequence[float],
                   block: int, hop: int) -> np.ndarray:
    """Weighted mean-square energy of each block, from cumulative sums."""
    n = len(filtered[0])
    if block <= 0 or hop <= 0 or n < block:
        return np.zeros(0)
    starts = np.arange(0, n - block + 1, hop)
    total = np.zeros(len(starts))
    for y, w in zip(filtered, weights):
        if w == 0:
            continue
        csum = np.concatenate(([0.0], np.cumsum(y * y)))
        total += w * (csum[starts + block] - csum[starts]) / block
    return np.maximum(total, 0.0)


def energy_to_lufs(energy: np.ndarray) -> np.ndarray:
    """Block energies to LUFS, with zero energy mapped to -inf."""
    energy = np.asarray(energy, dtype=np.float64)
    out = np.full(energy.shape, -np.inf)
    positive = energy > 0
    out[positive] = LOUDNESS_OFFSET + 10.0 * np.log10(energy[positive])
    return out


def gated_loudness(energies: np.ndarray, relative_gate_lu: float) -> Tuple[float, np.ndarray]:
    """Two-stage gating.

    Returns:
        (integrated LUFS, mask of surviving blocks).  Integrated loudness is
        -inf when no block survives the absolute gate.
    """
    loudness = energy_to_lufs(energies)
    absolute = loudness >= THRESHOLDS['absolute_gate_lufs']
    if not absolute.any():
        return -math.inf, absolute

    relative_threshold = LOUDNESS_OFFSET + 10.0 * math.log10(energies[absolute].mean()) + relative_gate_lu
    mask = absolute & (loudness >= relative_threshold)
    if not mask.any():
        return -math.inf, mask
    return LOUDNESS_OFFSET + 10.0 * math.log10(energies[mask].mean()), mask


def loudness_range(short_term_energies: np.ndarray) -> float:
    """LRA in LU: P95 - P10 of gated short-term loudness."""
    _, mask = gated_loudness(short_term_energies, THRESHOLDS['lra_relative_gate_lu'])
    values = energy_to_lufs(short_term_energies[mask])
    if len(values) < 2:
        return 0.0
    return float(np.percentile(values, THRESHOLDS['lra_high_percentile']) -
                 np.percentile(values, THRESHOLDS['lra_low_percentile']))


def oversampling_factor(sample_rate: int) -> int:
    if sample_rate < 96000:
        return 4
    if sample_rate < 192000:
        return 2
    return 1


def estimate_true_peak(channels: Sequence[np.ndarray], sample_rate: int) -> float:
    """Inter-sample peak estimate (linear) via polyphase oversampling."""
    factor = oversampling_factor(sample_rate)
    peak = 0.0
    for ch in channels:
        x = np.asarray(ch, dtype=np.float64)
        sample_peak = float(np.max(np.abs(x)))
        if factor > 1 and len(x) > 1:
            upsampled = signal.resample_poly(x, factor, 1)
            peak = max(peak, sample_peak, float(np.max(np.abs(upsampled))))
        else:
            peak = max(peak, sample_peak)
    return peak


@timed
def measure_loudness(channel_data: Sequence[np.ndarray], sample_rate: int,
                     true_peak: bool = True) -> LoudnessResult:
    """Measure BS.1770-4 loudness.

    Args:
        channel_data: Per-channel float samples.
        sample_rate: Sample rate in Hz.
        true_peak: Also estimate the oversampled true peak.

    Returns:
        LoudnessResult.  Silence gives integrated -inf and LRA 0.
    """
    channels = require_samples(channel_data)
    if not sample_rate or sample_rate <= 0:
        raise UnsupportedInput(f"Invalid sample rate: {sample_rate}")

    filtered = [k_weight(ch, sample_rate) for ch in channels]
    weights = channel_weights(len(channels))

    momentary_energy = block_energies(
        filtered, weights,
        int(round(sample_rate * THRESHOLDS['momentary_seconds'])),
        int(round(sample_rate * THRESHOLDS['momentary_hop_seconds'])))
    short_term_energy = block_energies(
        filtered, weights,
        int(round(sample_rate * THRESHOLDS['short_term_seconds'])),
        int(round(sample_rate * THRESHOLDS['short_term_hop_seconds'])))

    integrated, _ = gated_loudness(momentary_energy, THRESHOLDS['relative_gate_lu'])
    lra = loudness_range(short_term_energy)

    sample_peak = max(float(np.max(np.abs(ch))) for ch in channels)
    sample_peak_db = amplitude_to_db(sample_peak)
    true_peak_db: Optional[float] = None
    if true_peak:
        true_peak_db = amplitude_to_db(max(sample_peak, estimate_true_peak(channels, sample_rate)))

    if math.isinf(integrated):
        logger.debug(f"Loudness: no gated blocks ({len(momentary_energy)} momentary blocks)")

    return LoudnessResult(
        integrated=float(integrated),
        momentary=tuple(float(v) for v in energy_to_lufs(momentary_energy)),
        short_term=tuple(float(v) for v in energy_to_lufs(short_term_energy)),
        lra=lra,
        sample_peak_db=sample_peak_db,
        true_peak_db=true_peak_db,
    )
