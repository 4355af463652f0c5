"""Stereo field analysis: correlation, width, mid/side energy and balance."""

import logging
import math
from typing import Optional, Sequence

import numpy as np

from .types import StereoResult, require_samples, timed

logger = logging.getLogger(__name__)

BALANCE_LIMIT_DB = 96.0


def correlation(left: np.ndarray, right: np.ndarray) -> float:
    """Pearson correlation of two channels.

    Two constant channels count as fully correlated; one constant channel
    against a varying one counts as uncorrelated.
    """
    l = left - left.mean()
    r = right - right.mean()
    var_l = float(np.dot(l, l))
    var_r = float(np.dot(r, r))
    if var_l == 0 and var_r == 0:
        return 1.0
    if var_l == 0 or var_r == 0:
        return 0.0
    return float(np.clip(np.dot(l, r) / math.sqrt(var_l * var_r), -1.0, 1.0))


def balance_db(energy_left: float, energy_right: float) -> float:
    """Left/right energy ratio in dB, clamped to +/-96."""
    if energy_left == 0 and energy_right == 0:
        return 0.0
    if energy_right == 0:
        return BALANCE_LIMIT_DB
    if energy_left == 0:
        return -BALANCE_LIMIT_DB
    return float(np.clip(10.0 * math.log10(energy_left / energy_right),
                         -BALANCE_LIMIT_DB, BALANCE_LIMIT_DB))


@timed
def analyze_stereo(channel_data: Sequence[np.ndarray],
                   sample_rate: Optional[int] = None) -> StereoResult:
    """Analyze the stereo image of the first two channels."""
    channels = require_samples(channel_data)
    if len(channels) < 2:
        logger.debug("Stereo: single channel, returning neutral result")
        return StereoResult(
            correlation=1.0,
            stereo_width=0.0,
            mid_energy=1.0,
            side_energy=0.0,
            mono_compatibility_loss=0.0,
            balance_db=0.0,
            is_mono=True,
        )

    left = np.asarray(channels[0], dtype=np.float64)
    right = np.asarray(channels[1], dtype=np.float64)

    mid = (left + right) * 0.5
    side = (left - right) * 0.5
    e_mid = float(np.dot(mid, mid))
    e_side = float(np.dot(side, side))
    e_left = float(np.dot(left, left))
    e_right = float(np.dot(right, right))

    total = e_mid + e_side
    if total > 0:
        mid_share, side_share = e_mid / total, e_side / total
    else:
        mid_share, side_share = 1.0, 0.0

    stereo_energy = e_left + e_right
    mono_loss = max(0.0, 1.0 - 2.0 * e_mid / stereo_energy) * 100 if stereo_energy > 0 else 0.0

    return StereoResult(
        correlation=correlation(left, right),
        stereo_width=side_share,
        mid_energy=mid_share,
        side_energy=side_share,
        mono_compatibility_loss=mono_loss,
        balance_db=balance_db(e_left, e_right),
        is_mono=False,
    )
