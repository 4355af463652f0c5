"""Silent-region detection over a mono mixdown."""

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .dsp import mix_to_mono
from .errors import UnsupportedInput
from .types import require_samples

logger = logging.getLogger(__name__)

BLOCK_SIZE = 256


@dataclass(frozen=True)
class SilentRegion:
    """A run of blocks whose peak stayed under the silence threshold."""
    start_sample: int
    end_sample: int
    start_time: float
    end_time: float
    duration: float


def detect_silence(channel_data: Sequence[np.ndarray], sample_rate: int,
                   threshold_db: float = -60.0,
                   min_duration_ms: float = 100.0) -> Tuple[SilentRegion, ...]:
    """Find silent regions at least ``min_duration_ms`` long.

    The mono mixdown is scanned in blocks of 256 samples.  A block is silent
    when its absolute peak is below ``threshold_db`` dBFS.  Region edges fall
    on block boundaries, except that silence running to the end of the
    buffer ends at the last sample.

    Args:
        channel_data: One sample array per channel
        sample_rate: Samples per second
        threshold_db: Peak level below which a block counts as silent
        min_duration_ms: Shortest region to report

    Returns:
        Regions in time order; empty when nothing qualifies.
    """
    channels = require_samples(channel_data)
    if sample_rate <= 0:
        raise UnsupportedInput(f"Invalid sample rate: {sample_rate}")
    if min_duration_ms < 0:
        raise UnsupportedInput(f"Negative minimum duration: {min_duration_ms}")

    mono = np.abs(mix_to_mono(channels))
    n = len(mono)
    threshold = 10.0 ** (threshold_db / 20.0)
    min_samples = int(round(min_duration_ms / 1000.0 * sample_rate))

    block_peaks = np.maximum.reduceat(mono, np.arange(0, n, BLOCK_SIZE))
    silent = (block_peaks < threshold).astype(np.int8)

    # +1 where a silent run starts, -1 one past where it ends (in blocks)
    edges = np.diff(np.concatenate(([0], silent, [0])))
    starts = np.flatnonzero(edges == 1) * BLOCK_SIZE
    ends = np.minimum(np.flatnonzero(edges == -1) * BLOCK_SIZE, n)

    regions = tuple(
        SilentRegion(
            start_sample=int(start),
            end_sample=int(end),
            start_time=float(start) / sample_rate,
            end_time=float(end) / sample_rate,
            duration=float(end - start) / sample_rate,
        )
        for start, end in zip(starts, ends)
        if end - start >= min_samples
    )
    logger.debug(f"Silence: {len(regions)} regions under {threshold_db} dBFS")
    return regions
