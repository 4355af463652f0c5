"""Type definitions for Sahih."""
from __future__ import annotations

import functools
import hashlib
import math
import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import UnsupportedInput


class AnalysisKind(Enum):
    """Kinds of analysis the engine can compute."""
    BIT_DEPTH = "bit_depth"
    BANDWIDTH = "bandwidth"
    LOSSY_DETECT = "lossy_detect"
    LUFS = "lufs"
    DYNAMIC_RANGE = "dynamic_range"
    STEREO = "stereo"
    WAVEFORM = "waveform"
    SPECTRUM = "spectrum"
    SPECTROGRAM = "spectrogram"
    VERDICT = "verdict"

    @classmethod
    def parse(cls, value: Any) -> "AnalysisKind":
        """Accept an AnalysisKind or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedInput(f"Unknown analysis kind: {value!r}") from None


class Grade(Enum):
    """Letter grade of a verdict."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


@dataclass(frozen=True, eq=False)
class PCMBuffer:
    """Decoded audio: one read-only sample array per channel.

    The arrays are copied on construction and marked non-writeable, so no
    analysis can modify the buffer it was given.
    """
    channel_data: Tuple[np.ndarray, ...]
    sample_rate: int

    def __post_init__(self):
        if self.sample_rate is None or self.sample_rate <= 0:
            raise UnsupportedInput(f"Invalid sample rate: {self.sample_rate}")

        arrays = []
        for ch in self.channel_data:
            arr = np.array(ch, copy=True)
            if arr.ndim != 1:
                raise UnsupportedInput("Each channel must be a 1-D sample array")
            if not np.issubdtype(arr.dtype, np.floating):
                arr = arr.astype(np.float64)
            arr.flags.writeable = False
            arrays.append(arr)

        if len({len(a) for a in arrays}) > 1:
            raise UnsupportedInput("All channels must have the same length")

        object.__setattr__(self, 'channel_data', tuple(arrays))
        object.__setattr__(self, 'sample_rate', int(self.sample_rate))

    @classmethod
    def from_interleaved(cls, samples: np.ndarray, channels: int,
                         sample_rate: int) -> "PCMBuffer":
        """Build a buffer from interleaved frames (L R L R ...)."""
        samples = np.asarray(samples)
        if channels < 1 or len(samples) % channels:
            raise UnsupportedInput("Interleaved length is not a multiple of the channel count")
        frames = samples.reshape(-1, channels)
        return cls(tuple(frames[:, c] for c in range(channels)), sample_rate)

    @property
    def channels(self) -> int:
        return len(self.channel_data)

    @property
    def length(self) -> int:
        return len(self.channel_data[0]) if self.channel_data else 0

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate

    def fingerprint(self) -> str:
        """SHA-256 of the sample rate and raw sample data."""
        digest = hashlib.sha256(str(self.sample_rate).encode())
        for ch in self.channel_data:
            digest.update(np.ascontiguousarray(ch).tobytes())
        return digest.hexdigest()


# ---------------------------------------------------------------------------
# Analysis results
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class AnalysisResult:
    """Common base of every analysis result.

    ``computed_at`` and ``compute_duration_ms`` are bookkeeping and take no
    part in equality, so reruns on the same input compare equal.
    """
    kind: ClassVar[AnalysisKind]

    computed_at: float = field(default=0.0, compare=False, kw_only=True)
    compute_duration_ms: float = field(default=0.0, compare=False, kw_only=True)

    def non_finite_fields(self) -> List[str]:
        """Names of fields holding NaN or +inf.

        -inf is a legitimate flag (silence / unmeasurable) and is not reported.
        """
        bad = []
        for f in fields(self):
            if f.name in ('computed_at', 'compute_duration_ms'):
                continue
            if _has_invalid_number(getattr(self, f.name)):
                bad.append(f.name)
        return bad


def _has_invalid_number(value: Any) -> bool:
    if isinstance(value, (bool, str, Enum)) or value is None:
        return False
    if isinstance(value, (float, int, np.floating, np.integer)):
        v = float(value)
        return math.isnan(v) or v == math.inf
    if isinstance(value, np.ndarray):
        if not np.issubdtype(value.dtype, np.floating):
            return False
        return bool(np.isnan(value).any() or np.isposinf(value).any())
    if isinstance(value, (tuple, list)):
        return any(_has_invalid_number(v) for v in value)
    return False


@dataclass(frozen=True)
class BitDepthResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.BIT_DEPTH

    effective_bit_depth: int
    reported_bit_depth: int
    lsb_zero_ratio: float
    noise_floor_db: float
    confidence: int


@dataclass(frozen=True)
class BandwidthResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.BANDWIDTH

    frequency_ceiling: float
    cutoff_sharpness: float
    cutoff_type: str
    noise_floor_db: float
    source_guess: str
    is_upsampled: bool
    confidence: int


@dataclass(frozen=True)
class LossyDetectResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.LOSSY_DETECT

    is_lossy: bool
    spectral_holes: int
    encoder_fingerprint: Optional[str]
    confidence: int


@dataclass(frozen=True)
class LoudnessResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.LUFS

    integrated: float
    momentary: Tuple[float, ...]
    short_term: Tuple[float, ...]
    lra: float
    sample_peak_db: float
    true_peak_db: Optional[float]

    @property
    def is_silent(self) -> bool:
        """True when integrated loudness could not be measured."""
        return not math.isfinite(self.integrated)


@dataclass(frozen=True)
class DynamicRangeResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.DYNAMIC_RANGE

    dr_score: int
    channel_scores: Tuple[float, ...]
    crest_factor_db: float
    peak_db: float
    rms_db: float
    clipped_samples: int


@dataclass(frozen=True)
class StereoResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.STEREO

    correlation: float
    stereo_width: float
    mid_energy: float
    side_energy: float
    mono_compatibility_loss: float
    balance_db: float
    is_mono: bool


@dataclass(frozen=True, eq=False)
class WaveformResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.WAVEFORM

    mins: np.ndarray
    maxs: np.ndarray
    peaks: np.ndarray
    rms: np.ndarray
    samples_per_pixel: int


@dataclass(frozen=True, eq=False)
class SpectrumResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.SPECTRUM

    frequencies: np.ndarray
    magnitudes_db: np.ndarray
    frame_count: int
    octave_bands: Tuple[Tuple[float, float], ...] = ()


@dataclass(frozen=True, eq=False)
class SpectrogramResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.SPECTROGRAM

    magnitudes_db: np.ndarray
    frequencies: np.ndarray
    times: np.ndarray
    fft_size: int
    hop_size: int
    sample_rate: int


@dataclass(frozen=True)
class VerdictResult(AnalysisResult):
    kind: ClassVar[AnalysisKind] = AnalysisKind.VERDICT

    score: int
    grade: Grade
    is_genuine_hires: bool
    issues: Tuple[str, ...] = ()
    positives: Tuple[str, ...] = ()
    deductions: Tuple[Tuple[str, int], ...] = ()


RESULT_TYPES: Dict[AnalysisKind, type] = {
    cls.kind: cls
    for cls in (
        BitDepthResult, BandwidthResult, LossyDetectResult, LoudnessResult,
        DynamicRangeResult, StereoResult, WaveformResult, SpectrumResult,
        SpectrogramResult, VerdictResult,
    )
}


def timed(fn):
    """Stamp ``computed_at`` and ``compute_duration_ms`` on a returned result."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = fn(*args, **kwargs)
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        return replace(result, computed_at=time.time(), compute_duration_ms=elapsed_ms)
    return wrapper


def require_samples(channel_data: Sequence[np.ndarray]) -> List[np.ndarray]:
    """Return channels as float arrays, rejecting empty input."""
    if channel_data is None or len(channel_data) == 0:
        raise UnsupportedInput("No channels to analyze")
    channels = [np.asarray(ch) for ch in channel_data]
    if any(ch.ndim != 1 for ch in channels):
        raise UnsupportedInput("Each channel must be a 1-D sample array")
    if len(channels[0]) == 0:
        raise UnsupportedInput("Empty buffer: nothing to analyze")
    if len({len(ch) for ch in channels}) > 1:
        raise UnsupportedInput("All channels must have the same length")
    return channels
