"""
Sahih - Python Implementation

Sahih (صحيح) means "genuine" in Arabic.
Audio forensics engine: checks whether hi-res audio is what it claims to be.
"""

from .engine import AnalysisEngine
from .errors import (
    AnalysisError,
    UnsupportedInput,
    ComputeFailure,
    WorkerUnavailable,
    WorkerTerminated,
)
from .types import (
    AnalysisKind,
    AnalysisResult,
    Grade,
    PCMBuffer,
    BitDepthResult,
    BandwidthResult,
    LossyDetectResult,
    LoudnessResult,
    DynamicRangeResult,
    StereoResult,
    WaveformResult,
    SpectrumResult,
    SpectrogramResult,
    VerdictResult,
)
from .bitdepth import analyze_bit_depth
from .bandwidth import analyze_bandwidth
from .lossy import detect_lossy
from .loudness import measure_loudness
from .dynamics import measure_dynamic_range
from .stereo import analyze_stereo
from .silence import SilentRegion, detect_silence
from .spectral import compute_spectrum, compute_spectrogram, compute_waveform
from .verdict import compute_verdict, grade_for_score
from .dispatch import run_analysis
from .report import ReportBuilder, AnalysisReport
from .wav import decode_wav, read_wav

__version__ = "0.1.0"
__all__ = [
    "AnalysisEngine",
    "AnalysisError",
    "UnsupportedInput",
    "ComputeFailure",
    "WorkerUnavailable",
    "WorkerTerminated",
    "AnalysisKind",
    "AnalysisResult",
    "Grade",
    "PCMBuffer",
    "BitDepthResult",
    "BandwidthResult",
    "LossyDetectResult",
    "LoudnessResult",
    "DynamicRangeResult",
    "StereoResult",
    "WaveformResult",
    "SpectrumResult",
    "SpectrogramResult",
    "VerdictResult",
    "analyze_bit_depth",
    "analyze_bandwidth",
    "detect_lossy",
    "measure_loudness",
    "measure_dynamic_range",
    "analyze_stereo",
    "detect_silence",
    "SilentRegion",
    "compute_spectrum",
    "compute_spectrogram",
    "compute_waveform",
    "compute_verdict",
    "grade_for_score",
    "run_analysis",
    "ReportBuilder",
    "AnalysisReport",
    "decode_wav",
    "read_wav",
]
