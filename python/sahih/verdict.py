"""
Hi-res authenticity verdict.

Start from 100 and walk a fixed table of rules over the bit-depth,
bandwidth, lossy-detect and dynamic-range results.  Each rule either
deducts points with an issue or records a positive, in table order, so
the same inputs always produce the same text.
"""

import logging
from typing import Callable, List, Optional, Tuple

from .errors import UnsupportedInput
from .types import (
    AnalysisResult, BandwidthResult, BitDepthResult, DynamicRangeResult, Grade,
    LossyDetectResult, VerdictResult, timed,
)

logger = logging.getLogger(__name__)

DEDUCTIONS = {
    'bit_depth_cd_upscale': 20,
    'bit_depth_low': 30,
    'bandwidth_upsampled': 25,
    'bandwidth_limited': 10,
    'lossy': 25,
    'dr_moderate': 5,
    'dr_poor': 10,
    'clipping': 5,
}

THRESHOLDS = {
    'cd_bit_depth': 16,
    'cd_sample_rate': 44100,
    'bandwidth_fraction': 0.85,
    'dr_excellent': 10,
    'dr_moderate': 6,
}

# Minimum score for each grade, best first
GRADE_THRESHOLDS = [
    (90, Grade.A),
    (75, Grade.B),
    (60, Grade.C),
    (40, Grade.D),
]

# (points, issue) when a rule fires, (0, positive) when it does not
Outcome = Tuple[int, Optional[str], Optional[str]]


def grade_for_score(score: int) -> Grade:
    """Letter grade for a 0-100 score."""
    for minimum, grade in GRADE_THRESHOLDS:
        if score >= minimum:
            return grade
    return Grade.F


def _khz(hz: float) -> int:
    return int(round(hz / 1000))


def _bit_depth_rule(ctx) -> Outcome:
    bd: BitDepthResult = ctx['bit_depth']
    reported = ctx['reported_bit_depth']
    effective = bd.effective_bit_depth
    if effective >= reported:
        return 0, None, f"Genuine {effective}-bit content"
    if effective >= THRESHOLDS['cd_bit_depth'] and reported > THRESHOLDS['cd_bit_depth']:
        return (DEDUCTIONS['bit_depth_cd_upscale'],
                f"Effective bit depth is {effective}-bit (reported {reported}-bit), "
                f"likely upsampled from CD quality", None)
    return DEDUCTIONS['bit_depth_low'], f"Very low effective bit depth: {effective}-bit", None


def _bandwidth_rule(ctx) -> Outcome:
    bw: BandwidthResult = ctx['bandwidth']
    nyquist = ctx['reported_sample_rate'] / 2
    ceiling = _khz(bw.frequency_ceiling)
    if bw.is_upsampled:
        return (DEDUCTIONS['bandwidth_upsampled'],
                f"{bw.source_guess}: frequency content caps at ~{ceiling}kHz", None)
    if nyquist > 0 and bw.frequency_ceiling / nyquist > THRESHOLDS['bandwidth_fraction']:
        return 0, None, f"Full bandwidth utilization up to ~{ceiling}kHz"
    return DEDUCTIONS['bandwidth_limited'], f"Limited bandwidth: content only up to ~{ceiling}kHz", None


def _lossy_rule(ctx) -> Outcome:
    lossy: LossyDetectResult = ctx['lossy']
    if lossy.is_lossy:
        detail = f" ({lossy.encoder_fingerprint})" if lossy.encoder_fingerprint else ""
        return (DEDUCTIONS['lossy'],
                f"Lossy transcode detected: {lossy.spectral_holes} spectral holes found{detail}", None)
    return 0, None, "No lossy transcoding artifacts detected"


def _dynamic_range_rule(ctx) -> Outcome:
    dr = ctx['dynamic_range'].dr_score
    if dr >= THRESHOLDS['dr_excellent']:
        return 0, None, f"Excellent dynamic range: DR{dr}"
    if dr >= THRESHOLDS['dr_moderate']:
        return DEDUCTIONS['dr_moderate'], f"Moderate dynamic range: DR{dr}", None
    return DEDUCTIONS['dr_poor'], f"Poor dynamic range: DR{dr}, heavily compressed/limited", None


def _clipping_rule(ctx) -> Outcome:
    clipped = ctx['dynamic_range'].clipped_samples
    if clipped > 0:
        return DEDUCTIONS['clipping'], f"{clipped} clipped samples detected", None
    return 0, None, "No clipping detected"


VERDICT_RULES: List[Tuple[str, Callable]] = [
    ('bit_depth', _bit_depth_rule),
    ('bandwidth', _bandwidth_rule),
    ('lossy', _lossy_rule),
    ('dynamic_range', _dynamic_range_rule),
    ('clipping', _clipping_rule),
]

_EXPECTED = [
    ('bit_depth', BitDepthResult),
    ('bandwidth', BandwidthResult),
    ('lossy', LossyDetectResult),
    ('dynamic_range', DynamicRangeResult),
]


@timed
def compute_verdict(bit_depth: AnalysisResult, bandwidth: AnalysisResult,
                    lossy: AnalysisResult, dynamic_range: AnalysisResult,
                    reported_bit_depth: int = 16,
                    reported_sample_rate: int = 44100) -> VerdictResult:
    """Combine four analysis results into a scored, graded verdict.

    Args:
        bit_depth: BitDepthResult.
        bandwidth: BandwidthResult.
        lossy: LossyDetectResult.
        dynamic_range: DynamicRangeResult.
        reported_bit_depth: Bit depth from the file header.
        reported_sample_rate: Sample rate from the file header.

    Raises:
        UnsupportedInput: if any input is not the expected result type.
    """
    ctx = {
        'bit_depth': bit_depth,
        'bandwidth': bandwidth,
        'lossy': lossy,
        'dynamic_range': dynamic_range,
        'reported_bit_depth': int(reported_bit_depth or 16),
        'reported_sample_rate': int(reported_sample_rate or 44100),
    }
    for name, expected in _EXPECTED:
        if not isinstance(ctx[name], expected):
            raise UnsupportedInput(
                f"Verdict needs {expected.__name__} for {name}, got {type(ctx[name]).__name__}")

    issues = []
    positives = []
    deductions = []
    for name, rule in VERDICT_RULES:
        points, issue, positive = rule(ctx)
        deductions.append((name, points))
        if issue is not None:
            issues.append(issue)
        if positive is not None:
            positives.append(positive)

    score = max(0, min(100, 100 - sum(points for _, points in deductions)))
    grade = grade_for_score(score)
    exceeds_cd = (ctx['reported_bit_depth'] > THRESHOLDS['cd_bit_depth'] or
                  ctx['reported_sample_rate'] > THRESHOLDS['cd_sample_rate'])
    is_genuine = all(points == 0 for _, points in deductions) and exceeds_cd

    logger.debug(f"Verdict: score={score} grade={grade.value} genuine_hires={is_genuine}")

    return VerdictResult(
        score=score,
        grade=grade,
        is_genuine_hires=is_genuine,
        issues=tuple(issues),
        positives=tuple(positives),
        deductions=tuple(deductions),
    )
