"""Serializable analysis reports."""
import logging
import math
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Sequence

import numpy as np

from .errors import UnsupportedInput
from .types import AnalysisResult, PCMBuffer

logger = logging.getLogger(__name__)

REPORT_VERSION = "1.0"


def _jsonable(value: Any) -> Any:
    """Plain JSON value; non-finite floats become None."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        value = float(value)
        return value if math.isfinite(value) else None
    if isinstance(value, np.ndarray):
        return [_jsonable(v) for v in value.tolist()]
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


def result_to_dict(result: AnalysisResult) -> Dict[str, Any]:
    """All fields of a result as JSON-ready values."""
    data = {"kind": result.kind.value}
    for f in fields(result):
        data[f.name] = _jsonable(getattr(result, f.name))
    return data


@dataclass
class AnalysisReport:
    """Analysis results for one file, identified by its PCM fingerprint."""
    fingerprint: str
    sample_rate: int
    channels: int
    duration: float
    reported_bit_depth: int
    created_at: str
    results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    version: str = REPORT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "fingerprint": self.fingerprint,
            "sample_rate": self.sample_rate,
            "channels": self.channels,
            "duration": self.duration,
            "reported_bit_depth": self.reported_bit_depth,
            "created_at": self.created_at,
            "results": self.results,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisReport":
        try:
            return cls(
                fingerprint=data["fingerprint"],
                sample_rate=int(data["sample_rate"]),
                channels=int(data["channels"]),
                duration=float(data["duration"]),
                reported_bit_depth=int(data["reported_bit_depth"]),
                created_at=data["created_at"],
                results=dict(data.get("results", {})),
                version=data.get("version", REPORT_VERSION),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UnsupportedInput(f"Malformed report: {e}") from e


class ReportBuilder:
    """Builder for analysis reports."""

    def __init__(self, pcm: PCMBuffer, reported_bit_depth: int = 16):
        """Initialize report builder.

        Args:
            pcm: The analysed audio
            reported_bit_depth: Bit depth from the file header
        """
        self._report = AnalysisReport(
            fingerprint=pcm.fingerprint(),
            sample_rate=pcm.sample_rate,
            channels=pcm.channels,
            duration=pcm.duration,
            reported_bit_depth=int(reported_bit_depth),
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    def add_result(self, result: AnalysisResult) -> "ReportBuilder":
        """Add one analysis result, replacing any earlier one of the same kind."""
        self._report.results[result.kind.value] = result_to_dict(result)
        return self

    def add_results(self, results: Sequence[AnalysisResult]) -> "ReportBuilder":
        for result in results:
            self.add_result(result)
        return self

    def build(self) -> AnalysisReport:
        logger.debug(f"Report for {self._report.fingerprint[:12]}: "
                     f"{', '.join(self._report.results) or 'no results'}")
        return self._report

