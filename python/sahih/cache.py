"""
Per-file result cache with single-flight computation.

A ``ResultCache`` belongs to exactly one loaded file.  Loading another file
creates a new cache and discards the old one as a whole, so no result from
one file can ever be served for another.
"""

import logging
import threading
import uuid
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .dispatch import completed_future, settle_future
from .types import AnalysisKind, AnalysisResult, PCMBuffer

logger = logging.getLogger(__name__)


class ResultCache:
    """Completed results and in-flight futures, keyed by analysis kind."""

    def __init__(self):
        self._results: Dict[AnalysisKind, AnalysisResult] = {}
        self._in_flight: Dict[AnalysisKind, Future] = {}
        self._lock = threading.Lock()
        self._discarded = False

    def __contains__(self, kind: AnalysisKind) -> bool:
        with self._lock:
            return kind in self._results

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    @property
    def discarded(self) -> bool:
        return self._discarded

    def get(self, kind: AnalysisKind) -> Optional[AnalysisResult]:
        with self._lock:
            return self._results.get(kind)

    def is_computing(self, kind: AnalysisKind) -> bool:
        with self._lock:
            return kind in self._in_flight

    def put(self, kind: AnalysisKind, result: AnalysisResult) -> bool:
        """Store a result.  Returns False if the cache was discarded."""
        with self._lock:
            if self._discarded:
                logger.debug(f"Dropping {kind.value} result for a discarded session")
                return False
            self._results[kind] = result
            return True

    def get_or_start(self, kind: AnalysisKind, start: Callable[[], Future]) -> Future:
        """Single-flight lookup.

        Returns a completed future for a cached result, the existing future
        for a computation already in flight, or starts a new one by calling
        ``start`` (outside the lock).  The result is cached before the
        returned future resolves.  Failures are not cached.
        """
        with self._lock:
            if kind in self._results:
                return completed_future(self._results[kind])
            if kind in self._in_flight:
                return self._in_flight[kind]
            shared = Future()
            self._in_flight[kind] = shared

        try:
            inner = start()
        except Exception as e:
            inner = completed_future(error=e)
        inner.add_done_callback(lambda f: self._finish(kind, shared, f))
        return shared

    def _finish(self, kind: AnalysisKind, shared: Future, inner: Future):
        if inner.cancelled():
            error: Optional[BaseException] = CancelledError()
        else:
            error = inner.exception()
        result = inner.result() if error is None else None

        with self._lock:
            if self._in_flight.get(kind) is shared:
                del self._in_flight[kind]
            if error is None and not self._discarded:
                self._results[kind] = result

        settle_future(shared, result=result, error=error)

    def discard(self):
        """Drop everything.  Late completions are no longer stored."""
        with self._lock:
            self._discarded = True
            self._results.clear()
            self._in_flight.clear()


@dataclass(eq=False)
class FileSession:
    """A loaded file: its PCM data, header info and result cache."""
    pcm: PCMBuffer
    reported_bit_depth: int = 16
    reported_sample_rate: Optional[int] = None
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    cache: ResultCache = field(default_factory=ResultCache)

    def __post_init__(self):
        if self.reported_bit_depth is None:
            self.reported_bit_depth = 16
        if self.reported_sample_rate is None:
            self.reported_sample_rate = self.pcm.sample_rate

    def params_for(self, kind: AnalysisKind, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Analyzer parameters with header info filled in where it applies."""
        merged = dict(params or {})
        if kind is AnalysisKind.BIT_DEPTH:
            merged.setdefault('reported_bit_depth', self.reported_bit_depth)
        elif kind is AnalysisKind.VERDICT:
            merged.setdefault('reported_bit_depth', self.reported_bit_depth)
            merged.setdefault('reported_sample_rate', self.reported_sample_rate)
        return merged
