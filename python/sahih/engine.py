"""
Analysis engine: the façade callers use to request analyses of a loaded file.

The engine owns one worker handle, one dispatcher and at most one file
session at a time.  Requests go through the session's cache, so each kind is
computed once per file no matter how many callers ask for it.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Any, Dict, List, Optional

from .cache import FileSession
from .dispatch import (
    VERDICT_INPUTS, AnalysisDispatcher, WorkerHandle, check_finite, completed_future,
    gather, then,
)
from .errors import AnalysisError, ComputeFailure, UnsupportedInput
from .types import AnalysisKind, AnalysisResult, PCMBuffer, VerdictResult
from .verdict import compute_verdict

logger = logging.getLogger(__name__)

VERDICT_PARAMS = ('reported_bit_depth', 'reported_sample_rate')


class AnalysisEngine:
    """
    Cached, single-flight analysis of one file at a time.

    Args:
        use_worker: Run analyses on a background thread.  When False, or
            when the thread cannot be started, analyses run inline and the
            returned futures are already complete.
        cancel_on_load: Terminate the worker when a new file is loaded, so
            work for the old file is abandoned.
        close_timeout: Seconds :meth:`close` waits for an analysis still
            running on the worker thread.
    """

    def __init__(self, use_worker: bool = True, cancel_on_load: bool = True,
                 close_timeout: float = 5.0):
        self.cancel_on_load = cancel_on_load
        self.close_timeout = close_timeout
        self._handle = WorkerHandle(enabled=use_worker)
        self._dispatcher = AnalysisDispatcher(self._handle)
        self._session: Optional[FileSession] = None
        self._lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def session(self) -> Optional[FileSession]:
        return self._session

    @property
    def worker_running(self) -> bool:
        return self._handle.is_running

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def load(self, pcm: PCMBuffer, reported_bit_depth: Optional[int] = None,
             reported_sample_rate: Optional[int] = None) -> FileSession:
        """Start a new session for ``pcm``, discarding the previous one."""
        if not isinstance(pcm, PCMBuffer):
            raise UnsupportedInput(f"Expected PCMBuffer, got {type(pcm).__name__}")

        session = FileSession(pcm, reported_bit_depth, reported_sample_rate)
        with self._lock:
            previous, self._session = self._session, session

        if previous is not None:
            previous.cache.discard()
            if self.cancel_on_load:
                self._handle.terminate()

        logger.debug(f"Loaded session {session.session_id}: {pcm.channels}ch "
                     f"{pcm.sample_rate}Hz {pcm.duration:.2f}s")
        return session

    def unload(self):
        """Forget the current file and its results."""
        with self._lock:
            previous, self._session = self._session, None
        if previous is not None:
            previous.cache.discard()

    def terminate_worker(self):
        """Stop the worker; pending requests fail with WorkerTerminated."""
        self._handle.terminate()

    def close(self):
        """Stop the worker, waiting up to ``close_timeout``, and unload."""
        self._handle.terminate(join_timeout=self.close_timeout)
        self.unload()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_cached(self, kind) -> bool:
        session = self._session
        return session is not None and AnalysisKind.parse(kind) in session.cache

    def is_computing(self, kind) -> bool:
        session = self._session
        return session is not None and session.cache.is_computing(AnalysisKind.parse(kind))

    def get_cached(self, kind) -> Optional[AnalysisResult]:
        session = self._session
        if session is None:
            return None
        return session.cache.get(AnalysisKind.parse(kind))

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request_analysis(self, kind, pcm: Optional[PCMBuffer] = None,
                         params: Optional[Dict[str, Any]] = None) -> Future:
        """Future of the result for ``kind`` on the current (or given) file.

        Passing a ``pcm`` other than the loaded buffer loads it first.  Errors
        are delivered through the future, never raised here.
        """
        try:
            kind = AnalysisKind.parse(kind)
            session = self._session
            if pcm is not None and (session is None or session.pcm is not pcm):
                session = self.load(pcm)
        except UnsupportedInput as e:
            return completed_future(error=e)

        if session is None:
            return completed_future(error=UnsupportedInput("No file loaded"))
        return self._request(session, kind, params)

    def analyze(self, kind, pcm: Optional[PCMBuffer] = None,
                params: Optional[Dict[str, Any]] = None,
                timeout: Optional[float] = None) -> AnalysisResult:
        """Blocking form of :meth:`request_analysis`."""
        return self.request_analysis(kind, pcm, params).result(timeout)

    def analyze_all(self, kinds: List[AnalysisKind], timeout: Optional[float] = None) -> Dict[AnalysisKind, AnalysisResult]:
        """Request several kinds at once and wait for all of them."""
        futures = {AnalysisKind.parse(k): self.request_analysis(k) for k in kinds}
        return {k: f.result(timeout) for k, f in futures.items()}

    def _request(self, session: FileSession, kind: AnalysisKind,
                 params: Optional[Dict[str, Any]]) -> Future:
        if kind is AnalysisKind.VERDICT:
            return session.cache.get_or_start(
                kind, lambda: self._compose_verdict(session, params))
        merged = session.params_for(kind, params)
        return session.cache.get_or_start(
            kind, lambda: self._dispatcher.dispatch(kind, session.pcm, merged))

    def _compose_verdict(self, session: FileSession, params: Optional[Dict[str, Any]]) -> Future:
        merged = session.params_for(AnalysisKind.VERDICT, params)
        unknown = sorted(set(merged) - set(VERDICT_PARAMS))
        if unknown:
            return completed_future(
                error=UnsupportedInput(f"Bad parameters for verdict: {', '.join(unknown)}"))
        try:
            _adopt_header(session, merged)
        except UnsupportedInput as e:
            return completed_future(error=e)

        # Each input goes through the cache, so it is shared with direct requests
        inputs = [self._request(session, k, None) for k in VERDICT_INPUTS]
        return then(gather(inputs), lambda results: _build_verdict(results, merged))


def _build_verdict(results: List[AnalysisResult], params: Dict[str, Any]) -> VerdictResult:
    try:
        verdict = compute_verdict(*results, **params)
    except AnalysisError:
        raise
    except Exception as e:
        raise ComputeFailure(f"verdict failed: {e}") from e
    return check_finite(AnalysisKind.VERDICT, verdict)


def _adopt_header(session: FileSession, params: Dict[str, Any]):
    """Make verdict header params the session's, so the inputs see them too."""
    depth = params['reported_bit_depth']
    if depth != session.reported_bit_depth:
        cache = session.cache
        if AnalysisKind.BIT_DEPTH in cache or cache.is_computing(AnalysisKind.BIT_DEPTH):
            raise UnsupportedInput(
                f"reported_bit_depth={depth} conflicts with bit_depth already computed "
                f"for {session.reported_bit_depth}-bit")
        session.reported_bit_depth = depth
    session.reported_sample_rate = params['reported_sample_rate']
