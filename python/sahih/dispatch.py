"""
Analysis dispatch: the analyzer registry, a background worker thread, the
handle that owns it, and a dispatcher that falls back to inline execution.

Every path hands back a ``concurrent.futures.Future`` so callers never care
whether the work ran on the worker or synchronously.
"""

import inspect
import itertools
import logging
import queue
import threading
from concurrent.futures import CancelledError, Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np

from .bandwidth import analyze_bandwidth
from .bitdepth import analyze_bit_depth
from .dynamics import measure_dynamic_range
from .errors import (
    AnalysisError, ComputeFailure, UnsupportedInput, WorkerTerminated, WorkerUnavailable,
)
from .loudness import measure_loudness
from .lossy import detect_lossy
from .spectral import compute_spectrogram, compute_spectrum, compute_waveform
from .stereo import analyze_stereo
from .types import AnalysisKind, AnalysisResult, PCMBuffer
from .verdict import compute_verdict

logger = logging.getLogger(__name__)


def _standalone_verdict(channel_data, sample_rate, reported_bit_depth=16,
                        reported_sample_rate=None):
    """Run the four verdict inputs in sequence and combine them."""
    return compute_verdict(
        analyze_bit_depth(channel_data, sample_rate, reported_bit_depth=reported_bit_depth),
        analyze_bandwidth(channel_data, sample_rate),
        detect_lossy(channel_data, sample_rate),
        measure_dynamic_range(channel_data, sample_rate),
        reported_bit_depth=reported_bit_depth,
        reported_sample_rate=reported_sample_rate or sample_rate,
    )


ANALYZERS: Dict[AnalysisKind, Callable[..., AnalysisResult]] = {
    AnalysisKind.BIT_DEPTH: analyze_bit_depth,
    AnalysisKind.BANDWIDTH: analyze_bandwidth,
    AnalysisKind.LOSSY_DETECT: detect_lossy,
    AnalysisKind.LUFS: measure_loudness,
    AnalysisKind.DYNAMIC_RANGE: measure_dynamic_range,
    AnalysisKind.STEREO: analyze_stereo,
    AnalysisKind.WAVEFORM: compute_waveform,
    AnalysisKind.SPECTRUM: compute_spectrum,
    AnalysisKind.SPECTROGRAM: compute_spectrogram,
    AnalysisKind.VERDICT: _standalone_verdict,
}

# Kinds the verdict is built from
VERDICT_INPUTS = (
    AnalysisKind.BIT_DEPTH,
    AnalysisKind.BANDWIDTH,
    AnalysisKind.LOSSY_DETECT,
    AnalysisKind.DYNAMIC_RANGE,
)


def check_finite(kind: AnalysisKind, result: AnalysisResult) -> AnalysisResult:
    """Reject results carrying NaN or +inf."""
    bad = result.non_finite_fields()
    if bad:
        raise ComputeFailure(f"{kind.value} produced non-finite values in: {', '.join(bad)}")
    return result


def run_analysis(kind, channel_data: Sequence[np.ndarray], sample_rate: int,
                 params: Optional[Dict[str, Any]] = None) -> AnalysisResult:
    """Run one analyzer synchronously.

    Raises:
        UnsupportedInput: unknown kind, bad parameters or unusable input.
        ComputeFailure: the analyzer failed or produced non-finite values.
    """
    kind = AnalysisKind.parse(kind)
    fn = ANALYZERS[kind]
    params = dict(params or {})
    try:
        inspect.signature(fn).bind(channel_data, sample_rate, **params)
    except TypeError as e:
        raise UnsupportedInput(f"Bad parameters for {kind.value}: {e}") from e

    try:
        result = fn(channel_data, sample_rate, **params)
    except AnalysisError:
        raise
    except Exception as e:
        raise ComputeFailure(f"{kind.value} failed: {e}") from e

    if result.kind is not kind:
        raise ComputeFailure(f"{kind.value} analyzer returned a {result.kind.value} result")
    return check_finite(kind, result)


# ---------------------------------------------------------------------------
# Future helpers
# ---------------------------------------------------------------------------

def completed_future(result: Any = None, error: Optional[BaseException] = None) -> Future:
    """An already-settled future."""
    future = Future()
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)
    return future


def settle_future(future: Future, result: Any = None, error: Optional[BaseException] = None):
    if future.done():
        return
    try:
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)
    except InvalidStateError:
        # Cancelled by the caller in the meantime
        return


def gather(futures: Sequence[Future]) -> Future:
    """Future of the list of results; fails with the first error seen."""
    out = Future()
    futures = list(futures)
    if not futures:
        out.set_result([])
        return out

    remaining = [len(futures)]
    lock = threading.Lock()

    def on_done(f: Future):
        if f.cancelled():
            settle_future(out, error=CancelledError())
            return
        error = f.exception()
        if error is not None:
            settle_future(out, error=error)
            return
        with lock:
            remaining[0] -= 1
            finished = remaining[0] == 0
        if finished:
            settle_future(out, result=[x.result() for x in futures])

    for f in futures:
        f.add_done_callback(on_done)
    return out


def then(future: Future, fn: Callable[[Any], Any]) -> Future:
    """Future of ``fn(result)``; errors from either step propagate."""
    out = Future()

    def on_done(f: Future):
        if f.cancelled():
            settle_future(out, error=CancelledError())
            return
        error = f.exception()
        if error is not None:
            settle_future(out, error=error)
            return
        try:
            value = fn(f.result())
        except Exception as e:
            settle_future(out, error=e)
            return
        settle_future(out, result=value)

    future.add_done_callback(on_done)
    return out


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WorkerRequest:
    """Message sent to the worker thread."""
    id: int
    kind: AnalysisKind
    channel_data: Sequence[np.ndarray]
    sample_rate: int
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WorkerResponse:
    """Message returned by the worker thread: a result or an error."""
    id: int
    result: Optional[AnalysisResult] = None
    error: Optional[BaseException] = None


_STOP = object()


class AnalysisWorker:
    """A single background thread that runs analyses off a request queue."""

    def __init__(self, name: str = 'sahih-analysis'):
        self._requests: "queue.Queue" = queue.Queue()
        self._pending: Dict[int, Future] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def alive(self) -> bool:
        return not self._closed and self._thread.is_alive()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit(self, kind: AnalysisKind, channel_data: Sequence[np.ndarray],
               sample_rate: int, params: Optional[Dict[str, Any]] = None) -> Future:
        """Queue a request and return its future."""
        future = Future()
        with self._lock:
            if self._closed:
                raise WorkerUnavailable("Worker is not accepting requests")
            request = WorkerRequest(next(self._ids), kind, channel_data, sample_rate, dict(params or {}))
            self._pending[request.id] = future
        self._requests.put(request)
        return future

    def terminate(self):
        """Stop the thread and reject every pending request."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()
        self._requests.put(_STOP)
        if pending:
            logger.debug(f"Worker terminated with {len(pending)} pending requests")
        for future in pending:
            settle_future(future, error=WorkerTerminated("Analysis worker was terminated"))

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread to exit.  Returns False if it is still running."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self):
        try:
            while True:
                request = self._requests.get()
                if request is _STOP:
                    break
                if not self._start(request.id):
                    continue
                self._deliver(self._process(request))
        except Exception as e:
            logger.error(f"Analysis worker crashed: {e}")
            self._crash(e)

    def _start(self, request_id: int) -> bool:
        with self._lock:
            future = self._pending.get(request_id)
            if future is None:
                return False
            if not future.set_running_or_notify_cancel():
                del self._pending[request_id]
                return False
        return True

    def _process(self, request: WorkerRequest) -> WorkerResponse:
        try:
            result = run_analysis(request.kind, request.channel_data,
                                  request.sample_rate, request.params)
        except AnalysisError as e:
            return WorkerResponse(request.id, error=e)
        return WorkerResponse(request.id, result=result)

    def _deliver(self, response: WorkerResponse):
        with self._lock:
            future = self._pending.pop(response.id, None)
        if future is None:
            # Terminated while computing; the result has nowhere to go
            return
        settle_future(future, result=response.result, error=response.error)

    def _crash(self, error: Exception):
        with self._lock:
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            settle_future(future, error=WorkerTerminated(f"Analysis worker crashed: {error}"))


class WorkerHandle:
    """Lazily creates, recreates and terminates the engine's worker."""

    def __init__(self, enabled: bool = True,
                 worker_factory: Callable[[], AnalysisWorker] = AnalysisWorker):
        self.enabled = enabled
        self._factory = worker_factory
        self._worker: Optional[AnalysisWorker] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._worker is not None and self._worker.alive

    def acquire(self) -> AnalysisWorker:
        """Return a live worker, starting one if needed.

        Raises:
            WorkerUnavailable: background execution is disabled or no thread
                could be started.
        """
        if not self.enabled:
            raise WorkerUnavailable("Background execution is disabled")
        with self._lock:
            if self._worker is None or not self._worker.alive:
                try:
                    self._worker = self._factory()
                except RuntimeError as e:
                    raise WorkerUnavailable(f"Could not start analysis worker: {e}") from e
                logger.debug("Started analysis worker")
            return self._worker

    def terminate(self, join_timeout: Optional[float] = None) -> bool:
        """Terminate the current worker, if any.

        With ``join_timeout``, also wait that long for an analysis already
        running on the thread to finish.  Returns False if that wait timed
        out.
        """
        with self._lock:
            worker, self._worker = self._worker, None
        if worker is None:
            return True
        worker.terminate()
        if join_timeout is None:
            return True
        if not worker.join(join_timeout):
            logger.warning(f"Analysis worker still busy after {join_timeout}s, leaving it to finish")
            return False
        return True


class AnalysisDispatcher:
    """Send analyses to the worker, or run them inline when it is unavailable."""

    def __init__(self, handle: Optional[WorkerHandle] = None):
        self.handle = handle or WorkerHandle()

    def dispatch(self, kind, pcm: PCMBuffer, params: Optional[Dict[str, Any]] = None) -> Future:
        kind = AnalysisKind.parse(kind)
        try:
            worker = self.handle.acquire()
            future = worker.submit(kind, pcm.channel_data, pcm.sample_rate, params)
        except WorkerUnavailable as e:
            logger.debug(f"Running {kind.value} inline: {e}")
            future = self.run_inline(kind, pcm, params)
        future.add_done_callback(lambda f: _log_failure(kind, f))
        return future

    def run_inline(self, kind, pcm: PCMBuffer, params: Optional[Dict[str, Any]] = None) -> Future:
        """Compute synchronously and return an already-settled future."""
        try:
            result = run_analysis(kind, pcm.channel_data, pcm.sample_rate, params)
        except AnalysisError as e:
            return completed_future(error=e)
        return completed_future(result)


def _log_failure(kind: AnalysisKind, future: Future):
    if future.cancelled():
        return
    error = future.exception()
    if error is not None and not isinstance(error, WorkerTerminated):
        logger.warning(f"Analysis {kind.value} failed: {error}")
