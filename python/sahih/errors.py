"""Error types raised by the Sahih analysis engine."""


class AnalysisError(Exception):
    """Base class for every error surfaced by the engine.

    ``retryable`` tells callers whether issuing the same request again can
    succeed (worker lifecycle problems) or not (bad input, numeric failure).
    """
    retryable = False


class UnsupportedInput(AnalysisError):
    """Input the requested analysis cannot handle (e.g. an empty buffer)."""


class ComputeFailure(AnalysisError):
    """Numeric failure, such as NaN reaching a result field."""


class WorkerUnavailable(AnalysisError):
    """Background execution is not possible; run the analysis inline."""
    retryable = True


class WorkerTerminated(AnalysisError):
    """The worker was terminated or crashed while the request was pending."""
    retryable = True
