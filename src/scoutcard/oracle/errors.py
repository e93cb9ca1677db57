"""Oracle failure taxonomy.

Per-pass failures (``OracleUnavailable``, ``OracleTimeout``,
``MalformedOracleResponse``) are absorbed by the multi-pass runner and turn
into dropped passes. ``OracleTotalFailure`` is raised for a whole image when
no category produced a usable value. ``AnalysisCancelled`` is not an oracle
failure: the caller asked for the work to stop.
"""


class OracleError(Exception):
    """Base class for oracle failures."""


class OracleUnavailable(OracleError):
    """The oracle could not be reached or refused the request."""


class OracleTimeout(OracleUnavailable):
    """The oracle did not answer within the pass timeout."""


class MalformedOracleResponse(OracleError):
    """The oracle answered with a payload that is not a valid count."""


class OracleTotalFailure(OracleError):
    """No category of an image produced a usable value. Retryable."""

    def __init__(self, categories=()):
        self.categories = tuple(categories)
        names = ", ".join(getattr(c, "value", str(c)) for c in self.categories) or "none requested"
        super().__init__(f"No usable oracle passes for any category ({names})")


class AnalysisCancelled(RuntimeError):
    """Image analysis was cancelled before it produced a result."""
