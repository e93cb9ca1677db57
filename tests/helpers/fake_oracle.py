import threading
from collections import defaultdict

from scoutcard.analysis.models import Category
from scoutcard.oracle.client import OracleClient, OracleResponse


class Hang:
    """Script entry that blocks the pass until ``release`` is set."""

    def __init__(self, release: threading.Event, max_wait: float = 5.0):
        self.release = release
        self.max_wait = max_wait


class Delay:
    """Script entry that answers ``value`` after ``seconds``."""

    def __init__(self, value: int, seconds: float):
        self.value = value
        self.seconds = seconds


class Trigger:
    """Script entry that sets ``event`` after ``seconds``, then answers ``value``."""

    def __init__(self, value: int, event: threading.Event, seconds: float = 0.0):
        self.value = value
        self.event = event
        self.seconds = seconds


class ScriptedOracle(OracleClient):
    """Thread-safe oracle answering from a per-category script.

    Each category's script is consumed in call order. An entry is an int
    (the count), an OracleResponse, an exception instance (raised), or a
    :class:`Hang`, :class:`Delay` or :class:`Trigger`. Calls beyond the
    script answer ``default``.
    """

    def __init__(self, script=None, default=0):
        self.script = {Category(k): list(v) for k, v in (script or {}).items()}
        self.default = default
        self.requests = []
        self._calls = defaultdict(int)
        self._lock = threading.Lock()

    @property
    def call_count(self):
        with self._lock:
            return len(self.requests)

    def count(self, request):
        with self._lock:
            self.requests.append(request)
            index = self._calls[request.category]
            self._calls[request.category] += 1

        entries = self.script.get(request.category, [])
        entry = entries[index] if index < len(entries) else self.default

        if isinstance(entry, Hang):
            entry.release.wait(entry.max_wait)
            return OracleResponse(raw_count=0)
        if isinstance(entry, Delay):
            threading.Event().wait(entry.seconds)
            return OracleResponse(raw_count=entry.value)
        if isinstance(entry, Trigger):
            threading.Event().wait(entry.seconds)
            entry.event.set()
            return OracleResponse(raw_count=entry.value)
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, OracleResponse):
            return entry
        return OracleResponse(raw_count=entry)
