"""Concurrent oracle fan-out for one image.

Every pass for every requested category is submitted at once to a
dedicated thread pool, so no pass waits on another. The group is joined
with a single per-pass deadline: a pass still running at the deadline is
recorded as a timeout and abandoned (its eventual answer is discarded).
Setting the cancel event stops the whole group with no result.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Mapping, Optional

from scoutcard.analysis.models import Category, PassFailure, PassResult
from scoutcard.oracle.client import OracleClient, OracleRequest
from scoutcard.oracle.errors import (
    AnalysisCancelled,
    MalformedOracleResponse,
    OracleTimeout,
    OracleUnavailable,
)

logger = logging.getLogger(__name__)


class PassTaskGroup:
    """Runs all oracle passes for one image concurrently and joins them.

    Parameters
    ----------
    oracle : OracleClient
        Thread-safe counting client.
    passes_per_category : int
        Passes issued for each category.
    pass_timeout_sec : float
        Time each pass is allowed from submission.
    poll_interval_sec : float
        How often the cancel event is checked while waiting.

    Examples
    --------
    >>> group = PassTaskGroup(oracle, passes_per_category=3, pass_timeout_sec=45)
    >>> outcomes = group.run(image, [Category.WHITEFLY, Category.THRIPS])
    >>> len(outcomes[Category.WHITEFLY])
    3
    """

    def __init__(self, oracle: OracleClient, passes_per_category: int,
                 pass_timeout_sec: float, poll_interval_sec: float = 0.05):
        if passes_per_category < 1:
            raise ValueError("passes_per_category must be >= 1")
        if pass_timeout_sec <= 0:
            raise ValueError("pass_timeout_sec must be > 0")

        self.oracle = oracle
        self.passes_per_category = passes_per_category
        self.pass_timeout_sec = pass_timeout_sec
        self.poll_interval_sec = poll_interval_sec

    def run(self, image_bytes: bytes, categories: Iterable[Category],
            hints: Optional[Mapping[Category, int]] = None,
            cancel: Optional[threading.Event] = None) -> Dict[Category, List[PassResult]]:
        """Issue every pass and collect one :class:`PassResult` per pass.

        Parameters
        ----------
        image_bytes : bytes
            Image to count.
        categories : iterable of Category
            Categories to count; duplicates are ignored.
        hints : mapping, optional
            Expected count per category, forwarded to the oracle.
        cancel : threading.Event, optional
            When set, outstanding passes are cancelled or abandoned.

        Returns
        -------
        dict
            Category -> pass outcomes, in pass order.

        Raises
        ------
        AnalysisCancelled
            If ``cancel`` was set before every pass resolved.
        """
        categories = list(dict.fromkeys(Category(c) for c in categories))
        hints = hints or {}
        jobs = [(category, index) for category in categories
                for index in range(self.passes_per_category)]
        if not jobs:
            return {}

        self._check_cancel(cancel)

        executor = ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="oracle-pass")
        futures: Dict[Future, tuple] = {}
        try:
            for category, index in jobs:
                self._check_cancel(cancel)
                request = OracleRequest(
                    image_bytes=image_bytes,
                    category=category,
                    expected_count_hint=hints.get(category),
                )
                futures[executor.submit(self.oracle.count, request)] = (category, index)

            deadline = time.monotonic() + self.pass_timeout_sec
            pending = set(futures)
            while pending:
                self._check_cancel(cancel)
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                _, pending = wait(
                    pending,
                    timeout=min(remaining, self.poll_interval_sec),
                    return_when=FIRST_COMPLETED,
                )
            # The last pass may finish after cancel was set
            self._check_cancel(cancel)
        finally:
            # Never block on a hung pass; queued passes are dropped
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes = {category: [] for category in categories}
        for future, (category, index) in futures.items():
            outcomes[category].append(self._outcome(future, category, index))

        logger.debug(
            "Fan-out complete: %d passes, %d usable",
            len(futures), sum(r.ok for results in outcomes.values() for r in results),
        )
        return outcomes

    @staticmethod
    def _check_cancel(cancel: Optional[threading.Event]):
        if cancel is not None and cancel.is_set():
            logger.info("Image analysis cancelled")
            raise AnalysisCancelled("image analysis was cancelled")

    def _outcome(self, future: Future, category: Category, index: int) -> PassResult:
        """Convert a settled (or abandoned) pass into a PassResult."""
        label = f"{category.value} pass {index + 1}/{self.passes_per_category}"

        # Passes still queued at shutdown come back cancelled
        if future.cancelled() or not future.done():
            future.cancel()
            logger.warning("%s timed out after %.1fs", label, self.pass_timeout_sec)
            return PassResult.failed(PassFailure.TIMEOUT)

        try:
            response = future.result()
        except (OracleTimeout, TimeoutError) as e:
            logger.warning("%s timed out in oracle: %s", label, e)
            return PassResult.failed(PassFailure.TIMEOUT)
        except MalformedOracleResponse as e:
            logger.warning("%s returned a malformed payload: %s", label, e)
            return PassResult.failed(PassFailure.MALFORMED)
        except (OracleUnavailable, OSError) as e:
            logger.warning("%s failed, oracle unavailable: %s", label, e)
            return PassResult.failed(PassFailure.UNAVAILABLE)

        return PassResult.success(response.raw_count, response.confidence)
