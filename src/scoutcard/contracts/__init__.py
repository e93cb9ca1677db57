"""Stage contracts: fail-fast enforcement of analysis invariants.

Contracts fail immediately and loudly when a stage does not produce the
invariants it promised.

Key principle:
- Pydantic validates config and record correctness
- Contracts validate pipeline correctness
- The aggregator absorbs oracle failures
"""

from scoutcard.contracts.failure import ContractViolation, FailurePolicy
from scoutcard.contracts.base import require
from scoutcard.contracts.aggregation import assert_aggregated
from scoutcard.contracts.classification import assert_classified
from scoutcard.contracts.trend import assert_trend_partition

__all__ = [
    "ContractViolation",
    "FailurePolicy",
    "require",
    "assert_aggregated",
    "assert_classified",
    "assert_trend_partition",
]
