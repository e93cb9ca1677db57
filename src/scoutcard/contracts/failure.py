"""What happens when a contract check fails.

There is one policy: raise ``ContractViolation`` at once.
"""

from enum import Enum


class FailurePolicy(str, Enum):
    """Reaction to a failed contract. Only FAIL_FAST is implemented."""
    FAIL_FAST = "fail_fast"


class ContractViolation(RuntimeError):
    """A stage returned data that breaks its own guarantees.

    Bad configuration raises ``ValueError`` from Pydantic and a bad oracle
    pass becomes a failed ``PassResult``; neither is a ContractViolation.
    Seeing one means the code computing counts, alerts or buckets is wrong.
    """
    pass
