"""The ``require`` check used by every contract module."""

from scoutcard.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Raise ContractViolation with ``message`` unless ``condition`` holds.

    Contract modules call this on the output of a stage (aggregation,
    classification, trend building) before the result leaves that stage.

    Raises
    ------
    ContractViolation
        If ``condition`` is falsy.

    Examples
    --------
    >>> require(result.completeness is not None, "Aggregation contract: completeness missing")
    >>> require(buckets[-1].window_end == now, "Trend contract: last bucket must end at now")
    """
    if not condition:
        raise ContractViolation(message)
