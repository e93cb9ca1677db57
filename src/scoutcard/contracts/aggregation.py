"""Aggregation stage contract.

Enforces the guarantee that after aggregation every reported count sits
inside the range of the passes it came from, and that the completeness
flag agrees with the categories that were lost.
"""

from scoutcard.contracts.base import require


def assert_aggregated(result) -> None:
    """Enforce aggregation stage contract.

    Called immediately after aggregation. Verifies that the aggregator
    produced one count per category, each backed by at least one pass.

    Parameters
    ----------
    result : AggregationResult
        Output of aggregator.aggregate()

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    categories = [c.category for c in result.aggregated_counts]
    require(
        len(set(categories)) == len(categories),
        f"Aggregation contract violated: duplicate categories {categories}"
    )

    for aggregated in result.aggregated_counts:
        values = aggregated.pass_results
        require(
            len(values) >= 1,
            f"Aggregation contract violated: '{aggregated.category.value}' has no pass values"
        )
        require(
            min(values) <= aggregated.count <= max(values),
            f"Aggregation contract violated: '{aggregated.category.value}' count "
            f"{aggregated.count} outside pass range [{min(values)}, {max(values)}]"
        )

    overlap = set(categories) & set(result.failed_categories)
    require(
        not overlap,
        f"Aggregation contract violated: {sorted(c.value for c in overlap)} both counted and failed"
    )

    # failed <=> at least one category lost; degraded <=> passes lost but none failed
    has_failed = bool(result.failed_categories)
    require(
        (result.completeness.value == "failed") == has_failed,
        f"Aggregation contract violated: completeness '{result.completeness.value}' "
        f"with failed categories {list(result.failed_categories)}"
    )
    if result.completeness.value == "complete":
        require(
            not result.dropped_passes,
            "Aggregation contract violated: completeness 'complete' with dropped passes"
        )
