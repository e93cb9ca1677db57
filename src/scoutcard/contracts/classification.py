"""Classification stage contract.

Enforces the guarantee that the scan level is the highest per-category
tier and that only present categories were classified.
"""

from scoutcard.contracts.base import require


def assert_classified(classification, aggregated_counts) -> None:
    """Enforce classification stage contract.

    Parameters
    ----------
    classification : Classification
        Output of classifier.classify()

    aggregated_counts : sequence of AggregatedCount
        The counts that were classified

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    present = {c.category for c in aggregated_counts}
    tiered = set(classification.per_category_tiers)
    require(
        present == tiered,
        f"Classification contract violated: tiers for {sorted(c.value for c in tiered)} "
        f"but counts for {sorted(c.value for c in present)}"
    )

    ranks = [level.rank for level in classification.per_category_tiers.values()]
    require(
        classification.scan_alert_level.rank == max(ranks, default=0),
        f"Classification contract violated: scan level "
        f"'{classification.scan_alert_level.value}' is not the highest tier"
    )
