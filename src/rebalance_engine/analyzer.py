"""Deviation analysis of a portfolio snapshot against a target allocation set"""

from typing import List
from wallet_connector_base import PortfolioSnapshot, TargetAllocation, Deviation, DeviationReport


def analyze(snapshot: PortfolioSnapshot, targets: List[TargetAllocation]) -> DeviationReport:
    """
    Compare current weights against targets.

    Deviations follow the order of targets. A token with a target but no
    snapshot entry counts as 0%. A portfolio without targets never needs
    rebalancing. The function has no side effects.
    """
    if not targets:
        return DeviationReport(needs_rebalance=False, deviations=[])

    current_map = {entry.token_id: entry.percentage for entry in snapshot.entries}

    deviations = []
    for target in targets:
        current_percentage = current_map.get(target.token_id, 0.0)
        deviation = current_percentage - target.target_percentage

        deviations.append(Deviation(
            token_id=target.token_id,
            symbol=target.symbol,
            current_percentage=current_percentage,
            target_percentage=target.target_percentage,
            threshold_percentage=target.threshold_percentage,
            deviation=deviation,
            needs_rebalance=abs(deviation) > target.threshold_percentage
        ))

    return DeviationReport(
        needs_rebalance=any(d.needs_rebalance for d in deviations),
        deviations=deviations
    )
