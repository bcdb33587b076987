"""
Static Analyst - Reproducible commentary backend for demos and tests.

Removes the network dependency by picking canned bullets from the score band:
score >= 85 healthy, >= 70 elevated, otherwise critical.
"""

from retoken.analysis.base import BaseAnalysisDelegate


class StaticAnalyst(BaseAnalysisDelegate):
    """
    Deterministic commentary delegate.

    Args:
        healthy_floor: Minimum score for the healthy band.
        elevated_floor: Minimum score for the elevated band.
    """

    name = "static"

    def __init__(self, healthy_floor: float = 85.0, elevated_floor: float = 70.0):
        self.healthy_floor = healthy_floor
        self.elevated_floor = elevated_floor
        self.calls = 0

    async def generate(self, protocol: str, asset: str, score: float) -> str:
        self.calls += 1

        if score >= self.healthy_floor:
            bullets = [
                f"{protocol} contracts show no recent incidents; audit coverage is current.",
                f"{asset} market liquidity is deep relative to outstanding borrows.",
                "Governance activity is routine with no pending risk-parameter changes.",
            ]
        elif score >= self.elevated_floor:
            bullets = [
                f"Utilization of the {asset} pool on {protocol} is trending upward.",
                "Oracle update latency has widened on secondary feeds.",
                "Collateral volatility warrants closer monitoring of the exit threshold.",
            ]
        else:
            bullets = [
                f"{protocol} safety score at {score}/100 signals acute stress.",
                f"{asset} liquidity is thinning; withdrawals may face queueing.",
                "Depeg or cascading liquidation risk is elevated; unwind is imminent.",
            ]

        return "\n".join(f"* {b}" for b in bullets)
