"""
Visibility Filter - Read-side projections of the position set

Nothing here mutates the store: every function takes a list and returns
a new one (or a summary built from it).
"""

from typing import Dict, List, Optional, Tuple

from retoken.core.models import Position, PositionStatus, SettlementSummary


STABLECOINS = ("USDC", "DAI", "USDT")
NON_STABLE_PRICE = 2000  # Flat demo price for every non-stable asset
EXIT_SLIPPAGE = 0.005
EXIT_SLIPPAGE_DISPLAY_PCT = 0.05


def visible_positions(positions: List[Position], identity: Optional[str]) -> List[Position]:
    """
    Positions shown for a session.

    No identity: only public positions (no owner_key).
    With identity: public positions plus those owned by that identity.
    """
    if identity is None:
        return [p for p in positions if p.owner_key is None]
    return [p for p in positions if p.owner_key is None or p.owner_key == identity]


def partition(positions: List[Position]) -> Tuple[List[Position], List[Position]]:
    """Split into (live, exited)."""
    live = [p for p in positions if p.status != PositionStatus.EXITED]
    exited = [p for p in positions if p.status == PositionStatus.EXITED]
    return live, exited


def position_value(position: Position) -> float:
    if position.asset in STABLECOINS:
        return position.amount
    return position.amount * NON_STABLE_PRICE


def portfolio_summary(positions: List[Position]) -> Dict:
    """Dashboard header figures for an already-filtered position list."""
    live, exited = partition(positions)
    return {
        "total_value_protected": sum(position_value(p) for p in live),
        "active_positions": len(live),
        "exited_positions": len(exited),
        "total_positions": len(positions),
        "warning_positions": len([p for p in live if p.status == PositionStatus.WARNING]),
    }


def settlement_summary(position: Position) -> Optional[SettlementSummary]:
    """Synthetic unwind proceeds for an exited position; None while live."""
    if position.status != PositionStatus.EXITED:
        return None
    return SettlementSummary(
        position_id=position.id,
        received_amount=position.amount * (1 - EXIT_SLIPPAGE),
        received_asset="USDC",
        slippage_pct=EXIT_SLIPPAGE_DISPLAY_PCT,
        exit_reference=position.exit_reference,
        exit_timestamp=position.exit_timestamp,
    )
