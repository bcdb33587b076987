"""Shared builders for position and storage tests."""

from typing import Optional

from retoken.core.exceptions import DatabaseError
from retoken.core.models import Position, PositionStatus, ScorePoint
from retoken.persistence.state_manager import PersistentStateManager


class FakeClock:
    """Millisecond clock that advances 2000 ms per reading."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 2000):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


class FailingStateManager(PersistentStateManager):
    """Snapshot storage whose writes always fail."""

    def __init__(self):
        super().__init__(db_path=":memory:")
        self.write_attempts = 0

    def set(self, key: str, value: str):
        self.write_attempts += 1
        raise DatabaseError("disk full")


def make_position(
    position_id: str = "p1",
    score: float = 92.0,
    threshold: float = 75.0,
    status: PositionStatus = PositionStatus.ACTIVE,
    owner_key: Optional[str] = None,
    asset: str = "USDC",
    amount: float = 1000.0,
    history_len: int = 20,
) -> Position:
    exit_data = {}
    if status == PositionStatus.EXITED:
        exit_data = {"exit_reference": "0x" + "e" * 40, "exit_timestamp": history_len - 1}

    return Position(
        id=position_id,
        owner_key=owner_key,
        protocol="Aave V3",
        asset=asset,
        amount=amount,
        apy=4.0,
        risk_threshold=threshold,
        current_score=score,
        status=status,
        history=[ScorePoint(timestamp=i, score=score) for i in range(history_len)],
        **exit_data,
    )

