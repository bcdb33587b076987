import random
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class PositionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    WARNING = "WARNING"
    EXITED = "EXITED"


class MarketRegime(str, Enum):
    STABLE = "STABLE"
    VOLATILE = "VOLATILE"
    CRASH = "CRASH"


class ScorePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: int
    score: float = Field(..., ge=0.0, le=100.0)


class Position(BaseModel):
    id: str
    owner_key: Optional[str] = None
    creation_reference: Optional[str] = None
    protocol: str
    asset: str
    amount: float
    apy: float
    risk_threshold: float
    current_score: float = Field(..., ge=0.0, le=100.0)
    status: PositionStatus
    history: List[ScorePoint]
    last_analysis_text: Optional[str] = None
    last_analysis_time: Optional[int] = None
    exit_reference: Optional[str] = None
    exit_timestamp: Optional[int] = None

    @model_validator(mode="after")
    def check_history_and_exit_data(self):
        if not self.history:
            raise ValueError(f"position {self.id} has an empty history")

        exit_fields = (self.exit_reference, self.exit_timestamp)
        if self.status == PositionStatus.EXITED:
            consistent = all(field is not None for field in exit_fields)
        else:
            consistent = all(field is None for field in exit_fields)
        if not consistent:
            raise ValueError(
                f"position {self.id}: exit_reference and exit_timestamp must be set "
                f"exactly when status is EXITED (status {self.status.value})"
            )
        return self


class CreatePositionRequest(BaseModel):
    protocol: str
    asset: str
    amount: float
    risk_threshold: float


class SettlementSummary(BaseModel):
    position_id: str
    received_amount: float
    received_asset: str
    slippage_pct: float
    exit_reference: str
    exit_timestamp: int


PositionList = TypeAdapter(List[Position])


# Seed histories come from a fixed-seed source so every reset is identical
SEED_HISTORY_SEED = 1337


def seed_positions() -> List[Position]:
    rng = random.Random(SEED_HISTORY_SEED)
    return [
        Position(
            id="1",
            protocol="Aave V3",
            asset="USDC",
            amount=50000,
            apy=4.5,
            risk_threshold=80,
            current_score=88,
            status=PositionStatus.ACTIVE,
            history=[
                ScorePoint(timestamp=i, score=round(85 + rng.random() * 10, 1))
                for i in range(20)
            ],
            last_analysis_text=(
                "* Smart contract audit verified recently.\n"
                "* High liquidity utilization observed (85%), monitoring required.\n"
                "* Governance proposals stable."
            ),
        ),
        Position(
            id="2",
            protocol="Compound V3",
            asset="ETH",
            amount=12.5,
            apy=2.1,
            risk_threshold=75,
            current_score=78,
            status=PositionStatus.WARNING,
            history=[
                ScorePoint(timestamp=i, score=round(80 - rng.random() * 5, 1))
                for i in range(20)
            ],
            last_analysis_text=(
                "* Recent price volatility in collateral assets.\n"
                "* Oracle latency spikes detected on secondary networks.\n"
                "* Reserve factor remains optimal."
            ),
        ),
    ]
