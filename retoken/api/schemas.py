"""
API Schemas - Request/Response Models

Pydantic models for API validation and documentation.
"""

from pydantic import BaseModel, Field
from typing import List, Optional

from retoken.analysis.formatting import analysis_lines
from retoken.core.models import MarketRegime, Position


class CreatePositionBody(BaseModel):
    """Request to wrap a new position."""
    protocol: str = Field(..., description="Lending protocol, e.g. 'Aave V3'")
    asset: str = Field(..., description="Deposited asset, e.g. 'USDC'")
    amount: float = Field(..., description="Deposit amount (must be positive)")
    risk_threshold: float = Field(..., description="Score below which the position auto-exits")
    creation_reference: Optional[str] = Field(None, description="Deposit transaction reference")


class PositionResponse(Position):
    """Position with commentary pre-split for rendering."""
    analysis_lines: List[str] = []

    @classmethod
    def from_position(cls, position: Position) -> "PositionResponse":
        return cls(
            **position.model_dump(),
            analysis_lines=analysis_lines(position.last_analysis_text)
        )


class RegimeRequest(BaseModel):
    """Request to switch the market regime."""
    regime: MarketRegime


class RegimeResponse(BaseModel):
    regime: MarketRegime


class TickResponse(BaseModel):
    """Outcome of a single simulation tick."""
    tick: int
    regime: MarketRegime
    advanced: int
    exited: List[str]
    timestamp: int


class SessionConnectRequest(BaseModel):
    """Record a wallet connection made by the client."""
    address: str = Field(..., min_length=1)
    balance: Optional[str] = None
    chain_id: Optional[int] = None


class SessionResponse(BaseModel):
    address: Optional[str]
    short_address: Optional[str]
    balance: Optional[str]
    chain_id: Optional[int]
    is_connected: bool


class PortfolioSummaryResponse(BaseModel):
    """Dashboard header figures for the visible positions."""
    total_value_protected: float
    active_positions: int
    exited_positions: int
    warning_positions: int
    total_positions: int
    regime: MarketRegime
    engine_running: bool
