"""
API Routes - REST Endpoints for Re-Token

Provides endpoints for:
- Position creation, listing and analysis refresh
- Market regime control and manual ticks
- Wallet session tracking
- Portfolio summary
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import List, Literal

from retoken.core.exceptions import (
    EngineStateError,
    InvalidPositionRequest,
    PositionExited,
    PositionNotFound,
)
from retoken.core.models import CreatePositionRequest, SettlementSummary
from retoken.api.schemas import (
    CreatePositionBody,
    PortfolioSummaryResponse,
    PositionResponse,
    RegimeRequest,
    RegimeResponse,
    SessionConnectRequest,
    SessionResponse,
    TickResponse,
)
from retoken.api.state import AppState, get_state
from retoken.simulation.visibility import (
    partition,
    portfolio_summary,
    settlement_summary,
    visible_positions,
)
from retoken.wallet.session import shorten_address, simulate_deposit_reference


router = APIRouter(prefix="/api/v1", tags=["retoken"])


def _visible(state: AppState):
    return visible_positions(state.store.positions, state.session.address)


def _session_response(state: AppState) -> SessionResponse:
    wallet = state.session.state
    return SessionResponse(
        address=wallet.address,
        short_address=shorten_address(wallet.address) if wallet.address else None,
        balance=wallet.balance,
        chain_id=wallet.chain_id,
        is_connected=wallet.is_connected
    )


# ----------------------------------------------------
# Positions
# ----------------------------------------------------

@router.get("/positions", response_model=List[PositionResponse])
def list_positions(
    view: Literal["all", "active", "exited"] = "all",
    state: AppState = Depends(get_state)
):
    positions = _visible(state)

    if view != "all":
        live, exited = partition(positions)
        positions = live if view == "active" else exited

    return [PositionResponse.from_position(p) for p in positions]


@router.post("/positions", response_model=PositionResponse, status_code=201)
async def create_position(body: CreatePositionBody, state: AppState = Depends(get_state)):
    """
    Wrap a new position.

    Analysis is requested in the background; the response returns
    immediately with the freshly seeded position.
    """
    reference = body.creation_reference or simulate_deposit_reference(body.amount, body.asset, state.rng)

    try:
        position = state.lifecycle.create(
            CreatePositionRequest(
                protocol=body.protocol,
                asset=body.asset,
                amount=body.amount,
                risk_threshold=body.risk_threshold
            ),
            creation_reference=reference
        )
    except InvalidPositionRequest as e:
        raise HTTPException(status_code=400, detail=str(e))

    return PositionResponse.from_position(position)


@router.get("/positions/{position_id}", response_model=PositionResponse)
def get_position(position_id: str, state: AppState = Depends(get_state)):
    position = state.store.get(position_id)

    if not position:
        raise HTTPException(status_code=404, detail=f"Position {position_id} not found")

    return PositionResponse.from_position(position)


@router.get("/positions/{position_id}/settlement", response_model=SettlementSummary)
def get_settlement(position_id: str, state: AppState = Depends(get_state)):
    position = state.store.get(position_id)

    if not position:
        raise HTTPException(status_code=404, detail=f"Position {position_id} not found")

    summary = settlement_summary(position)
    if summary is None:
        raise HTTPException(status_code=409, detail=f"Position {position_id} has not exited")

    return summary


@router.post("/positions/{position_id}/analysis", response_model=PositionResponse)
async def refresh_analysis(position_id: str, state: AppState = Depends(get_state)):
    try:
        position = await state.lifecycle.refresh_analysis(position_id)
    except PositionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PositionExited as e:
        raise HTTPException(status_code=409, detail=str(e))

    return PositionResponse.from_position(position)


# ----------------------------------------------------
# Market & Simulation Control
# ----------------------------------------------------

@router.get("/market/regime", response_model=RegimeResponse)
def get_regime(state: AppState = Depends(get_state)):
    return RegimeResponse(regime=state.regime.regime)


@router.put("/market/regime", response_model=RegimeResponse)
def set_regime(request: RegimeRequest, state: AppState = Depends(get_state)):
    return RegimeResponse(regime=state.regime.set_regime(request.regime))


@router.post("/simulation/tick", response_model=TickResponse)
def run_tick(state: AppState = Depends(get_state)):
    return TickResponse(**state.engine.tick())


@router.post("/simulation/start")
async def start_simulation(state: AppState = Depends(get_state)):
    try:
        state.engine.start()
    except EngineStateError:
        return {"status": "already_running"}
    return {"status": "started"}


@router.post("/simulation/stop")
async def stop_simulation(state: AppState = Depends(get_state)):
    await state.engine.stop()
    return {"status": "stopped", "ticks": state.engine.tick_count}


@router.post("/simulation/reset", response_model=List[PositionResponse])
def reset_simulation(state: AppState = Depends(get_state)):
    state.lifecycle.reset()
    return [PositionResponse.from_position(p) for p in _visible(state)]


# ----------------------------------------------------
# Wallet Session
# ----------------------------------------------------

@router.get("/session", response_model=SessionResponse)
def get_session(state: AppState = Depends(get_state)):
    return _session_response(state)


@router.post("/session/connect", response_model=SessionResponse)
def connect_session(request: SessionConnectRequest, state: AppState = Depends(get_state)):
    state.session.connect(request.address, balance=request.balance, chain_id=request.chain_id)
    return _session_response(state)


@router.post("/session/disconnect", response_model=SessionResponse)
def disconnect_session(state: AppState = Depends(get_state)):
    state.session.disconnect()
    return _session_response(state)


# ----------------------------------------------------
# Portfolio
# ----------------------------------------------------

@router.get("/portfolio/summary", response_model=PortfolioSummaryResponse)
def get_portfolio_summary(state: AppState = Depends(get_state)):
    summary = portfolio_summary(_visible(state))

    return PortfolioSummaryResponse(
        **summary,
        regime=state.regime.regime,
        engine_running=state.engine.is_running
    )
