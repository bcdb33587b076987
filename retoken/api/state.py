"""
Application State - the objects one dashboard process owns

Built once per app in the server lifespan and handed to routes through
the get_state dependency.
"""

import random
from dataclasses import dataclass
from typing import Optional
from fastapi import Request

from retoken.analysis.base import BaseAnalysisDelegate
from retoken.analysis.llm_analyst import LLMAnalyst
from retoken.analysis.static_analyst import StaticAnalyst
from retoken.core.config import AnalysisConfig, RetokenConfig
from retoken.persistence.position_store import PositionStore
from retoken.persistence.state_manager import PersistentStateManager
from retoken.simulation.engine import RiskSimulationEngine
from retoken.simulation.lifecycle import PositionLifecycle
from retoken.simulation.regime import MarketRegimeSelector
from retoken.wallet.session import WalletSession


@dataclass
class AppState:
    """Everything one dashboard process owns, passed by handle."""
    config: RetokenConfig
    state_manager: PersistentStateManager
    store: PositionStore
    regime: MarketRegimeSelector
    session: WalletSession
    engine: RiskSimulationEngine
    lifecycle: PositionLifecycle
    rng: random.Random

    def close(self):
        self.state_manager.close()


def build_analyst(config: AnalysisConfig) -> BaseAnalysisDelegate:
    if config.provider == "static":
        return StaticAnalyst()
    return LLMAnalyst(
        provider=config.provider,
        model=config.model,
        openai_api_key=config.openai_api_key,
        anthropic_api_key=config.anthropic_api_key,
        timeout=config.timeout
    )


def build_state(
    config: RetokenConfig,
    analyst: Optional[BaseAnalysisDelegate] = None,
    rng: Optional[random.Random] = None
) -> AppState:
    """Wire storage, engine and lifecycle around one shared store."""
    rng = rng if rng is not None else random.Random()
    sim = config.simulation

    state_manager = PersistentStateManager(db_path=config.storage.db_path)
    store = PositionStore(
        state_manager,
        storage_key=config.storage.storage_key,
        history_capacity=sim.history_capacity
    )
    regime = MarketRegimeSelector()
    session = WalletSession()

    engine = RiskSimulationEngine(
        store=store,
        regime_selector=regime,
        rng=rng,
        tick_interval_ms=sim.tick_interval_ms,
        history_capacity=sim.history_capacity,
        warning_band=sim.warning_band,
        exit_reference_length=sim.exit_reference_length
    )
    lifecycle = PositionLifecycle(
        store=store,
        regime_selector=regime,
        analyst=analyst if analyst is not None else build_analyst(config.analysis),
        session=session,
        rng=rng,
        seed_score=sim.seed_score,
        history_capacity=sim.history_capacity,
        min_risk_threshold=sim.min_risk_threshold,
        max_risk_threshold=sim.max_risk_threshold
    )

    return AppState(
        config=config,
        state_manager=state_manager,
        store=store,
        regime=regime,
        session=session,
        engine=engine,
        lifecycle=lifecycle,
        rng=rng
    )


def get_state(request: Request) -> AppState:
    return request.app.state.retoken
