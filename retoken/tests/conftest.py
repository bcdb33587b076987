import random

import pytest

from retoken.persistence.position_store import PositionStore
from retoken.persistence.state_manager import PersistentStateManager
from retoken.simulation.engine import RiskSimulationEngine
from retoken.simulation.regime import MarketRegimeSelector
from retoken.tests.helpers import FakeClock


@pytest.fixture
def state_manager():
    state = PersistentStateManager(db_path=":memory:")
    yield state
    state.close()


@pytest.fixture
def store(state_manager):
    return PositionStore(state_manager, storage_key="test_positions")


@pytest.fixture
def regime():
    return MarketRegimeSelector()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(store, regime, clock):
    return RiskSimulationEngine(store=store, regime_selector=regime, rng=random.Random(42), clock=clock)
