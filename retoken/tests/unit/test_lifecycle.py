"""
Unit tests: position lifecycle.

Covers creation and validation, fire-and-forget analysis, annotation of
missing or exited positions, reset semantics, and reset or annotation
racing a tick.
"""

import asyncio
import random
import threading
import time

import pytest

from retoken.analysis.base import BaseAnalysisDelegate
from retoken.analysis.static_analyst import StaticAnalyst
from retoken.core.exceptions import InvalidPositionRequest, PositionExited, PositionNotFound
from retoken.core.models import CreatePositionRequest, MarketRegime, PositionStatus, seed_positions
from retoken.persistence.position_store import PositionStore
from retoken.persistence.state_manager import PersistentStateManager
from retoken.simulation.engine import RiskSimulationEngine
from retoken.simulation.lifecycle import PositionLifecycle
from retoken.simulation.regime import MarketRegimeSelector
from retoken.wallet.session import WalletSession
from retoken.tests.helpers import FakeClock, make_position


class GatedAnalyst(BaseAnalysisDelegate):
    """Holds every request until release() is called."""

    name = "gated"

    def __init__(self, text: str = "* gated"):
        self.text = text
        self.gate = asyncio.Event()

    def release(self):
        self.gate.set()

    async def generate(self, protocol, asset, score):
        await self.gate.wait()
        return self.text


@pytest.fixture
def session():
    return WalletSession()


@pytest.fixture
def lifecycle(store, regime, clock, session):
    return PositionLifecycle(
        store=store,
        regime_selector=regime,
        analyst=StaticAnalyst(),
        session=session,
        rng=random.Random(11),
        clock=clock,
    )


def aave_usdc(**overrides):
    data = {"protocol": "Aave V3", "asset": "USDC", "amount": 1000, "risk_threshold": 75}
    data.update(overrides)
    return CreatePositionRequest(**data)


# ── Create ────────────────────────────────────────────────────

class TestCreate:

    def test_seeds_healthy_position(self, lifecycle, store):
        position = lifecycle.create(aave_usdc(), creation_reference="0xdeposit")

        assert position.current_score == 92
        assert position.status == PositionStatus.ACTIVE
        assert len(position.history) == 20
        assert all(pt.score == 92 for pt in position.history)
        assert [pt.timestamp for pt in position.history] == list(range(20))
        assert position.creation_reference == "0xdeposit"
        assert position.exit_reference is None and position.exit_timestamp is None
        assert 3 <= position.apy < 8
        assert len(position.id) == 9

        assert store.positions[0] == position

    def test_owner_key_from_connected_session(self, lifecycle, session):
        assert lifecycle.create(aave_usdc()).owner_key is None

        session.connect("0xabc")
        assert lifecycle.create(aave_usdc()).owner_key == "0xabc"

    @pytest.mark.parametrize("overrides", [
        {"amount": 0},
        {"amount": -5},
        {"amount": float("nan")},
        {"risk_threshold": 49.9},
        {"risk_threshold": 95.1},
        {"protocol": "  "},
    ])
    def test_invalid_requests_never_reach_store(self, lifecycle, store, overrides):
        before = store.positions

        with pytest.raises(InvalidPositionRequest):
            lifecycle.create(aave_usdc(**overrides))

        assert store.positions == before

    def test_threshold_range_is_inclusive(self, lifecycle):
        assert lifecycle.create(aave_usdc(risk_threshold=50)).risk_threshold == 50
        assert lifecycle.create(aave_usdc(risk_threshold=95)).risk_threshold == 95

    def test_ids_are_unique(self, lifecycle):
        ids = {lifecycle.create(aave_usdc()).id for _ in range(50)}
        assert len(ids) == 50


# ── Analysis ──────────────────────────────────────────────────

class TestAnalysis:

    def test_create_without_loop_skips_analysis(self, lifecycle, store):
        position = lifecycle.create(aave_usdc())
        assert store.get(position.id).last_analysis_text is None

    def test_fire_and_forget_analysis_attaches(self, lifecycle, store):
        async def scenario():
            position = lifecycle.create(aave_usdc())
            assert store.get(position.id).last_analysis_text is None
            await lifecycle.wait_for_analyses()
            return store.get(position.id)

        annotated = asyncio.run(scenario())

        assert annotated.last_analysis_text.startswith("* Aave V3 contracts")
        assert annotated.last_analysis_time is not None
        assert annotated.current_score == 92

    def test_analysis_dropped_after_reset(self, store, regime, clock):
        analyst = GatedAnalyst()
        lifecycle = PositionLifecycle(store, regime, analyst, rng=random.Random(5), clock=clock)

        async def scenario():
            position = lifecycle.create(aave_usdc())
            await asyncio.sleep(0)
            lifecycle.reset()
            analyst.release()
            await lifecycle.wait_for_analyses()
            return position

        position = asyncio.run(scenario())

        assert store.get(position.id) is None
        assert store.positions == seed_positions()

    def test_attach_unknown_id_is_noop(self, lifecycle, store):
        before = store.positions
        assert lifecycle.attach_analysis("nope", "text") is None
        assert store.positions == before

    def test_attach_allowed_on_exited(self, lifecycle, store, clock):
        exited = make_position("x", score=60, threshold=70, status=PositionStatus.EXITED).model_copy(
            update={"exit_reference": "0x" + "a" * 40, "exit_timestamp": 1}
        )
        store.replace_all([exited])

        updated = lifecycle.attach_analysis("x", "* archived")

        assert updated.last_analysis_text == "* archived"
        assert updated.last_analysis_time == clock.now
        assert updated.model_copy(update={"last_analysis_text": None, "last_analysis_time": None}) == exited

    def test_refresh_analysis(self, lifecycle, store):
        store.replace_all([make_position("p1", score=72.0, threshold=60.0)])

        updated = asyncio.run(lifecycle.refresh_analysis("p1"))

        assert "Utilization" in updated.last_analysis_text

    def test_refresh_rejects_missing_and_exited(self, lifecycle, store):
        store.replace_all([make_position("x", score=60, threshold=70, status=PositionStatus.EXITED)])

        with pytest.raises(PositionNotFound):
            asyncio.run(lifecycle.refresh_analysis("missing"))
        with pytest.raises(PositionExited):
            asyncio.run(lifecycle.refresh_analysis("x"))


# ── Reset ─────────────────────────────────────────────────────

def test_reset_restores_seed_and_stable_regime(lifecycle, store, regime):
    lifecycle.create(aave_usdc())
    regime.set_regime(MarketRegime.CRASH)

    first = lifecycle.reset()
    second = lifecycle.reset()

    assert first == second == seed_positions()
    assert regime.regime == MarketRegime.STABLE


# ── Concurrent access ─────────────────────────────────────────

class ResetOnClock:
    """Engine clock that resets the simulation the first time it is read."""

    def __init__(self, lifecycle):
        self.lifecycle = lifecycle
        self.inner = FakeClock()
        self.fired = False

    def __call__(self):
        if not self.fired:
            self.fired = True
            self.lifecycle.reset()
        return self.inner()


class ResetWhileLocked(MarketRegimeSelector):
    """Starts a reset on another thread the first time the tick reads the regime."""

    def __init__(self, initial):
        super().__init__(initial)
        self.lifecycle = None
        self.reset_thread = None

    @property
    def regime(self):
        current = MarketRegimeSelector.regime.fget(self)
        if self.reset_thread is None:
            started = threading.Event()

            def _reset():
                started.set()
                self.lifecycle.reset()

            self.reset_thread = threading.Thread(target=_reset)
            self.reset_thread.start()
            started.wait()
            time.sleep(0.05)
        return current


class TestConcurrency:

    def test_reset_before_tick_swap_is_seen_whole(self, store, regime):
        regime.set_regime(MarketRegime.CRASH)
        lifecycle = PositionLifecycle(store, regime, StaticAnalyst(), rng=random.Random(3))
        engine = RiskSimulationEngine(
            store, regime, rng=random.Random(8), clock=ResetOnClock(lifecycle)
        )

        summary = engine.tick()

        assert summary["regime"] == "STABLE"
        seeded = {p.id: p for p in seed_positions()}
        for position in store.positions:
            assert abs(position.current_score - seeded[position.id].current_score) <= 1.05

    def test_reset_during_tick_lands_after_it(self, store):
        regime = ResetWhileLocked(MarketRegime.CRASH)
        lifecycle = PositionLifecycle(store, regime, StaticAnalyst(), rng=random.Random(3))
        regime.lifecycle = lifecycle
        engine = RiskSimulationEngine(store, regime, rng=random.Random(8), clock=FakeClock())

        summary = engine.tick()
        regime.reset_thread.join(timeout=5)

        assert summary["regime"] == "CRASH"
        assert summary["advanced"] == 2
        assert store.positions == seed_positions()
        assert MarketRegimeSelector.regime.fget(regime) == MarketRegime.STABLE

    def test_attach_racing_ticks_only_touches_analysis(self, store, regime):
        regime.set_regime(MarketRegime.VOLATILE)
        lifecycle = PositionLifecycle(store, regime, StaticAnalyst(), clock=FakeClock())
        engine = RiskSimulationEngine(store, regime, rng=random.Random(4), clock=FakeClock())
        store.replace_all([make_position("p1", score=90.0, threshold=50.0)])

        control_store = PositionStore(PersistentStateManager(db_path=":memory:"))
        control_store.replace_all([make_position("p1", score=90.0, threshold=50.0)])
        control = RiskSimulationEngine(control_store, regime, rng=random.Random(4), clock=FakeClock())

        stop = threading.Event()
        annotating = threading.Event()

        def _annotate():
            n = 0
            while not stop.is_set():
                lifecycle.attach_analysis("p1", f"* note {n}")
                annotating.set()
                n += 1

        annotator = threading.Thread(target=_annotate)
        annotator.start()
        annotating.wait(timeout=5)
        try:
            for _ in range(40):
                engine.tick()
                control.tick()
        finally:
            stop.set()
            annotator.join(timeout=5)

        raced = store.get("p1")
        expected = control_store.get("p1")
        control_store.state.close()

        assert raced.last_analysis_text.startswith("* note")
        assert raced.current_score == expected.current_score
        assert raced.history == expected.history
        assert raced.status == expected.status
