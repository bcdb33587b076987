"""
Risk Simulation Engine - Periodic score perturbation and auto-exit

Each tick:
1. Read the current market regime
2. Skip positions that have already exited
3. Perturb the score, clamp to [0, 100], round to 0.1
4. Append the new point to the bounded history
5. Reclassify (ACTIVE / WARNING / EXITED) and synthesize exit data
6. Persist the whole collection through the store
"""

import asyncio
import logging
import math
import random
import time
from typing import Any, Callable, Dict, List, Optional

from retoken.core.exceptions import EngineStateError
from retoken.core.models import Position, PositionStatus, ScorePoint
from retoken.persistence.position_store import PositionStore
from retoken.simulation.regime import MarketRegimeSelector, perturbation


logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def round_score(value: float) -> float:
    """Round half-up at 0.1 granularity."""
    return math.floor(value * 10 + 0.5) / 10


def clamp_score(value: float) -> float:
    return min(100.0, max(0.0, value))


def classify(score: float, risk_threshold: float, warning_band: float = 5.0) -> PositionStatus:
    """
    Status for a live position.

    Exit uses strict <, so a score equal to the threshold stays live.
    The warning band is the half-open interval [threshold, threshold + band).
    """
    if score < risk_threshold:
        return PositionStatus.EXITED
    if score < risk_threshold + warning_band:
        return PositionStatus.WARNING
    return PositionStatus.ACTIVE


def generate_exit_reference(rng: Optional[random.Random] = None, length: int = 40) -> str:
    """Synthetic transaction-style reference: "0x" + length hex chars."""
    source = rng if rng is not None else random
    return "0x" + "".join(format(source.randrange(16), "x") for _ in range(length))


class RiskSimulationEngine:
    """
    Advances every live position by one tick on a fixed period.

    The engine owns no positions; it reads and swaps the store's
    collection. Randomness and time are injectable so tests can
    replay exact sequences.
    """

    def __init__(
        self,
        store: PositionStore,
        regime_selector: MarketRegimeSelector,
        rng: Optional[random.Random] = None,
        clock: Callable[[], int] = now_ms,
        tick_interval_ms: int = 2000,
        history_capacity: int = 20,
        warning_band: float = 5.0,
        exit_reference_length: int = 40
    ):
        """
        Args:
            store: Position store to mutate
            regime_selector: Source of the current market regime
            rng: Random source for perturbations and exit references
            clock: Returns the current time in epoch milliseconds
            tick_interval_ms: Period between ticks when running
            history_capacity: Max score points kept per position
            warning_band: Width of the WARNING band above the threshold
            exit_reference_length: Hex characters in a synthetic exit reference
        """
        self.store = store
        self.regime_selector = regime_selector
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        self.tick_interval_ms = tick_interval_ms
        self.history_capacity = history_capacity
        self.warning_band = warning_band
        self.exit_reference_length = exit_reference_length

        self.tick_count = 0
        self._task: Optional[asyncio.Task] = None

    # ---------------------------------------------------------
    # SINGLE TICK
    # ---------------------------------------------------------

    def advance_position(self, position: Position, regime, now: int) -> Position:
        """Return the position after one tick. Exited positions come back unchanged."""
        if position.status == PositionStatus.EXITED:
            return position

        delta = perturbation(regime, self.rng)
        new_score = round_score(clamp_score(position.current_score + delta))

        history = list(position.history) + [ScorePoint(timestamp=now, score=new_score)]
        if len(history) > self.history_capacity:
            history = history[-self.history_capacity:]

        status = classify(new_score, position.risk_threshold, self.warning_band)

        update: Dict[str, Any] = {
            "current_score": new_score,
            "status": status,
            "history": history,
        }
        if status == PositionStatus.EXITED:
            update["exit_reference"] = generate_exit_reference(self.rng, self.exit_reference_length)
            update["exit_timestamp"] = now

        return position.model_copy(update=update)

    def tick(self) -> Dict[str, Any]:
        """
        Apply one tick to the whole store.

        Returns:
            Summary with the regime used, live positions advanced and
            ids that exited on this tick.
        """
        now = self.clock()
        exited: List[Position] = []
        advanced = 0
        regime = None
        tick_number = 0

        # Regime and tick count are read under the store lock so a
        # concurrent reset is seen either entirely or not at all
        def _advance_all(current: List[Position]) -> List[Position]:
            nonlocal advanced, regime, tick_number
            regime = self.regime_selector.regime
            self.tick_count += 1
            tick_number = self.tick_count
            updated = []
            for position in current:
                if position.status == PositionStatus.EXITED:
                    updated.append(position)
                    continue
                advanced += 1
                new_position = self.advance_position(position, regime, now)
                if new_position.status == PositionStatus.EXITED:
                    exited.append(new_position)
                updated.append(new_position)
            return updated

        self.store.mutate(_advance_all)

        for position in exited:
            logger.warning(
                "Auto-exit %s (%s %s): score %.1f < threshold %.1f, ref %s",
                position.id, position.protocol, position.asset,
                position.current_score, position.risk_threshold, position.exit_reference
            )

        return {
            "tick": tick_number,
            "regime": regime.value,
            "advanced": advanced,
            "exited": [p.id for p in exited],
            "timestamp": now,
        }

    # ---------------------------------------------------------
    # SCHEDULING
    # ---------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Schedule the recurring tick on the running event loop."""
        if self.is_running:
            raise EngineStateError("Simulation engine is already running")
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Simulation engine started (interval %d ms)", self.tick_interval_ms)
        return self._task

    async def stop(self):
        """Cancel the recurring tick. A tick in progress always completes first."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Simulation engine stopped after %d ticks", self.tick_count)

    async def _run(self):
        # tick() is synchronous, so cancellation can only land on the sleep
        interval = self.tick_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                self.tick()
            except Exception:
                logger.exception("Simulation tick failed")
