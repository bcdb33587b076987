"""
Position Lifecycle API - create, annotate and reset positions

Creation validates synchronously, inserts the position and fires a
non-blocking analysis request whose result is attached later by id.
"""

import asyncio
import logging
import math
import random
import string
from typing import Callable, List, Optional, Set

from retoken.analysis.base import BaseAnalysisDelegate
from retoken.core.exceptions import InvalidPositionRequest, PositionExited, PositionNotFound
from retoken.core.models import CreatePositionRequest, Position, PositionStatus, ScorePoint
from retoken.persistence.position_store import PositionStore
from retoken.simulation.engine import now_ms
from retoken.simulation.regime import MarketRegimeSelector
from retoken.wallet.session import WalletSession


logger = logging.getLogger(__name__)

ID_ALPHABET = string.digits + string.ascii_lowercase
ID_LENGTH = 9


class PositionLifecycle:
    """
    Entry points other layers use to change the position set.

    Responsibilities:
    - Validate and create positions
    - Dispatch and attach analysis commentary
    - Reset the store and regime to their seed state
    """

    def __init__(
        self,
        store: PositionStore,
        regime_selector: MarketRegimeSelector,
        analyst: BaseAnalysisDelegate,
        session: Optional[WalletSession] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], int] = now_ms,
        seed_score: float = 92.0,
        history_capacity: int = 20,
        min_risk_threshold: float = 50.0,
        max_risk_threshold: float = 95.0
    ):
        self.store = store
        self.regime_selector = regime_selector
        self.analyst = analyst
        self.session = session
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        self.seed_score = seed_score
        self.history_capacity = history_capacity
        self.min_risk_threshold = min_risk_threshold
        self.max_risk_threshold = max_risk_threshold

        self._pending: Set[asyncio.Task] = set()

    # ---------------------------------------------------------
    # CREATE
    # ---------------------------------------------------------

    def validate(self, request: CreatePositionRequest):
        """
        Raises:
            InvalidPositionRequest: On a non-positive amount, an out-of-range
                threshold or blank descriptive fields
        """
        if not request.protocol.strip() or not request.asset.strip():
            raise InvalidPositionRequest("protocol and asset are required")

        if not math.isfinite(request.amount) or request.amount <= 0:
            raise InvalidPositionRequest(f"amount must be positive, got {request.amount}")

        if not (self.min_risk_threshold <= request.risk_threshold <= self.max_risk_threshold):
            raise InvalidPositionRequest(
                f"risk_threshold must be in [{self.min_risk_threshold}, {self.max_risk_threshold}], "
                f"got {request.risk_threshold}"
            )

    def create(self, request: CreatePositionRequest, creation_reference: Optional[str] = None) -> Position:
        """
        Create a healthy position and queue its first analysis.

        Args:
            request: Protocol, asset, amount and risk threshold
            creation_reference: Opaque handle of the deposit event

        Returns:
            The stored position
        """
        self.validate(request)

        position = Position(
            id=self._new_id(),
            owner_key=self.session.address if self.session else None,
            creation_reference=creation_reference,
            protocol=request.protocol,
            asset=request.asset,
            amount=request.amount,
            apy=3 + self.rng.random() * 5,
            risk_threshold=request.risk_threshold,
            current_score=self.seed_score,
            status=PositionStatus.ACTIVE,
            history=[
                ScorePoint(timestamp=i, score=self.seed_score)
                for i in range(self.history_capacity)
            ],
        )

        self.store.add(position)
        logger.info(
            "Created position %s: %s %s on %s (threshold %.1f)",
            position.id, position.amount, position.asset, position.protocol, position.risk_threshold
        )

        self._request_analysis(position)
        return position

    def _new_id(self) -> str:
        while True:
            candidate = "".join(self.rng.choice(ID_ALPHABET) for _ in range(ID_LENGTH))
            if self.store.get(candidate) is None:
                return candidate

    # ---------------------------------------------------------
    # ANALYSIS
    # ---------------------------------------------------------

    def _request_analysis(self, position: Position) -> Optional[asyncio.Task]:
        """Fire-and-forget analysis on the running loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.info("No running event loop; analysis for %s not requested", position.id)
            return None

        task = loop.create_task(
            self._analyze_and_attach(position.id, position.protocol, position.asset, position.current_score)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _analyze_and_attach(self, position_id: str, protocol: str, asset: str, score: float):
        text = await self.analyst.analyze(protocol, asset, score)
        if self.attach_analysis(position_id, text) is None:
            logger.debug("Dropped analysis for %s: position no longer stored", position_id)

    def attach_analysis(self, position_id: str, text: str) -> Optional[Position]:
        """
        Set analysis text and time. Allowed on exited positions.

        Returns:
            The annotated position, or None if the id is unknown.
        """
        now = self.clock()
        return self.store.update(
            position_id,
            lambda p: p.model_copy(update={"last_analysis_text": text, "last_analysis_time": now})
        )

    async def refresh_analysis(self, position_id: str) -> Position:
        """
        Re-run analysis for a live position and wait for the result.

        Raises:
            PositionNotFound: Unknown id
            PositionExited: Position already unwound
        """
        position = self.store.get(position_id)
        if position is None:
            raise PositionNotFound(f"Position {position_id} not found")
        if position.status == PositionStatus.EXITED:
            raise PositionExited(f"Position {position_id} has exited; analysis is archived")

        text = await self.analyst.analyze(position.protocol, position.asset, position.current_score)
        updated = self.attach_analysis(position_id, text)
        if updated is None:
            raise PositionNotFound(f"Position {position_id} was removed during analysis")
        return updated

    async def wait_for_analyses(self):
        """Wait until every queued analysis request has resolved."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ---------------------------------------------------------
    # RESET
    # ---------------------------------------------------------

    def reset(self) -> List[Position]:
        """Restore seed positions and the STABLE regime in one swap."""
        positions = self.store.reset(on_reset=self.regime_selector.reset)
        logger.info("Simulation reset to %d seed positions", len(positions))
        return positions
