"""
Position Store - Authoritative in-memory position set

Holds the single mutable copy of every position and mirrors it to the
snapshot database after each mutation. The database is a last-write-wins
mirror: if a write fails the in-memory set stays authoritative and the
next successful write carries the latest state.
"""

import logging
import threading
from typing import Callable, List, Optional

from pydantic import ValidationError

from retoken.core.exceptions import DatabaseError
from retoken.core.models import Position, PositionList, seed_positions
from retoken.persistence.state_manager import PersistentStateManager


logger = logging.getLogger(__name__)

Observer = Callable[[List[Position]], None]


class PositionStore:
    """
    Owns the position collection and its durable snapshot.

    Responsibilities:
    - Rehydrate from the snapshot (or seed data) at startup
    - Apply whole-collection swaps atomically under one lock
    - Persist after every mutation
    - Notify observers with the new collection
    """

    def __init__(
        self,
        state_manager: PersistentStateManager,
        storage_key: str = "retoken_positions",
        history_capacity: Optional[int] = None
    ):
        """
        Initialize position store.

        Args:
            state_manager: Key/value storage for the snapshot
            storage_key: Fixed key the snapshot lives under
            history_capacity: Longest history a stored position may carry
        """
        self.state = state_manager
        self.storage_key = storage_key
        self.history_capacity = history_capacity
        self._lock = threading.RLock()
        self._observers: List[Observer] = []
        self._positions: List[Position] = self.load()

    # ---------------------------------------------------------
    # SNAPSHOT I/O
    # ---------------------------------------------------------

    def load(self) -> List[Position]:
        """
        Deserialize positions from storage.

        Falls back to the seed set when the key is absent or unreadable.
        """
        try:
            raw = self.state.get(self.storage_key)
        except DatabaseError as e:
            logger.warning("Snapshot read failed, using seed positions: %s", e)
            return seed_positions()

        if raw is None:
            return seed_positions()

        try:
            positions = PositionList.validate_json(raw)
        except ValidationError as e:
            logger.warning("Snapshot %r is corrupt, using seed positions: %s", self.storage_key, e)
            return seed_positions()

        if self.history_capacity is not None:
            oversized = [p.id for p in positions if len(p.history) > self.history_capacity]
            if oversized:
                logger.warning(
                    "Snapshot %r has histories over capacity %d (%s), using seed positions",
                    self.storage_key, self.history_capacity, ", ".join(oversized)
                )
                return seed_positions()

        return positions

    def save(self, positions: List[Position]) -> bool:
        """
        Overwrite the durable snapshot.

        Returns:
            True if the write succeeded. Failures are logged, never raised.
        """
        try:
            payload = PositionList.dump_json(positions).decode("utf-8")
            self.state.set(self.storage_key, payload)
            return True
        except DatabaseError as e:
            logger.warning("Snapshot write failed, keeping in-memory state: %s", e)
            return False

    # ---------------------------------------------------------
    # READS
    # ---------------------------------------------------------

    @property
    def positions(self) -> List[Position]:
        """Shallow copy of the current collection."""
        with self._lock:
            return list(self._positions)

    def get(self, position_id: str) -> Optional[Position]:
        with self._lock:
            return next((p for p in self._positions if p.id == position_id), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)

    # ---------------------------------------------------------
    # MUTATIONS
    # ---------------------------------------------------------

    def replace_all(self, positions: List[Position]) -> List[Position]:
        """Swap in a new collection, persist it and notify observers."""
        return self.mutate(lambda _current: list(positions))

    def mutate(self, fn: Callable[[List[Position]], List[Position]]) -> List[Position]:
        """
        Compute a new collection from the current one and swap it in.

        fn receives a copy and must return the full replacement list.
        The lock is held until persistence and notification finish, so
        concurrent mutations are applied one at a time.
        """
        with self._lock:
            updated = list(fn(list(self._positions)))
            self._positions = updated
            self.save(updated)
            self._notify(updated)
            return list(updated)

    def add(self, position: Position) -> Position:
        """Insert a position at the front of the collection."""
        self.mutate(lambda current: [position] + current)
        return position

    def update(self, position_id: str, fn: Callable[[Position], Position]) -> Optional[Position]:
        """
        Replace one position with fn(position).

        Returns:
            The updated position, or None when the id is unknown
            (nothing is persisted in that case).
        """
        with self._lock:
            index = next(
                (i for i, p in enumerate(self._positions) if p.id == position_id),
                None
            )
            if index is None:
                return None

            updated = fn(self._positions[index])

            def _swap(current: List[Position]) -> List[Position]:
                current[index] = updated
                return current

            self.mutate(_swap)
            return updated

    def reset(self, on_reset: Optional[Callable[[], None]] = None) -> List[Position]:
        """
        Restore the seed set and clear the durable snapshot.

        Args:
            on_reset: Called while the lock is still held, so state that
                mutations read under the lock is reset in the same swap
        """
        with self._lock:
            self._positions = seed_positions()
            try:
                self.state.delete(self.storage_key)
            except DatabaseError as e:
                logger.warning("Snapshot clear failed during reset: %s", e)
            if on_reset is not None:
                on_reset()
            self._notify(self._positions)
            return list(self._positions)

    # ---------------------------------------------------------
    # OBSERVERS
    # ---------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register a callback invoked with the new collection after each mutation.

        Returns:
            Function that removes the observer.
        """
        with self._lock:
            self._observers.append(observer)

        def _unsubscribe():
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _unsubscribe

    def _notify(self, positions: List[Position]):
        for observer in list(self._observers):
            try:
                observer(list(positions))
            except Exception:
                logger.exception("Position observer %r failed", observer)
