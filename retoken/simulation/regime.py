"""
Market Regime Selector

Holds the current simulation regime and draws one score perturbation per
position per tick. A regime switch takes effect on the very next draw;
there is no easing between regimes.
"""

import random
import threading
from typing import Dict, Optional, Tuple

from retoken.core.models import MarketRegime


# Uniform sampling bounds per regime: (low, high)
PERTURBATION_RANGES: Dict[MarketRegime, Tuple[float, float]] = {
    MarketRegime.STABLE: (-1.0, 1.0),
    MarketRegime.VOLATILE: (-4.0, 4.0),
    MarketRegime.CRASH: (-7.0, -2.0),
}


def perturbation(regime: MarketRegime, rng: Optional[random.Random] = None) -> float:
    """Draw one uniform score delta for the given regime."""
    low, high = PERTURBATION_RANGES[MarketRegime(regime)]
    source = rng if rng is not None else random
    return low + source.random() * (high - low)


class MarketRegimeSelector:
    """Process-wide regime holder, settable at any time."""

    def __init__(self, initial: MarketRegime = MarketRegime.STABLE):
        self._regime = MarketRegime(initial)
        self._lock = threading.Lock()

    @property
    def regime(self) -> MarketRegime:
        with self._lock:
            return self._regime

    def set_regime(self, regime: MarketRegime) -> MarketRegime:
        """Swap the active regime. Accepts enum members or their string values."""
        new_regime = MarketRegime(regime)
        with self._lock:
            self._regime = new_regime
        return new_regime

    def reset(self) -> MarketRegime:
        return self.set_regime(MarketRegime.STABLE)

    def sample(self, rng: Optional[random.Random] = None) -> float:
        """Perturbation for the current regime."""
        return perturbation(self.regime, rng)
