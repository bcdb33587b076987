"""
Wallet Session - Connected identity for ownership and visibility

Tracks which wallet address (if any) is active. Connection handshakes
happen in the client; this object only records the outcome.
"""

import hashlib
import random
import threading
from typing import Optional
from pydantic import BaseModel


class WalletState(BaseModel):
    address: Optional[str] = None
    balance: Optional[str] = None
    chain_id: Optional[int] = None
    is_connected: bool = False


class WalletSession:
    """Process-wide wallet session provider."""

    def __init__(self):
        self._state = WalletState()
        self._lock = threading.Lock()

    @property
    def state(self) -> WalletState:
        with self._lock:
            return self._state.model_copy()

    @property
    def address(self) -> Optional[str]:
        """Active identity, or None when disconnected."""
        with self._lock:
            return self._state.address if self._state.is_connected else None

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._state.is_connected

    def connect(self, address: str, balance: Optional[str] = None, chain_id: Optional[int] = None) -> WalletState:
        if not address:
            raise ValueError("address is required to connect")
        with self._lock:
            self._state = WalletState(
                address=address,
                balance=balance,
                chain_id=chain_id,
                is_connected=True
            )
            return self._state.model_copy()

    def disconnect(self) -> WalletState:
        with self._lock:
            self._state = WalletState()
            return self._state.model_copy()


def shorten_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def simulate_deposit_reference(amount: float, asset: str, rng: Optional[random.Random] = None) -> str:
    """
    Stand-in for a wallet deposit transaction: hashes the deposit memo with
    a random nonce into an opaque "0x" + 64 hex reference. Nothing is
    signed or broadcast.
    """
    source = rng if rng is not None else random
    memo = f"ReToken Deposit: {amount} {asset}:{source.getrandbits(64)}"
    return "0x" + hashlib.sha256(memo.encode("utf-8")).hexdigest()
