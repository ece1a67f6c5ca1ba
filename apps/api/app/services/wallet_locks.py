"""Per-wallet execution locks so trades on one custodial wallet run one at a time."""
import asyncio
from typing import Dict


class WalletLockRegistry:
    """Process-wide map of wallet id → asyncio.Lock."""

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}

    def lock_for(self, wallet_id: int) -> asyncio.Lock:
        # No await between lookup and insert, so this is atomic on the event loop
        lock = self._locks.get(wallet_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[wallet_id] = lock
        return lock

    def is_locked(self, wallet_id: int) -> bool:
        lock = self._locks.get(wallet_id)
        return bool(lock and lock.locked())

    def __len__(self) -> int:
        return len(self._locks)


# Global registry instance
wallet_locks = WalletLockRegistry()
