"""File-backed credit balances."""

import asyncio
import logging
from pathlib import Path

from ..models import LedgerSnapshot

logger = logging.getLogger(__name__)


class InsufficientCreditsError(Exception):
    """The user does not have enough credits for the deduction."""

    def __init__(self, user_id: str, requested: int, available: int):
        super().__init__(
            f"User {user_id} requested {requested} credits but has {available}"
        )
        self.user_id = user_id
        self.requested = requested
        self.available = available


class CreditLedger:
    """Per-user credit balances stored as a JSON file.

    All reads and writes go through one lock, so a balance check and the
    deduction that follows it cannot interleave with another request. File
    access runs in a worker thread.
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = asyncio.Lock()

    def _load(self) -> LedgerSnapshot:
        if not self.path.exists():
            return LedgerSnapshot()
        return LedgerSnapshot.model_validate_json(self.path.read_text(encoding="utf-8"))

    def _save(self, snapshot: LedgerSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self.path)

    async def balance(self, user_id: str) -> int:
        async with self._lock:
            snapshot = await asyncio.to_thread(self._load)
            return snapshot.balances.get(user_id, 0)

    async def grant(self, user_id: str, amount: int) -> int:
        """Add purchased credits and return the new balance."""
        if amount <= 0:
            raise ValueError("amount must be positive")

        async with self._lock:
            snapshot = await asyncio.to_thread(self._load)
            snapshot.balances[user_id] = snapshot.balances.get(user_id, 0) + amount
            await asyncio.to_thread(self._save, snapshot)
            logger.info("Granted %d credits to %s", amount, user_id)
            return snapshot.balances[user_id]

    async def deduct(self, user_id: str, amount: int) -> int:
        """Spend credits and return the remaining balance.

        Raises:
            InsufficientCreditsError: if the balance is lower than amount
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        async with self._lock:
            snapshot = await asyncio.to_thread(self._load)
            available = snapshot.balances.get(user_id, 0)
            if available < amount:
                raise InsufficientCreditsError(user_id, amount, available)

            snapshot.balances[user_id] = available - amount
            await asyncio.to_thread(self._save, snapshot)
            logger.info("Deducted %d credits from %s", amount, user_id)
            return snapshot.balances[user_id]
