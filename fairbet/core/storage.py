"""
Account and bet-ledger gateway.

Controllers only talk to the AccountStore protocol. Two implementations ship:
MemoryStore (process lifetime, used by tests and throwaway servers) and
SQLiteStore in fairbet.core.database.
"""

import itertools
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Protocol, Set, Tuple

from fairbet.core.exceptions import ConcurrentUpdateError, NegativeBalanceError, NotFoundError
from fairbet.core.logger import get_logger
from fairbet.core.schemas import Account, BetRecord, NewBet

logger = get_logger("storage")


class AccountStore(Protocol):
    """
    Balance store plus append-only bet ledger.

    Implementations must make `settle` atomic: the balance write and the
    ledger append both happen or neither does. When `expected_balance` is
    given, writes only go through if the stored balance still equals it;
    otherwise ConcurrentUpdateError is raised and nothing is written.
    """

    def open(self) -> None:
        ...

    def close(self) -> None:
        ...

    def create_account(self, balance: int) -> Account:
        ...

    def get_account(self, user_id: int) -> Optional[Account]:
        """Return the account, or None if the user is unknown."""
        ...

    def set_balance(self, user_id: int, new_balance: int, expected_balance: Optional[int] = None) -> Account:
        """Overwrite the balance. Raises NotFoundError / NegativeBalanceError / ConcurrentUpdateError."""
        ...

    def append_bet(self, bet: NewBet) -> BetRecord:
        """Append a record, assigning the next id and a server timestamp."""
        ...

    def list_bets(self, user_id: int, limit: Optional[int] = None) -> List[BetRecord]:
        """Records for one user, newest first."""
        ...

    def settle(
        self, user_id: int, new_balance: int, bet: NewBet, expected_balance: Optional[int] = None
    ) -> Tuple[Account, BetRecord]:
        ...

    def locked(self, user_id: int):
        """Context manager serializing read-validate-write cycles for one user."""
        ...

    def is_key_used(self, key: str) -> bool:
        ...

    def mark_key_used(self, key: str) -> None:
        ...


class UserLocks:
    """One re-entrant lock per user id, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.RLock] = {}

    @contextmanager
    def locked(self, user_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(user_id, threading.RLock())
        with lock:
            yield


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_balance(user_id: int, new_balance: int):
    if new_balance < 0:
        logger.error(
            "Negative balance rejected",
            extra={"user_id": user_id, "balance": new_balance},
        )
        raise NegativeBalanceError(user_id, new_balance)


def stale_write(user_id: int, expected_balance: int, actual_balance) -> ConcurrentUpdateError:
    logger.warning(
        "Balance changed since it was read",
        extra={"user_id": user_id, "expected": expected_balance, "actual": actual_balance},
    )
    return ConcurrentUpdateError(user_id)


class MemoryStore(UserLocks):
    """In-process store; contents are lost when the process exits."""

    def __init__(self):
        super().__init__()
        self._write_lock = threading.RLock()
        self._balances: Dict[int, int] = {}
        self._bets: List[BetRecord] = []
        self._keys: Set[str] = set()
        self._account_ids = itertools.count(1)
        self._bet_ids = itertools.count(1)

    def open(self):
        logger.info("Using in-memory account store")

    def close(self):
        pass

    def create_account(self, balance: int) -> Account:
        with self._write_lock:
            account_id = next(self._account_ids)
            check_balance(account_id, balance)
            self._balances[account_id] = balance
        return Account(id=account_id, balance=balance)

    def get_account(self, user_id: int) -> Optional[Account]:
        balance = self._balances.get(user_id)
        if balance is None:
            return None
        return Account(id=user_id, balance=balance)

    def _check_write(self, user_id: int, new_balance: int, expected_balance: Optional[int]):
        if user_id not in self._balances:
            raise NotFoundError(f"User {user_id} not found")
        check_balance(user_id, new_balance)
        if expected_balance is not None and self._balances[user_id] != expected_balance:
            raise stale_write(user_id, expected_balance, self._balances[user_id])

    def set_balance(self, user_id: int, new_balance: int, expected_balance: Optional[int] = None) -> Account:
        with self._write_lock:
            self._check_write(user_id, new_balance, expected_balance)
            self._balances[user_id] = new_balance
        return Account(id=user_id, balance=new_balance)

    def append_bet(self, bet: NewBet) -> BetRecord:
        with self._write_lock:
            record = BetRecord(id=next(self._bet_ids), timestamp=utcnow(), **dict(bet))
            self._bets.append(record)
        return record

    def list_bets(self, user_id: int, limit: Optional[int] = None) -> List[BetRecord]:
        with self._write_lock:
            records = [bet for bet in reversed(self._bets) if bet.user_id == user_id]
        return records if limit is None else records[:limit]

    def settle(
        self, user_id: int, new_balance: int, bet: NewBet, expected_balance: Optional[int] = None
    ) -> Tuple[Account, BetRecord]:
        with self._write_lock:
            # Validate both halves before touching either
            self._check_write(user_id, new_balance, expected_balance)
            account = self.set_balance(user_id, new_balance)
            record = self.append_bet(bet)
        return account, record

    def is_key_used(self, key: str) -> bool:
        return key in self._keys

    def mark_key_used(self, key: str):
        with self._write_lock:
            self._keys.add(key)


def build_store(config) -> AccountStore:
    """Create the store named by `config.storage.backend`."""
    if config.storage.backend == "memory":
        return MemoryStore()

    from fairbet.core.database import SQLiteStore

    return SQLiteStore(config.paths.get_db_path())
