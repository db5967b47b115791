"""
Database module for persistent storage.
Uses SQLite for account balances, the bet ledger and idempotency keys.
"""

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import orjson

from fairbet.core.exceptions import NotFoundError
from fairbet.core.logger import get_logger
from fairbet.core.schemas import Account, BetRecord, NewBet
from fairbet.core.storage import UserLocks, check_balance, stale_write, utcnow

logger = get_logger("database")


class SQLiteStore(UserLocks):
    """Thread-safe SQLite implementation of the account store."""

    def __init__(self, db_path: Path):
        super().__init__()
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        if getattr(self._local, "connection", None) is None:
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        return self._local.connection

    # ==================== Lifecycle ====================

    def open(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initializing database at {self.db_path}")
        self._init_db()

    def close(self):
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()
        logger.info("Database connections closed")

    def _init_db(self):
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS accounts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                balance INTEGER NOT NULL CHECK (balance >= 0),
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        # Append-only: rows are inserted once and never updated
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS bets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                game TEXT NOT NULL,
                bet_amount INTEGER NOT NULL,
                profit INTEGER NOT NULL,
                game_data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES accounts(id)
            )
        """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_bets_user ON bets (user_id, id)")

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS idempotency_keys (
                key TEXT PRIMARY KEY,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        conn.commit()

    # ==================== Accounts ====================

    def create_account(self, balance: int) -> Account:
        check_balance(0, balance)
        conn = self._get_connection()
        with conn:
            cursor = conn.execute("INSERT INTO accounts (balance) VALUES (?)", (balance,))
        return Account(id=cursor.lastrowid, balance=balance)

    def get_account(self, user_id: int) -> Optional[Account]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT id, balance FROM accounts WHERE id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return Account(id=row["id"], balance=row["balance"])

    def _write_balance(
        self, conn: sqlite3.Connection, user_id: int, new_balance: int, expected_balance: Optional[int] = None
    ):
        check_balance(user_id, new_balance)
        query = "UPDATE accounts SET balance = ?, updated_at = ? WHERE id = ?"
        params: tuple = (new_balance, utcnow().isoformat(), user_id)
        if expected_balance is not None:
            query += " AND balance = ?"
            params += (expected_balance,)
        cursor = conn.execute(query, params)
        if cursor.rowcount == 0:
            row = conn.execute("SELECT balance FROM accounts WHERE id = ?", (user_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"User {user_id} not found")
            raise stale_write(user_id, expected_balance, row["balance"])

    def set_balance(self, user_id: int, new_balance: int, expected_balance: Optional[int] = None) -> Account:
        conn = self._get_connection()
        with conn:
            self._write_balance(conn, user_id, new_balance, expected_balance)
        return Account(id=user_id, balance=new_balance)

    # ==================== Bet Ledger ====================

    def _insert_bet(self, conn: sqlite3.Connection, bet: NewBet) -> BetRecord:
        timestamp = utcnow()
        cursor = conn.execute(
            """
            INSERT INTO bets (user_id, game, bet_amount, profit, game_data, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """,
            (
                bet.user_id,
                bet.game,
                bet.bet_amount,
                bet.profit,
                orjson.dumps(bet.game_data.model_dump(mode="json")).decode(),
                timestamp.isoformat(),
            ),
        )
        return BetRecord(id=cursor.lastrowid, timestamp=timestamp, **dict(bet))

    def append_bet(self, bet: NewBet) -> BetRecord:
        conn = self._get_connection()
        with conn:
            return self._insert_bet(conn, bet)

    def list_bets(self, user_id: int, limit: Optional[int] = None) -> List[BetRecord]:
        conn = self._get_connection()
        query = "SELECT * FROM bets WHERE user_id = ? ORDER BY id DESC"
        params: tuple = (user_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (user_id, limit)
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_bet(row) for row in rows]

    @staticmethod
    def _row_to_bet(row: sqlite3.Row) -> BetRecord:
        return BetRecord(
            id=row["id"],
            user_id=row["user_id"],
            game=row["game"],
            bet_amount=row["bet_amount"],
            profit=row["profit"],
            game_data=orjson.loads(row["game_data"]),
            timestamp=datetime.fromisoformat(row["created_at"]),
        )

    def settle(
        self, user_id: int, new_balance: int, bet: NewBet, expected_balance: Optional[int] = None
    ) -> Tuple[Account, BetRecord]:
        """Write the balance and the ledger row in one transaction."""
        conn = self._get_connection()
        with conn:
            self._write_balance(conn, user_id, new_balance, expected_balance)
            record = self._insert_bet(conn, bet)
        return Account(id=user_id, balance=new_balance), record

    # ==================== Idempotency ====================

    def is_key_used(self, key: str) -> bool:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT 1 FROM idempotency_keys WHERE key = ?", (key,)
        ).fetchone()
        return row is not None

    def mark_key_used(self, key: str):
        conn = self._get_connection()
        with conn:
            conn.execute("INSERT OR IGNORE INTO idempotency_keys (key) VALUES (?)", (key,))
