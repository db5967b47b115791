"""
Wires the storage gateway, randomness, session table and the three game
controllers together behind one object with an explicit lifecycle.
"""

import time
from typing import Callable, Dict, Optional

from fairbet.config import AppConfig, settings
from fairbet.core.cards import Deck, new_shuffled_deck
from fairbet.core.economy import Cashier
from fairbet.core.exceptions import WagerError
from fairbet.core.games import BlackjackGame, DiceGame, MinesGame
from fairbet.core.logger import get_logger
from fairbet.core.rng import SecureRandom, rng as default_rng
from fairbet.core.schemas import Account
from fairbet.core.sessions import SessionTable
from fairbet.core.storage import AccountStore, build_store

logger = get_logger("casino")


class Casino:
    def __init__(
        self,
        store: Optional[AccountStore] = None,
        config: AppConfig = None,
        rng: SecureRandom = default_rng,
        deck_factory: Callable[[SecureRandom], Deck] = new_shuffled_deck,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or settings
        self.store = store if store is not None else build_store(self.config)
        self.cashier = Cashier(self.store)
        self.sessions = SessionTable(self.config.sessions.timeout_seconds, clock)

        games = self.config.games
        self.dice = DiceGame(self.cashier, rng, games.dice)
        self.mines = MinesGame(self.cashier, self.sessions, rng, games.mines)
        self.blackjack = BlackjackGame(
            self.cashier, self.sessions, rng, games.blackjack, deck_factory
        )
        self._controllers = {
            MinesGame.GAME: self.mines,
            BlackjackGame.GAME: self.blackjack,
        }

    def open(self):
        self.store.open()

    def close(self):
        """Settle every open session, then release the store."""
        self.settle_open_sessions()
        self.store.close()

    def create_account(self, balance: Optional[int] = None) -> Account:
        if balance is None:
            balance = self.config.economy.starting_balance
        account = self.store.create_account(balance)
        logger.info("Account created", extra={"user_id": account.id, "balance": balance})
        return account

    def expire_sessions(self) -> int:
        """Settle every session past its timeout. Returns how many were settled."""
        settled = self._settle(self.sessions.expired())
        if settled:
            logger.info(f"Settled {settled} expired session(s)")
        return settled

    def settle_open_sessions(self) -> int:
        """Settle every session still open, whatever its age. Used at shutdown."""
        settled = self._settle(self.sessions.active())
        if settled:
            logger.warning(f"Settled {settled} open session(s) on shutdown")
        return settled

    def _settle(self, sessions) -> int:
        settled = 0
        for session in sessions:
            controller = self._controllers[session.game]
            try:
                result = controller.expire(session)
            except WagerError:
                logger.error(
                    "Failed to settle session",
                    extra={"session_id": session.id, "user_id": session.user_id},
                    exc_info=True,
                )
                continue
            if result.get("status") != "gone":
                settled += 1
        return settled

    def stats(self) -> Dict:
        return {
            "activeSessions": {
                game: self.sessions.count(game) for game in self._controllers
            },
        }
