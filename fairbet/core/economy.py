"""
Balance movements for wagers.

The Cashier is the only code path that changes a balance. Controllers hold the
user's lock (`cashier.locked(user_id)`) around the whole read-validate-write
cycle and hand the cashier the account they read plus the balance they
computed. The store refuses the write if the balance moved in between, which
is what keeps several worker processes from overwriting each other.
"""

from typing import Tuple

from fairbet.config import GameConfig
from fairbet.core.exceptions import InsufficientBalanceError, NotFoundError, ValidationError
from fairbet.core.logger import get_logger
from fairbet.core.schemas import Account, BetRecord, NewBet
from fairbet.core.storage import AccountStore

logger = get_logger("economy")


class Cashier:
    def __init__(self, store: AccountStore):
        self.store = store

    def locked(self, user_id: int):
        return self.store.locked(user_id)

    def require_account(self, user_id: int) -> Account:
        account = self.store.get_account(user_id)
        if account is None:
            raise NotFoundError(f"User {user_id} not found")
        return account

    def check_bet(self, account: Account, bet_amount: int, game: str, config: GameConfig):
        """Reject a wager before anything is written."""
        if not config.enabled:
            raise ValidationError(f"{game} is currently disabled")
        if bet_amount <= 0:
            raise ValidationError("Bet amount must be greater than zero")
        if bet_amount < config.min_bet or bet_amount > config.max_bet:
            raise ValidationError(
                f"Bet must be between {config.min_bet} and {config.max_bet}"
            )
        if bet_amount > account.balance:
            logger.warning(
                "Insufficient balance",
                extra={"user_id": account.id, "game": game, "bet": bet_amount, "balance": account.balance},
            )
            raise InsufficientBalanceError(account.balance, bet_amount)

    def escrow(self, account: Account, bet_amount: int, game: str) -> Account:
        """Take the wager off the balance for the length of a multi-step session."""
        updated = self.store.set_balance(
            account.id, account.balance - bet_amount, expected_balance=account.balance
        )
        logger.info(
            "Bet escrowed",
            extra={"user_id": account.id, "game": game, "bet": bet_amount, "balance": updated.balance},
        )
        return updated

    def settle(self, account: Account, new_balance: int, bet: NewBet) -> Tuple[Account, BetRecord]:
        """Write the final balance and the ledger record together."""
        account, record = self.store.settle(
            bet.user_id, new_balance, bet, expected_balance=account.balance
        )
        logger.info(
            "Bet settled",
            extra={
                "user_id": bet.user_id,
                "game": bet.game,
                "bet_id": record.id,
                "bet": bet.bet_amount,
                "profit": bet.profit,
                "balance": account.balance,
            },
        )
        return account, record

    def record_loss(self, bet: NewBet) -> BetRecord:
        """Ledger a lost escrowed wager; the balance already reflects it."""
        record = self.store.append_bet(bet)
        logger.info(
            "Bet lost",
            extra={
                "user_id": bet.user_id,
                "game": bet.game,
                "bet_id": record.id,
                "bet": bet.bet_amount,
                "profit": bet.profit,
            },
        )
        return record
