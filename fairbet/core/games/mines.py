"""
Mines - a 5x5 board hiding 1 to 24 mines.
Reveal safe tiles to grow the multiplier, cash out anytime after the first
safe reveal, or lose the escrowed bet on a mine.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List

from fairbet.config import MinesConfig
from fairbet.core.economy import Cashier
from fairbet.core.exceptions import ValidationError
from fairbet.core.logger import get_logger
from fairbet.core.payouts import (
    MINES_GRID_SIZE,
    as_float,
    mines_multiplier,
    mines_profit,
    mines_safe_cells,
    mines_safe_chance,
)
from fairbet.core.rng import SecureRandom, rng as default_rng
from fairbet.core.schemas import MinesGameData, MinesRevealRequest, MinesStartRequest, NewBet
from fairbet.core.sessions import GameSession, SessionTable

logger = get_logger("games.mines")


@dataclass
class MinesBoard:
    mine_count: int
    mine_positions: FrozenSet[int]
    revealed: List[int] = field(default_factory=list)


class MinesGame:
    """
    Board state lives in the session table; the layout is only disclosed once
    the game is over.
    """

    GAME = "mines"

    def __init__(
        self,
        cashier: Cashier,
        sessions: SessionTable,
        rng: SecureRandom = default_rng,
        config: MinesConfig = None,
    ):
        self.cashier = cashier
        self.sessions = sessions
        self.rng = rng
        self.config = config or MinesConfig()

    def _multiplier(self, board: MinesBoard, tiles_revealed: int):
        return mines_multiplier(
            board.mine_count,
            tiles_revealed,
            max_multiplier=self.config.max_multiplier,
        )

    def _profit(self, session: GameSession) -> int:
        board: MinesBoard = session.state
        return mines_profit(
            session.bet_amount,
            board.mine_count,
            len(board.revealed),
            max_multiplier=self.config.max_multiplier,
        )

    def _bet(self, session: GameSession, profit: int, outcome: str) -> NewBet:
        board: MinesBoard = session.state
        return NewBet(
            user_id=session.user_id,
            game=self.GAME,
            bet_amount=session.bet_amount,
            profit=profit,
            game_data=MinesGameData(
                mine_count=board.mine_count,
                tiles_revealed=len(board.revealed),
                mine_positions=sorted(board.mine_positions),
                revealed_positions=list(board.revealed),
                outcome=outcome,
            ),
        )

    def _state(self, session: GameSession) -> Dict:
        board: MinesBoard = session.state
        revealed = len(board.revealed)
        multiplier = self._multiplier(board, revealed)
        return {
            "sessionId": session.id,
            "status": "active",
            "betAmount": session.bet_amount,
            "mineCount": board.mine_count,
            "tilesRevealed": revealed,
            "revealedPositions": list(board.revealed),
            "multiplier": as_float(multiplier),
            "potentialProfit": self._profit(session),
            "nextSafeChance": as_float(mines_safe_chance(board.mine_count, revealed)),
            "canCashOut": revealed > 0,
        }

    # ==================== Actions ====================

    def start(self, user_id: int, request: MinesStartRequest) -> Dict:
        """Escrow the bet and lay the mines. No ledger entry until the game ends."""
        mines_safe_cells(request.mine_count)

        with self.cashier.locked(user_id):
            account = self.cashier.require_account(user_id)
            self.cashier.check_bet(account, request.bet_amount, self.GAME, self.config)

            board = MinesBoard(
                mine_count=request.mine_count,
                mine_positions=frozenset(
                    self.rng.distinct(request.mine_count, 0, MINES_GRID_SIZE - 1)
                ),
            )
            account = self.cashier.escrow(account, request.bet_amount, self.GAME)
            session = self.sessions.create(user_id, self.GAME, request.bet_amount, board)

        return {**self._state(session), "newBalance": account.balance}

    def reveal(self, user_id: int, request: MinesRevealRequest) -> Dict:
        with self.cashier.locked(user_id):
            session = self.sessions.get(request.session_id, user_id, self.GAME)
            board: MinesBoard = session.state

            if not 0 <= request.tile < MINES_GRID_SIZE:
                raise ValidationError(f"Tile must be between 0 and {MINES_GRID_SIZE - 1}")
            if request.tile in board.revealed:
                raise ValidationError(f"Tile {request.tile} is already revealed")

            board.revealed.append(request.tile)

            if request.tile in board.mine_positions:
                # The loss was realized at escrow; only the ledger row is written
                record = self.cashier.record_loss(self._bet(session, -session.bet_amount, "exploded"))
                self.sessions.close(session.id)
                account = self.cashier.require_account(user_id)
                return {
                    "sessionId": session.id,
                    "status": "exploded",
                    "hitMine": True,
                    "win": False,
                    "tile": request.tile,
                    "tilesRevealed": len(board.revealed),
                    "revealedPositions": list(board.revealed),
                    "minePositions": sorted(board.mine_positions),
                    "profit": -session.bet_amount,
                    "newBalance": account.balance,
                    "betId": record.id,
                }

            return {**self._state(session), "hitMine": False, "tile": request.tile}

    def cash_out(self, user_id: int, session_id: str) -> Dict:
        with self.cashier.locked(user_id):
            session = self.sessions.get(session_id, user_id, self.GAME)
            return self._cash_out(session)

    def _cash_out(self, session: GameSession) -> Dict:
        board: MinesBoard = session.state
        if not board.revealed:
            raise ValidationError("Reveal at least one tile before cashing out")

        multiplier = self._multiplier(board, len(board.revealed))
        profit = self._profit(session)
        account = self.cashier.require_account(session.user_id)
        account, record = self.cashier.settle(
            account,
            account.balance + session.bet_amount + profit,
            self._bet(session, profit, "cashed_out"),
        )
        self.sessions.close(session.id)

        return {
            "sessionId": session.id,
            "status": "cashed_out",
            "hitMine": False,
            "win": True,
            "tilesRevealed": len(board.revealed),
            "revealedPositions": list(board.revealed),
            "minePositions": sorted(board.mine_positions),
            "multiplier": as_float(multiplier),
            "profit": profit,
            "newBalance": account.balance,
            "betId": record.id,
        }

    def state(self, user_id: int, session_id: str) -> Dict:
        session = self.sessions.get(session_id, user_id, self.GAME)
        return self._state(session)

    def expire(self, session: GameSession) -> Dict:
        """
        Settle an abandoned board: cash out what was cleared, or refund the
        bet as void if nothing was revealed.
        """
        with self.cashier.locked(session.user_id):
            if self.sessions.find(session.id) is None:
                return {"sessionId": session.id, "status": "gone"}

            board: MinesBoard = session.state
            if board.revealed:
                logger.info("Cashing out expired board", extra={"session_id": session.id})
                return self._cash_out(session)

            account = self.cashier.require_account(session.user_id)
            account, record = self.cashier.settle(
                account,
                account.balance + session.bet_amount,
                self._bet(session, 0, "void"),
            )
            self.sessions.close(session.id)
            logger.info("Voided expired board", extra={"session_id": session.id})
            return {
                "sessionId": session.id,
                "status": "void",
                "profit": 0,
                "newBalance": account.balance,
                "betId": record.id,
            }
