"""
Blackjack - one player against the dealer, single deck shuffled per hand.
Supports deal, hit, and stand. Naturals pay 3:2, the dealer stands on 17
(soft 17 included).
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fairbet.config import BlackjackConfig
from fairbet.core.cards import Deck, Hand, new_shuffled_deck
from fairbet.core.economy import Cashier
from fairbet.core.logger import get_logger
from fairbet.core.payouts import blackjack_profit
from fairbet.core.rng import SecureRandom, rng as default_rng
from fairbet.core.schemas import BlackjackDealRequest, BlackjackGameData, NewBet
from fairbet.core.sessions import GameSession, SessionTable

logger = get_logger("games.blackjack")


@dataclass
class BlackjackTable:
    deck: Deck
    player: Hand
    dealer: Hand


class BlackjackGame:
    """
    Standard Blackjack game logic.

    The deck and both hands stay server-side between turns. The bet is escrowed
    at the deal unless the hand settles immediately on a natural.
    """

    GAME = "blackjack"

    def __init__(
        self,
        cashier: Cashier,
        sessions: SessionTable,
        rng: SecureRandom = default_rng,
        config: BlackjackConfig = None,
        deck_factory: Callable[[SecureRandom], Deck] = new_shuffled_deck,
    ):
        self.cashier = cashier
        self.sessions = sessions
        self.rng = rng
        self.config = config or BlackjackConfig()
        self.deck_factory = deck_factory

    def _bet(self, user_id: int, bet_amount: int, table: BlackjackTable, result: str, natural: bool = False) -> NewBet:
        profit = blackjack_profit(bet_amount, result, natural, self.config.natural_payout)
        return NewBet(
            user_id=user_id,
            game=self.GAME,
            bet_amount=bet_amount,
            profit=profit,
            game_data=BlackjackGameData(
                player_cards=list(table.player.cards),
                dealer_cards=list(table.dealer.cards),
                player_score=table.player.value,
                dealer_score=table.dealer.value,
                result=result,
                natural=natural,
            ),
        )

    @staticmethod
    def _in_play(session: GameSession) -> Dict:
        table: BlackjackTable = session.state
        return {
            "sessionId": session.id,
            "status": "player_turn",
            "gameOver": False,
            "betAmount": session.bet_amount,
            "playerCards": [card.model_dump() for card in table.player.cards],
            "playerScore": table.player.value,
            "dealerUpCard": table.dealer.cards[0].model_dump(),
            "dealerHidden": True,
        }

    @staticmethod
    def _finished(table: BlackjackTable, bet: NewBet, balance: int, bet_id: int, session_id: Optional[str] = None) -> Dict:
        data: BlackjackGameData = bet.game_data
        return {
            "sessionId": session_id,
            "status": "settled",
            "gameOver": True,
            "betAmount": bet.bet_amount,
            "playerCards": [card.model_dump() for card in table.player.cards],
            "playerScore": data.player_score,
            "dealerCards": [card.model_dump() for card in table.dealer.cards],
            "dealerScore": data.dealer_score,
            "dealerHidden": False,
            "result": data.result,
            "natural": data.natural,
            "profit": bet.profit,
            "newBalance": balance,
            "betId": bet_id,
        }

    # ==================== Actions ====================

    def deal(self, user_id: int, request: BlackjackDealRequest) -> Dict:
        with self.cashier.locked(user_id):
            account = self.cashier.require_account(user_id)
            self.cashier.check_bet(account, request.bet_amount, self.GAME, self.config)

            deck = self.deck_factory(self.rng)
            table = BlackjackTable(deck=deck, player=Hand(), dealer=Hand())

            # Deal alternating cards
            table.player.add_card(deck.draw())
            table.dealer.add_card(deck.draw())
            table.player.add_card(deck.draw())
            table.dealer.add_card(deck.draw())

            if table.player.is_natural:
                # Settles on the spot; nothing was escrowed
                if table.dealer.is_natural:
                    bet = self._bet(user_id, request.bet_amount, table, "push")
                else:
                    bet = self._bet(user_id, request.bet_amount, table, "win", natural=True)
                account, record = self.cashier.settle(account, account.balance + bet.profit, bet)
                return self._finished(table, bet, account.balance, record.id)

            account = self.cashier.escrow(account, request.bet_amount, self.GAME)
            session = self.sessions.create(user_id, self.GAME, request.bet_amount, table)

        return {**self._in_play(session), "newBalance": account.balance}

    def hit(self, user_id: int, session_id: str) -> Dict:
        with self.cashier.locked(user_id):
            session = self.sessions.get(session_id, user_id, self.GAME)
            table: BlackjackTable = session.state

            card = table.deck.draw()
            table.player.add_card(card)

            if table.player.is_bust:
                # Escrow already covers the loss
                bet = self._bet(user_id, session.bet_amount, table, "lose")
                record = self.cashier.record_loss(bet)
                self.sessions.close(session.id)
                account = self.cashier.require_account(user_id)
                return {**self._finished(table, bet, account.balance, record.id, session.id), "newCard": card.model_dump()}

            return {**self._in_play(session), "newCard": card.model_dump()}

    def stand(self, user_id: int, session_id: str) -> Dict:
        with self.cashier.locked(user_id):
            session = self.sessions.get(session_id, user_id, self.GAME)
            return self._stand(session)

    def _stand(self, session: GameSession) -> Dict:
        table: BlackjackTable = session.state

        while table.dealer.value < self.config.dealer_stand_value:
            table.dealer.add_card(table.deck.draw())

        player_val = table.player.value
        dealer_val = table.dealer.value

        if table.dealer.is_bust or player_val > dealer_val:
            result = "win"
        elif player_val < dealer_val:
            result = "lose"
        else:
            result = "push"

        bet = self._bet(session.user_id, session.bet_amount, table, result)
        account = self.cashier.require_account(session.user_id)
        # Principal comes back with the profit; a loss nets to zero
        account, record = self.cashier.settle(
            account, account.balance + session.bet_amount + bet.profit, bet
        )
        self.sessions.close(session.id)
        return self._finished(table, bet, account.balance, record.id, session.id)

    def state(self, user_id: int, session_id: str) -> Dict:
        session = self.sessions.get(session_id, user_id, self.GAME)
        return self._in_play(session)

    def expire(self, session: GameSession) -> Dict:
        """An abandoned hand stands on the player's behalf."""
        with self.cashier.locked(session.user_id):
            if self.sessions.find(session.id) is None:
                return {"sessionId": session.id, "status": "gone"}
            logger.info("Standing expired hand", extra={"session_id": session.id})
            return self._stand(session)
