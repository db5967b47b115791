"""
Dice - bet that one six-sided die rolls over or under a target.
Single request: validate, roll, settle, record.
"""

from typing import Dict

from fairbet.config import DiceConfig
from fairbet.core.economy import Cashier
from fairbet.core.exceptions import ValidationError
from fairbet.core.payouts import as_float, dice_multiplier, dice_profit, dice_win_chance, dice_won
from fairbet.core.rng import SecureRandom, rng as default_rng
from fairbet.core.schemas import DiceGameData, DiceRollRequest, NewBet


class DiceGame:
    """
    Over/under on a single die.

    Odds come from the number of winning faces; the house edge is applied to
    the fair multiplier. Rolling the target itself loses.
    """

    def __init__(self, cashier: Cashier, rng: SecureRandom = default_rng, config: DiceConfig = None):
        self.cashier = cashier
        self.rng = rng
        self.config = config or DiceConfig()

    def quote(self, prediction: str, target_value: int) -> Dict:
        """Multiplier and win chance for a prediction, without placing a bet."""
        if not 1 <= target_value <= 6:
            raise ValidationError("Target value must be between 1 and 6")
        return {
            "multiplier": as_float(dice_multiplier(prediction, target_value, self.config.house_edge)),
            "winChance": as_float(dice_win_chance(prediction, target_value)),
        }

    def roll(self, user_id: int, request: DiceRollRequest) -> Dict:
        with self.cashier.locked(user_id):
            account = self.cashier.require_account(user_id)
            self.cashier.check_bet(account, request.bet_amount, "dice", self.config)

            # Rejects zero-winning-face predictions before the roll
            multiplier = dice_multiplier(request.prediction, request.target_value, self.config.house_edge)

            result = self.rng.sample(1, 6)
            win = dice_won(request.prediction, request.target_value, result)
            profit = dice_profit(
                request.bet_amount,
                request.prediction,
                request.target_value,
                result,
                self.config.house_edge,
            )

            bet = NewBet(
                user_id=user_id,
                game="dice",
                bet_amount=request.bet_amount,
                profit=profit,
                game_data=DiceGameData(
                    prediction=request.prediction,
                    target_value=request.target_value,
                    result=result,
                ),
            )
            account, record = self.cashier.settle(account, account.balance + profit, bet)

        return {
            "result": result,
            "prediction": request.prediction,
            "targetValue": request.target_value,
            "win": win,
            "profit": profit,
            "multiplier": as_float(multiplier),
            "winChance": as_float(dice_win_chance(request.prediction, request.target_value)),
            "newBalance": account.balance,
            "betId": record.id,
        }
