"""
Payout math for every game.

Multipliers are computed as exact fractions so that configured decimals such as
0.95 do not drift (2 * 0.95 - 1 is exactly 0.9 here, not 0.8999...). Profits
are floored, which rounds fractional units in the house's favor.
"""

import math
from fractions import Fraction
from typing import Union

from fairbet.core.exceptions import ValidationError

Number = Union[int, float, Fraction]

DICE_FACES = 6
DICE_HOUSE_EDGE = Fraction("0.95")

MINES_GRID_SIZE = 25
MINES_MAX_MULTIPLIER = 10

BLACKJACK_NATURAL_PAYOUT = Fraction(3, 2)


def exact(value: Number) -> Fraction:
    """Fraction from a config value; floats go through str() to keep their decimal meaning."""
    if isinstance(value, Fraction):
        return value
    if isinstance(value, float):
        return Fraction(str(value))
    return Fraction(value)


# ==================== Dice ====================

def dice_favorable_faces(prediction: str, target_value: int) -> int:
    if prediction == "over":
        return DICE_FACES - target_value
    if prediction == "under":
        return target_value - 1
    raise ValidationError(f"Unknown prediction: {prediction}")


def dice_won(prediction: str, target_value: int, result: int) -> bool:
    """Strict comparison in the predicted direction; rolling the target loses."""
    if prediction == "over":
        return result > target_value
    return result < target_value


def dice_win_chance(prediction: str, target_value: int) -> Fraction:
    return Fraction(dice_favorable_faces(prediction, target_value), DICE_FACES)


def dice_multiplier(prediction: str, target_value: int, house_edge: Number = DICE_HOUSE_EDGE) -> Fraction:
    """Fair multiplier (faces / favorable faces) discounted by the house edge."""
    favorable = dice_favorable_faces(prediction, target_value)
    if favorable <= 0:
        raise ValidationError(
            f"Prediction '{prediction}' on {target_value} has no winning faces"
        )
    return Fraction(DICE_FACES, favorable) * exact(house_edge)


def dice_profit(
    bet_amount: int,
    prediction: str,
    target_value: int,
    result: int,
    house_edge: Number = DICE_HOUSE_EDGE,
) -> int:
    if not dice_won(prediction, target_value, result):
        return -bet_amount
    multiplier = dice_multiplier(prediction, target_value, house_edge)
    return math.floor(bet_amount * (multiplier - 1))


# ==================== Mines ====================

def mines_safe_cells(mine_count: int, grid_size: int = MINES_GRID_SIZE) -> int:
    if not 1 <= mine_count <= grid_size - 1:
        raise ValidationError(f"Mine count must be between 1 and {grid_size - 1}")
    return grid_size - mine_count


def mines_multiplier(
    mine_count: int,
    tiles_revealed: int,
    grid_size: int = MINES_GRID_SIZE,
    max_multiplier: int = MINES_MAX_MULTIPLIER,
) -> Fraction:
    """
    Progressive multiplier after `tiles_revealed` safe reveals.

    Grows quadratically with the cleared share of safe cells, from 1 with
    nothing revealed to 1 + max_multiplier with the board cleared.
    """
    safe = mines_safe_cells(mine_count, grid_size)
    if not 0 <= tiles_revealed <= safe:
        raise ValidationError(f"Revealed count must be between 0 and {safe}")
    return 1 + Fraction(tiles_revealed, safe) ** 2 * max_multiplier


def mines_safe_chance(mine_count: int, tiles_revealed: int, grid_size: int = MINES_GRID_SIZE) -> Fraction:
    """Probability that the next reveal is safe."""
    safe = mines_safe_cells(mine_count, grid_size)
    remaining_safe = safe - tiles_revealed
    if remaining_safe <= 0:
        return Fraction(0)
    return Fraction(remaining_safe, grid_size - tiles_revealed)


def mines_profit(
    bet_amount: int,
    mine_count: int,
    tiles_revealed: int,
    hit_mine: bool = False,
    grid_size: int = MINES_GRID_SIZE,
    max_multiplier: int = MINES_MAX_MULTIPLIER,
) -> int:
    if hit_mine:
        return -bet_amount
    multiplier = mines_multiplier(mine_count, tiles_revealed, grid_size, max_multiplier)
    return math.floor(bet_amount * (multiplier - 1))


# ==================== Blackjack ====================

def blackjack_profit(
    bet_amount: int,
    result: str,
    natural: bool = False,
    natural_payout: Number = BLACKJACK_NATURAL_PAYOUT,
) -> int:
    if result == "win":
        if natural:
            return math.floor(bet_amount * exact(natural_payout))
        return bet_amount
    if result == "lose":
        return -bet_amount
    if result == "push":
        return 0
    raise ValidationError(f"Unknown blackjack result: {result}")


def as_float(value: Fraction, digits: int = 4) -> float:
    """Display form of a multiplier or probability."""
    return round(float(value), digits)
