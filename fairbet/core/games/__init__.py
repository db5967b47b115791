"""Game controllers for the wagering core."""

from .dice import DiceGame
from .mines import MinesBoard, MinesGame
from .blackjack import BlackjackGame, BlackjackTable

__all__ = [
    "DiceGame",
    "MinesGame",
    "MinesBoard",
    "BlackjackGame",
    "BlackjackTable",
]
