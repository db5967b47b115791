"""
Typed records shared by the controllers, the storage gateway and the API.

Request models are the single validation layer: each wagering operation
receives an instance that has already passed its schema. Wire names are
camelCase; Python attributes are snake_case.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from fairbet.core.cards import Card
from fairbet.core.payouts import dice_won

GameName = Literal["dice", "mines", "blackjack"]
Prediction = Literal["over", "under"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================== Requests ====================


class DiceRollRequest(CamelModel):
    bet_amount: int = Field(gt=0)
    prediction: Prediction
    target_value: int = Field(ge=1, le=6)

    @model_validator(mode="after")
    def _has_favorable_faces(self):
        if self.prediction == "over" and self.target_value == 6:
            raise ValueError("Nothing rolls over 6")
        if self.prediction == "under" and self.target_value == 1:
            raise ValueError("Nothing rolls under 1")
        return self


class MinesStartRequest(CamelModel):
    bet_amount: int = Field(gt=0)
    mine_count: int = Field(ge=1, le=24)


class MinesRevealRequest(CamelModel):
    session_id: str = Field(min_length=1)
    tile: int = Field(ge=0, le=24)


class BlackjackDealRequest(CamelModel):
    bet_amount: int = Field(gt=0)


class SessionActionRequest(CamelModel):
    """Body for actions that only name the session (cash out, hit, stand)."""
    session_id: str = Field(min_length=1)


# ==================== Ledger ====================


class Account(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: int
    balance: int = Field(ge=0)


class DiceGameData(CamelModel):
    model_config = ConfigDict(frozen=True)

    game: Literal["dice"] = "dice"
    prediction: Prediction
    target_value: int
    result: int


class MinesGameData(CamelModel):
    model_config = ConfigDict(frozen=True)

    game: Literal["mines"] = "mines"
    mine_count: int
    tiles_revealed: int
    mine_positions: List[int]
    revealed_positions: List[int]
    outcome: Literal["cashed_out", "exploded", "void"]


class BlackjackGameData(CamelModel):
    model_config = ConfigDict(frozen=True)

    game: Literal["blackjack"] = "blackjack"
    player_cards: List[Card]
    dealer_cards: List[Card]
    player_score: int
    dealer_score: int
    result: Literal["win", "lose", "push"]
    natural: bool = False


GameData = Annotated[
    Union[DiceGameData, MinesGameData, BlackjackGameData],
    Field(discriminator="game"),
]


class NewBet(CamelModel):
    """A settled wager waiting to be appended to the ledger."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    game: GameName
    bet_amount: int = Field(gt=0)
    profit: int
    game_data: GameData

    @model_validator(mode="after")
    def _game_matches_data(self):
        if self.game != self.game_data.game:
            raise ValueError(f"{self.game} bet carries {self.game_data.game} data")
        return self


class BetRecord(NewBet):
    id: int
    timestamp: datetime


def bet_result(record: NewBet) -> str:
    """Collapse any game's outcome to win, lose or push."""
    data = record.game_data
    if isinstance(data, DiceGameData):
        return "win" if dice_won(data.prediction, data.target_value, data.result) else "lose"
    if isinstance(data, MinesGameData):
        return {"cashed_out": "win", "exploded": "lose", "void": "push"}[data.outcome]
    if isinstance(data, BlackjackGameData):
        return data.result
    raise TypeError(f"Unhandled game data: {type(data).__name__}")
