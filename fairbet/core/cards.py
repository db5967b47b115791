from typing import Iterable, List, Literal

from pydantic import BaseModel, ConfigDict

from fairbet.core.exceptions import DeckExhaustedError
from fairbet.core.rng import SecureRandom, rng as default_rng

Suit = Literal["hearts", "diamonds", "clubs", "spades"]
Rank = Literal["2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A"]

SUITS: List[str] = ["hearts", "diamonds", "clubs", "spades"]
RANKS: List[str] = ["2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A"]

BLACKJACK = 21


class Card(BaseModel):
    """Represents a playing card."""

    model_config = ConfigDict(frozen=True)

    suit: Suit
    rank: Rank

    @property
    def value(self) -> int:
        """Blackjack value of the card; an Ace counts 11 until the hand needs it to be 1."""
        if self.rank in ("J", "Q", "K"):
            return 10
        elif self.rank == "A":
            return 11
        else:
            return int(self.rank)

    def __repr__(self):
        return f"{self.rank}-{self.suit}"


def hand_value(cards: Iterable[Card]) -> int:
    """Calculate the best hand value, downgrading aces from 11 to 1 while busting."""
    cards = list(cards)
    total = sum(card.value for card in cards)
    soft_aces = sum(1 for card in cards if card.rank == "A")

    while total > BLACKJACK and soft_aces > 0:
        total -= 10
        soft_aces -= 1

    return total


def is_natural(cards: Iterable[Card]) -> bool:
    cards = list(cards)
    return len(cards) == 2 and hand_value(cards) == BLACKJACK


class Hand:
    """A blackjack hand."""

    def __init__(self, cards: Iterable[Card] = ()):
        self.cards: List[Card] = list(cards)

    def add_card(self, card: Card):
        self.cards.append(card)

    @property
    def value(self) -> int:
        return hand_value(self.cards)

    @property
    def is_bust(self) -> bool:
        return self.value > BLACKJACK

    @property
    def is_natural(self) -> bool:
        return is_natural(self.cards)


class Deck:
    """An ordered run of cards, consumed from the end."""

    def __init__(self, cards: Iterable[Card]):
        self.cards: List[Card] = list(cards)

    def __len__(self):
        return len(self.cards)

    def draw(self) -> Card:
        if not self.cards:
            raise DeckExhaustedError("Attempted to draw from an empty deck")
        return self.cards.pop()


def ordered_cards() -> List[Card]:
    return [Card(suit=suit, rank=rank) for suit in SUITS for rank in RANKS]


def new_shuffled_deck(rng: SecureRandom = default_rng) -> Deck:
    """Create a standard 52-card deck in a uniformly random order."""
    return Deck(rng.shuffle(ordered_cards()))
