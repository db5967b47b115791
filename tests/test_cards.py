import unittest

from fairbet.core.cards import Deck, Hand, hand_value, is_natural, new_shuffled_deck, ordered_cards
from fairbet.core.exceptions import DeckExhaustedError, IntegrityFatal
from fairbet.core.rng import SecureRandom
from tests.fakes import card


class TestHandValue(unittest.TestCase):
    def test_face_cards_count_ten(self):
        self.assertEqual(hand_value([card("K"), card("Q")]), 20)
        self.assertEqual(hand_value([card("J"), card("10")]), 20)

    def test_ace_with_ten_is_blackjack(self):
        self.assertEqual(hand_value([card("A"), card("K")]), 21)
        self.assertTrue(is_natural([card("A"), card("K")]))

    def test_aces_downgrade_only_as_needed(self):
        self.assertEqual(hand_value([card("A"), card("A"), card("9")]), 21)
        self.assertEqual(hand_value([card("A"), card("A")]), 12)
        self.assertEqual(hand_value([card("A"), card("6"), card("K")]), 17)
        self.assertEqual(hand_value([card("A")] * 4), 14)

    def test_bust_without_aces(self):
        self.assertEqual(hand_value([card("K"), card("Q"), card("5")]), 25)

    def test_three_card_21_is_not_natural(self):
        cards = [card("7"), card("7"), card("7")]
        self.assertEqual(hand_value(cards), 21)
        self.assertFalse(is_natural(cards))

    def test_does_not_modify_input(self):
        cards = [card("A"), card("A"), card("9")]
        hand_value(cards)
        self.assertEqual([c.rank for c in cards], ["A", "A", "9"])

    def test_empty_hand(self):
        self.assertEqual(hand_value([]), 0)


class TestHand(unittest.TestCase):
    def test_bust_and_natural(self):
        hand = Hand([card("A"), card("K")])
        self.assertTrue(hand.is_natural)
        hand.add_card(card("5"))
        self.assertFalse(hand.is_natural)
        self.assertEqual(hand.value, 16)
        hand.add_card(card("9"))
        self.assertTrue(hand.is_bust)


class TestDeck(unittest.TestCase):
    def test_ordered_deck_is_complete(self):
        cards = ordered_cards()
        self.assertEqual(len(cards), 52)
        self.assertEqual(len(set(cards)), 52)

    def test_shuffled_deck_has_every_card_once(self):
        deck = new_shuffled_deck(SecureRandom())
        self.assertEqual(len(deck), 52)
        self.assertEqual(set(deck.cards), set(ordered_cards()))

    def test_draw_takes_from_the_end(self):
        deck = Deck([card("2"), card("3")])
        self.assertEqual(deck.draw().rank, "3")
        self.assertEqual(deck.draw().rank, "2")
        self.assertEqual(len(deck), 0)

    def test_empty_deck_is_fatal(self):
        deck = Deck([])
        with self.assertRaises(DeckExhaustedError):
            deck.draw()
        self.assertTrue(issubclass(DeckExhaustedError, IntegrityFatal))


if __name__ == "__main__":
    unittest.main()
