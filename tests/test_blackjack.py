import unittest

from fairbet.core.exceptions import DeckExhaustedError, NotFoundError
from fairbet.core.schemas import BlackjackDealRequest, bet_result
from tests.fakes import make_casino, stacked_deck


class BlackjackCase(unittest.TestCase):
    def setUp(self):
        self.casino = None
        self.user = None

    def deal(self, *ranks, bet=100):
        self.casino = make_casino(deck_factory=stacked_deck(*ranks))
        self.user = self.casino.create_account(1000)
        return self.casino.blackjack.deal(self.user.id, BlackjackDealRequest(bet_amount=bet))

    def balance(self):
        return self.casino.store.get_account(self.user.id).balance

    def ledger(self):
        return self.casino.store.list_bets(self.user.id)


class TestDeal(BlackjackCase):
    def test_player_natural_pays_three_to_two(self):
        result = self.deal("A", "9", "K", "7")
        self.assertTrue(result["gameOver"])
        self.assertTrue(result["natural"])
        self.assertEqual(result["result"], "win")
        self.assertEqual(result["profit"], 150)
        self.assertEqual(result["newBalance"], 1150)
        self.assertEqual(self.casino.sessions.count("blackjack"), 0)

        [record] = self.ledger()
        self.assertEqual(record.profit, 150)
        self.assertEqual(record.game_data.player_score, 21)
        self.assertEqual(record.game_data.dealer_score, 16)

    def test_both_naturals_push(self):
        result = self.deal("A", "A", "K", "Q")
        self.assertEqual(result["result"], "push")
        self.assertEqual(result["profit"], 0)
        self.assertEqual(self.balance(), 1000)
        self.assertEqual(bet_result(self.ledger()[0]), "push")

    def test_regular_deal_escrows_and_hides_hole_card(self):
        result = self.deal("10", "9", "6", "7")
        self.assertFalse(result["gameOver"])
        self.assertEqual(result["status"], "player_turn")
        self.assertEqual(result["playerScore"], 16)
        self.assertEqual(result["dealerUpCard"]["rank"], "9")
        self.assertNotIn("dealerCards", result)
        self.assertNotIn("dealerScore", result)
        self.assertEqual(result["newBalance"], 900)
        self.assertEqual(self.ledger(), [])

    def test_dealer_natural_waits_for_the_player(self):
        result = self.deal("10", "A", "8", "K")
        self.assertEqual(result["status"], "player_turn")
        stood = self.casino.blackjack.stand(self.user.id, result["sessionId"])
        self.assertEqual(stood["result"], "lose")
        self.assertEqual(self.balance(), 900)


class TestPlayerTurn(BlackjackCase):
    def test_bust_records_a_loss(self):
        session_id = self.deal("10", "9", "6", "7", "K")["sessionId"]
        result = self.casino.blackjack.hit(self.user.id, session_id)

        self.assertTrue(result["gameOver"])
        self.assertEqual(result["newCard"]["rank"], "K")
        self.assertEqual(result["playerScore"], 26)
        self.assertEqual(result["result"], "lose")
        self.assertEqual(result["profit"], -100)
        self.assertEqual(self.balance(), 900)

        [record] = self.ledger()
        self.assertEqual(record.profit, -100)
        with self.assertRaises(NotFoundError):
            self.casino.blackjack.hit(self.user.id, session_id)

    def test_hitting_to_21_keeps_playing(self):
        session_id = self.deal("5", "9", "6", "7", "K")["sessionId"]
        result = self.casino.blackjack.hit(self.user.id, session_id)
        self.assertFalse(result["gameOver"])
        self.assertEqual(result["playerScore"], 21)
        self.assertEqual(self.casino.blackjack.state(self.user.id, session_id)["playerScore"], 21)

    def test_other_users_cannot_act(self):
        session_id = self.deal("10", "9", "6", "7")["sessionId"]
        other = self.casino.create_account(1000)
        with self.assertRaises(NotFoundError):
            self.casino.blackjack.hit(other.id, session_id)
        with self.assertRaises(NotFoundError):
            self.casino.blackjack.stand(other.id, session_id)

    def test_exhausted_deck_is_fatal(self):
        session_id = self.deal("10", "9", "2", "7")["sessionId"]
        with self.assertRaises(DeckExhaustedError):
            self.casino.blackjack.hit(self.user.id, session_id)


class TestStand(BlackjackCase):
    def test_dealer_draws_to_seventeen_and_beats_player(self):
        session_id = self.deal("10", "9", "9", "7", "5")["sessionId"]
        result = self.casino.blackjack.stand(self.user.id, session_id)
        self.assertEqual(result["dealerScore"], 21)
        self.assertEqual(len(result["dealerCards"]), 3)
        self.assertEqual(result["result"], "lose")
        self.assertEqual(self.balance(), 900)
        self.assertEqual(self.ledger()[0].profit, -100)

    def test_dealer_bust_pays_even_money(self):
        session_id = self.deal("10", "10", "9", "6", "K")["sessionId"]
        result = self.casino.blackjack.stand(self.user.id, session_id)
        self.assertEqual(result["dealerScore"], 26)
        self.assertEqual(result["result"], "win")
        self.assertEqual(result["profit"], 100)
        self.assertEqual(self.balance(), 1100)

    def test_equal_totals_push(self):
        session_id = self.deal("10", "10", "8", "8")["sessionId"]
        result = self.casino.blackjack.stand(self.user.id, session_id)
        self.assertEqual(result["result"], "push")
        self.assertEqual(self.balance(), 1000)

    def test_dealer_stands_on_soft_seventeen(self):
        session_id = self.deal("10", "A", "8", "6")["sessionId"]
        result = self.casino.blackjack.stand(self.user.id, session_id)
        self.assertEqual(result["dealerScore"], 17)
        self.assertEqual(len(result["dealerCards"]), 2)
        self.assertEqual(result["result"], "win")
        self.assertEqual(self.balance(), 1100)

    def test_session_closes_after_stand(self):
        session_id = self.deal("10", "10", "8", "8")["sessionId"]
        self.casino.blackjack.stand(self.user.id, session_id)
        with self.assertRaises(NotFoundError):
            self.casino.blackjack.stand(self.user.id, session_id)
        self.assertEqual(len(self.ledger()), 1)


if __name__ == "__main__":
    unittest.main()
