import tempfile
import unittest
from pathlib import Path

from fairbet.core.database import SQLiteStore
from fairbet.core.exceptions import NotFoundError
from fairbet.core.schemas import BlackjackDealRequest, MinesRevealRequest, MinesStartRequest, bet_result
from fairbet.core.scheduler import SessionSweeper
from fairbet.core.sessions import SessionTable
from tests.fakes import FakeClock, ScriptedRandom, make_casino, stacked_deck


class TestSessionTable(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.table = SessionTable(timeout_seconds=60, clock=self.clock)

    def test_tokens_are_unique_and_opaque(self):
        ids = {self.table.create(1, "mines", 10, None).id for _ in range(100)}
        self.assertEqual(len(ids), 100)
        self.assertTrue(all(len(token) >= 16 for token in ids))

    def test_get_checks_owner_and_game(self):
        session = self.table.create(1, "mines", 10, {"board": True})
        self.assertIs(self.table.get(session.id, 1, "mines"), session)
        for user_id, game in ((2, "mines"), (1, "blackjack")):
            with self.assertRaises(NotFoundError):
                self.table.get(session.id, user_id, game)
        with self.assertRaises(NotFoundError):
            self.table.get("missing", 1, "mines")

    def test_close(self):
        session = self.table.create(1, "mines", 10, None)
        self.table.close(session.id)
        self.assertIsNone(self.table.find(session.id))
        self.table.close(session.id)

    def test_expired_after_timeout(self):
        old = self.table.create(1, "mines", 10, None)
        self.clock.advance(30)
        fresh = self.table.create(1, "blackjack", 10, None)
        self.clock.advance(31)

        self.assertEqual([s.id for s in self.table.expired()], [old.id])
        self.assertEqual(self.table.expired("blackjack"), [])
        self.clock.advance(30)
        self.assertEqual({s.id for s in self.table.expired()}, {old.id, fresh.id})

    def test_count(self):
        self.table.create(1, "mines", 10, None)
        self.table.create(2, "mines", 10, None)
        self.table.create(1, "blackjack", 10, None)
        self.assertEqual(self.table.count(), 3)
        self.assertEqual(self.table.count("mines"), 2)
        self.assertEqual(len(self.table.active("blackjack")), 1)

    def test_get_counts_as_activity(self):
        session = self.table.create(1, "mines", 10, None)
        self.clock.advance(50)
        self.table.get(session.id, 1, "mines")
        self.clock.advance(50)
        self.assertEqual(self.table.expired(), [])
        self.clock.advance(11)
        self.assertEqual([s.id for s in self.table.expired()], [session.id])
        self.assertEqual(session.created_at, 1_000_000.0)


class TestExpiry(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.timeout = 601

    def balance(self, casino, user):
        return casino.store.get_account(user.id).balance

    def test_untouched_board_is_refunded_as_void(self):
        casino = make_casino(rng=ScriptedRandom(layouts=[[0, 1, 2]]), clock=self.clock)
        user = casino.create_account(1000)
        casino.mines.start(user.id, MinesStartRequest(bet_amount=100, mine_count=3))

        self.assertEqual(casino.expire_sessions(), 0)
        self.clock.advance(self.timeout)
        self.assertEqual(casino.expire_sessions(), 1)

        self.assertEqual(self.balance(casino, user), 1000)
        [record] = casino.store.list_bets(user.id)
        self.assertEqual(record.profit, 0)
        self.assertEqual(record.game_data.outcome, "void")
        self.assertEqual(bet_result(record), "push")
        self.assertEqual(casino.sessions.count(), 0)

    def test_partly_cleared_board_is_cashed_out(self):
        casino = make_casino(rng=ScriptedRandom(layouts=[[0, 1, 2]]), clock=self.clock)
        user = casino.create_account(1000)
        session_id = casino.mines.start(user.id, MinesStartRequest(bet_amount=100, mine_count=3))["sessionId"]
        casino.mines.reveal(user.id, MinesRevealRequest(session_id=session_id, tile=10))

        self.clock.advance(self.timeout)
        self.assertEqual(casino.expire_sessions(), 1)
        self.assertEqual(self.balance(casino, user), 1002)
        self.assertEqual(casino.store.list_bets(user.id)[0].game_data.outcome, "cashed_out")

    def test_abandoned_hand_stands(self):
        casino = make_casino(deck_factory=stacked_deck("10", "10", "9", "6", "K"), clock=self.clock)
        user = casino.create_account(1000)
        session_id = casino.blackjack.deal(user.id, BlackjackDealRequest(bet_amount=100))["sessionId"]

        self.clock.advance(self.timeout)
        self.assertEqual(casino.expire_sessions(), 1)
        self.assertEqual(self.balance(casino, user), 1100)
        with self.assertRaises(NotFoundError):
            casino.blackjack.state(user.id, session_id)

    def test_finished_games_are_not_settled_again(self):
        casino = make_casino(rng=ScriptedRandom(layouts=[[0, 1, 2]]), clock=self.clock)
        user = casino.create_account(1000)
        session_id = casino.mines.start(user.id, MinesStartRequest(bet_amount=100, mine_count=3))["sessionId"]
        casino.mines.reveal(user.id, MinesRevealRequest(session_id=session_id, tile=0))

        self.clock.advance(self.timeout)
        self.assertEqual(casino.expire_sessions(), 0)
        self.assertEqual(len(casino.store.list_bets(user.id)), 1)
        self.assertEqual(self.balance(casino, user), 900)

    def test_board_in_play_does_not_expire(self):
        casino = make_casino(rng=ScriptedRandom(layouts=[[0, 1, 2]]), clock=self.clock)
        user = casino.create_account(1000)
        session_id = casino.mines.start(user.id, MinesStartRequest(bet_amount=100, mine_count=3))["sessionId"]

        # Ten reveals a minute apart run well past the timeout from the start
        for tile in range(3, 13):
            self.clock.advance(61)
            casino.mines.reveal(user.id, MinesRevealRequest(session_id=session_id, tile=tile))
        self.clock.advance(1)
        self.assertEqual(casino.expire_sessions(), 0)
        self.assertEqual(casino.mines.state(user.id, session_id)["tilesRevealed"], 10)

        self.clock.advance(self.timeout)
        self.assertEqual(casino.expire_sessions(), 1)
        self.assertEqual(casino.store.list_bets(user.id)[0].game_data.tiles_revealed, 10)


class TestShutdown(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "fairbet.db"

    def tearDown(self):
        self._tmp.cleanup()

    def test_open_sessions_settle_before_store_closes(self):
        casino = make_casino(
            rng=ScriptedRandom(layouts=[[0, 1, 2]]),
            deck_factory=stacked_deck("10", "10", "9", "6", "K"),
            store=SQLiteStore(self.db_path),
        )
        user = casino.create_account(1000)
        casino.mines.start(user.id, MinesStartRequest(bet_amount=100, mine_count=3))
        casino.blackjack.deal(user.id, BlackjackDealRequest(bet_amount=100))
        self.assertEqual(casino.store.get_account(user.id).balance, 800)

        casino.close()
        self.assertEqual(casino.sessions.count(), 0)

        reopened = SQLiteStore(self.db_path)
        reopened.open()
        try:
            # Void board refunds 100; the stood 19 beats the dealer's 16 + K
            self.assertEqual(reopened.get_account(user.id).balance, 1100)
            outcomes = sorted(bet.game for bet in reopened.list_bets(user.id))
            self.assertEqual(outcomes, ["blackjack", "mines"])
        finally:
            reopened.close()

    def test_close_with_nothing_open(self):
        casino = make_casino(store=SQLiteStore(self.db_path))
        self.assertEqual(casino.settle_open_sessions(), 0)
        casino.close()


class TestSessionSweeper(unittest.TestCase):
    def test_sweep_settles_expired_sessions(self):
        clock = FakeClock()
        casino = make_casino(rng=ScriptedRandom(layouts=[[0, 1, 2]]), clock=clock)
        user = casino.create_account(1000)
        casino.mines.start(user.id, MinesStartRequest(bet_amount=100, mine_count=3))

        sweeper = SessionSweeper(casino, interval_seconds=3600)
        sweeper.start()
        try:
            self.assertTrue(sweeper.scheduler.running)
            self.assertIsNotNone(sweeper.scheduler.get_job("expire_sessions"))
            clock.advance(601)
            self.assertEqual(sweeper.sweep(), 1)
        finally:
            sweeper.shutdown()
        self.assertFalse(sweeper.scheduler.running)


if __name__ == "__main__":
    unittest.main()
