"""
Test cases for the single-flight crack dispatcher.
"""
import asyncio
import random
import unittest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from solders.keypair import Keypair

from fortune_cookie.addresses import cookie_address
from fortune_cookie.dispatcher import (
    DECLINED_MESSAGE,
    INIT_FAILED_MESSAGE,
    NO_WALLET_INIT_MESSAGE,
    NO_WALLET_MESSAGE,
    STATS_MISSING_MESSAGE,
    TX_FAILED_MESSAGE,
    CrackDispatcher,
)
from fortune_cookie.errors import ProtocolDriftError, SigningDeclinedError, SubmissionError
from fortune_cookie.fortunes import FortunePool
from fortune_cookie.program import ARCHETYPES
from fortune_cookie.wallet import KeypairWallet

from fakes import FakeLedger, network_error, wait_until


class DispatcherTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.ledger = FakeLedger()
        self.pool = FortunePool.load()
        self.wallet = KeypairWallet(Keypair())

    def make_dispatcher(self, **kwargs) -> CrackDispatcher:
        kwargs.setdefault("wallet", self.wallet)
        return CrackDispatcher(self.ledger, self.pool, **kwargs)


class TestCrack(DispatcherTestCase):
    """Test the crack flow and displayed state."""

    async def test_success_updates_display(self):
        dispatcher = self.make_dispatcher()
        await dispatcher.start()
        dispatcher.select("builder")

        result = await dispatcher.crack()

        self.assertIsNotNone(result)
        self.assertEqual(result.archetype, "builder")
        self.assertEqual(result.rarity, "rare")
        self.assertEqual(result.fortune, self.pool.pick("builder", 1, 37))
        self.assertEqual(result.counter, 0)
        self.assertEqual(result.cookie_address, cookie_address(self.wallet.pubkey, 0)[0])

        snap = dispatcher.snapshot()
        self.assertFalse(snap["loading"])
        self.assertIsNone(snap["error"])
        self.assertEqual(snap["fortune"], result.fortune)
        self.assertEqual(snap["archetype"], "builder")
        self.assertEqual(snap["rarity"], "rare")
        self.assertEqual(snap["signature"], result.signature)
        self.assertEqual(snap["signature_short"], result.signature[:10] + "...")
        self.assertEqual(snap["wallet"], str(self.wallet.pubkey))
        self.assertTrue(snap["stats_ready"])
        self.assertEqual(snap["stats_total"], 1)

    async def test_counters_follow_existing_cookies(self):
        dispatcher = self.make_dispatcher()

        results = [await dispatcher.crack() for _ in range(3)]

        self.assertEqual([r.counter for r in results], [0, 1, 2])
        self.assertEqual(len({r.cookie_address for r in results}), 3)
        self.assertEqual(self.ledger.open_calls, [0, 1, 2])
        self.assertEqual(dispatcher.stats.total, 3)

    async def test_no_wallet(self):
        dispatcher = self.make_dispatcher(wallet=None)

        self.assertIsNone(await dispatcher.crack())
        self.assertEqual(dispatcher.error, NO_WALLET_MESSAGE)
        self.assertEqual(self.ledger.open_calls, [])
        self.assertIsNone(dispatcher.snapshot()["wallet"])

    async def test_stats_missing(self):
        self.ledger = FakeLedger(stats_exists=False)
        dispatcher = self.make_dispatcher()

        self.assertIsNone(await dispatcher.crack())
        self.assertEqual(dispatcher.error, STATS_MISSING_MESSAGE)
        self.assertEqual(self.ledger.open_calls, [])
        self.assertFalse(dispatcher.loading)

    async def test_second_trigger_is_ignored(self):
        dispatcher = self.make_dispatcher()
        self.ledger.open_gate = asyncio.Event()

        first = asyncio.create_task(dispatcher.crack())
        self.assertTrue(await wait_until(lambda: self.ledger.open_calls))
        self.assertTrue(dispatcher.busy)

        self.assertIsNone(await dispatcher.crack())
        self.assertIsNone(dispatcher.error)

        self.ledger.open_gate.set()
        result = await first

        self.assertIsNotNone(result)
        self.assertEqual(self.ledger.open_calls, [0])
        self.assertFalse(dispatcher.busy)

    async def test_declined(self):
        dispatcher = self.make_dispatcher()
        self.ledger.fail_open = SigningDeclinedError("no")

        self.assertIsNone(await dispatcher.crack())
        self.assertEqual(dispatcher.error, DECLINED_MESSAGE)
        self.assertIsNone(dispatcher.fortune)

    async def test_network_error_keeps_previous_fortune(self):
        dispatcher = self.make_dispatcher()
        first = await dispatcher.crack()

        self.ledger.fail_count = network_error()
        self.assertIsNone(await dispatcher.crack())

        self.assertEqual(dispatcher.error, TX_FAILED_MESSAGE)
        self.assertEqual(dispatcher.fortune, first.fortune)
        self.assertEqual(dispatcher.signature, first.signature)
        self.assertFalse(dispatcher.loading)

    async def test_submission_failure(self):
        dispatcher = self.make_dispatcher()
        self.ledger.fail_open = SubmissionError("blockhash not found")

        self.assertIsNone(await dispatcher.crack())
        self.assertEqual(dispatcher.error, TX_FAILED_MESSAGE)

    async def test_read_back_failure_leaves_display(self):
        dispatcher = self.make_dispatcher()
        await dispatcher.start()
        self.ledger.fail_read = network_error()

        self.assertIsNone(await dispatcher.crack())
        self.assertEqual(dispatcher.error, TX_FAILED_MESSAGE)
        self.assertIsNone(dispatcher.fortune)
        self.assertIsNone(dispatcher.signature)

    async def test_protocol_drift_propagates(self):
        dispatcher = self.make_dispatcher()
        await dispatcher.start()
        self.ledger.fail_read = ProtocolDriftError("discriminator mismatch")

        with self.assertRaises(ProtocolDriftError):
            await dispatcher.crack()
        self.assertEqual(dispatcher.error, TX_FAILED_MESSAGE)
        self.assertFalse(dispatcher.loading)


class TestArchetypeSelection(DispatcherTestCase):

    async def test_random_mode(self):
        dispatcher = self.make_dispatcher(rng=random.Random(7))
        dispatcher.set_random(True)
        expected = random.Random(7).choice(ARCHETYPES)

        result = await dispatcher.crack()

        self.assertEqual(result.archetype, expected)
        self.assertEqual(dispatcher.seed_label, "random archetype")

    def test_select_leaves_random_mode(self):
        dispatcher = self.make_dispatcher()
        dispatcher.set_random(True)
        dispatcher.select("vc")
        self.assertFalse(dispatcher.random_mode)
        self.assertEqual(dispatcher.seed_label, "vc")

    def test_invalid_archetype(self):
        dispatcher = self.make_dispatcher()
        dispatcher.select("founder")
        with self.assertRaises(ValueError):
            dispatcher.select("whale")
        self.assertEqual(dispatcher.selected, "founder")


class TestInitializeStats(DispatcherTestCase):

    async def test_initialize_twice(self):
        self.ledger = FakeLedger(stats_exists=False)
        dispatcher = self.make_dispatcher()
        await dispatcher.start()
        self.assertFalse(dispatcher.stats.ready)

        self.assertTrue(await dispatcher.initialize_stats())
        self.assertTrue(await dispatcher.initialize_stats())

        self.assertEqual(self.ledger.stats_creations, 1)
        self.assertIsNone(dispatcher.error)
        self.assertTrue(dispatcher.stats.ready)
        self.assertEqual(dispatcher.stats.total, 0)

    async def test_initialize_then_crack(self):
        self.ledger = FakeLedger(stats_exists=False)
        dispatcher = self.make_dispatcher()
        await dispatcher.start()

        await dispatcher.initialize_stats()
        result = await dispatcher.crack()

        self.assertIsNotNone(result)
        self.assertEqual(dispatcher.stats.total, 1)

    async def test_initialize_without_wallet(self):
        dispatcher = self.make_dispatcher(wallet=None)
        self.assertFalse(await dispatcher.initialize_stats())
        self.assertEqual(dispatcher.error, NO_WALLET_INIT_MESSAGE)

    async def test_initialize_declined(self):
        self.ledger = FakeLedger(stats_exists=False)
        self.ledger.fail_open = SigningDeclinedError("no")
        dispatcher = self.make_dispatcher()

        self.assertFalse(await dispatcher.initialize_stats())
        self.assertEqual(dispatcher.error, DECLINED_MESSAGE)

    async def test_initialize_failure(self):
        self.ledger = FakeLedger(stats_exists=False)
        self.ledger.fail_open = SubmissionError("insufficient funds")
        dispatcher = self.make_dispatcher()

        self.assertFalse(await dispatcher.initialize_stats())
        self.assertEqual(dispatcher.error, INIT_FAILED_MESSAGE)
        self.assertFalse(dispatcher.loading)


if __name__ == '__main__':
    unittest.main()
