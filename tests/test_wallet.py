"""
Test cases for keypair loading and signing approval.
"""
import json
import tempfile
import unittest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.signature import Signature
from solders.transaction import Transaction

from fortune_cookie.addresses import cookie_address, stats_address
from fortune_cookie.config import WalletConfig
from fortune_cookie.errors import SigningDeclinedError
from fortune_cookie.program import open_cookie_ix
from fortune_cookie.wallet import KeypairWallet, PromptingWallet, load_wallet


def unsigned_open_cookie(payer) -> Transaction:
    cookie, _ = cookie_address(payer, 0)
    stats, _ = stats_address()
    ix = open_cookie_ix(payer, cookie, stats, archetype=0, counter=0)
    message = Message.new_with_blockhash([ix], payer, Hash.new_unique())
    return Transaction.new_unsigned(message)


class TestKeypairWallet(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.keypair = Keypair()
        self.path = Path(self.tmp.name) / "id.json"
        self.path.write_text(json.dumps(list(bytes(self.keypair))))

    def test_from_file(self):
        wallet = KeypairWallet.from_file(str(self.path))
        self.assertEqual(wallet.pubkey, self.keypair.pubkey())

    def test_from_file_wrong_shape(self):
        self.path.write_text(json.dumps([1, 2, 3]))
        with self.assertRaises(ValueError):
            KeypairWallet.from_file(str(self.path))

    def test_from_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            KeypairWallet.from_file(str(Path(self.tmp.name) / "missing.json"))

    async def test_sign(self):
        wallet = KeypairWallet(self.keypair)
        tx = await wallet.sign_transaction(unsigned_open_cookie(wallet.pubkey))

        self.assertNotEqual(tx.signatures[0], Signature.default())
        tx.verify()

    def test_load_wallet_missing_keypair(self):
        cfg = WalletConfig(keypair_path=str(Path(self.tmp.name) / "missing.json"), confirm_before_sign=True)
        self.assertIsNone(load_wallet(cfg))

    def test_load_wallet_prompting(self):
        cfg = WalletConfig(keypair_path=str(self.path), confirm_before_sign=True)
        wallet = load_wallet(cfg)
        self.assertIsInstance(wallet, PromptingWallet)
        self.assertEqual(wallet.pubkey, self.keypair.pubkey())

    def test_load_wallet_unattended(self):
        cfg = WalletConfig(keypair_path=str(self.path), confirm_before_sign=False)
        self.assertIsInstance(load_wallet(cfg), KeypairWallet)


class TestPromptingWallet(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.inner = KeypairWallet(Keypair())
        self.prompts = []

    def answering(self, answer):
        async def ask(prompt):
            self.prompts.append(prompt)
            return answer
        return ask

    async def test_approved(self):
        wallet = PromptingWallet(self.inner, ask=self.answering(" Yes\n"))
        tx = await wallet.sign_transaction(unsigned_open_cookie(wallet.pubkey))

        self.assertNotEqual(tx.signatures[0], Signature.default())
        self.assertIn(str(self.inner.pubkey), self.prompts[0])

    async def test_declined(self):
        wallet = PromptingWallet(self.inner, ask=self.answering(""))
        with self.assertRaises(SigningDeclinedError):
            await wallet.sign_transaction(unsigned_open_cookie(wallet.pubkey))


if __name__ == '__main__':
    unittest.main()
