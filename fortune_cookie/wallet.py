"""
Signing authorities backed by a local Solana keypair file.
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .config import WalletConfig
from .errors import SigningDeclinedError
from .types import WalletProto

logger = logging.getLogger(__name__)


class KeypairWallet:
    """Signs locally with an in-memory keypair."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @classmethod
    def from_file(cls, path: str) -> "KeypairWallet":
        """
        Load a Solana CLI keypair file (JSON array of 64 integers).

        Args:
            path: Location of the keypair file

        Returns:
            Wallet for that keypair
        """
        keypair_path = Path(path)
        if not keypair_path.exists():
            raise FileNotFoundError(f"Keypair file not found: {keypair_path}")

        with open(keypair_path, 'r') as f:
            secret = json.load(f)

        if not isinstance(secret, list) or len(secret) != 64:
            raise ValueError(f"Keypair file {keypair_path} must hold a JSON array of 64 integers")

        wallet = cls(Keypair.from_bytes(bytes(secret)))
        logger.info(f"✅ Loaded wallet {wallet.pubkey}")
        return wallet

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    async def sign_transaction(self, tx: Transaction) -> Transaction:
        tx.sign([self._keypair], tx.message.recent_blockhash)
        return tx


async def console_ask(prompt: str) -> str:
    """Read one answer from stdin without blocking the event loop."""
    return await asyncio.to_thread(input, prompt)


class PromptingWallet:
    """Asks for approval before delegating to another wallet."""

    def __init__(self, inner: WalletProto, ask: Optional[Callable[[str], Awaitable[str]]] = None):
        self.inner = inner
        self._ask = ask or console_ask

    @property
    def pubkey(self) -> Pubkey:
        return self.inner.pubkey

    async def sign_transaction(self, tx: Transaction) -> Transaction:
        prompt = f"Sign transaction with {len(tx.message.instructions)} instruction(s) as {self.pubkey}? [y/N] "
        answer = await self._ask(prompt)
        if answer.strip().lower() not in ("y", "yes"):
            logger.info("❌ Signature request declined")
            raise SigningDeclinedError("User declined to sign")
        return await self.inner.sign_transaction(tx)


def load_wallet(cfg: WalletConfig, ask: Optional[Callable[[str], Awaitable[str]]] = None) -> Optional[WalletProto]:
    """
    Build the configured wallet, or None when no keypair file is available.
    """
    try:
        wallet: WalletProto = KeypairWallet.from_file(cfg.keypair_path)
    except FileNotFoundError:
        logger.warning(f"⚠️ No keypair at {cfg.keypair_path}; cracking is disabled until a wallet is configured")
        return None

    if cfg.confirm_before_sign:
        wallet = PromptingWallet(wallet, ask=ask)
    return wallet
