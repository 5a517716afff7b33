"""
Single entry point for cracking a cookie, shared by manual and gesture triggers.
"""
import logging
import random
from typing import Any, Dict, Optional

from .addresses import cookie_address
from .errors import ProtocolDriftError, SigningDeclinedError
from .fortunes import FortunePool
from .ledger import FortuneLedger
from .program import ARCHETYPES, RARITIES, archetype_index, rarity_name
from .stats import StatsCache
from .types import FortuneResult, WalletProto

logger = logging.getLogger(__name__)

NO_WALLET_MESSAGE = "Connect a wallet to crack a cookie."
NO_WALLET_INIT_MESSAGE = "Connect a wallet to initialize stats."
STATS_MISSING_MESSAGE = "Stats account not initialized yet."
TX_FAILED_MESSAGE = "Transaction failed. Check wallet and network."
DECLINED_MESSAGE = "Signature request declined."
INIT_FAILED_MESSAGE = "Failed to initialize stats account."


class CrackDispatcher:
    """
    Runs at most one crack at a time.

    While a crack is in flight, further ``crack()`` calls are ignored, not
    queued. The displayed fortune only changes after a confirmed
    transaction has been read back.
    """

    def __init__(self, ledger: FortuneLedger, pool: FortunePool, wallet: Optional[WalletProto],
                 stats: Optional[StatsCache] = None, rng: Optional[random.Random] = None):
        self.ledger = ledger
        self.pool = pool
        self.wallet = wallet
        self.stats = stats or StatsCache(ledger)
        self.rng = rng or random.Random()

        self.selected = ARCHETYPES[0]
        self.random_mode = False

        self.loading = False
        self.error: Optional[str] = None
        self.archetype = ARCHETYPES[0]
        self.rarity = RARITIES[0]
        self.fortune: Optional[str] = None
        self.signature: Optional[str] = None
        self.last_result: Optional[FortuneResult] = None

    def select(self, archetype: str) -> None:
        """Pick a fixed archetype and leave random mode."""
        archetype_index(archetype)
        self.selected = archetype
        self.random_mode = False

    def set_random(self, enabled: bool = True) -> None:
        self.random_mode = enabled

    @property
    def seed_label(self) -> str:
        return "random archetype" if self.random_mode else self.selected

    @property
    def busy(self) -> bool:
        return self.loading

    async def start(self) -> None:
        """Check the stats account and load its total."""
        if await self.stats.check():
            await self.stats.refresh()

    async def crack(self) -> Optional[FortuneResult]:
        """
        Crack one cookie.

        Returns:
            The confirmed result, or None if the call was ignored or failed
            (in which case ``error`` holds the message to show)
        """
        if self.loading:
            logger.info("⏳ Crack already in progress, ignoring trigger")
            return None
        if self.wallet is None:
            self.error = NO_WALLET_MESSAGE
            return None

        self.loading = True
        self.error = None
        try:
            if self.stats.ready is None:
                await self.stats.check()
            if not self.stats.ready:
                self.error = STATS_MISSING_MESSAGE
                return None
            return await self._crack_once()
        except ProtocolDriftError:
            self.error = TX_FAILED_MESSAGE
            logger.critical("❌ On-chain layout or derivation no longer matches this client")
            raise
        except SigningDeclinedError:
            self.error = DECLINED_MESSAGE
            return None
        except Exception as e:
            logger.error(f"❌ Crack failed: {e!r}")
            self.error = TX_FAILED_MESSAGE
            return None
        finally:
            self.loading = False

    async def _crack_once(self) -> FortuneResult:
        archetype = self.rng.choice(ARCHETYPES) if self.random_mode else self.selected
        owner = self.wallet.pubkey

        counter = await self.ledger.count_cookies(owner)
        address, bump = cookie_address(owner, counter, self.ledger.program_id)
        logger.info(f"🍪 Cracking {archetype} cookie #{counter} at {address}")

        signature = await self.ledger.open_cookie(self.wallet, address, archetype_index(archetype), counter)
        record = await self.ledger.fetch_cookie(address, expected_owner=owner, expected_bump=bump)

        result = FortuneResult(
            archetype=archetype,
            rarity=rarity_name(record.rarity),
            fortune=self.pool.pick(archetype, record.rarity, record.fortune_id),
            signature=signature,
            cookie_address=address,
            counter=counter,
        )
        self.archetype = result.archetype
        self.rarity = result.rarity
        self.fortune = result.fortune
        self.signature = result.signature
        self.last_result = result
        logger.info(f"✅ {result.rarity} fortune revealed: {result.fortune}")

        await self.stats.refresh()
        return result

    async def initialize_stats(self) -> bool:
        """
        Create the stats account through the wallet.

        Returns:
            True if the account exists afterwards
        """
        if self.wallet is None:
            self.error = NO_WALLET_INIT_MESSAGE
            return False
        if self.loading:
            return False

        self.loading = True
        self.error = None
        try:
            await self.stats.initialize(self.wallet)
            return True
        except SigningDeclinedError:
            self.error = DECLINED_MESSAGE
            return False
        except Exception as e:
            logger.error(f"❌ Stats initialization failed: {e!r}")
            self.error = INIT_FAILED_MESSAGE
            return False
        finally:
            self.loading = False

    def snapshot(self) -> Dict[str, Any]:
        """Everything a front end needs to render the current state."""
        signature = self.signature
        return {
            "loading": self.loading,
            "error": self.error,
            "fortune": self.fortune,
            "archetype": self.archetype,
            "rarity": self.rarity,
            "seed_label": self.seed_label,
            "signature": signature,
            "signature_short": f"{signature[:10]}..." if signature else None,
            "wallet": str(self.wallet.pubkey) if self.wallet is not None else None,
            "stats_ready": self.stats.ready,
            "stats_total": self.stats.total,
        }
