"""
Cached view of the global ``Stats`` counter.
"""
import logging
from typing import Optional

from .errors import LedgerQueryError, SubmissionError
from .ledger import FortuneLedger
from .types import WalletProto

logger = logging.getLogger(__name__)


class StatsCache:
    """
    Tracks whether the stats account exists and its last known total.

    ``ready`` is None until checked, ``total`` is None whenever the last
    read failed.
    """

    def __init__(self, ledger: FortuneLedger):
        self.ledger = ledger
        self.ready: Optional[bool] = None
        self.total: Optional[int] = None

    async def check(self) -> bool:
        """Look up the stats account. Network failures count as not ready."""
        try:
            self.ready = await self.ledger.account_exists(self.ledger.stats_address)
        except LedgerQueryError as e:
            logger.warning(f"⚠️ Could not check stats account: {e}")
            self.ready = False
        return self.ready

    async def initialize(self, wallet: WalletProto) -> bool:
        """
        Create the stats account if needed.

        Returns:
            True if this call created it, False if it already existed
        """
        try:
            await self.ledger.initialize_stats(wallet)
        except SubmissionError as e:
            if not await self._exists_after_failure():
                raise
            logger.info(f"ℹ️ Stats account already initialized ({e.__class__.__name__})")
            self.ready = True
            await self.refresh()
            return False

        logger.info("✅ Stats account initialized")
        self.ready = True
        await self.refresh()
        return True

    async def _exists_after_failure(self) -> bool:
        try:
            return await self.ledger.account_exists(self.ledger.stats_address)
        except LedgerQueryError:
            return False

    async def refresh(self) -> Optional[int]:
        """Re-read the total. Clears it if the read fails."""
        try:
            stats = await self.ledger.fetch_stats()
        except LedgerQueryError as e:
            logger.warning(f"⚠️ Could not refresh stats: {e}")
            self.total = None
            return None

        self.total = stats.total_opens
        self.ready = True
        return self.total
