"""
Mock cracker for exercising gesture mode without a wallet or network.
"""
import logging

logger = logging.getLogger(__name__)


class MockCracker:
    """Logs crack triggers instead of sending transactions."""

    def __init__(self):
        """Initialize the mock cracker."""
        self.crack_count = 0

    async def crack(self) -> None:
        """Log the crack instead of executing it."""
        self.crack_count += 1
        logger.info(f"[MockCracker] Crack! (call #{self.crack_count})")

    def reset_counters(self) -> None:
        """Reset trigger counter for testing."""
        self.crack_count = 0
