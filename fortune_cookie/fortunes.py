"""
Fortune text pool and the mapping from on-chain reward fields to text.
"""
import json
from pathlib import Path
from typing import Dict, List, Optional

from .program import ARCHETYPES, RARITIES, rarity_name

DEFAULT_FORTUNES_PATH = Path(__file__).parent / "fortunes.json"


def fortune_index(fortune_id: int, pool_length: int) -> int:
    """Reduce an arbitrarily large reward id into a pool position."""
    if pool_length <= 0:
        raise ValueError("pool_length must be positive")
    return fortune_id % pool_length


class FortunePool:
    """Read-only archetype -> rarity -> [fortune text] mapping."""

    def __init__(self, fortunes: Dict[str, Dict[str, List[str]]]):
        for archetype in ARCHETYPES:
            buckets = fortunes.get(archetype)
            if buckets is None:
                raise ValueError(f"Fortune pool has no entries for archetype {archetype!r}")
            for rarity in RARITIES:
                if not buckets.get(rarity):
                    raise ValueError(f"Fortune pool bucket {archetype}/{rarity} is empty")
        self.fortunes = fortunes

    @classmethod
    def load(cls, path: Optional[str] = None) -> "FortunePool":
        """
        Load fortunes from a JSON file.

        Args:
            path: JSON file path. Empty or None uses the packaged fortunes.json

        Returns:
            Validated fortune pool
        """
        pool_path = Path(path) if path else DEFAULT_FORTUNES_PATH
        if not pool_path.exists():
            raise FileNotFoundError(f"Fortune file not found: {pool_path}")

        with open(pool_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        return cls(data['fortunes'])

    def bucket(self, archetype: str, rarity: str) -> List[str]:
        return self.fortunes[archetype][rarity]

    def pick(self, archetype: str, rarity_index: int, fortune_id: int) -> str:
        """
        Select the fortune for a confirmed cookie.

        Unknown rarity indices fall back to the lowest tier.
        """
        pool = self.bucket(archetype, rarity_name(rarity_index))
        return pool[fortune_index(fortune_id, len(pool))]
