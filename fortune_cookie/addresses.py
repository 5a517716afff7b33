"""
Deterministic program-derived addresses for cookie and stats accounts.
"""
import struct
from typing import Sequence, Tuple

from solders.pubkey import Pubkey

from .program import COOKIE_SEED, PROGRAM_ID, STATS_SEED

_U64 = struct.Struct("<Q")


def encode_u64(value: int) -> bytes:
    """Little-endian, fixed 8-byte encoding used for integer seeds."""
    if not 0 <= value < 2 ** 64:
        raise ValueError(f"{value} does not fit in u64")
    return _U64.pack(value)


def derive_address(seeds: Sequence[bytes], program_id: Pubkey = PROGRAM_ID) -> Tuple[Pubkey, int]:
    """
    Derive the off-curve address and bump for ``seeds`` under ``program_id``.

    Args:
        seeds: Ordered seed byte strings, each at most 32 bytes
        program_id: Owning program

    Returns:
        (address, bump) where bump is the disambiguator byte
    """
    return Pubkey.find_program_address([bytes(seed) for seed in seeds], program_id)


def stats_address(program_id: Pubkey = PROGRAM_ID) -> Tuple[Pubkey, int]:
    """Address of the singleton stats account."""
    return derive_address([STATS_SEED], program_id)


def cookie_address(owner: Pubkey, counter: int, program_id: Pubkey = PROGRAM_ID) -> Tuple[Pubkey, int]:
    """Address of ``owner``'s cookie number ``counter``."""
    return derive_address([bytes(owner), COOKIE_SEED, encode_u64(counter)], program_id)
