"""
Static interface of the on-chain ``fortune_cookie`` program (IDL v0.1.0).

Instruction encodings and account layouts are pinned here rather than
introspected at runtime. Any change to the deployed program must be
mirrored in this module.
"""
import hashlib
import struct
from typing import Tuple

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from .errors import ProtocolDriftError
from .types import CookieRecord, StatsRecord

IDL_VERSION = "0.1.0"
PROGRAM_ID = Pubkey.from_string("GpPcUYfhJzGwpN1xwNMHRiEGmj2BnvAtPkZSn2Nyi8n8")

ARCHETYPES: Tuple[str, ...] = ("degen", "builder", "vc", "founder")
RARITIES: Tuple[str, ...] = ("common", "rare", "epic", "legendary")

STATS_SEED = "stats".encode("utf-8")
COOKIE_SEED = "cookie".encode("utf-8")

DISCRIMINATOR_LEN = 8
# FortuneCookie.user starts right after the account discriminator
COOKIE_OWNER_OFFSET = DISCRIMINATOR_LEN

_COOKIE_BODY = struct.Struct("<32sBQBB")
_STATS_BODY = struct.Struct("<QB")
COOKIE_ACCOUNT_SIZE = DISCRIMINATOR_LEN + _COOKIE_BODY.size
STATS_ACCOUNT_SIZE = DISCRIMINATOR_LEN + _STATS_BODY.size

_OPEN_COOKIE_ARGS = struct.Struct("<BQ")


def _discriminator(namespace: str, name: str) -> bytes:
    return hashlib.sha256(f"{namespace}:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_LEN]


INITIALIZE_STATS_DISCRIMINATOR = _discriminator("global", "initialize_stats")
OPEN_COOKIE_DISCRIMINATOR = _discriminator("global", "open_cookie")
COOKIE_ACCOUNT_DISCRIMINATOR = _discriminator("account", "FortuneCookie")
STATS_ACCOUNT_DISCRIMINATOR = _discriminator("account", "Stats")


def archetype_index(name: str) -> int:
    """Index of an archetype name; raises ValueError for unknown names."""
    try:
        return ARCHETYPES.index(name)
    except ValueError:
        raise ValueError(f"Unknown archetype {name!r}; expected one of {', '.join(ARCHETYPES)}") from None


def rarity_name(index: int) -> str:
    """Map an on-chain rarity index to its name, falling back to the lowest tier."""
    if 0 <= index < len(RARITIES):
        return RARITIES[index]
    return RARITIES[0]


def initialize_stats_ix(payer: Pubkey, stats: Pubkey, program_id: Pubkey = PROGRAM_ID) -> Instruction:
    """Build the ``initialize_stats`` instruction."""
    accounts = [
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=stats, is_signer=False, is_writable=True),
        AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, INITIALIZE_STATS_DISCRIMINATOR, accounts)


def open_cookie_ix(user: Pubkey, cookie: Pubkey, stats: Pubkey, archetype: int, counter: int,
                   program_id: Pubkey = PROGRAM_ID) -> Instruction:
    """Build the ``open_cookie(archetype: u8, counter: u64)`` instruction."""
    if not 0 <= archetype < len(ARCHETYPES):
        raise ValueError(f"Invalid archetype index {archetype} (must be 0-{len(ARCHETYPES) - 1})")
    if not 0 <= counter < 2 ** 64:
        raise ValueError(f"Counter {counter} does not fit in u64")

    data = OPEN_COOKIE_DISCRIMINATOR + _OPEN_COOKIE_ARGS.pack(archetype, counter)
    accounts = [
        AccountMeta(pubkey=user, is_signer=True, is_writable=True),
        AccountMeta(pubkey=cookie, is_signer=False, is_writable=True),
        AccountMeta(pubkey=stats, is_signer=False, is_writable=True),
        AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, data, accounts)


def _check_layout(data: bytes, discriminator: bytes, size: int, name: str) -> None:
    if len(data) < size:
        raise ProtocolDriftError(f"{name} account is {len(data)} bytes, expected at least {size}")
    if data[:DISCRIMINATOR_LEN] != discriminator:
        raise ProtocolDriftError(f"{name} account discriminator mismatch")


def decode_cookie(data: bytes) -> CookieRecord:
    """Decode raw ``FortuneCookie`` account data."""
    _check_layout(data, COOKIE_ACCOUNT_DISCRIMINATOR, COOKIE_ACCOUNT_SIZE, "FortuneCookie")
    owner, archetype, fortune_id, rarity, bump = _COOKIE_BODY.unpack_from(data, DISCRIMINATOR_LEN)
    return CookieRecord(
        owner=Pubkey.from_bytes(owner),
        archetype=archetype,
        fortune_id=fortune_id,
        rarity=rarity,
        bump=bump,
    )


def decode_stats(data: bytes) -> StatsRecord:
    """Decode raw ``Stats`` account data."""
    _check_layout(data, STATS_ACCOUNT_DISCRIMINATOR, STATS_ACCOUNT_SIZE, "Stats")
    total_opens, bump = _STATS_BODY.unpack_from(data, DISCRIMINATOR_LEN)
    return StatsRecord(total_opens=total_opens, bump=bump)
