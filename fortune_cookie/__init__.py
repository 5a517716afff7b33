"""
Zen Fortune Cookie

Crack an on-chain fortune cookie by command or by pulling two hands apart in
front of the webcam. Derives the cookie account address locally, submits
one ``open_cookie`` transaction and reads the reward back.
"""

__version__ = "0.1.0"
__author__ = "Zen Fortune Cookie Team"

from .types import CrackCommand, CookieRecord, FortuneResult, GestureState, HandPoint, StatsRecord, WalletProto
from .config import load_config, Cfg
from .addresses import cookie_address, derive_address, encode_u64, stats_address
from .errors import (
    FortuneCookieError,
    ProtocolDriftError,
    SigningDeclinedError,
    SubmissionError,
    ConfirmationTimeoutError,
    LedgerQueryError,
    AccountNotFoundError,
    GestureInitError,
)
from .fortunes import FortunePool, fortune_index
from .ledger import FortuneLedger
from .stats import StatsCache
from .dispatcher import CrackDispatcher
from .gestures import CrackGesture, GestureProcessor
from .gesture_engine import GestureEngine, GestureSession
from .cracker_mock import MockCracker

__all__ = [
    "CrackCommand",
    "CookieRecord",
    "FortuneResult",
    "GestureState",
    "HandPoint",
    "StatsRecord",
    "WalletProto",
    "load_config",
    "Cfg",
    "cookie_address",
    "derive_address",
    "encode_u64",
    "stats_address",
    "FortuneCookieError",
    "ProtocolDriftError",
    "SigningDeclinedError",
    "SubmissionError",
    "ConfirmationTimeoutError",
    "LedgerQueryError",
    "AccountNotFoundError",
    "GestureInitError",
    "FortunePool",
    "fortune_index",
    "FortuneLedger",
    "StatsCache",
    "CrackDispatcher",
    "CrackGesture",
    "GestureProcessor",
    "GestureEngine",
    "GestureSession",
    "MockCracker",
]
