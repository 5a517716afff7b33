"""
Type definitions shared by the ledger client, dispatcher and gesture engine.
"""
import enum
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence, runtime_checkable

from solders.pubkey import Pubkey
from solders.transaction import Transaction


@dataclass(frozen=True)
class HandPoint:
    """One landmark in normalized [0..1] image coordinates."""
    x: float
    y: float


# Ordered landmarks for a single hand; index 0 is the wrist.
Hand = List[HandPoint]


@dataclass
class CrackCommand:
    """Emitted once when the two-hand pull-apart gesture completes."""
    timestamp: float
    distance: float


@dataclass
class CookieRecord:
    """Decoded ``FortuneCookie`` account."""
    owner: Pubkey
    archetype: int
    fortune_id: int
    rarity: int
    bump: int


@dataclass
class StatsRecord:
    """Decoded ``Stats`` singleton account."""
    total_opens: int
    bump: int


@dataclass
class FortuneResult:
    """A fully confirmed and read-back crack, ready to show."""
    archetype: str
    rarity: str
    fortune: str
    signature: str
    cookie_address: Pubkey
    counter: int


class GestureState(str, enum.Enum):
    """Lifecycle of one gesture session."""
    IDLE = "idle"
    MODEL_LOADING = "model_loading"
    CAMERA_PENDING = "camera_pending"
    TRACKING = "tracking"
    ERROR = "error"
    DISABLED = "disabled"


@runtime_checkable
class WalletProto(Protocol):
    """Signing authority for the user's identity."""

    @property
    def pubkey(self) -> Pubkey:
        """Public key of the signer."""
        ...

    async def sign_transaction(self, tx: Transaction) -> Transaction:
        """Return the signed transaction or raise SigningDeclinedError."""
        ...


@runtime_checkable
class HandDetectorProto(Protocol):
    """Loaded hand landmark model."""

    def detect(self, frame: Any, timestamp_ms: int) -> Sequence[Any]:
        """Return raw per-hand landmark lists for one video frame."""
        ...

    def close(self) -> None:
        """Release the model."""
        ...


@runtime_checkable
class CameraProto(Protocol):
    """Opened video device."""

    def read(self) -> Optional[Any]:
        """Return the next frame or None if no frame is available."""
        ...

    def release(self) -> None:
        """Close the device. Calling twice is a no-op."""
        ...


@runtime_checkable
class CrackerProto(Protocol):
    """Anything the gesture engine can trigger."""

    async def crack(self) -> None:
        """Run one crack action."""
        ...
