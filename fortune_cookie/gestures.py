"""
Gesture recognition that converts two-hand motion into crack commands.
"""
from typing import List, Optional, Tuple

from .config import Cfg
from .landmarks import hand_distance
from .types import CrackCommand, Hand


class CrackGesture:
    """
    Detects two hands held close together and then pulled apart.

    Features:
    - Hysteresis: the previous distance must be below the low threshold
      and the new one above the high threshold
    - Refractory period after each crack
    - Distance memory survives frames where two hands are not visible
    """

    def __init__(self, cfg: Cfg):
        """Initialize crack gesture processor."""
        crack = cfg.gestures.crack
        self.low_threshold = crack.low_threshold
        self.high_threshold = crack.high_threshold
        self.refractory_s = crack.refractory_ms / 1000.0

        self.previous_distance: Optional[float] = None
        self.refractory_until: float = 0.0

    def reset(self) -> None:
        """Forget the previous distance and any active refractory period."""
        self.previous_distance = None
        self.refractory_until = 0.0

    def update(self, distance: Optional[float], t_now: float) -> Optional[CrackCommand]:
        """
        Feed the latest inter-hand distance.

        Args:
            distance: Wrist-to-wrist distance in [0..1] units, None if not two hands
            t_now: Current timestamp in seconds

        Returns:
            CrackCommand on the frame the pull-apart completes, None otherwise
        """
        if distance is None:
            return None

        command = None
        if (self.previous_distance is not None and
                self.previous_distance < self.low_threshold and
                distance > self.high_threshold and
                t_now >= self.refractory_until):
            command = CrackCommand(timestamp=t_now, distance=distance)
            self.refractory_until = t_now + self.refractory_s

        self.previous_distance = distance
        return command


class GestureProcessor:
    """
    Per-session gesture processor: hands in, crack commands out.
    """

    def __init__(self, cfg: Cfg):
        """Initialize gesture processor with configuration."""
        self.cfg = cfg
        self.crack_gesture = CrackGesture(cfg)

    def reset(self) -> None:
        self.crack_gesture.reset()

    def process_frame(self, hands: List[Hand], t_now: float) -> Tuple[Optional[CrackCommand], Optional[float]]:
        """
        Process one frame's hands.

        Args:
            hands: Validated hands detected in the frame
            t_now: Current timestamp in seconds

        Returns:
            Tuple of (crack_command, distance) where distance is None unless
            exactly two hands were seen
        """
        distance = None
        if len(hands) == 2:
            distance = hand_distance(hands[0], hands[1])

        return self.crack_gesture.update(distance, t_now), distance
