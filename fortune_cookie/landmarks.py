"""
Hand landmark detection using the MediaPipe Tasks HandLandmarker.
"""
import logging
import math
import os
import threading
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import cv2
import mediapipe as mp
import numpy as np
import requests
from mediapipe.tasks import python as mp_tasks
from mediapipe.tasks.python import vision

from .config import MediaPipeConfig
from .types import Hand, HandPoint

logger = logging.getLogger(__name__)

WRIST = 0


def ensure_model(url: str, path: str, timeout: float = 30.0) -> Path:
    """
    Download the landmarker model once and return its local path.

    Args:
        url: Public model asset URL
        path: Local cache location
        timeout: Per-request timeout in seconds

    Returns:
        Path to the model file on disk
    """
    model_path = Path(path)
    if model_path.exists() and model_path.stat().st_size > 0:
        return model_path

    model_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"⬇️ Downloading hand landmarker model from {url}")
    tmp_path = model_path.with_suffix(model_path.suffix + ".part")
    with requests.get(url, stream=True, timeout=timeout) as resp:
        resp.raise_for_status()
        with open(tmp_path, 'wb') as f:
            for chunk in resp.iter_content(chunk_size=1 << 16):
                f.write(chunk)
    os.replace(tmp_path, model_path)
    logger.info(f"✅ Model saved to {model_path}")
    return model_path


class HandLandmarkerDetector:
    """Two-hand landmark detector running in VIDEO mode."""

    def __init__(self, landmarker: Any):
        self._landmarker = landmarker
        self._lock = threading.Lock()
        self._close_pending = False

    @classmethod
    def load(cls, cfg: MediaPipeConfig) -> "HandLandmarkerDetector":
        """Fetch (if needed) and load the model. Blocking."""
        model_path = ensure_model(cfg.model_url, cfg.model_path)
        options = vision.HandLandmarkerOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=str(model_path)),
            running_mode=vision.RunningMode.VIDEO,
            num_hands=cfg.num_hands,
            min_hand_detection_confidence=cfg.min_hand_detection_confidence,
            min_hand_presence_confidence=cfg.min_hand_presence_confidence,
            min_tracking_confidence=cfg.min_tracking_confidence
        )
        return cls(vision.HandLandmarker.create_from_options(options))

    def detect(self, frame_bgr: np.ndarray, timestamp_ms: int) -> Sequence[Any]:
        """
        Run inference on one BGR frame.

        Returns:
            Raw per-hand landmark lists, empty once the detector is closed
        """
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        try:
            with self._lock:
                if self._landmarker is None or self._close_pending:
                    return []
                result = self._landmarker.detect_for_video(image, timestamp_ms)
        finally:
            # close() never waits on inference; finish a close requested meanwhile
            if self._close_pending:
                self.close()
        return result.hand_landmarks or []

    def close(self) -> None:
        """Close the model now, or right after the in-flight inference. Never blocks."""
        self._close_pending = True
        if not self._lock.acquire(blocking=False):
            logger.info("⏳ Inference in flight, closing hand landmarker when it finishes")
            return
        try:
            landmarker, self._landmarker = self._landmarker, None
            if landmarker is None:
                return
            landmarker.close()
        finally:
            self._lock.release()
        logger.info("🧹 Hand landmarker closed")


def _to_point(raw: Any) -> Optional[HandPoint]:
    if isinstance(raw, (tuple, list)) and len(raw) >= 2:
        x, y = raw[0], raw[1]
    else:
        x, y = getattr(raw, "x", None), getattr(raw, "y", None)
    try:
        x, y = float(x), float(y)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return HandPoint(x, y)


def parse_hands(raw_hands: Optional[Sequence[Any]]) -> List[Hand]:
    """
    Normalize raw detector output into a list of hands.

    Hands that are empty or contain a malformed point are dropped.
    """
    hands: List[Hand] = []
    for raw_hand in raw_hands or []:
        try:
            raw_points = list(raw_hand)
        except TypeError:
            continue
        points = [_to_point(p) for p in raw_points]
        if not points or any(p is None for p in points):
            continue
        hands.append(points)
    return hands


def wrist(hand: Hand) -> HandPoint:
    """Reference point of a hand (first landmark)."""
    return hand[WRIST]


def hand_distance(first: Hand, second: Hand) -> float:
    """Euclidean distance between two hands' wrists in normalized coordinates."""
    a, b = wrist(first), wrist(second)
    return math.hypot(a.x - b.x, a.y - b.y)


def draw_wrists(frame: np.ndarray, hands: List[Hand]) -> np.ndarray:
    """
    Draw both wrist reference points on the frame.

    Args:
        frame: Input frame
        hands: Parsed hands

    Returns:
        Frame with wrist markers drawn
    """
    height, width = frame.shape[:2]
    for hand in hands:
        point = wrist(hand)
        center: Tuple[int, int] = (int(point.x * width), int(point.y * height))
        cv2.circle(frame, center, 10, (63, 127, 255), -1)
    return frame
