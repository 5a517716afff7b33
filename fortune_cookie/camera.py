"""
OpenCV camera wrapper with idempotent, thread-safe release.
"""
import logging
import threading
from typing import Any, Optional

import cv2
import numpy as np

from .config import CameraConfig

logger = logging.getLogger(__name__)

RELEASE_LOCK_TIMEOUT_S = 1.0


class OpenCVCamera:
    """Owns one ``cv2.VideoCapture`` device."""

    def __init__(self, cap: Any):
        self._cap = cap
        self._lock = threading.Lock()
        self._swap_lock = threading.Lock()

    @classmethod
    def open(cls, cfg: CameraConfig) -> "OpenCVCamera":
        """
        Open the configured device. Blocking.

        Raises:
            PermissionError: the device could not be opened
        """
        cap = cv2.VideoCapture(cfg.index)
        if not cap.isOpened():
            cap.release()
            raise PermissionError(f"Failed to open camera {cfg.index}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, cfg.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg.height)
        cap.set(cv2.CAP_PROP_FPS, cfg.fps)
        logger.info(f"📷 Camera {cfg.index} opened")
        return cls(cap)

    def read(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._cap is None:
                return None
            ret, frame = self._cap.read()
        return frame if ret else None

    def release(self) -> None:
        """Release the device. Never blocks the caller on an in-flight read."""
        if self._lock.acquire(blocking=False):
            try:
                self._close_device()
            finally:
                self._lock.release()
            return

        logger.info("⏳ Camera read in flight, releasing in the background")
        threading.Thread(target=self._release_after_read, name="camera-release", daemon=True).start()

    def _release_after_read(self) -> None:
        # a stalled device can hold read() indefinitely; do not wait on it forever
        locked = self._lock.acquire(timeout=RELEASE_LOCK_TIMEOUT_S)
        try:
            if not locked:
                logger.warning("⚠️ Camera read still pending, releasing anyway")
            self._close_device()
        finally:
            if locked:
                self._lock.release()

    def _close_device(self) -> None:
        with self._swap_lock:
            cap, self._cap = self._cap, None
        if cap is None:
            return
        cap.release()
        logger.info("🧹 Camera released")
