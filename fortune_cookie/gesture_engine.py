"""
Gesture session lifecycle: model loading, camera acquisition and the frame loop.

A session walks IDLE -> MODEL_LOADING -> CAMERA_PENDING -> TRACKING and can
end in ERROR (load/camera failure or timeout) or DISABLED (explicit
disable). The session is the only owner of the camera and the model; both
are released on every exit path, including handles that finish loading
after the session was already disabled.
"""
import asyncio
import functools
import logging
import time
from typing import Any, Callable, List, Optional, Set

from .camera import OpenCVCamera
from .config import Cfg
from .errors import GestureInitError, ProtocolDriftError
from .gestures import GestureProcessor
from .landmarks import HandLandmarkerDetector, parse_hands
from .types import CameraProto, CrackerProto, GestureState, Hand, HandDetectorProto

logger = logging.getLogger(__name__)

TIMEOUT_DIAGNOSIS = "Hand tracking took too long to load. Please enable camera access or try again."
MODEL_LOAD_DIAGNOSIS = "Failed to load hand tracking."
CAMERA_DENIED_DIAGNOSIS = "Camera access denied."
CAMERA_FAILED_DIAGNOSIS = "Camera access failed. Please check permissions or try again."
CAMERA_STALLED_DIAGNOSIS = "Camera stream failed to load."
TRACKING_STOPPED_DIAGNOSIS = "Hand tracking stopped unexpectedly."
PROTOCOL_DRIFT_DIAGNOSIS = "The fortune cookie program changed. Update the client before cracking again."

FRAME_RETRY_S = 0.01

FrameCallback = Callable[[Any, List[Hand]], None]


def _release_late(release: Callable[[Any], None], future: "asyncio.Future[Any]") -> None:
    """Release a handle whose acquisition finished after its waiter went away."""
    if future.cancelled() or future.exception() is not None:
        return
    logger.info("🧹 Releasing resource acquired after teardown")
    release(future.result())


def _close_detector(detector: HandDetectorProto) -> None:
    detector.close()


def _release_camera(camera: CameraProto) -> None:
    camera.release()


class GestureSession:
    """One enable-to-disable run of the crack gesture detector."""

    def __init__(self, cfg: Cfg, cracker: CrackerProto,
                 detector_factory: Callable[[], HandDetectorProto],
                 camera_factory: Callable[[], CameraProto],
                 frame_callback: Optional[FrameCallback] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.cfg = cfg
        self.cracker = cracker
        self.state = GestureState.IDLE
        self.error: Optional[str] = None
        self.permission_denied = False

        self._detector_factory = detector_factory
        self._camera_factory = camera_factory
        self._frame_callback = frame_callback
        self._clock = clock
        self._processor = GestureProcessor(cfg)

        self._alive = True
        self._detector: Optional[HandDetectorProto] = None
        self._camera: Optional[CameraProto] = None
        self._task: Optional[asyncio.Task] = None
        self._crack_tasks: Set[asyncio.Task] = set()
        self._last_timestamp_ms = -1

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def holds_resources(self) -> bool:
        return self._detector is not None or self._camera is not None

    def start(self) -> asyncio.Task:
        """Schedule the session on the running event loop."""
        self._processor.reset()
        self._task = asyncio.create_task(self._run())
        return self._task

    async def wait(self) -> None:
        """Wait until the session's run loop has exited."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def disable(self) -> None:
        """Stop the session and release the camera and model now. Idempotent."""
        was_alive = self._alive
        self._alive = False
        self.state = GestureState.DISABLED
        self._release()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if was_alive:
            logger.info("👋 Gesture mode disabled")

    def _fail(self, diagnosis: str, permission_denied: bool = False) -> None:
        if not self._alive:
            return
        self._alive = False
        self.state = GestureState.ERROR
        self.error = diagnosis
        self.permission_denied = permission_denied
        self._release()
        logger.error(f"❌ Gesture session failed: {diagnosis}")

    def _release(self) -> None:
        camera, self._camera = self._camera, None
        detector, self._detector = self._detector, None
        if camera is not None:
            camera.release()
        if detector is not None:
            detector.close()

    async def _acquire(self, factory: Callable[[], Any], release: Callable[[Any], None]) -> Any:
        """Run a blocking acquisition off-loop; release its result if we stop waiting."""
        future = asyncio.ensure_future(asyncio.to_thread(factory))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            future.add_done_callback(functools.partial(_release_late, release))
            raise

    async def _run(self) -> None:
        timeout_s = self.cfg.gestures.crack.init_timeout_ms / 1000.0
        try:
            try:
                await asyncio.wait_for(self._initialize(), timeout=timeout_s)
            except asyncio.TimeoutError:
                self._fail(TIMEOUT_DIAGNOSIS)
                return
            except GestureInitError as e:
                self._fail(e.diagnosis, e.permission_denied)
                return

            if self._alive:
                await self._track()
        except Exception as e:
            logger.error(f"Gesture session crashed: {e!r}")
            self._fail(TRACKING_STOPPED_DIAGNOSIS)
        finally:
            # the loop only exits on its own once the session is torn down
            self._fail(TRACKING_STOPPED_DIAGNOSIS)

    async def _initialize(self) -> None:
        self.state = GestureState.MODEL_LOADING
        logger.info("🧠 Loading hand tracking model...")
        try:
            detector = await self._acquire(self._detector_factory, _close_detector)
        except Exception as e:
            logger.error(f"Model load error: {e}")
            raise GestureInitError(MODEL_LOAD_DIAGNOSIS) from e
        if not self._alive:
            detector.close()
            return
        self._detector = detector

        self.state = GestureState.CAMERA_PENDING
        logger.info("📷 Waiting for camera access...")
        try:
            camera = await self._acquire(self._camera_factory, _release_camera)
        except PermissionError as e:
            raise GestureInitError(CAMERA_DENIED_DIAGNOSIS, permission_denied=True) from e
        except Exception as e:
            logger.error(f"Camera access error: {e}")
            raise GestureInitError(CAMERA_FAILED_DIAGNOSIS) from e
        if not self._alive:
            camera.release()
            return
        self._camera = camera

        camera_timeout_s = self.cfg.gestures.crack.camera_timeout_ms / 1000.0
        try:
            await asyncio.wait_for(self._first_frame(camera), timeout=camera_timeout_s)
        except asyncio.TimeoutError:
            raise GestureInitError(CAMERA_STALLED_DIAGNOSIS, permission_denied=True) from None
        except Exception as e:
            logger.error(f"Camera read error: {e}")
            raise GestureInitError(CAMERA_FAILED_DIAGNOSIS) from e
        if not self._alive:
            return

        self.state = GestureState.TRACKING
        logger.info("✅ Hand tracking ready")

    async def _first_frame(self, camera: CameraProto) -> None:
        while self._alive:
            if await asyncio.to_thread(camera.read) is not None:
                return
            await asyncio.sleep(FRAME_RETRY_S)

    def _next_timestamp_ms(self) -> int:
        timestamp_ms = int(self._clock() * 1000)
        if timestamp_ms <= self._last_timestamp_ms:
            timestamp_ms = self._last_timestamp_ms + 1
        self._last_timestamp_ms = timestamp_ms
        return timestamp_ms

    async def _track(self) -> None:
        while self._alive:
            camera, detector = self._camera, self._detector
            if camera is None or detector is None:
                return

            frame = await asyncio.to_thread(camera.read)
            if not self._alive:
                return
            if frame is None:
                await asyncio.sleep(FRAME_RETRY_S)
                continue

            timestamp_ms = self._next_timestamp_ms()
            try:
                raw_hands = await asyncio.to_thread(detector.detect, frame, timestamp_ms)
            except Exception as e:
                logger.error(f"Hand detection error: {e}")
                self._fail(TRACKING_STOPPED_DIAGNOSIS)
                return
            if not self._alive:
                return

            hands = parse_hands(raw_hands)
            command, _ = self._processor.process_frame(hands, self._clock())
            if self._frame_callback is not None:
                self._frame_callback(frame, hands)
            if command is not None:
                logger.info(f"🍪 Crack gesture detected (distance={command.distance:.2f})")
                self._fire()

            # yield before the next cycle
            await asyncio.sleep(0)

    def _fire(self) -> None:
        task = asyncio.create_task(self.cracker.crack())
        self._crack_tasks.add(task)
        task.add_done_callback(self._crack_done)

    def _crack_done(self, task: asyncio.Task) -> None:
        self._crack_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if isinstance(exc, ProtocolDriftError):
            logger.critical(f"❌ Gesture-triggered crack hit protocol drift: {exc}")
            self._fail(PROTOCOL_DRIFT_DIAGNOSIS)
        elif exc is not None:
            logger.error(f"❌ Gesture-triggered crack raised: {exc!r}")


class GestureEngine:
    """Owns at most one live gesture session and lets callers toggle it."""

    def __init__(self, cfg: Cfg, cracker: CrackerProto,
                 detector_factory: Optional[Callable[[], HandDetectorProto]] = None,
                 camera_factory: Optional[Callable[[], CameraProto]] = None,
                 frame_callback: Optional[FrameCallback] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.cfg = cfg
        self.cracker = cracker
        self.detector_factory = detector_factory or functools.partial(HandLandmarkerDetector.load, cfg.mediapipe)
        self.camera_factory = camera_factory or functools.partial(OpenCVCamera.open, cfg.camera)
        self.frame_callback = frame_callback
        self.clock = clock
        self.session: Optional[GestureSession] = None

    @property
    def enabled(self) -> bool:
        return self.session is not None and self.session.alive

    @property
    def state(self) -> GestureState:
        if self.session is None:
            return GestureState.DISABLED
        return self.session.state

    @property
    def error(self) -> Optional[str]:
        if self.session is None:
            return None
        return self.session.error

    def enable(self) -> GestureSession:
        """Start a fresh session unless one is already live."""
        if self.enabled:
            return self.session
        logger.info("👋 Gesture mode enabled")
        self.session = GestureSession(
            self.cfg, self.cracker,
            detector_factory=self.detector_factory,
            camera_factory=self.camera_factory,
            frame_callback=self.frame_callback,
            clock=self.clock,
        )
        self.session.start()
        return self.session

    def disable(self) -> None:
        if self.session is not None:
            self.session.disable()

    def set_enabled(self, enabled: bool) -> GestureState:
        if enabled:
            self.enable()
        else:
            self.disable()
        return self.state

    async def close(self) -> None:
        """Disable and wait for the session loop to exit."""
        if self.session is not None:
            self.session.disable()
            await self.session.wait()
