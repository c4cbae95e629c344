from __future__ import annotations
import os
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum
from itertools import count
from typing import Callable

import cv2
import numpy as np

from .errors import DeviceUnavailable, PermissionDenied
from .logging import get_logger
from .profiler import get_profiler

logger = get_logger(__name__)


@dataclass(frozen=True)
class Frame:
    image: np.ndarray  # BGR uint8, HxWx3
    timestamp: float
    index: int

    @property
    def size(self) -> tuple[int, int]:
        h, w = self.image.shape[:2]
        return w, h


@dataclass
class SessionState:
    permission_granted: bool = False
    running: bool = False
    error: Exception | None = None

    @property
    def offline(self) -> bool:
        return not self.running


class CameraAuthorization(Enum):
    AUTHORIZED = "authorized"
    DENIED = "denied"
    NOT_DETERMINED = "not_determined"


def authorization_status(camera_index: int) -> CameraAuthorization:
    """Best-effort check that this process may open the camera."""
    if sys.platform.startswith("linux"):
        node = f"/dev/video{camera_index}"
        if os.path.exists(node) and not os.access(node, os.R_OK | os.W_OK):
            return CameraAuthorization.DENIED
    return CameraAuthorization.AUTHORIZED


def _deny_prompt() -> bool:
    return False


class FrameSource:
    """
    Continuous camera capture on a dedicated thread.

    Frames are delivered to a single `on_frame` callback in capture order. The
    source never raises out of `initialize()`: a denied or missing camera
    leaves `state.offline` set and the reason in `state.error`.
    """

    def __init__(
        self,
        camera_index: int,
        width: int,
        height: int,
        mirror: bool = True,
        authorizer: Callable[[int], CameraAuthorization] = authorization_status,
        prompt: Callable[[], bool] = _deny_prompt,
        capture_factory=cv2.VideoCapture,
        max_read_failures: int = 30,
        stop_timeout: float = 2.0,
    ):
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.mirror = mirror
        self.authorizer = authorizer
        self.prompt = prompt
        self.capture_factory = capture_factory
        self.max_read_failures = max_read_failures
        self.stop_timeout = stop_timeout
        self.profiler = get_profiler()

        self.state = SessionState()
        self._cap = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._lock = threading.Lock()
        # Guards the device hand-off when stop() gives up waiting on the thread
        self._release_lock = threading.Lock()
        self._exited = False
        self._handoff = False
        self._ids = count()

    def initialize(self, on_frame: Callable[[Frame], None]) -> SessionState:
        with self._lock:
            if self._thread is not None or self.state.error is not None:
                return self.state
            try:
                self._request_permission()
                self._open_device()
            except (PermissionDenied, DeviceUnavailable) as e:
                logger.error(f"Camera offline: {e}")
                self.state.error = e
                self.state.running = False
                return self.state

            self._stop.clear()
            self._exited = False
            self._handoff = False
            self._thread = threading.Thread(
                target=self._run, args=(on_frame, self._cap), name="capture", daemon=True
            )
            self.state.running = True
            self._thread.start()
            logger.info(
                f"Capture started on camera {self.camera_index} "
                f"({self.width}x{self.height}, mirror={self.mirror})"
            )
            return self.state

    def _request_permission(self):
        status = self.authorizer(self.camera_index)
        if status == CameraAuthorization.NOT_DETERMINED:
            granted = bool(self.prompt())
        else:
            granted = status == CameraAuthorization.AUTHORIZED
        self.state.permission_granted = granted
        if not granted:
            raise PermissionDenied(f"Access to camera {self.camera_index} was denied")

    def _open_device(self):
        cap = self.capture_factory(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(f"Cannot open camera {self.camera_index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        # Keep the driver queue short so frames stay fresh
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._cap = cap

    def _run(self, on_frame, cap):
        failures = 0
        while not self._stop.is_set():
            with self.profiler.record("capture"):
                ok, image = cap.read()
            if not ok or image is None:
                failures += 1
                if failures >= self.max_read_failures:
                    err = DeviceUnavailable(
                        f"Camera {self.camera_index} stopped delivering frames"
                    )
                    logger.error(str(err))
                    self.state.error = err
                    break
                time.sleep(0.01)
                continue
            failures = 0

            if self.mirror:
                image = cv2.flip(image, 1)
            frame = Frame(image=image, timestamp=time.monotonic(), index=next(self._ids))
            if self._stop.is_set():
                break
            on_frame(frame)
        self.state.running = False
        with self._release_lock:
            self._exited = True
            if self._handoff:
                cap.release()
                logger.info("Camera released after the last read returned")

    def stop(self):
        with self._lock:
            self._stop.set()
            thread, self._thread = self._thread, None
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=self.stop_timeout)
            cap, self._cap = self._cap, None
            if cap is not None:
                with self._release_lock:
                    if thread is not None and not self._exited:
                        self._handoff = True
                        logger.warning(
                            "Capture thread is still reading; "
                            "it will release the camera when the read returns"
                        )
                    else:
                        cap.release()
            if self.state.running:
                logger.info("Capture stopped")
            self.state.running = False
