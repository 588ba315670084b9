"""Camera frame capture with at-most-one capture in flight.

`CaptureSource` wraps an OpenCV `VideoCapture`. Each capture reads the
current frame and JPEG-encodes it off the event loop. A capture requested
while another is still running is dropped rather than queued, so the
resulting frame stream is lossy and best-effort.
"""

from __future__ import annotations

import asyncio
import errno
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional, Union
from urllib.parse import urlparse

import cv2
import numpy as np

LOGGER = logging.getLogger(__name__)

DEFAULT_WIDTH = 1280
DEFAULT_HEIGHT = 720
SECURE_SCHEMES = ("https", "rtsps")

Device = Union[int, str]


class CameraErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    NO_DEVICE = "no_device"
    DEVICE_BUSY = "device_busy"
    UNSUPPORTED_CONSTRAINTS = "unsupported_constraints"
    INSECURE_CONTEXT = "insecure_context"
    UNKNOWN = "unknown"


CAMERA_ERROR_MESSAGES = {
    CameraErrorKind.PERMISSION_DENIED: "Camera access denied. Please allow camera permissions for this application.",
    CameraErrorKind.NO_DEVICE: "No camera found. Please make sure your device has a camera.",
    CameraErrorKind.DEVICE_BUSY: "Camera is already in use by another application.",
    CameraErrorKind.UNSUPPORTED_CONSTRAINTS: "The requested camera settings are not supported by your device.",
    CameraErrorKind.INSECURE_CONTEXT: "Camera access blocked due to security restrictions. The stream must be served over a secure transport.",
}


class CameraError(Exception):
    """Terminal camera failure; the only recovery is reopening a fresh source."""

    recovery_action = "reload"

    def __init__(self, kind: CameraErrorKind, message: Optional[str] = None) -> None:
        self.kind = kind
        self.message = message or CAMERA_ERROR_MESSAGES.get(kind, "Error accessing camera.")
        super().__init__(self.message)


def classify_camera_error(exc: BaseException) -> CameraError:
    """Map a low-level failure to a CameraError with a readable message."""
    if isinstance(exc, CameraError):
        return exc
    if isinstance(exc, PermissionError):
        return CameraError(CameraErrorKind.PERMISSION_DENIED)
    if isinstance(exc, FileNotFoundError):
        return CameraError(CameraErrorKind.NO_DEVICE)
    if isinstance(exc, OSError) and exc.errno == errno.EBUSY:
        return CameraError(CameraErrorKind.DEVICE_BUSY)
    return CameraError(CameraErrorKind.UNKNOWN, f"Error accessing camera: {exc}")


class CaptureState(str, Enum):
    UNOPENED = "unopened"
    IDLE = "idle"
    CAPTURING = "capturing"
    ERROR = "error"
    CLOSED = "closed"


@dataclass
class EncodedFrame:
    data: bytes
    captured_at: datetime
    width: int
    height: int


def encode_jpeg(frame: np.ndarray, quality: float) -> bytes:
    """JPEG-encode a BGR frame at `quality` in (0, 1]."""
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(round(quality * 100))])
    if not ok:
        raise ValueError("Failed to encode frame as JPEG")
    return buf.tobytes()


class CaptureSource:
    """Periodic JPEG frames from a camera.

    Args:
        device: Camera index or stream URL passed to the capture factory.
        quality: JPEG quality in (0, 1].
        fps: Capture ticks per second.
        width: Preferred frame width hint.
        height: Preferred frame height hint.
        require_resolution: Fail with UNSUPPORTED_CONSTRAINTS when the hint is not honored.
        secure_only: Refuse stream URLs that are not served over a secure transport.
        capture_factory: Builds the underlying capture object; `cv2.VideoCapture` by default.
    """

    def __init__(
        self,
        device: Device = 0,
        *,
        quality: float = 0.75,
        fps: float = 1.0,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        require_resolution: bool = False,
        secure_only: bool = False,
        capture_factory: Callable[[Device], Any] = cv2.VideoCapture,
    ) -> None:
        if not 0 < quality <= 1:
            raise ValueError("quality must be in (0, 1]")
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.device = device
        self.quality = quality
        self.fps = fps
        self.width = width
        self.height = height
        self.require_resolution = require_resolution
        self.secure_only = secure_only
        self._capture_factory = capture_factory
        self._cap: Any = None
        self.state = CaptureState.UNOPENED
        self.error: Optional[CameraError] = None

    def _open_blocking(self) -> Any:
        if isinstance(self.device, str) and self.secure_only:
            scheme = urlparse(self.device).scheme.lower()
            if scheme and scheme not in SECURE_SCHEMES:
                raise CameraError(CameraErrorKind.INSECURE_CONTEXT)

        cap = self._capture_factory(self.device)
        if cap is None or not cap.isOpened():
            raise CameraError(CameraErrorKind.NO_DEVICE)
        try:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            ok, frame = cap.read()
            if not ok or frame is None:
                raise CameraError(CameraErrorKind.DEVICE_BUSY)
            if self.require_resolution and frame.shape[:2] != (self.height, self.width):
                raise CameraError(CameraErrorKind.UNSUPPORTED_CONSTRAINTS)
        except BaseException:
            cap.release()
            raise
        return cap

    async def open(self) -> None:
        """Acquire the camera. Raises CameraError and enters the ERROR state on failure."""
        if self.state != CaptureState.UNOPENED:
            return
        LOGGER.info("Requesting camera %s", self.device)
        try:
            self._cap = await asyncio.to_thread(self._open_blocking)
        except Exception as exc:
            self.error = classify_camera_error(exc)
            self.state = CaptureState.ERROR
            LOGGER.error("Error accessing camera: %s", self.error.message)
            raise self.error from exc
        self.state = CaptureState.IDLE
        LOGGER.info("Camera %s ready", self.device)

    def _read_and_encode(self) -> Optional[EncodedFrame]:
        ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        height, width = frame.shape[:2]
        return EncodedFrame(
            data=encode_jpeg(frame, self.quality),
            captured_at=datetime.now(timezone.utc),
            width=width,
            height=height,
        )

    async def capture(self) -> Optional[EncodedFrame]:
        """Capture and encode one frame.

        Returns None without touching the camera when a capture is already
        in flight, when the source is not open, or when no frame was ready.
        """
        if self.state != CaptureState.IDLE:
            if self.state == CaptureState.CAPTURING:
                LOGGER.debug("Capture already in flight; dropping request")
            return None
        self.state = CaptureState.CAPTURING
        try:
            return await asyncio.to_thread(self._read_and_encode)
        except Exception as exc:
            LOGGER.error("Error capturing frame: %s", exc)
            return None
        finally:
            if self.state == CaptureState.CAPTURING:
                self.state = CaptureState.IDLE

    async def frames(self, is_active: Callable[[], bool] = lambda: True) -> AsyncIterator[EncodedFrame]:
        """Yield encoded frames on each tick while `is_active()` is true.

        Ticks that elapse while a capture is still running are dropped.
        """
        await self.open()
        loop = asyncio.get_running_loop()
        interval = 1.0 / self.fps
        next_tick = loop.time()
        while self.state in (CaptureState.IDLE, CaptureState.CAPTURING):
            delay = next_tick - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if is_active():
                frame = await self.capture()
                if frame is not None:
                    yield frame
            next_tick += interval
            behind = loop.time() - next_tick
            if behind > 0:
                dropped = int(behind // interval) + 1
                next_tick += dropped * interval
                LOGGER.debug("Dropped %d capture ticks", dropped)

    async def close(self) -> None:
        """Release the camera; safe to call more than once."""
        cap, self._cap = self._cap, None
        if self.state != CaptureState.ERROR:
            self.state = CaptureState.CLOSED
        if cap is not None:
            await asyncio.to_thread(cap.release)

    async def __aenter__(self) -> "CaptureSource":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
