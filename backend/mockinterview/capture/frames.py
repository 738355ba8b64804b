from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import os
import sys
from threading import Lock
from typing import Protocol

from core.config import CAMERA_INDEX
from mockinterview.errors import MediaDeviceMissing, MediaPermissionDenied, MediaUnavailable

logger = logging.getLogger("mockinterview.capture.frames")

JPEG_QUALITY = 80


class FrameSource(Protocol):
    @property
    def live(self) -> bool: ...

    async def grab_jpeg(self) -> bytes | None: ...


class CameraFrameSource:
    """Local webcam read through OpenCV."""

    def __init__(self, camera_index: int = CAMERA_INDEX, jpeg_quality: int = JPEG_QUALITY):
        self.camera_index = int(camera_index)
        self.jpeg_quality = int(jpeg_quality)
        self._cap = None
        self._lock = Lock()

    @property
    def live(self) -> bool:
        return self._cap is not None

    def _check_device_node(self) -> None:
        if not sys.platform.startswith("linux"):
            return
        path = f"/dev/video{self.camera_index}"
        if not os.path.exists(path):
            raise MediaDeviceMissing(f"camera device {path} not found")
        if not os.access(path, os.R_OK):
            raise MediaPermissionDenied(f"camera device {path} is not readable")

    def open(self) -> None:
        if self._cap is not None:
            return
        self._check_device_node()

        import cv2

        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            if sys.platform.startswith("linux"):
                raise MediaUnavailable(f"could not open camera index {self.camera_index}")
            raise MediaDeviceMissing(f"could not open camera index {self.camera_index}")
        self._cap = cap
        logger.info("camera opened | index=%s", self.camera_index)

    def close(self) -> None:
        with self._lock:
            cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()
            logger.info("camera released | index=%s", self.camera_index)

    def _read_jpeg(self) -> bytes | None:
        import cv2

        with self._lock:
            if self._cap is None:
                return None
            ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        if not ok:
            return None
        return buffer.tobytes()

    async def grab_jpeg(self) -> bytes | None:
        return await asyncio.to_thread(self._read_jpeg)


def decode_frame(data: str) -> bytes:
    """Accepts raw base64 or a data URL (data:image/jpeg;base64,...)."""
    text = str(data or "").strip()
    if text.startswith("data:"):
        _, _, text = text.partition(",")
    if not text:
        raise ValueError("empty frame")
    try:
        image = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("frame is not valid base64") from exc
    if not image:
        raise ValueError("empty frame")
    return image


class UploadedFrameSource:
    """Holds the most recent frame pushed by a browser client."""

    def __init__(self):
        self._lock = Lock()
        self._frame: bytes | None = None
        self.enabled = True

    @property
    def live(self) -> bool:
        return self.enabled

    def push(self, data: str | bytes) -> int:
        image = bytes(data) if isinstance(data, (bytes, bytearray)) else decode_frame(data)
        with self._lock:
            self._frame = image
        return len(image)

    def clear(self) -> None:
        with self._lock:
            self._frame = None

    def close(self) -> None:
        self.enabled = False
        self.clear()

    async def grab_jpeg(self) -> bytes | None:
        with self._lock:
            return self._frame
