"""
OpenCV camera adapters - Implement FrameSource and BarcodeDecoder protocols.

OpenCVFrameSource wraps cv2.VideoCapture for the optical capture loop;
OpenCVQRDecoder makes one cv2.QRCodeDetector attempt per frame.
"""

import logging
from typing import Any

import cv2

logger = logging.getLogger(__name__)


class OpenCVFrameSource:
    """
    Implements FrameSource protocol via cv2.VideoCapture.

    release() is idempotent so the capture loop can call it on every
    exit path without tracking whether open() succeeded.
    """

    def __init__(self, device: int | str = 0) -> None:
        self._device = device
        self._capture: cv2.VideoCapture | None = None

    def open(self) -> None:
        capture = cv2.VideoCapture(self._device)
        if not capture.isOpened():
            capture.release()
            raise RuntimeError(f"Camera could not be opened: {self._device}")
        self._capture = capture
        logger.info("Camera %s opened", self._device)

    def read(self) -> Any | None:
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        return frame if ok else None

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera %s released", self._device)


class OpenCVQRDecoder:
    """Implements BarcodeDecoder protocol via cv2.QRCodeDetector."""

    def __init__(self) -> None:
        self._detector = cv2.QRCodeDetector()

    def decode(self, frame: Any) -> str | None:
        data, _points, _ = self._detector.detectAndDecode(frame)
        return data or None
