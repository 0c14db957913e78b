"""
Webcam still-frame capture.

The camera is only held open for the duration of a ``with`` block; the
capture device is released on every exit path.

Classes:
    WebcamCapture: Context manager around an OpenCV VideoCapture

Functions:
    capture_still_frame: Open the default camera, grab one frame, close it
"""

import logging
from typing import Any, Optional

import cv2

from DB_Libs.errors import ResourceUnavailableError
from DB_Libs.pillow_compat import Image

logger = logging.getLogger(__name__)

CAPTURE_WIDTH = 640
CAPTURE_HEIGHT = 480
# Frames read and dropped after opening while the sensor settles exposure.
WARMUP_FRAMES = 3

ACCESS_ERROR_MESSAGE = "Could not access webcam. Please check permissions."
NOT_READY_MESSAGE = "Camera not ready"


class WebcamCapture:
    """
    Example:
        >>> with WebcamCapture() as camera:
        ...     photo = camera.capture_frame()
    """

    def __init__(self, device_index: int = 0, width: int = CAPTURE_WIDTH, height: int = CAPTURE_HEIGHT):
        self.device_index = device_index
        self.width = width
        self.height = height
        self._capture: Optional[Any] = None

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> None:
        """
        Raises:
            ResourceUnavailableError: If the camera cannot be opened
        """
        if self._capture is not None:
            return
        capture = cv2.VideoCapture(self.device_index)
        if not capture.isOpened():
            capture.release()
            logger.error(f"Could not open camera device {self.device_index}")
            raise ResourceUnavailableError(ACCESS_ERROR_MESSAGE)
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture
        logger.debug(f"Opened camera device {self.device_index}")

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.debug(f"Released camera device {self.device_index}")

    def __enter__(self) -> "WebcamCapture":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def capture_frame(self) -> Any:
        """
        Grab the current frame as an RGB Pillow image.

        Raises:
            ResourceUnavailableError: If the camera is closed or returns no frame
        """
        if self._capture is None:
            raise ResourceUnavailableError(NOT_READY_MESSAGE)

        for _ in range(WARMUP_FRAMES):
            self._capture.read()
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise ResourceUnavailableError(NOT_READY_MESSAGE)

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        return Image.fromarray(rgb)


def capture_still_frame(device_index: int = 0) -> Any:
    """Open the camera, capture one RGB frame and release the camera."""
    with WebcamCapture(device_index) as camera:
        return camera.capture_frame()
