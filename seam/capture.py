"""
Capture Source Module

Produces the single still frame an authentication attempt works on.

Two sources are provided:
- WebcamCaptureSource: grabs a frame from an OpenCV camera device and
  encodes it as JPEG (the same format the browser client screenshots in).
- StaticImageSource: wraps an already-encoded frame, e.g. one uploaded to
  the API or read from disk.

Both raise CaptureError when no frame is available. The orchestrator calls
capture() exactly once per attempt and never retries.

Usage:
    from seam.capture import WebcamCaptureSource

    with WebcamCaptureSource({"device_id": 0}) as source:
        image = source.capture()
"""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

import cv2
import numpy as np

from seam.errors import CaptureError
from seam.types import Image

logger = logging.getLogger(__name__)


def encode_frame(frame: np.ndarray, jpeg_quality: int = 90) -> bytes:
    """
    Encode a BGR frame to JPEG bytes.

    Raises:
        CaptureError: If OpenCV cannot encode the frame.
    """
    encode_param = [int(cv2.IMWRITE_JPEG_QUALITY), int(jpeg_quality)]
    success, buffer = cv2.imencode(".jpg", frame, encode_param)
    if not success:
        raise CaptureError("Failed to encode frame")
    return buffer.tobytes()


def decode_image(image: Image) -> Optional[np.ndarray]:
    """
    Decode an Image into a BGR numpy array.

    Returns:
        BGR array of shape (H, W, 3), or None if the bytes are not a
        decodable image.
    """
    if not image.data:
        return None
    np_arr = np.frombuffer(image.data, np.uint8)
    return cv2.imdecode(np_arr, cv2.IMREAD_COLOR)


class CaptureSource(ABC):
    """Produces one encoded still image on demand."""

    @abstractmethod
    def capture(self) -> Image:
        """
        Capture a single frame.

        Raises:
            CaptureError: If no frame is available.
        """

    def is_ready(self) -> bool:
        return True

    def close(self) -> None:
        """Release any device held by the source."""


class WebcamCaptureSource(CaptureSource):
    """
    Captures stills from a webcam through cv2.VideoCapture.

    The device is opened lazily on the first capture and kept open until
    close(), so consecutive attempts do not pay the camera start-up cost.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Args:
            config: Capture configuration with optional keys
                - device_id: OpenCV camera index (default 0)
                - width, height: Requested resolution (default 640x480)
                - jpeg_quality: JPEG quality 0-100 (default 90)
        """
        config = config or {}
        self.device_id = config.get("device_id", 0)
        self.width = config.get("width", 640)
        self.height = config.get("height", 480)
        self.jpeg_quality = config.get("jpeg_quality", 90)
        self._cap: Optional[cv2.VideoCapture] = None

    def open(self) -> None:
        """
        Open the webcam device.

        Raises:
            CaptureError: If the device cannot be opened.
        """
        if self._cap is not None:
            self.close()

        cap = cv2.VideoCapture(self.device_id)
        if not cap.isOpened():
            cap.release()
            raise CaptureError(f"Camera {self.device_id} is not available")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap = cap
        logger.info(f"Opened camera {self.device_id} at {self.width}x{self.height}")

    def is_ready(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def capture(self) -> Image:
        if not self.is_ready():
            self.open()

        ret, frame = self._cap.read()
        if not ret or frame is None:
            raise CaptureError(f"Camera {self.device_id} returned no frame")

        h, w = frame.shape[:2]
        return Image(
            data=encode_frame(frame, self.jpeg_quality),
            format="image/jpeg",
            width=w,
            height=h,
        )

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info(f"Camera {self.device_id} closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class StaticImageSource(CaptureSource):
    """
    Serves a frame that was captured elsewhere.

    Used by the API (the browser sends its screenshot) and by the CLI
    when authenticating against an image file.
    """

    def __init__(self, data: bytes, format: str = "image/jpeg"):
        self.data = data
        self.format = format

    @classmethod
    def from_base64(cls, data_b64: str, format: str = "image/jpeg") -> "StaticImageSource":
        """
        Build a source from a base64 string, accepting data-URL prefixes
        such as ``data:image/jpeg;base64,``.

        Raises:
            CaptureError: If the string is not valid base64.
        """
        if data_b64.startswith("data:") and "," in data_b64:
            header, data_b64 = data_b64.split(",", 1)
            format = header[len("data:"):].split(";")[0] or format
        try:
            data = base64.b64decode(data_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CaptureError(f"Invalid base64 image data: {e}") from e
        return cls(data, format=format)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticImageSource":
        """
        Raises:
            CaptureError: If the file cannot be read.
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise CaptureError(f"Failed to read image {path}: {e}") from e
        fmt = "image/png" if path.suffix.lower() == ".png" else "image/jpeg"
        return cls(data, format=fmt)

    def is_ready(self) -> bool:
        return bool(self.data)

    def capture(self) -> Image:
        if not self.data:
            raise CaptureError("No image data available")
        return Image(data=self.data, format=self.format)
