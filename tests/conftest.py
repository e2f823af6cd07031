"""
Shared pytest fixtures and fake collaborators.

The fakes stand in for the camera, the detection engine and the identity
backend so the authentication flow can be tested without hardware, the
MediaPipe model or a network.
"""

import asyncio
import os
import sys
from typing import List, Optional

import cv2
import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from seam.capture import CaptureSource
from seam.errors import CaptureError
from seam.face_detector import FaceDetectionEngine
from seam.identity_verifier import IdentityVerifier, VerificationOutcome
from seam.types import DetectionResult, FaceRegion, Image


def make_region(x: int = 100, y: int = 80, size: int = 120, confidence: float = 0.95) -> FaceRegion:
    return FaceRegion(bbox=(x, y, x + size, y + size), confidence=confidence)


def make_detection(n_faces: int) -> DetectionResult:
    return DetectionResult(faces=tuple(make_region(x=10 + 150 * i) for i in range(n_faces)))


def make_jpeg(width: int = 64, height: int = 48) -> bytes:
    frame = np.full((height, width, 3), 127, dtype=np.uint8)
    success, buffer = cv2.imencode(".jpg", frame)
    assert success
    return buffer.tobytes()


class FakeCaptureSource(CaptureSource):
    """Returns a fixed image, or raises ``error``."""

    def __init__(self, image: Optional[Image] = None, error: Optional[Exception] = None):
        self.image = image or Image(data=b"fake-jpeg-bytes")
        self.error = error
        self.calls = 0

    def capture(self) -> Image:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.image


class FakeDetector:
    """Async stand-in for FaceDetectionAdapter."""

    def __init__(self, result: Optional[DetectionResult] = None, error: Optional[Exception] = None,
                 delay: float = 0.0):
        self.result = result if result is not None else make_detection(1)
        self.error = error
        self.delay = delay
        self.calls: List[Image] = []

    async def detect_faces(self, image: Image) -> DetectionResult:
        self.calls.append(image)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class FakeEngine(FaceDetectionEngine):
    """Engine returning ``n_faces`` regions for every frame."""

    def __init__(self, n_faces: int = 1):
        self.n_faces = n_faces
        self.frames_seen = 0
        self.closed = False

    def detect(self, frame: np.ndarray) -> List[FaceRegion]:
        self.frames_seen += 1
        return list(make_detection(self.n_faces).faces)

    def close(self) -> None:
        self.closed = True


class FakeVerifier(IdentityVerifier):
    """Records calls; answers with ``outcome`` or raises ``error``."""

    def __init__(self, outcome: Optional[VerificationOutcome] = None,
                 error: Optional[Exception] = None, delay: float = 0.0,
                 gate: Optional[asyncio.Event] = None):
        self.outcome = outcome or VerificationOutcome.identified_as("user-42")
        self.error = error
        self.delay = delay
        self.gate = gate
        self.calls = []
        self.closed = False

    async def verify(self, image: Image, region: FaceRegion) -> VerificationOutcome:
        self.calls.append((image, region))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.outcome

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def failing_capture():
    return FakeCaptureSource(error=CaptureError("Camera 0 is not available"))
