"""
Face Detection Module

This module wraps the face-detection engine behind a stable interface:

    detect_faces(image) -> DetectionResult

It is split in three layers:
- FaceDetectionEngine: the engine contract (decoded BGR frame in, face
  regions out). MediaPipeFaceEngine implements it with the MediaPipe
  Face Detector (BlazeFace, Tasks API).
- EngineHandle: owns the process-wide engine instance. The engine is slow
  to build (model download + load), so it is created lazily on first use,
  exactly once, and reused by every attempt until close().
- FaceDetectionAdapter: the async adapter the orchestrator talks to. It
  decodes the image, runs inference in a worker thread, and turns every
  engine failure into DetectionEngineError.

Note: MediaPipe 0.10.x uses the Tasks API (mp.tasks.vision.FaceDetector)
instead of the legacy Solutions API (mp.solutions.face_detection).

Usage:
    from seam.face_detector import EngineHandle, FaceDetectionAdapter, MediaPipeFaceEngine

    handle = EngineHandle(lambda: MediaPipeFaceEngine(config))
    adapter = FaceDetectionAdapter(handle)
    result = await adapter.detect_faces(image)
    handle.close()
"""

import asyncio
import logging
import threading
import urllib.request
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import cv2
import numpy as np

from seam.capture import decode_image
from seam.errors import DetectionEngineError
from seam.types import DetectionResult, FaceRegion, Image

logger = logging.getLogger(__name__)

# BlazeFace short-range model, tuned for faces within ~2m of a webcam
MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_detector/"
    "blaze_face_short_range/float16/1/blaze_face_short_range.tflite"
)
MODEL_FILENAME = "blaze_face_short_range.tflite"


def get_model_path(config: Dict[str, Any]) -> str:
    """
    Get the path to the MediaPipe face detector model file.
    Downloads the model if it doesn't exist locally.

    Args:
        config: Face detection config; honours "model_url" and "models_dir".

    Returns:
        Path to the model file.
    """
    models_dir = config.get("models_dir")
    if models_dir is None:
        from seam.config import get_storage_config

        models_dir = get_storage_config()["models_dir"]

    model_dir = Path(models_dir)
    model_dir.mkdir(parents=True, exist_ok=True)
    model_path = model_dir / MODEL_FILENAME

    if not model_path.exists():
        url = config.get("model_url", MODEL_URL)
        logger.info(f"Downloading MediaPipe face detector model from {url}")
        urllib.request.urlretrieve(url, str(model_path))
        logger.info(f"Model saved to {model_path}")

    return str(model_path)


class FaceDetectionEngine(ABC):
    """
    Abstract face-detection engine.

    Engines are stateless between calls once constructed: detect() may be
    called from any worker thread.
    """

    @abstractmethod
    def detect(self, frame: np.ndarray) -> List[FaceRegion]:
        """
        Detect faces in a decoded image.

        Args:
            frame: BGR image, shape (H, W, 3).

        Returns:
            One FaceRegion per detected face, in engine order.
        """

    def close(self) -> None:
        """Release engine resources."""


class MediaPipeFaceEngine(FaceDetectionEngine):
    """
    Face detection using MediaPipe Face Detector (BlazeFace).

    Attributes:
        config: Configuration dictionary with detection parameters.
        detector: MediaPipe FaceDetector task.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Build the MediaPipe detector. This loads the model and can take a
        few seconds (plus a download on first run).

        Args:
            config: Configuration dictionary containing:
                - min_detection_confidence: Minimum confidence for a face (0-1)
                - min_suppression_threshold: Non-max suppression IoU (0-1)
                - model_url / models_dir: Model location overrides
        """
        import mediapipe as mp
        from mediapipe.tasks import python as mp_tasks
        from mediapipe.tasks.python import vision

        self.config = config
        self._mp = mp

        base_options = mp_tasks.BaseOptions(model_asset_path=get_model_path(config))
        options = vision.FaceDetectorOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.IMAGE,
            min_detection_confidence=config.get("min_detection_confidence", 0.5),
            min_suppression_threshold=config.get("min_suppression_threshold", 0.3),
        )
        self.detector = vision.FaceDetector.create_from_options(options)

    def detect(self, frame: np.ndarray) -> List[FaceRegion]:
        h, w = frame.shape[:2]

        # MediaPipe expects RGB, OpenCV gives BGR
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        mp_image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb_frame)

        results = self.detector.detect(mp_image)

        regions = []
        for detection in results.detections or []:
            box = detection.bounding_box
            bbox = clamp_bbox(
                box.origin_x,
                box.origin_y,
                box.origin_x + box.width,
                box.origin_y + box.height,
                w,
                h,
            )
            score = detection.categories[0].score if detection.categories else 0.0
            keypoints = tuple(
                (float(kp.x * w), float(kp.y * h)) for kp in (detection.keypoints or [])
            )
            regions.append(FaceRegion(bbox=bbox, confidence=float(score), keypoints=keypoints))

        return regions

    def close(self) -> None:
        if getattr(self, "detector", None) is not None:
            self.detector.close()
            self.detector = None


def clamp_bbox(x1: float, y1: float, x2: float, y2: float, width: int, height: int):
    """Clamp a bounding box to the image and convert it to integer pixels."""
    return (
        max(0, int(x1)),
        max(0, int(y1)),
        min(width, int(x2)),
        min(height, int(y2)),
    )


class EngineHandle:
    """
    Process-scoped owner of the face-detection engine.

    The engine is built by ``factory`` on the first get() call. Concurrent
    first callers are serialized by a lock so the factory runs exactly once;
    later calls return the cached engine without locking. A factory failure
    is not cached, so the next attempt tries again.

    The handle is created by the application entry point (API lifespan, CLI)
    and passed to every FaceDetectionAdapter.
    """

    def __init__(self, factory: Callable[[], FaceDetectionEngine]):
        self._factory = factory
        self._engine: Optional[FaceDetectionEngine] = None
        self._lock = threading.Lock()
        self._init_count = 0

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def init_count(self) -> int:
        """How many times the factory has been invoked."""
        return self._init_count

    def get(self) -> FaceDetectionEngine:
        """
        Return the engine, building it on first use.

        Raises:
            DetectionEngineError: If the engine cannot be built.
        """
        engine = self._engine
        if engine is not None:
            return engine

        with self._lock:
            if self._engine is None:
                self._init_count += 1
                logger.info("Initializing face detection engine...")
                try:
                    self._engine = self._factory()
                except Exception as e:
                    logger.error(f"Face detection engine failed to initialize: {e}")
                    raise DetectionEngineError(f"Engine initialization failed: {e}") from e
                logger.info("Face detection engine ready")
            return self._engine

    def close(self) -> None:
        """Tear the engine down. Called once at process shutdown."""
        with self._lock:
            if self._engine is not None:
                self._engine.close()
                self._engine = None
                logger.info("Face detection engine closed")


def create_engine_handle(config: Optional[Dict[str, Any]] = None) -> EngineHandle:
    """
    Create an EngineHandle for the MediaPipe engine.

    Args:
        config: Face detection config. If None, loads from config.yaml.

    Returns:
        An uninitialized handle; the model loads on first detection.
    """
    if config is None:
        from seam.config import get_face_detection_config

        config = get_face_detection_config()

    return EngineHandle(lambda: MediaPipeFaceEngine(config))


class FaceDetectionAdapter:
    """Async detect_faces() over a shared EngineHandle."""

    def __init__(self, engine_handle: EngineHandle):
        self.engine_handle = engine_handle

    async def detect_faces(self, image: Image) -> DetectionResult:
        """
        Detect faces in a captured image.

        Inference (and the one-time engine load) runs in a worker thread so
        the event loop stays responsive.

        Raises:
            DetectionEngineError: If the image cannot be decoded or the
                engine fails to initialize or run.
        """
        return await asyncio.to_thread(self._detect_sync, image)

    def _detect_sync(self, image: Image) -> DetectionResult:
        frame = decode_image(image)
        if frame is None:
            raise DetectionEngineError(f"Could not decode {image.format} image")

        engine = self.engine_handle.get()
        try:
            faces = engine.detect(frame)
        except Exception as e:
            raise DetectionEngineError(f"Face detection failed: {e}") from e

        logger.debug(f"Detected {len(faces)} face(s)")
        return DetectionResult(faces=tuple(faces))
