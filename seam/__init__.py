"""
Core Module for SEAM Face Authentication

This package contains the capture -> detect -> decide authentication flow.

Main components:
    - config: Configuration loading and management
    - capture: Still-frame capture sources (webcam, uploaded image)
    - face_detector: Face detection adapter over MediaPipe
    - face_policy: Face-count policy (exactly one face may proceed)
    - identity_verifier: Identity verification seam (placeholder, HTTP backend)
    - orchestrator: The attempt state machine
    - attempt_log: SQLite audit log of finished attempts

Usage:
    from seam import (
        AuthenticationOrchestrator,
        FaceDetectionAdapter,
        WebcamCaptureSource,
        create_engine_handle,
        get_verifier,
    )
"""

from seam.config import (
    get_config,
    get_section,
    get_face_detection_config,
    get_capture_config,
    get_verifier_config,
    get_timeouts_config,
    get_storage_config,
    get_api_config,
    get_server_config,
)

from seam.errors import (
    ErrorKind,
    SeamError,
    CaptureError,
    DetectionEngineError,
    VerificationServiceError,
)

from seam.types import (
    Image,
    FaceRegion,
    DetectionResult,
    AttemptState,
    AttemptSession,
    StateChange,
    AuthResult,
)

from seam.capture import CaptureSource, WebcamCaptureSource, StaticImageSource

from seam.face_detector import (
    FaceDetectionEngine,
    MediaPipeFaceEngine,
    EngineHandle,
    FaceDetectionAdapter,
    create_engine_handle,
)

from seam.face_policy import (
    Proceed,
    Reject,
    classify,
    NO_FACE_MESSAGE,
    MULTIPLE_FACES_MESSAGE,
)

from seam.identity_verifier import (
    IdentityVerifier,
    VerificationOutcome,
    PlaceholderVerifier,
    HttpIdentityVerifier,
    get_verifier,
)

from seam.orchestrator import AuthenticationOrchestrator

from seam.attempt_log import AttemptLog

__all__ = [
    # Configuration
    "get_config",
    "get_section",
    "get_face_detection_config",
    "get_capture_config",
    "get_verifier_config",
    "get_timeouts_config",
    "get_storage_config",
    "get_api_config",
    "get_server_config",
    # Errors
    "ErrorKind",
    "SeamError",
    "CaptureError",
    "DetectionEngineError",
    "VerificationServiceError",
    # Data model
    "Image",
    "FaceRegion",
    "DetectionResult",
    "AttemptState",
    "AttemptSession",
    "StateChange",
    "AuthResult",
    # Capture
    "CaptureSource",
    "WebcamCaptureSource",
    "StaticImageSource",
    # Face Detection
    "FaceDetectionEngine",
    "MediaPipeFaceEngine",
    "EngineHandle",
    "FaceDetectionAdapter",
    "create_engine_handle",
    # Policy
    "Proceed",
    "Reject",
    "classify",
    "NO_FACE_MESSAGE",
    "MULTIPLE_FACES_MESSAGE",
    # Identity Verification
    "IdentityVerifier",
    "VerificationOutcome",
    "PlaceholderVerifier",
    "HttpIdentityVerifier",
    "get_verifier",
    # Orchestration
    "AuthenticationOrchestrator",
    "AttemptLog",
]
