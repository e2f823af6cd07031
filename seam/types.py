"""
Data Model for the Authentication Flow

Data classes shared by the capture source, detection adapter, face-count
policy, identity verifier and orchestrator.

    Image           - one encoded still frame, owned by one attempt
    FaceRegion      - a detected face's bounding box and confidence
    DetectionResult - ordered faces found in one image
    AttemptState    - orchestrator states
    AttemptSession  - the unit of work for one authentication try
    StateChange     - notification sent to the presentation layer
    AuthResult      - terminal projection of a session
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from seam.errors import ErrorKind


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_attempt_id() -> str:
    """
    Generate a unique attempt ID.

    Format: "att_" followed by 12 random hex characters.
    """
    return f"att_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Image:
    """
    An encoded still frame.

    Attributes:
        data: Encoded image bytes (JPEG unless stated otherwise).
        format: MIME type of ``data``.
        captured_at: When the frame was taken (UTC).
        width: Frame width in pixels, if known.
        height: Frame height in pixels, if known.
    """

    data: bytes
    format: str = "image/jpeg"
    captured_at: datetime = field(default_factory=utc_now)
    width: Optional[int] = None
    height: Optional[int] = None

    def __repr__(self) -> str:
        return (
            f"Image(format={self.format!r}, bytes={len(self.data)}, "
            f"size={self.width}x{self.height}, captured_at={self.captured_at.isoformat()})"
        )


@dataclass(frozen=True)
class FaceRegion:
    """
    A detected face.

    Attributes:
        bbox: Bounding box (x1, y1, x2, y2) in pixels.
              (x1, y1) is the top-left corner, (x2, y2) is the bottom-right.
        confidence: Detection confidence score (0.0 to 1.0).
        keypoints: Optional facial keypoints in pixel coordinates
                   (eyes, nose tip, mouth, ear tragions for BlazeFace).
    """

    bbox: Tuple[int, int, int, int]
    confidence: float
    keypoints: Tuple[Tuple[float, float], ...] = ()

    @property
    def width(self) -> int:
        return self.bbox[2] - self.bbox[0]

    @property
    def height(self) -> int:
        return self.bbox[3] - self.bbox[1]

    def to_dict(self) -> dict:
        return {
            "bbox": list(self.bbox),
            "confidence": self.confidence,
            "keypoints": [list(p) for p in self.keypoints],
        }


@dataclass(frozen=True)
class DetectionResult:
    """Faces found in one image, in engine order. Only the count matters to the policy."""

    faces: Tuple[FaceRegion, ...] = ()

    def __len__(self) -> int:
        return len(self.faces)

    def __iter__(self):
        return iter(self.faces)

    @property
    def count(self) -> int:
        return len(self.faces)


class AttemptState(str, Enum):
    """Orchestrator states. SUCCEEDED and FAILED are terminal."""

    IDLE = "idle"
    CAPTURING = "capturing"
    DETECTING = "detecting"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptState.SUCCEEDED, AttemptState.FAILED)

    @property
    def is_in_flight(self) -> bool:
        return self in (AttemptState.CAPTURING, AttemptState.DETECTING, AttemptState.VERIFYING)


@dataclass(frozen=True)
class StateChange:
    """Notification emitted on every orchestrator transition."""

    state: AttemptState
    message: Optional[str] = None
    identity: Optional[str] = None
    attempt_id: Optional[str] = None


@dataclass(frozen=True)
class AuthResult:
    """
    Terminal outcome of one attempt, handed to the presentation layer.

    On success ``identity`` is set. On failure ``reason`` is either a fault
    code ("capture_error", "detection_error", "identity_denied",
    "verification_error", "timeout") or, for a policy rejection, the exact
    policy message. ``message`` is always human readable.
    """

    success: bool
    attempt_id: str
    identity: Optional[str] = None
    reason: Optional[str] = None
    message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def succeeded(cls, attempt_id: str, identity: str) -> "AuthResult":
        return cls(success=True, attempt_id=attempt_id, identity=identity)

    @classmethod
    def failed(
        cls,
        attempt_id: str,
        reason: str,
        message: str,
        error_kind: ErrorKind,
    ) -> "AuthResult":
        return cls(
            success=False,
            attempt_id=attempt_id,
            reason=reason,
            message=message,
            error_kind=error_kind,
        )


@dataclass
class AttemptSession:
    """
    State for a single authentication attempt.

    Owned exclusively by the orchestrator. The captured image lives only as
    long as the session does.
    """

    id: str = field(default_factory=generate_attempt_id)
    state: AttemptState = AttemptState.IDLE
    captured_image: Optional[Image] = None
    detection_result: Optional[DetectionResult] = None
    error_message: Optional[str] = None
    error_reason: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    result_identity: Optional[str] = None
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    state_history: List[AttemptState] = field(default_factory=list)

    @property
    def face_count(self) -> Optional[int]:
        if self.detection_result is None:
            return None
        return len(self.detection_result)

    @property
    def processing_time_ms(self) -> Optional[int]:
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def to_result(self) -> Optional[AuthResult]:
        """Project a terminal session onto an AuthResult (None while in flight)."""
        if self.state == AttemptState.SUCCEEDED:
            return AuthResult.succeeded(self.id, self.result_identity)
        if self.state == AttemptState.FAILED:
            return AuthResult.failed(
                self.id,
                reason=self.error_reason,
                message=self.error_message,
                error_kind=self.error_kind,
            )
        return None

    def discard_image(self) -> None:
        """Drop the captured frame once the attempt is over."""
        self.captured_image = None
