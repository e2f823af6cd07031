"""
Error Taxonomy for the Authentication Flow

Collaborators (capture source, detection adapter, identity verifier) raise
the exceptions defined here. The orchestrator is the only place that
catches them; it converts each one into a terminal ``failed`` state and
tags the attempt with an ErrorKind.

Policy rejections and identity denials are not exceptions: they are
ordinary outcomes (``Reject`` and ``VerificationOutcome.not_recognized``),
but they still carry an ErrorKind once the attempt fails.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Why an attempt ended in ``failed``."""

    CAPTURE_ERROR = "capture_error"
    DETECTION_ERROR = "detection_error"
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    IDENTITY_DENIED = "identity_denied"
    VERIFICATION_ERROR = "verification_error"
    TIMEOUT = "timeout"

    @property
    def is_policy_rejection(self) -> bool:
        return self in (ErrorKind.NO_FACE, ErrorKind.MULTIPLE_FACES)


class SeamError(Exception):
    """Base class for collaborator faults."""

    kind: ErrorKind


class CaptureError(SeamError):
    """No frame could be produced (device not ready, permission denied, empty frame)."""

    kind = ErrorKind.CAPTURE_ERROR


class DetectionEngineError(SeamError):
    """The face-detection engine failed to initialize or to run inference."""

    kind = ErrorKind.DETECTION_ERROR


class VerificationServiceError(SeamError):
    """The identity-verification backend could not produce an answer."""

    kind = ErrorKind.VERIFICATION_ERROR
