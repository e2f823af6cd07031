"""
Face-Count Policy

The security gate between detection and identity verification. An attempt
may only reach the identity verifier when exactly one face was detected.

    classify(detection_result) -> Proceed(region) | Reject(kind, message)

Only the number of faces matters; ordering, geometry and confidence are
ignored.
"""

from dataclasses import dataclass
from typing import Union

from seam.errors import ErrorKind
from seam.types import DetectionResult, FaceRegion

NO_FACE_MESSAGE = "No face detected. Please ensure you are clearly visible in the camera."
MULTIPLE_FACES_MESSAGE = "Multiple faces detected. Please ensure only one person is in frame."


@dataclass(frozen=True)
class Proceed:
    """Exactly one face: verification may run on this region."""

    region: FaceRegion


@dataclass(frozen=True)
class Reject:
    """Face count is not one: the attempt fails without verification."""

    kind: ErrorKind
    message: str


Decision = Union[Proceed, Reject]


def classify(detection_result: DetectionResult) -> Decision:
    count = len(detection_result)
    if count == 0:
        return Reject(ErrorKind.NO_FACE, NO_FACE_MESSAGE)
    if count == 1:
        return Proceed(detection_result.faces[0])
    return Reject(ErrorKind.MULTIPLE_FACES, MULTIPLE_FACES_MESSAGE)
