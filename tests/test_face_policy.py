"""
Tests for the Face-Count Policy

Only the number of detected faces decides:
- 0 faces  -> Reject with the no-face message
- 1 face   -> Proceed with that region
- 2+ faces -> Reject with the multiple-faces message

Run with: pytest tests/test_face_policy.py -v
"""

import pytest

from conftest import make_detection, make_region
from seam.errors import ErrorKind
from seam.face_policy import (
    MULTIPLE_FACES_MESSAGE,
    NO_FACE_MESSAGE,
    Proceed,
    Reject,
    classify,
)
from seam.types import DetectionResult


class TestClassify:
    """Tests for classify()."""

    def test_no_face_rejects(self):
        decision = classify(DetectionResult())

        assert isinstance(decision, Reject)
        assert decision.kind == ErrorKind.NO_FACE
        assert decision.message == (
            "No face detected. Please ensure you are clearly visible in the camera."
        )

    def test_single_face_proceeds_with_region(self):
        region = make_region(confidence=0.42)
        decision = classify(DetectionResult(faces=(region,)))

        assert isinstance(decision, Proceed)
        assert decision.region is region

    @pytest.mark.parametrize("n_faces", [2, 3, 7])
    def test_multiple_faces_reject(self, n_faces):
        decision = classify(make_detection(n_faces))

        assert isinstance(decision, Reject)
        assert decision.kind == ErrorKind.MULTIPLE_FACES
        assert decision.message == (
            "Multiple faces detected. Please ensure only one person is in frame."
        )

    def test_confidence_and_geometry_are_ignored(self):
        """A tiny, low-confidence face still proceeds: only the count matters."""
        region = make_region(size=1, confidence=0.01)
        assert isinstance(classify(DetectionResult(faces=(region,))), Proceed)

    def test_deterministic(self):
        detection = make_detection(2)
        assert classify(detection) == classify(detection)

    def test_message_constants(self):
        assert NO_FACE_MESSAGE.startswith("No face detected.")
        assert MULTIPLE_FACES_MESSAGE.startswith("Multiple faces detected.")
        assert ErrorKind.NO_FACE.is_policy_rejection
        assert ErrorKind.MULTIPLE_FACES.is_policy_rejection
        assert not ErrorKind.CAPTURE_ERROR.is_policy_rejection
