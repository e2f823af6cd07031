"""
Shared services for the API layer.

The FastAPI lifespan builds one AppServices per process and stores it on
``app.state.services``. Route handlers build a fresh orchestrator per client
(request or WebSocket connection) on top of these shared services.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from fastapi import Request

from seam.attempt_log import AttemptLog
from seam.capture import CaptureSource
from seam.face_detector import EngineHandle, FaceDetectionAdapter
from seam.identity_verifier import IdentityVerifier
from seam.orchestrator import AuthenticationOrchestrator


@dataclass
class AppServices:
    """Process-wide collaborators shared by every attempt."""

    engine_handle: EngineHandle
    verifier: IdentityVerifier
    attempt_log: AttemptLog
    timeouts: Dict[str, Any] = field(default_factory=dict)

    def build_orchestrator(self, capture_source: CaptureSource) -> AuthenticationOrchestrator:
        return AuthenticationOrchestrator(
            capture_source=capture_source,
            detector=FaceDetectionAdapter(self.engine_handle),
            verifier=self.verifier,
            timeouts=self.timeouts,
            attempt_log=self.attempt_log,
        )


def get_services(request: Request) -> AppServices:
    return request.app.state.services
