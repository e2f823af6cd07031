"""
Authentication Orchestrator

The state machine that runs one capture -> detect -> decide -> verify
attempt end to end:

    idle -> capturing -> detecting -> verifying -> succeeded
                  \\            \\            \\
                   +------------+------------+--> failed

A policy rejection (face count != 1) is not a state of its own; it goes
straight from ``detecting`` to ``failed`` with the policy message as the
reason. ``succeeded`` and ``failed`` are terminal; the next start_attempt()
resets to ``idle`` and begins a fresh session.

Every collaborator call is wrapped into a StepOutcome (a value, or an
ErrorKind plus message). Outcomes are turned into the single ``failed``
state here and nowhere else, so no collaborator fault ever escapes the
orchestrator.

All methods must be called from the event loop thread. Blocking work
(camera read, inference) runs in worker threads.

Usage:
    orchestrator = AuthenticationOrchestrator(source, adapter, verifier)
    orchestrator.subscribe(lambda change: print(change.state, change.message))
    result = await orchestrator.authenticate()
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from seam.attempt_log import AttemptLog
from seam.capture import CaptureSource
from seam.errors import (
    CaptureError,
    DetectionEngineError,
    ErrorKind,
    SeamError,
    VerificationServiceError,
)
from seam.face_detector import FaceDetectionAdapter
from seam.face_policy import Decision, Reject, classify
from seam.identity_verifier import IdentityVerifier
from seam.types import (
    AttemptSession,
    AttemptState,
    AuthResult,
    DetectionResult,
    StateChange,
    utc_now,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[StateChange], None]

# Human-readable prefix for each fault kind
FAULT_MESSAGES = {
    ErrorKind.CAPTURE_ERROR: "Failed to capture image",
    ErrorKind.DETECTION_ERROR: "Face detection failed",
    ErrorKind.VERIFICATION_ERROR: "Identity verification is unavailable",
    ErrorKind.TIMEOUT: "Authentication timed out",
}
IDENTITY_DENIED_MESSAGE = "Face not recognized. Access denied."

# Exception a collaborator fault is re-raised as, per stage
STAGE_ERRORS = {
    ErrorKind.CAPTURE_ERROR: CaptureError,
    ErrorKind.DETECTION_ERROR: DetectionEngineError,
    ErrorKind.VERIFICATION_ERROR: VerificationServiceError,
}


@dataclass(frozen=True)
class StepOutcome:
    """Result of one collaborator call: either ``value`` or an error kind and detail."""

    value: Any = None
    error_kind: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None


class AuthenticationOrchestrator:
    """
    Coordinates capture source, detection adapter, face-count policy and
    identity verifier for one client.

    At most one attempt is in flight: start_attempt() while capturing,
    detecting or verifying is ignored and touches no collaborator.

    Attributes:
        capture_source: Produces the still frame.
        detector: Async face detection adapter.
        verifier: Identity verifier, only reached on exactly one face.
        detection_timeout: Seconds before detection is abandoned (None = no limit).
        verification_timeout: Seconds before verification is abandoned (None = no limit).
        attempt_log: Optional audit log written when an attempt finishes.
    """

    def __init__(
        self,
        capture_source: CaptureSource,
        detector: FaceDetectionAdapter,
        verifier: IdentityVerifier,
        timeouts: Optional[Dict[str, Any]] = None,
        attempt_log: Optional[AttemptLog] = None,
        policy: Callable[[DetectionResult], Decision] = classify,
    ):
        timeouts = timeouts or {}
        self.capture_source = capture_source
        self.detector = detector
        self.verifier = verifier
        self.detection_timeout = timeouts.get("detection_sec") or None
        self.verification_timeout = timeouts.get("verification_sec") or None
        self.attempt_log = attempt_log
        self.policy = policy

        self._state = AttemptState.IDLE
        self._session: Optional[AttemptSession] = None
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[StateListener] = []

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def current_state(self) -> AttemptState:
        return self._state

    @property
    def session(self) -> Optional[AttemptSession]:
        """The current (or last finished) attempt, None when idle."""
        return self._session

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a state-change listener.

        Listeners are called synchronously on every transition. An exception
        raised by a listener is logged and does not affect the attempt.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start_attempt(self) -> Optional["asyncio.Task[AuthResult]"]:
        """
        Begin a new attempt without blocking the caller.

        The state moves to ``capturing`` before this returns, so a second
        call made right after is already ignored.

        Returns:
            The task running the attempt (its result is the AuthResult), or
            None if an attempt is already in flight.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        if self._state.is_in_flight:
            logger.info(
                f"start_attempt ignored: attempt {self._session.id} is {self._state.value}"
            )
            return None

        loop = asyncio.get_running_loop()

        if self._state.is_terminal:
            self._reset()

        session = AttemptSession()
        self._session = session
        logger.info(f"Starting authentication attempt {session.id}")
        self._transition(session, AttemptState.CAPTURING)

        self._task = loop.create_task(self._run(session))
        return self._task

    async def authenticate(self) -> Optional[AuthResult]:
        """
        Run one attempt to completion.

        Returns:
            The AuthResult, or None if another attempt was already in flight.
        """
        task = self.start_attempt()
        if task is None:
            return None
        return await task

    async def wait(self) -> Optional[AuthResult]:
        """Wait for the in-flight attempt (if any) and return the latest result."""
        if self._task is not None:
            await self._task
        return self._session.to_result() if self._session else None

    async def aclose(self) -> None:
        """
        Tear the orchestrator down.

        There is no cancellation: an in-flight attempt finishes first. The
        session is then discarded and the state returns to ``idle``.
        """
        await self.wait()
        if self._session is not None:
            self._reset()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _run(self, session: AttemptSession) -> AuthResult:
        try:
            return await self._run_steps(session)
        except Exception as e:
            # Last line of defence: classify by the stage we were in
            logger.exception(f"Unexpected error in attempt {session.id}")
            kind = {
                AttemptState.CAPTURING: ErrorKind.CAPTURE_ERROR,
                AttemptState.DETECTING: ErrorKind.DETECTION_ERROR,
            }.get(session.state, ErrorKind.VERIFICATION_ERROR)
            return await self._fail_with_fault(session, kind, str(e))

    async def _run_steps(self, session: AttemptSession) -> AuthResult:
        # 1. Capture
        outcome = await self._step(
            ErrorKind.CAPTURE_ERROR,
            asyncio.to_thread(self.capture_source.capture),
            timeout=None,
        )
        if not outcome.ok:
            return await self._fail_with_fault(session, outcome.error_kind, outcome.detail)
        session.captured_image = outcome.value
        self._transition(session, AttemptState.DETECTING)

        # 2. Detect
        outcome = await self._step(
            ErrorKind.DETECTION_ERROR,
            self.detector.detect_faces(session.captured_image),
            timeout=self.detection_timeout,
        )
        if not outcome.ok:
            return await self._fail_with_fault(session, outcome.error_kind, outcome.detail)
        session.detection_result = outcome.value
        logger.info(f"Attempt {session.id}: {len(session.detection_result)} face(s) detected")

        # 3. Face-count policy: verification is unreachable unless exactly one face
        decision = self.policy(session.detection_result)
        if isinstance(decision, Reject):
            logger.info(f"Attempt {session.id} rejected by policy: {decision.kind.value}")
            return await self._fail(session, decision.kind, reason=decision.message, message=decision.message)
        self._transition(session, AttemptState.VERIFYING)

        # 4. Verify identity
        outcome = await self._step(
            ErrorKind.VERIFICATION_ERROR,
            self.verifier.verify(session.captured_image, decision.region),
            timeout=self.verification_timeout,
        )
        if not outcome.ok:
            return await self._fail_with_fault(session, outcome.error_kind, outcome.detail)

        verification = outcome.value
        if not verification.identified:
            return await self._fail(
                session,
                ErrorKind.IDENTITY_DENIED,
                reason=ErrorKind.IDENTITY_DENIED.value,
                message=IDENTITY_DENIED_MESSAGE,
            )

        return await self._succeed(session, verification.identity)

    async def _step(
        self,
        kind: ErrorKind,
        awaitable: Awaitable[Any],
        timeout: Optional[float],
    ) -> StepOutcome:
        """
        Await one collaborator call and tag any fault with ``kind``.

        Only an expired ``timeout`` yields TIMEOUT. A TimeoutError raised by
        the collaborator itself (a camera read, an HTTP call) is a fault of
        its stage.
        """
        guarded = self._guard(kind, awaitable)
        try:
            if timeout:
                value = await asyncio.wait_for(guarded, timeout)
            else:
                value = await guarded
        except asyncio.TimeoutError:
            return StepOutcome(error_kind=ErrorKind.TIMEOUT, detail=f"no answer after {timeout}s")
        except SeamError as e:
            logger.warning(f"{type(e).__name__}: {e}")
            return StepOutcome(error_kind=kind, detail=str(e))
        except Exception as e:
            logger.exception(f"Unexpected {kind.value} fault")
            return StepOutcome(error_kind=kind, detail=f"{type(e).__name__}: {e}")
        return StepOutcome(value=value)

    @staticmethod
    async def _guard(kind: ErrorKind, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise STAGE_ERRORS[kind](f"{type(e).__name__}: {e}") from e

    async def _fail_with_fault(
        self, session: AttemptSession, kind: ErrorKind, detail: Optional[str]
    ) -> AuthResult:
        message = FAULT_MESSAGES[kind]
        if detail:
            message = f"{message}: {detail}"
        return await self._fail(session, kind, reason=kind.value, message=message)

    async def _fail(
        self, session: AttemptSession, kind: ErrorKind, reason: str, message: str
    ) -> AuthResult:
        session.error_kind = kind
        session.error_reason = reason
        session.error_message = message
        await self._finish(session, AttemptState.FAILED, message=message)
        logger.warning(f"Attempt {session.id} failed ({kind.value}): {message}")
        return session.to_result()

    async def _succeed(self, session: AttemptSession, identity: str) -> AuthResult:
        session.result_identity = identity
        await self._finish(session, AttemptState.SUCCEEDED, identity=identity)
        logger.info(f"Attempt {session.id} succeeded: identity={identity}")
        return session.to_result()

    async def _finish(
        self,
        session: AttemptSession,
        state: AttemptState,
        message: Optional[str] = None,
        identity: Optional[str] = None,
    ) -> None:
        session.finished_at = utc_now()
        session.discard_image()
        self._transition(session, state, message=message, identity=identity)

        if self.attempt_log is not None:
            try:
                # SQLite commit stays off the event loop
                await asyncio.to_thread(self.attempt_log.log_attempt, session)
            except Exception as e:
                logger.warning(f"Failed to log attempt {session.id}: {e}")

    def _reset(self) -> None:
        if self._session is not None:
            self._session.discard_image()
        self._session = None
        self._task = None
        self._state = AttemptState.IDLE
        self._emit(StateChange(state=AttemptState.IDLE))

    def _transition(
        self,
        session: AttemptSession,
        state: AttemptState,
        message: Optional[str] = None,
        identity: Optional[str] = None,
    ) -> None:
        self._state = state
        session.state = state
        session.state_history.append(state)
        logger.info(f"Attempt {session.id}: -> {state.value}")
        self._emit(StateChange(state=state, message=message, identity=identity, attempt_id=session.id))

    def _emit(self, change: StateChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception(f"State listener failed on {change.state.value}")
