"""
Authentication API Routes

This module exposes the authentication flow to presentation clients:
- POST /authenticate: run one attempt on an uploaded still, return the result
- WS /ws/authenticate: start attempts and stream every state change

Both build a fresh orchestrator per client on the shared services, so the
detection engine is loaded once per process while each client keeps its own
at-most-one-attempt guarantee.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from pydantic import ValidationError

from seam.capture import StaticImageSource
from seam.errors import CaptureError
from seam.types import StateChange
from seam_api.dependencies import AppServices, get_services
from seam_api.schemas import (
    AuthRequest,
    AuthResponse,
    ErrorMessage,
    StartAttemptMessage,
    StateChangedMessage,
)

# Setup logging
logger = logging.getLogger(__name__)

# Create routers
router = APIRouter(tags=["authentication"])
ws_router = APIRouter(prefix="/ws", tags=["authentication"])


@router.post("/authenticate", response_model=AuthResponse)
async def authenticate(request: AuthRequest, services: AppServices = Depends(get_services)):
    """
    Authenticate the person in an uploaded still.

    The frame goes through the same capture -> detect -> policy -> verify
    flow as a live camera capture. Failures (no face, several faces,
    unknown identity, backend faults) are reported in the body with
    ``success=false``; only an undecodable payload is an HTTP error.

    Raises:
        400: If ``frame`` is not valid base64.
    """
    start_time = time.time()

    try:
        source = StaticImageSource.from_base64(request.frame)
    except CaptureError as e:
        raise HTTPException(status_code=400, detail=str(e))

    orchestrator = services.build_orchestrator(source)
    states: List[str] = []
    orchestrator.subscribe(lambda change: states.append(change.state.value))

    result = await orchestrator.authenticate()
    session = orchestrator.session

    return AuthResponse(
        success=result.success,
        attempt_id=result.attempt_id,
        identity=result.identity,
        reason=result.reason,
        message=result.message,
        error_kind=result.error_kind.value if result.error_kind else None,
        face_count=session.face_count,
        states=states,
        processing_time_sec=time.time() - start_time,
    )


async def _forward_messages(websocket: WebSocket, outbox: "asyncio.Queue[Optional[Dict[str, Any]]]") -> None:
    """Send queued messages in order until a None sentinel; the only task that writes to the socket."""
    while True:
        message = await outbox.get()
        if message is None:
            return
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.info(f"Stopped forwarding state changes: {e}")
            return


@ws_router.websocket("/authenticate")
async def websocket_authenticate(websocket: WebSocket):
    """
    WebSocket endpoint for interactive authentication.

    Protocol:
        Client -> Server:
            {"type": "start_attempt", "data": "<base64 JPEG>"}

        Server -> Client, one per transition:
            {"type": "state_changed", "state": "capturing" | "detecting" |
             "verifying" | "succeeded" | "failed" | "idle",
             "message": str | null, "identity": str | null, "attempt_id": str | null}

        Server -> Client, on a rejected message:
            {"type": "error", "error": str, "code": "ATTEMPT_IN_PROGRESS" |
             "INVALID_IMAGE" |
             "UNKNOWN_MESSAGE" | "UNEXPECTED_ERROR"}

    A start_attempt received while an attempt is in flight is answered with
    ATTEMPT_IN_PROGRESS and does not touch the running attempt. Anything
    else that goes wrong is reported as UNEXPECTED_ERROR and the socket is
    closed.
    """
    await websocket.accept()

    services: AppServices = websocket.app.state.services
    source = StaticImageSource(b"")
    orchestrator = services.build_orchestrator(source)

    outbox: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue()

    def on_state_change(change: StateChange) -> None:
        outbox.put_nowait(StateChangedMessage.from_change(change).model_dump())

    def send_error(error: str, code: str) -> None:
        outbox.put_nowait(ErrorMessage(error=error, code=code).model_dump())

    orchestrator.subscribe(on_state_change)
    sender = asyncio.create_task(_forward_messages(websocket, outbox))

    try:
        while True:
            message = await websocket.receive_json()

            if not isinstance(message, dict) or message.get("type") != "start_attempt":
                message_type = message.get("type") if isinstance(message, dict) else type(message).__name__
                logger.warning(f"Unknown message type: {message_type}")
                send_error(f"Unknown message type: {message_type}", "UNKNOWN_MESSAGE")
                continue

            if orchestrator.current_state().is_in_flight:
                send_error("An authentication attempt is already in progress", "ATTEMPT_IN_PROGRESS")
                continue

            try:
                request = StartAttemptMessage.model_validate(message)
            except ValidationError:
                send_error("start_attempt requires a base64 string in 'data'", "INVALID_IMAGE")
                continue

            try:
                frame = StaticImageSource.from_base64(request.data)
            except CaptureError as e:
                send_error(str(e), "INVALID_IMAGE")
                continue

            source.data = frame.data
            source.format = frame.format
            orchestrator.start_attempt()

    except WebSocketDisconnect:
        logger.info("Client disconnected from authentication socket")

    except Exception as e:
        logger.error(f"Unexpected error on authentication socket: {e}")
        send_error(f"Unexpected error: {e}", "UNEXPECTED_ERROR")

    finally:
        # No cancellation: let an in-flight attempt finish before tearing down
        await orchestrator.aclose()
        outbox.put_nowait(None)
        await sender
        if websocket.client_state != WebSocketState.DISCONNECTED:
            try:
                await websocket.close()
            except RuntimeError as e:
                logger.debug(f"Socket already closed: {e}")
