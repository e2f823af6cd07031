"""
API Routes Package

This package contains route handlers organized by feature:
- authentication.py: REST and WebSocket endpoints for authentication attempts
- attempts.py: REST endpoints over the attempt audit log
"""

from seam_api.routes.authentication import router as authentication_router
from seam_api.routes.authentication import ws_router as authentication_ws_router
from seam_api.routes.attempts import router as attempts_router

__all__ = [
    "authentication_router",
    "authentication_ws_router",
    "attempts_router",
]
