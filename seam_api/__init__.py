"""
API Layer for SEAM Face Authentication

This package provides the FastAPI-based transport between presentation
clients and the authentication flow:
- REST endpoint for single-shot authentication of an uploaded still
- WebSocket endpoint streaming attempt state changes
- REST endpoints for the attempt audit log and health checks
"""
