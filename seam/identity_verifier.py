"""
Identity Verifier Module

This module defines the identity-verification seam: given the captured image
and the single face region that passed the face-count policy, decide whether
the person is an authorized identity.

    verify(image, region) -> VerificationOutcome   (may raise VerificationServiceError)

Implementations:
- PlaceholderVerifier: the reference behaviour, a fixed delay followed by
  unconditional success. It performs NO identity check and exists so the
  flow can be exercised end to end before a backend is available.
- HttpIdentityVerifier: forwards the capture to an authentication backend
  over HTTP. This is where a credential database or template matcher is
  plugged in.

Usage:
    from seam.identity_verifier import get_verifier

    verifier = get_verifier()   # picks the backend from config.yaml
    outcome = await verifier.verify(image, region)
"""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from seam.errors import VerificationServiceError
from seam.types import FaceRegion, Image

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationOutcome:
    """
    Answer from the identity verifier.

    Attributes:
        identified: True if the face belongs to an authorized identity.
        identity: Opaque authorized-user reference, set only when identified.
    """

    identified: bool
    identity: Optional[str] = None

    @classmethod
    def identified_as(cls, identity: str) -> "VerificationOutcome":
        return cls(identified=True, identity=identity)

    @classmethod
    def not_recognized(cls) -> "VerificationOutcome":
        return cls(identified=False)


class IdentityVerifier(ABC):
    """Abstract identity verifier."""

    @abstractmethod
    async def verify(self, image: Image, region: FaceRegion) -> VerificationOutcome:
        """
        Confirm or deny the identity of the single face in ``image``.

        Args:
            image: The captured frame.
            region: The face that passed the face-count policy.

        Returns:
            VerificationOutcome.

        Raises:
            VerificationServiceError: If no answer could be obtained.
        """

    async def aclose(self) -> None:
        """Release network resources."""


class PlaceholderVerifier(IdentityVerifier):
    """
    Stand-in verifier that accepts every capture after a fixed delay.

    This is a gap, not a design target: replace it with HttpIdentityVerifier
    (or another real backend) before production use.
    """

    def __init__(self, delay_sec: float = 1.5, identity: str = "1"):
        self.delay_sec = delay_sec
        self.identity = identity
        logger.warning(
            "PlaceholderVerifier in use: every single-face capture is accepted "
            "without an identity check"
        )

    async def verify(self, image: Image, region: FaceRegion) -> VerificationOutcome:
        if self.delay_sec > 0:
            await asyncio.sleep(self.delay_sec)
        return VerificationOutcome.identified_as(self.identity)


class HttpIdentityVerifier(IdentityVerifier):
    """
    Identity verification against a remote backend.

    Request (POST {base_url}/verify):
        {"image": "<base64>", "format": "image/jpeg",
         "region": {"bbox": [x1, y1, x2, y2], "confidence": 0.97, "keypoints": [...]}}

    Response handling:
        200 {"identified": true, "identity": "..."}  -> identified
        200 {"identified": false}                     -> not recognized
        401 / 403 / 404                               -> not recognized
        anything else, malformed JSON, network error  -> VerificationServiceError
    """

    DENIAL_STATUS_CODES = (401, 403, 404)

    def __init__(
        self,
        base_url: str,
        timeout_sec: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            base_url: Backend root URL, e.g. "http://auth-backend:9000".
            timeout_sec: Per-request timeout.
            client: Optional preconfigured AsyncClient (tests inject one
                    with a MockTransport). The verifier closes only clients
                    it created itself.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_sec)
        return self._client

    async def verify(self, image: Image, region: FaceRegion) -> VerificationOutcome:
        payload = {
            "image": base64.b64encode(image.data).decode("ascii"),
            "format": image.format,
            "region": region.to_dict(),
        }

        try:
            response = await self._get_client().post(f"{self.base_url}/verify", json=payload)
        except httpx.HTTPError as e:
            raise VerificationServiceError(f"Verification backend unreachable: {e}") from e

        if response.status_code in self.DENIAL_STATUS_CODES:
            logger.info(f"Verification backend denied identity (HTTP {response.status_code})")
            return VerificationOutcome.not_recognized()

        if response.status_code != 200:
            raise VerificationServiceError(
                f"Verification backend returned HTTP {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise VerificationServiceError(f"Malformed verification response: {e}") from e

        if not isinstance(body, dict) or "identified" not in body:
            raise VerificationServiceError("Verification response missing 'identified'")

        if not body["identified"]:
            return VerificationOutcome.not_recognized()

        identity = body.get("identity")
        if not identity:
            raise VerificationServiceError("Verification response missing 'identity'")

        return VerificationOutcome.identified_as(str(identity))

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def get_verifier(config: Optional[Dict[str, Any]] = None) -> IdentityVerifier:
    """
    Factory function to build the configured identity verifier.

    Args:
        config: Verifier config dict. If None, loads from config.yaml.
                "backend" selects "placeholder" (default) or "http".

    Returns:
        Configured IdentityVerifier instance.

    Raises:
        ValueError: If the backend name is unknown or "http" has no base_url.
    """
    if config is None:
        from seam.config import get_verifier_config

        config = get_verifier_config()

    backend = config.get("backend", "placeholder")

    if backend == "placeholder":
        return PlaceholderVerifier(
            delay_sec=config.get("placeholder_delay_sec", 1.5),
            identity=str(config.get("placeholder_identity", "1")),
        )

    if backend == "http":
        base_url = config.get("base_url")
        if not base_url:
            raise ValueError("verifier.base_url is required for the http backend")
        return HttpIdentityVerifier(base_url, timeout_sec=config.get("timeout_sec", 10.0))

    raise ValueError(f"Unknown verifier backend: {backend}")
