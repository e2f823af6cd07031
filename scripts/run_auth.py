"""
Command-Line Authentication

Runs the capture -> detect -> verify flow from a terminal, printing every
state change. Exits 0 when the last attempt succeeds and 1 otherwise.

Usage:
    # Authenticate from the default webcam
    python scripts/run_auth.py

    # Authenticate a still image instead of the camera
    python scripts/run_auth.py --image face.jpg

    # Use a real verification backend
    python scripts/run_auth.py --verifier http --verifier-url http://localhost:9000

    # Three consecutive attempts (the detection model loads only once)
    python scripts/run_auth.py --attempts 3
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(PROJECT_ROOT))

from seam.attempt_log import AttemptLog  # noqa: E402
from seam.capture import StaticImageSource, WebcamCaptureSource  # noqa: E402
from seam.config import (  # noqa: E402
    get_capture_config,
    get_config,
    get_face_detection_config,
    get_storage_config,
    get_timeouts_config,
    get_verifier_config,
)
from seam.errors import CaptureError  # noqa: E402
from seam.face_detector import FaceDetectionAdapter, create_engine_handle  # noqa: E402
from seam.identity_verifier import get_verifier  # noqa: E402
from seam.orchestrator import AuthenticationOrchestrator  # noqa: E402
from seam.types import AttemptState, StateChange  # noqa: E402

logger = logging.getLogger("run_auth")


def print_banner(text: str, char: str = "="):
    line = char * 60
    print(f"\n{line}")
    print(text)
    print(line)


def print_state_change(change: StateChange) -> None:
    if change.state == AttemptState.SUCCEEDED:
        print(f"  [{change.state.value}] identity={change.identity}")
    elif change.state == AttemptState.FAILED:
        print(f"  [{change.state.value}] {change.message}")
    else:
        print(f"  [{change.state.value}]")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SEAM face authentication")
    parser.add_argument("--image", type=str, default=None,
                        help="Authenticate this image file instead of the webcam")
    parser.add_argument("--device", type=int, default=None,
                        help="Camera device index (overrides config)")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to an alternative config.yaml")
    parser.add_argument("--verifier", choices=["placeholder", "http"], default=None,
                        help="Identity verifier backend (overrides config)")
    parser.add_argument("--verifier-url", type=str, default=None,
                        help="Base URL of the verification backend")
    parser.add_argument("--attempts", type=int, default=1,
                        help="Number of consecutive attempts")
    parser.add_argument("--no-log", action="store_true",
                        help="Do not record attempts in the audit log")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    # Relative storage paths resolve against the directory of --config
    get_config(reload=args.config is not None, config_path=args.config)

    verifier_config = dict(get_verifier_config())
    if args.verifier:
        verifier_config["backend"] = args.verifier
    if args.verifier_url:
        verifier_config["base_url"] = args.verifier_url

    # Fails fast on a bad backend setting before any device or file is opened
    verifier = get_verifier(verifier_config)

    capture_config = dict(get_capture_config())
    if args.device is not None:
        capture_config["device_id"] = args.device

    if args.image:
        source = StaticImageSource.from_file(args.image)
    else:
        source = WebcamCaptureSource(capture_config)

    attempt_log = None
    if not args.no_log:
        attempt_log = AttemptLog(get_storage_config()["db_path"])

    engine_handle = create_engine_handle(get_face_detection_config())

    orchestrator = AuthenticationOrchestrator(
        capture_source=source,
        detector=FaceDetectionAdapter(engine_handle),
        verifier=verifier,
        timeouts=get_timeouts_config(),
        attempt_log=attempt_log,
    )
    orchestrator.subscribe(print_state_change)

    result = None
    try:
        for i in range(args.attempts):
            print_banner(f"Attempt {i + 1}/{args.attempts}", "-")
            result = await orchestrator.authenticate()
    finally:
        await orchestrator.aclose()
        await verifier.aclose()
        engine_handle.close()
        source.close()
        if attempt_log is not None:
            attempt_log.close()

    print_banner("AUTHENTICATED" if result and result.success else "REJECTED")
    return 0 if result and result.success else 1


def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    print_banner("SEAM - Secure Encryption and Authentication Model")

    try:
        return asyncio.run(run(args))
    except (CaptureError, ValueError, FileNotFoundError) as e:
        print(f"\nERROR: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
