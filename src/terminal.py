"""
Examiner gate terminal.

Runs the optical capture loop against a local camera (or takes a matric
number with --manual), submits the capture to the clearance API and asks
the examiner to commit Admit or Deny after an Admit preview.

Usage:
    python -m src.terminal --api http://localhost:8000 --user examiner1 --hall "Hall A"
    python -m src.terminal --manual CSC/2021/001 ...
"""

import argparse
import asyncio
import getpass
import logging
import sys
from typing import Any

import httpx

from src.adapters.camera.opencv import OpenCVFrameSource, OpenCVQRDecoder
from src.config.settings import get_settings
from src.domain.models import DenialReason
from src.domain.presentation import OpticalScanner

logger = logging.getLogger(__name__)

_DENIAL_CHOICES = [reason.value for reason in DenialReason]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Exam venue gate terminal")
    parser.add_argument("--api", default="http://localhost:8000", help="Clearance API base URL")
    parser.add_argument("--user", required=True, help="Examiner username")
    parser.add_argument("--hall", required=True, help="Exam hall this terminal guards")
    parser.add_argument("--camera", default=0, type=int, help="Camera device index")
    parser.add_argument("--manual", metavar="MATRIC", help="Look up a matric number instead of scanning")
    parser.add_argument("--timeout", default=10.0, type=float, help="HTTP timeout in seconds")
    return parser


def print_verdict(verdict: dict[str, Any]) -> None:
    decision = verdict["decision"].upper()
    print(f"\n{decision}: {verdict['message']}")
    profile = verdict.get("profile")
    if profile:
        print(f"  {profile['name']} ({profile['matric_number']})")
        print(f"  {profile['department']}, {profile['faculty']}, level {profile['level']}")
        print(f"  Photo: {profile['photo_url']}")
    if verdict.get("consumed_at"):
        print(f"  Used at: {verdict['consumed_at']}")


def prompt_decision() -> tuple[str, str | None]:
    """Ask the examiner to confirm the preview. Returns (action, reason)."""
    while True:
        answer = input("Admit after inspection? [a]dmit / [d]eny: ").strip().lower()
        if answer in ("a", "admit"):
            return "admit", None
        if answer in ("d", "deny"):
            break
    while True:
        reason = input(f"Reason ({', '.join(_DENIAL_CHOICES)}): ").strip().lower()
        if reason in _DENIAL_CHOICES:
            return "deny", reason


async def capture(camera: int, tick_seconds: float) -> str:
    scanner = OpticalScanner(OpenCVFrameSource(camera), OpenCVQRDecoder(), tick_seconds)
    print("Present the pass to the camera (Ctrl+C to cancel)...")
    try:
        return await scanner.result()
    finally:
        await scanner.stop()


def _post(client: httpx.Client, path: str, body: dict[str, Any]) -> dict[str, Any]:
    response = client.post(path, json=body)
    response.raise_for_status()
    return response.json()


def run(args: argparse.Namespace) -> int:
    password = getpass.getpass(f"Password for {args.user}: ")
    settings = get_settings()

    with httpx.Client(base_url=args.api, auth=(args.user, password), timeout=args.timeout) as client:
        try:
            if args.manual:
                verdict = _post(client, "/v1/gate/lookup", {"matric_number": args.manual})
            else:
                raw = asyncio.run(capture(args.camera, settings.scan_tick_seconds))
                verdict = _post(client, "/v1/gate/scan", {"qr_data": raw})

            print_verdict(verdict)
            if verdict["decision"] != "admit":
                return 1

            action, reason = prompt_decision()
            if action == "admit":
                body = {
                    "student_id": verdict["student_id"],
                    "token_id": verdict["token_id"],
                    "exam_hall": args.hall,
                }
                final = _post(client, "/v1/gate/admit", body)
            else:
                body = {"student_id": verdict["student_id"], "reason": reason, "exam_hall": args.hall}
                final = _post(client, "/v1/gate/deny", body)
        except httpx.HTTPStatusError as e:
            logger.error("API rejected request: %s %s", e.response.status_code, e.response.text)
            return 2
        except httpx.HTTPError as e:
            logger.error("API unreachable: %s", e)
            return 2

    print_verdict(final)
    return 0 if final["decision"] == "admit" else 1


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except KeyboardInterrupt:
        print("\nCancelled")
        return 130


if __name__ == "__main__":
    sys.exit(main())
