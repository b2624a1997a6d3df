"""
Presentation reader - Normalizes gate capture paths into candidates.

Two capture paths feed the verification engine:

- Optical: OpticalScanner samples frames on a cooperative asyncio loop,
  one decode attempt per tick, and stops at the first decoded string.
  The string is opened with the TokenCodec.
- Manual: the examiner types a matric number, which is looked up
  case-insensitively. No match yields identity_not_found.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from .clearance import utc_now
from .exceptions import SignatureError
from .models import CaptureSource, Candidate, ClearancePayload, ReasonCode, Student, Verdict
from .ports import BarcodeDecoder, FrameSource, StudentRepository, TokenCodec

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 1 / 30


class OpticalScanner:
    """
    Cancellable single-shot capture loop.

    start() schedules the loop as a task on the running event loop;
    stop() cancels it. The frame source is opened inside the task and
    released on every exit path: decode, stop(), cancellation or error.
    open() and read() are blocking camera calls and run in a worker thread.
    There is no built-in timeout.
    """

    def __init__(
        self,
        source: FrameSource,
        decoder: BarcodeDecoder,
        tick_seconds: float = DEFAULT_TICK_SECONDS,
    ) -> None:
        self._source = source
        self._decoder = decoder
        self._tick_seconds = tick_seconds
        self._task: asyncio.Task[str] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[str]:
        """Start capturing. Returns the running task if already started."""
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def stop(self) -> None:
        """Cancel capture and wait for the frame source to be released."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def result(self) -> str:
        """Wait for the first decoded string."""
        return await self.start()

    async def _run(self) -> str:
        try:
            await asyncio.to_thread(self._source.open)
            while True:
                frame = await asyncio.to_thread(self._source.read)
                if frame is not None:
                    decoded = self._decoder.decode(frame)
                    if decoded:
                        logger.info("Barcode decoded; capture stopped")
                        return decoded
                await asyncio.sleep(self._tick_seconds)
        finally:
            self._source.release()


@dataclass
class PresentationReader:
    """Builds verification candidates from optical strings or matric numbers."""

    codec: TokenCodec
    students: StudentRepository
    issuer: str
    clock: Callable[[], datetime] = field(default=utc_now)

    def read_optical(self, raw: str) -> Candidate:
        """
        Open a scanned string.

        A string that cannot be opened becomes an unauthenticated
        candidate; the engine reports it as invalid_signature.
        """
        try:
            payload = self.codec.decode(raw)
        except SignatureError:
            logger.info("Scanned pass could not be opened")
            return Candidate(source=CaptureSource.OPTICAL, payload=None, authenticated=False)
        return Candidate(source=CaptureSource.OPTICAL, payload=payload, authenticated=True)

    async def read_from_scanner(self, scanner: OpticalScanner) -> Candidate:
        """Run the optical capture loop to its first decode and open the result."""
        raw = await scanner.result()
        return self.read_optical(raw)

    def read_manual(self, matric_number: str) -> Candidate | Verdict:
        """
        Look up a student by matric number.

        The lookup is trusted (server side), so the candidate carries the
        student's current token. A student without a token fails the
        token rule like any superseded pass.
        """
        matric = matric_number.strip()
        student = self.students.find_by_matric(matric) if matric else None
        if student is None:
            return Verdict.deny(ReasonCode.IDENTITY_NOT_FOUND)
        return self.read_trusted(student, student.clearance_token or "")

    def read_trusted(self, student: Student, token_id: str) -> Candidate:
        """Build a server-side candidate for a known student and a presented token."""
        payload = ClearancePayload(
            student_id=student.id,
            token_id=token_id,
            issuer=self.issuer,
            issued_at=self.clock(),
            name=student.name,
            matric_number=student.matric_number,
            department=student.department,
            faculty=student.faculty,
            photo_url=student.photo_url,
        )
        return Candidate(source=CaptureSource.MANUAL, payload=payload, authenticated=True)
