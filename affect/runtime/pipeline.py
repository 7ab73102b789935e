"""Per-session capture pipeline routing captures to real or synthetic vectors."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable
from datetime import UTC, datetime
from types import TracebackType

from affect.domain import (
    CaptureKey,
    EmotionVector,
    ExpressionSource,
    ImageArtifact,
    QuestionExpression,
)
from affect.report.aggregator import Aggregator, SessionAggregate
from affect.runtime.client import InferenceJobClient
from affect.runtime.fallback import FallbackSynthesizer
from affect.runtime.phase_timing import (
    PHASE_CAPTURE,
    log_phase_completed,
    log_phase_failed,
    log_phase_started,
)
from affect.store import ExpressionStore
from affect.taxonomy import normalize_vector
from affect.utils.logger import get_logger

type Synthesizer = Callable[[CaptureKey], EmotionVector]

logger = get_logger(__name__)


class AffectPipeline:
    """Session-scoped context turning captures into stored expressions.

    At most one capture per question id is ever resolved; later triggers for
    a claimed question are dropped. Every resolved capture is written to the
    store exactly once, with a synthetic vector whenever real inference did
    not yield one.
    """

    def __init__(
        self,
        *,
        client: InferenceJobClient | None = None,
        store: ExpressionStore | None = None,
        synthesizer: Synthesizer | None = None,
        deadline_seconds: float | None = None,
    ) -> None:
        self.client = client
        self.store = store if store is not None else ExpressionStore()
        self.synthesizer = synthesizer or FallbackSynthesizer()
        self.deadline_seconds = deadline_seconds
        self._claimed: set[str] = set()
        self._sequence = itertools.count()
        self._tasks: dict[str, asyncio.Task[QuestionExpression | None]] = {}
        self._closed = False

    async def __aenter__(self) -> AffectPipeline:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _claim(self, key: CaptureKey) -> int | None:
        """Reserves the question and returns its trigger sequence number."""
        if self._closed:
            logger.warning("Capture for question %s ignored: session closed.", key.question_id)
            return None
        if key.question_id in self._claimed or key.question_id in self.store:
            logger.warning(
                "Duplicate capture for question %s dropped (round=%s, ordinal=%s).",
                key.question_id,
                key.round_id,
                key.ordinal,
            )
            return None
        self._claimed.add(key.question_id)
        return next(self._sequence)

    async def _resolve_vector(
        self,
        key: CaptureKey,
        image: ImageArtifact,
        deadline_seconds: float | None,
    ) -> tuple[EmotionVector, ExpressionSource]:
        if self.client is None:
            image.discard()
            logger.info("No inference client; synthesizing question %s.", key.question_id)
        else:
            resolution = await self.client.resolve(
                image,
                question_id=key.question_id,
                deadline_seconds=deadline_seconds,
            )
            if resolution.is_real:
                return normalize_vector(resolution.vector), ExpressionSource.REAL
        return normalize_vector(self.synthesizer(key)), ExpressionSource.SYNTHETIC

    async def _capture_claimed(
        self,
        key: CaptureKey,
        image: ImageArtifact,
        deadline_seconds: float | None,
        sequence: int,
        captured_at: datetime,
    ) -> QuestionExpression:
        started_at = log_phase_started(
            logger, phase_name=PHASE_CAPTURE, question_id=key.question_id
        )
        deadline = self.deadline_seconds if deadline_seconds is None else deadline_seconds
        try:
            vector, source = await self._resolve_vector(key, image, deadline)
        except asyncio.CancelledError:
            log_phase_failed(
                logger,
                phase_name=PHASE_CAPTURE,
                question_id=key.question_id,
                started_at=started_at,
            )
            raise
        expression = QuestionExpression(
            question_id=key.question_id,
            round_id=key.round_id,
            vector=vector,
            source=source,
            captured_at=captured_at,
            ordinal=key.ordinal,
            sequence=sequence,
        )
        self.store.put(expression)
        log_phase_completed(
            logger,
            phase_name=PHASE_CAPTURE,
            question_id=key.question_id,
            started_at=started_at,
        )
        return expression

    async def capture(
        self,
        key: CaptureKey,
        image: ImageArtifact,
        *,
        deadline_seconds: float | None = None,
    ) -> QuestionExpression | None:
        """Resolves and stores one capture.

        Returns:
            The stored expression, or ``None`` when the question was already
            claimed or the session is closed.

        Raises:
            DuplicateKeyError: When the store already holds the question
                through another writer.
        """
        sequence = self._claim(key)
        if sequence is None:
            return None
        return await self._capture_claimed(
            key, image, deadline_seconds, sequence, datetime.now(UTC)
        )

    def trigger(
        self,
        key: CaptureKey,
        image: ImageArtifact,
        *,
        deadline_seconds: float | None = None,
    ) -> asyncio.Task[QuestionExpression | None] | None:
        """Schedules a capture without waiting for it; ``None`` when dropped."""
        sequence = self._claim(key)
        if sequence is None:
            return None
        coroutine = self._capture_claimed(
            key, image, deadline_seconds, sequence, datetime.now(UTC)
        )
        try:
            task = asyncio.create_task(coroutine, name=f"affect-capture-{key.question_id}")
        except RuntimeError:
            # No running loop; release the claim.
            coroutine.close()
            self._claimed.discard(key.question_id)
            raise
        self._tasks[key.question_id] = task
        task.add_done_callback(lambda _task: self._tasks.pop(key.question_id, None))
        return task

    @property
    def outstanding(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Waits until every scheduled capture has been stored."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()))

    async def close(self) -> None:
        """Ends the session, abandoning captures that are still outstanding."""
        self._closed = True
        pending = list(self._tasks.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("Abandoned %s outstanding captures at session end.", len(pending))
        self._tasks.clear()

    def report(self) -> SessionAggregate:
        return Aggregator(self.store).session()
