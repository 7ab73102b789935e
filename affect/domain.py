"""Domain data structures for captures, inference jobs and recorded expressions."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import NamedTuple


class EmotionScore(NamedTuple):
    """One named detector output with a score in [0, 1]."""

    label: str
    score: float


type EmotionVector = tuple[EmotionScore, ...]


class CaptureKey(NamedTuple):
    """Identifies one capture: interview round, question and its position."""

    round_id: str
    question_id: str
    ordinal: int

    @property
    def seed_text(self) -> str:
        return f"{self.round_id}|{self.question_id}|{self.ordinal}"


class JobState(str, Enum):
    SUBMITTED = "submitted"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in {JobState.COMPLETED, JobState.FAILED, JobState.TIMED_OUT}


class ExpressionSource(str, Enum):
    REAL = "real"
    SYNTHETIC = "synthetic"


@dataclass
class ImageArtifact:
    """Still image handed over by the capture trigger.

    The payload is owned by whoever submits it and is dropped via
    :meth:`discard` once the submission call returns.
    """

    payload: bytes
    mime_type: str = "image/jpeg"
    filename: str = "capture.jpg"
    discarded: bool = field(default=False, init=False)

    @classmethod
    def from_path(cls, path: str | Path) -> ImageArtifact:
        file_path = Path(path)
        mime_type, _ = mimetypes.guess_type(file_path.name)
        return cls(
            payload=file_path.read_bytes(),
            mime_type=mime_type or "image/jpeg",
            filename=file_path.name,
        )

    def discard(self) -> None:
        self.payload = b""
        self.discarded = True


@dataclass
class InferenceJob:
    """Remote job tracked by the client during a single resolution."""

    id: str
    submitted_at: float
    state: JobState = JobState.SUBMITTED
    poll_attempts: int = 0


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one capture through the remote service."""

    state: JobState
    vector: EmotionVector = ()
    job_id: str | None = None
    elapsed_seconds: float = 0.0

    @property
    def is_real(self) -> bool:
        return self.state is JobState.COMPLETED and len(self.vector) > 0


@dataclass(frozen=True)
class QuestionExpression:
    """Immutable affect record for one question.

    Attributes:
        question_id: Join key used everywhere downstream.
        round_id: Interview round the question belongs to.
        vector: Normalized emotion scores, never empty once stored.
        source: Whether the vector came from real inference or synthesis.
        captured_at: UTC time the capture was triggered.
        ordinal: Position of the question inside its round.
        sequence: Session-wide capture-trigger index used for ordering.
    """

    question_id: str
    round_id: str
    vector: EmotionVector
    source: ExpressionSource
    captured_at: datetime
    ordinal: int = 0
    sequence: int = 0


type RoundRecord = tuple[QuestionExpression, ...]
