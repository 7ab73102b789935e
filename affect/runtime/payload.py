"""Defensive parsing of inference job responses."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from affect.domain import EmotionScore, EmotionVector, JobState
from affect.taxonomy import clamp_score


class SchemaError(ValueError):
    """Raised when a payload layer is missing or has an unexpected shape."""


class NoFaceDetected(Exception):
    """Signals a face prediction without usable emotions; not a failure."""


_STATUS_MAP: Mapping[str, JobState] = {
    "COMPLETED": JobState.COMPLETED,
    "FAILED": JobState.FAILED,
}


def parse_job_id(payload: Any) -> str | None:
    """Returns the job id from a submission response, accepting ``job_id`` or ``id``."""
    if not isinstance(payload, Mapping):
        return None
    job_id = payload.get("job_id") or payload.get("id")
    return str(job_id) if job_id else None


def parse_job_status(payload: Any) -> JobState:
    """Maps a status response onto a job state.

    The status may live under ``state.status`` or directly under ``status``
    and is matched case-insensitively. Anything that is neither completed nor
    failed counts as still running.
    """
    status: Any = None
    if isinstance(payload, Mapping):
        state = payload.get("state")
        if isinstance(state, Mapping):
            status = state.get("status")
        if not status:
            status = payload.get("status")
    if not isinstance(status, str):
        return JobState.RUNNING
    return _STATUS_MAP.get(status.strip().upper(), JobState.RUNNING)


def _layer(container: Any, key: str, path: str) -> Any:
    if not isinstance(container, Mapping) or key not in container:
        raise SchemaError(f"Missing {path!r} in predictions payload.")
    return container[key]


def _first(items: Any, path: str) -> Any:
    if not isinstance(items, Sequence) or isinstance(items, (str, bytes)):
        raise SchemaError(f"Expected a list at {path!r}.")
    if not items:
        raise SchemaError(f"Empty list at {path!r}.")
    return items[0]


def _emotion_scores(raw_emotions: Sequence[Any]) -> EmotionVector:
    scores: list[EmotionScore] = []
    for entry in raw_emotions:
        if not isinstance(entry, Mapping):
            continue
        name = entry.get("name")
        score = entry.get("score")
        if not isinstance(name, str) or not name.strip():
            continue
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        if not math.isfinite(float(score)):
            continue
        scores.append(EmotionScore(name.strip(), clamp_score(score)))
    return tuple(scores)


def _face_predictions(file_prediction: Any) -> Any:
    if isinstance(file_prediction, Mapping) and "models" not in file_prediction:
        if "face_predictions" in file_prediction:
            return file_prediction["face_predictions"]
    models = _layer(file_prediction, "models", "models")
    face = _layer(models, "face", "models.face")
    groups = _layer(face, "grouped_predictions", "models.face.grouped_predictions")
    group = _first(groups, "models.face.grouped_predictions")
    return _layer(group, "predictions", "grouped_predictions.predictions")


def extract_emotions(payload: Any) -> EmotionVector:
    """Unwraps a predictions payload down to its first face's emotion list.

    Path: top-level array → ``results`` → ``predictions`` (per file) →
    ``models`` → ``face`` → ``grouped_predictions`` → ``predictions`` (per
    face) → ``emotions``. A file prediction may instead carry
    ``face_predictions`` directly.

    Raises:
        SchemaError: When any layer down to the first face prediction is
            missing, malformed or empty; the result may simply not be
            ready yet.
        NoFaceDetected: When the face prediction exists but holds no usable
            emotions.
    """
    source = _first(payload, "[]")
    results = _layer(source, "results", "results")
    file_prediction = _first(_layer(results, "predictions", "results.predictions"), "results.predictions")
    face_prediction = _first(_face_predictions(file_prediction), "face predictions")
    raw_emotions = _layer(face_prediction, "emotions", "predictions.emotions")
    if not isinstance(raw_emotions, Sequence) or isinstance(raw_emotions, (str, bytes)):
        raise SchemaError("Expected a list at 'predictions.emotions'.")
    vector = _emotion_scores(raw_emotions)
    if not vector:
        raise NoFaceDetected("Face prediction carried no usable emotions.")
    return vector
