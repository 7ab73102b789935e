"""Phase names plus timing and logging helpers for capture resolution."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from time import perf_counter
from typing import Final

PHASE_CAPTURE: Final[str] = "capture"
PHASE_POLLING: Final[str] = "polling"
PHASE_RESULT_FETCH: Final[str] = "result_fetch"

PHASE_LABELS: Final[Mapping[str, str]] = {
    PHASE_CAPTURE: "Capture",
    PHASE_POLLING: "Job polling",
    PHASE_RESULT_FETCH: "Result fetch",
}


def phase_label(phase_name: str) -> str:
    """Returns a human-readable label for one phase identifier."""
    label = PHASE_LABELS.get(phase_name)
    if label is not None:
        return label
    fallback = phase_name.strip().replace("_", " ")
    if not fallback:
        return "Pipeline step"
    return fallback[0].upper() + fallback[1:]


def format_duration(duration_seconds: float) -> str:
    """Formats duration in a human-readable style for logs."""
    total_milliseconds = max(0, int(round(duration_seconds * 1000.0)))
    if total_milliseconds <= 0:
        return "<1ms"

    total_seconds, milliseconds = divmod(total_milliseconds, 1000)
    minutes, seconds = divmod(total_seconds, 60)
    parts: list[str] = []
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 or minutes > 0:
        parts.append(f"{seconds}s")
    if milliseconds > 0:
        parts.append(f"{milliseconds}ms")
    return ", ".join(parts)


def log_phase_started(
    logger: logging.Logger,
    *,
    phase_name: str,
    question_id: str,
) -> float:
    """Logs phase start and returns monotonic start timestamp."""
    logger.debug("%s started (question=%s).", phase_label(phase_name), question_id)
    return perf_counter()


def log_phase_completed(
    logger: logging.Logger,
    *,
    phase_name: str,
    question_id: str,
    started_at: float,
    level: int = logging.INFO,
) -> float:
    """Logs phase completion and returns elapsed duration in seconds."""
    elapsed_seconds = perf_counter() - started_at
    logger.log(
        level,
        "%s completed in %s (question=%s).",
        phase_label(phase_name),
        format_duration(elapsed_seconds),
        question_id,
    )
    return elapsed_seconds


def log_phase_failed(
    logger: logging.Logger,
    *,
    phase_name: str,
    question_id: str,
    started_at: float,
    level: int = logging.WARNING,
) -> float:
    """Logs phase failure duration and returns elapsed duration in seconds."""
    elapsed_seconds = perf_counter() - started_at
    logger.log(
        level,
        "%s failed after %s (question=%s).",
        phase_label(phase_name),
        format_duration(elapsed_seconds),
        question_id,
    )
    return elapsed_seconds
