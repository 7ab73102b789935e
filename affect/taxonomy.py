"""Canonical affect taxonomy and upstream label normalization."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from affect.domain import EmotionScore, EmotionVector

CONFIDENCE = "Confidence"
JOY = "Joy"
CALMNESS = "Calmness"
NERVOUS = "Nervous"
EXCITEMENT = "Excitement"

CANONICAL_CATEGORIES: tuple[str, ...] = (
    CONFIDENCE,
    JOY,
    CALMNESS,
    NERVOUS,
    EXCITEMENT,
)

SYNONYMS: Mapping[str, str] = MappingProxyType(
    {
        "neutral": CALMNESS,
        "anxiety": NERVOUS,
        "fear": NERVOUS,
        "doubt": NERVOUS,
        "happiness": JOY,
        "satisfaction": JOY,
        "excitement": EXCITEMENT,
        "surprise": EXCITEMENT,
        "confidence": CONFIDENCE,
        "pride": CONFIDENCE,
    }
)


def clamp_score(value: float) -> float:
    """Clamps a score to [0, 1]; non-finite values collapse to 0."""
    value = float(value)
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, value))


def normalize_label(
    raw_label: str,
    mapping: Mapping[str, str] | None = None,
) -> str:
    """Maps a raw upstream label into the canonical taxonomy.

    Args:
        raw_label: Label string as reported by the inference service.
        mapping: Synonym table keyed by lower-cased label. Defaults to
            :data:`SYNONYMS`.

    Returns:
        The canonical category for known synonyms, otherwise the raw label
        unchanged. The taxonomy is open, so unknown labels are kept.
    """
    table = SYNONYMS if mapping is None else mapping
    return table.get(raw_label.strip().lower(), raw_label)


def normalize_vector(
    scores: Iterable[EmotionScore],
    mapping: Mapping[str, str] | None = None,
) -> EmotionVector:
    """Normalizes every label and clamps every score, preserving order."""
    return tuple(
        EmotionScore(normalize_label(item.label, mapping), clamp_score(item.score))
        for item in scores
    )


def dominant(vector: EmotionVector) -> EmotionScore | None:
    """Returns the highest-scoring entry; ties keep the first occurrence."""
    best: EmotionScore | None = None
    for item in vector:
        if best is None or item.score > best.score:
            best = item
    return best


def category_score(vector: EmotionVector, category: str) -> float:
    """Returns the category score in a vector, 0 when absent.

    Several upstream labels can normalize to the same category; the highest
    of those scores is used.
    """
    return max((item.score for item in vector if item.label == category), default=0.0)
