"""Round and session statistics computed from recorded expressions."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from affect.domain import ExpressionSource, QuestionExpression
from affect.store import ExpressionStore
from affect.taxonomy import (
    CANONICAL_CATEGORIES,
    CONFIDENCE,
    NERVOUS,
    category_score,
    dominant,
)

NERVOUS_LABELS: frozenset[str] = frozenset({NERVOUS, "Frustration"})
STRUGGLE_LABELS: frozenset[str] = frozenset({"Confusion", "Frustration"})


class PerformanceTier(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    NEEDS_IMPROVEMENT = "NeedsImprovement"


def performance_tier(confidence: float) -> PerformanceTier:
    """Buckets an averaged Confidence score into a reporting tier."""
    if confidence >= 0.7:
        return PerformanceTier.EXCELLENT
    if confidence >= 0.5:
        return PerformanceTier.GOOD
    if confidence >= 0.3:
        return PerformanceTier.FAIR
    return PerformanceTier.NEEDS_IMPROVEMENT


@dataclass(frozen=True)
class RoundReport:
    """Statistics over one group of expressions.

    Attributes:
        category_averages: Mean score per canonical category.
        dominant_category: Category with the highest average.
        performance_tier: Tier derived from the Confidence average.
        question_count: Number of expressions averaged.
        real_count: Expressions backed by real inference.
        synthetic_count: Expressions produced by the fallback synthesizer.
    """

    category_averages: dict[str, float]
    dominant_category: str
    performance_tier: PerformanceTier
    question_count: int = 0
    real_count: int = 0
    synthetic_count: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "category_averages": {
                name: round(value, 4) for name, value in self.category_averages.items()
            },
            "dominant_category": self.dominant_category,
            "performance_tier": self.performance_tier.value,
            "question_count": self.question_count,
            "real_count": self.real_count,
            "synthetic_count": self.synthetic_count,
        }


@dataclass(frozen=True)
class SessionAggregate:
    """Per-round reports plus the question-weighted overall report."""

    rounds: dict[str, RoundReport]
    overall: RoundReport
    insights: tuple[QuestionInsight, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {
            "rounds": {name: report.to_dict() for name, report in self.rounds.items()},
            "overall": self.overall.to_dict(),
            "questions": [insight.to_dict() for insight in self.insights],
        }


@dataclass(frozen=True)
class QuestionInsight:
    """Per-question badges shown next to each answer in reports."""

    question_id: str
    round_id: str
    dominant_label: str
    dominant_score: float
    confidence_score: float
    is_confident: bool
    is_nervous: bool
    is_struggling: bool
    source: ExpressionSource

    def to_dict(self) -> dict[str, object]:
        return {
            "question_id": self.question_id,
            "round_id": self.round_id,
            "dominant_label": self.dominant_label,
            "dominant_score": round(self.dominant_score, 4),
            "confidence_score": round(self.confidence_score, 4),
            "is_confident": self.is_confident,
            "is_nervous": self.is_nervous,
            "is_struggling": self.is_struggling,
            "source": self.source.value,
        }


def summarize_expressions(expressions: Sequence[QuestionExpression]) -> RoundReport:
    """Averages canonical category scores over a group of expressions.

    Every expression counts in the denominator; a category missing from an
    expression contributes 0. An empty group yields all-zero averages and
    the lowest tier.
    """
    if expressions:
        matrix = np.array(
            [
                [category_score(expr.vector, category) for category in CANONICAL_CATEGORIES]
                for expr in expressions
            ],
            dtype=np.float64,
        )
        means = matrix.mean(axis=0)
    else:
        means = np.zeros(len(CANONICAL_CATEGORIES), dtype=np.float64)

    averages = {
        category: float(value) for category, value in zip(CANONICAL_CATEGORIES, means)
    }
    # argmax returns the first maximum, so ties follow canonical order.
    dominant_category = CANONICAL_CATEGORIES[int(np.argmax(means))]
    real_count = sum(1 for expr in expressions if expr.source is ExpressionSource.REAL)
    return RoundReport(
        category_averages=averages,
        dominant_category=dominant_category,
        performance_tier=performance_tier(averages[CONFIDENCE]),
        question_count=len(expressions),
        real_count=real_count,
        synthetic_count=len(expressions) - real_count,
    )


def question_insight(expression: QuestionExpression) -> QuestionInsight:
    """Derives confident/nervous/struggling badges from one expression."""
    top = dominant(expression.vector)
    label = top.label if top is not None else ""
    score = top.score if top is not None else 0.0
    return QuestionInsight(
        question_id=expression.question_id,
        round_id=expression.round_id,
        dominant_label=label,
        dominant_score=score,
        confidence_score=category_score(expression.vector, CONFIDENCE),
        is_confident=label == CONFIDENCE or score > 0.6,
        is_nervous=label in NERVOUS_LABELS or score < 0.4,
        is_struggling=label in STRUGGLE_LABELS or score < 0.3,
        source=expression.source,
    )


class Aggregator:
    """Builds reports from the contents of an :class:`ExpressionStore`."""

    def __init__(self, store: ExpressionStore) -> None:
        self.store = store

    def per_round(self, round_id: str) -> RoundReport:
        return summarize_expressions(self.store.round(round_id))

    def overall(self) -> RoundReport:
        """Report over all expressions of every round, weighted by question."""
        return summarize_expressions(self.store.all())

    def insights(self, round_id: str | None = None) -> tuple[QuestionInsight, ...]:
        expressions = self.store.all() if round_id is None else self.store.round(round_id)
        return tuple(question_insight(expr) for expr in expressions)

    def session(self) -> SessionAggregate:
        return SessionAggregate(
            rounds={round_id: self.per_round(round_id) for round_id in self.store.round_ids()},
            overall=self.overall(),
            insights=self.insights(),
        )
