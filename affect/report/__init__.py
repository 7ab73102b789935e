"""Aggregation and output of recorded session expressions."""

from .aggregator import (
    Aggregator,
    PerformanceTier,
    QuestionInsight,
    RoundReport,
    SessionAggregate,
    summarize_expressions,
)

__all__ = [
    "Aggregator",
    "PerformanceTier",
    "QuestionInsight",
    "RoundReport",
    "SessionAggregate",
    "summarize_expressions",
]
