"""Append-only store of per-question expressions for one interview session."""

from __future__ import annotations

from collections.abc import Iterator

from affect.domain import QuestionExpression, RoundRecord


class DuplicateKeyError(ValueError):
    """Raised when a question already has a recorded expression."""


class ExpressionStore:
    """Single source of truth mapping question ids to expressions.

    Writes are one-shot: a recorded expression is never replaced or removed.
    Iteration follows capture-trigger order (``sequence``), falling back to
    insertion order for equal sequences.
    """

    def __init__(self) -> None:
        self._expressions: dict[str, QuestionExpression] = {}

    def put(self, expression: QuestionExpression) -> None:
        if expression.question_id in self._expressions:
            raise DuplicateKeyError(
                f"Question {expression.question_id!r} already has a recorded expression."
            )
        self._expressions[expression.question_id] = expression

    def get(self, question_id: str) -> QuestionExpression | None:
        return self._expressions.get(question_id)

    def all(self) -> RoundRecord:
        return tuple(sorted(self._expressions.values(), key=lambda expr: expr.sequence))

    def round(self, round_id: str) -> RoundRecord:
        """Returns the expressions of one round in capture order."""
        return tuple(expr for expr in self.all() if expr.round_id == round_id)

    def round_ids(self) -> tuple[str, ...]:
        """Returns round ids in order of their first capture."""
        return tuple(dict.fromkeys(expr.round_id for expr in self.all()))

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._expressions

    def __len__(self) -> int:
        return len(self._expressions)

    def __iter__(self) -> Iterator[QuestionExpression]:
        return iter(self.all())
