"""Deterministic quiz scoring."""

from decimal import Decimal
from typing import Iterable, Mapping

from .models import Question


def score_answers(questions: Iterable[Question], answers: Mapping[int, str]) -> Decimal:
    """Sum the points of every question answered with its exact correct answer.

    Comparison is case-sensitive and untrimmed. Unanswered questions add
    nothing and keys that match no question are never looked at. The sum
    is decimal so fractional point values add up exactly.
    """
    score = Decimal(0)
    for q in questions:
        given = answers.get(q.id)
        if given is not None and given == q.correct_answer:
            score += Decimal(str(q.points))
    return score
