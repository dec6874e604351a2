"""Trial exam net scoring: every four wrong answers cancel one correct answer."""

from __future__ import annotations

from collections.abc import Iterable

WRONG_ANSWER_PENALTY = 0.25


def net_score(correct: int, wrong: int) -> float:
    """Net score for one subject, e.g. 80 correct / 20 wrong -> 75.0."""
    return round(correct - wrong * WRONG_ANSWER_PENALTY, 2)


def total_net(scores: Iterable[tuple[int, int]]) -> float:
    """Sum of net scores over (correct, wrong) pairs, rounded to 2 decimals."""
    return round(sum(correct - wrong * WRONG_ANSWER_PENALTY for correct, wrong in scores), 2)
