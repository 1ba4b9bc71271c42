"""
Presentability checks for quiz questions.
"""
from typing import List

from .models import Question

MIN_OPTIONS = 2
MAX_OPTIONS = 25


def validate_question(question: Question) -> List[str]:
    """
    Check that a question can be presented.

    Args:
        question: Question to check

    Returns:
        List of issue strings; empty when the question is presentable
    """
    issues = []
    options = question.options or []
    indices = question.correct_indices or []

    if not question.prompt:
        issues.append("missing prompt")
    if len(options) < MIN_OPTIONS:
        issues.append("needs ≥2 options")
    if len(options) > MAX_OPTIONS:
        issues.append("≤25 options supported")
    if not indices:
        issues.append("missing answer(s)")
    if any(i < 0 or i >= len(options) for i in indices):
        issues.append("answer index out of range")

    return issues


def is_presentable(question: Question) -> bool:
    return not validate_question(question)
