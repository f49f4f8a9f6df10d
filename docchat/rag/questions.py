"""Keyword classification of user questions.

The orchestrator uses the categories to pick sources by document position
when semantic similarity is a poor guide.
"""
from enum import Enum
from typing import FrozenSet


class QuestionType(str, Enum):
    """Question categories that change source selection."""

    RESULTS = "results"      # outcomes, numbers, conclusions
    METADATA = "metadata"    # title, authors, abstract


RESULTS_KEYWORDS = (
    "result",
    "finding",
    "conclusion",
    "success",
    "accuracy",
    "performance",
    "outcome",
    "percent",
    "%",
    "final",
)

METADATA_KEYWORDS = (
    "title",
    "author",
    "abstract",
    "written by",
    "who wrote",
    "what is this",
    "what is the paper",
)


def classify_question(question: str) -> FrozenSet[QuestionType]:
    """Classify a question by case-insensitive substring match.

    Categories may overlap; an unmatched question gets an empty set.
    """
    lowered = question.lower()
    categories = set()

    if any(keyword in lowered for keyword in RESULTS_KEYWORDS):
        categories.add(QuestionType.RESULTS)

    if any(keyword in lowered for keyword in METADATA_KEYWORDS):
        categories.add(QuestionType.METADATA)

    return frozenset(categories)
