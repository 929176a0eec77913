"""Placement scoring: graded answers to a percentage and a proficiency band."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from bands import BAND_REGISTRY, BandRegistry
from engines.validation import EmptyInputError
from schemas import Answer, Question, Scope, ScoreResult

_LOGGER = logging.getLogger(__name__)

DEFAULT_UNSCORED_SCOPES = (Scope.SPEAKING,)


def _is_correct(answer: Any) -> bool:
    if isinstance(answer, Mapping):
        if "is_correct" in answer:
            return bool(answer["is_correct"])
        return bool(answer.get("isCorrect", False))
    return bool(getattr(answer, "is_correct"))


def percentage(correct: int, total: int) -> int:
    """Return ``100 * correct / total`` rounded half up."""

    if total <= 0:
        raise EmptyInputError("Cannot compute a percentage of zero answers")
    return (200 * correct + total) // (2 * total)


def score(answers: Sequence[Any], *, registry: Optional[BandRegistry] = None) -> ScoreResult:
    """Score a non-empty sequence of graded answers.

    Each answer may be an :class:`Answer`, any object with an ``is_correct``
    attribute, or a mapping with ``is_correct``/``isCorrect``. The band is a
    function of the percentage alone.
    """

    answers = list(answers)
    if not answers:
        raise EmptyInputError("score() requires at least one answer")

    correct = sum(1 for answer in answers if _is_correct(answer))
    value = percentage(correct, len(answers))
    band = (registry or BAND_REGISTRY).band_for_score(value)
    _LOGGER.debug("Scored %d/%d answers -> %d%% (%s)", correct, len(answers), value, band)
    return ScoreResult(percentage=value, band=band, correct=correct, total=len(answers))


def scored_answers(
    answers: Iterable[Answer],
    *,
    exclude: Iterable[Scope] = DEFAULT_UNSCORED_SCOPES,
) -> list[Answer]:
    """Drop answers whose scope does not count towards the placement score."""

    excluded = {Scope(scope) for scope in exclude}
    return [answer for answer in answers if answer.scope not in excluded]


def grade_answer(
    question: Question,
    option_id: Optional[str] = None,
    free_text: Optional[str] = None,
) -> bool:
    """Decide whether a submitted response to ``question`` is correct.

    Speaking prompts accept any non-blank free text. Multiple-choice
    questions are correct only when the selected option exists and is the
    correct one.
    """

    if question.scope is Scope.SPEAKING:
        return bool(free_text and free_text.strip())
    if option_id is None:
        return False
    option = question.option(option_id)
    return bool(option and option.is_correct)
