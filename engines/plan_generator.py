"""Themed multi-week plan generation.

Given a proficiency band, the generator walks day indices 1..N and builds a
:class:`PlanDay` for each:

* the day's theme comes from the band's theme cycle, wrapping around;
* each scope's template is picked from the band+theme bank by
  ``(day - 1) mod len(bank)`` so templates cycle rather than repeat at
  random;
* multiple-choice options are shuffled with the injected random source,
  which is the only non-deterministic step;
* from week 4 on, prompts carry the catalog's escalation suffix and the
  recorded difficulty week stops growing at the catalog's cap.
"""

from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from typing import Any, List, Optional, Sequence, Tuple

from bands import ProficiencyBand, parse_band
from content_bank import (
    CurriculumCatalog,
    ListeningTemplate,
    ReadingTemplate,
    SpeakingTemplate,
    VocabTemplate,
    default_catalog,
)
from engines.randomness import RandomSource, default_random_source
from env_validation import get_env_int
from schemas import (
    ListeningTask,
    Option,
    Plan,
    PlanDay,
    ReadingTask,
    Scope,
    SpeakingPrompt,
    VocabTask,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_DAY_COUNT = 60
DAYS_PER_WEEK = 7
OPTION_LABELS = "ABCDEFGH"


def default_day_count() -> int:
    return get_env_int("PLAN_DAY_COUNT", DEFAULT_DAY_COUNT, minimum=1)


def week_number(day_index: int) -> int:
    """Return ``ceil(day_index / 7)``."""

    if day_index < 1:
        raise ValueError(f"day_index must be >= 1, got {day_index}")
    return math.ceil(day_index / DAYS_PER_WEEK)


def difficulty_week(day_index: int, catalog: Optional[CurriculumCatalog] = None) -> int:
    cap = (catalog or default_catalog()).escalation.max_week
    return min(week_number(day_index), cap)


def escalation_applies(day_index: int, catalog: Optional[CurriculumCatalog] = None) -> bool:
    return week_number(day_index) > (catalog or default_catalog()).escalation.after_week


def theme_for_day(band: Any, day_index: int, catalog: Optional[CurriculumCatalog] = None) -> str:
    """Return the theme for ``day_index``; periodic in the cycle length."""

    cycle = (catalog or default_catalog()).theme_cycle(band)
    if day_index < 1:
        raise ValueError(f"day_index must be >= 1, got {day_index}")
    return cycle[(day_index - 1) % len(cycle)]


def pick_template(bank: Sequence[Any], day_index: int) -> Any:
    return bank[(day_index - 1) % len(bank)]


def shuffle_options(correct: str, distractors: Sequence[str], rng: RandomSource) -> List[Option]:
    """Return the correct answer and distractors in shuffled display order.

    Labels are assigned after shuffling, so only display order changes;
    exactly one option stays correct.
    """

    entries: List[Tuple[str, bool]] = [(correct, True)]
    entries.extend((text, False) for text in distractors)
    if len(entries) > len(OPTION_LABELS):
        raise ValueError(f"At most {len(OPTION_LABELS)} options are supported, got {len(entries)}")
    rng.shuffle(entries)
    return [
        Option(id=OPTION_LABELS[pos], text=text, is_correct=is_correct)
        for pos, (text, is_correct) in enumerate(entries)
    ]


class _DayBuilder:
    """Builds the tasks of a single plan day."""

    def __init__(self, catalog: CurriculumCatalog, band: ProficiencyBand, day_index: int, rng: RandomSource):
        self.catalog = catalog
        self.band = band
        self.day_index = day_index
        self.rng = rng
        self.theme = theme_for_day(band, day_index, catalog)
        self.content = catalog.theme_content(band, self.theme)
        self.week = difficulty_week(day_index, catalog)
        self.escalated = escalation_applies(day_index, catalog)

    def _prompt(self, text: str) -> str:
        if self.escalated:
            return f"{text} {self.catalog.escalation.suffix}"
        return text

    def _common(self, scope: Scope) -> dict:
        return {
            "theme": self.theme,
            "duration_minutes": self.catalog.duration(scope),
            "difficulty_week": self.week,
            "escalated": self.escalated,
        }

    def vocab(self) -> VocabTask:
        template: VocabTemplate = pick_template(self.content.bank(Scope.VOCAB), self.day_index)
        return VocabTask(
            prompt=self._prompt(f"Which word matches: {template.definition}?"),
            word=template.word,
            definition=template.definition,
            options=shuffle_options(template.correct, template.distractors, self.rng),
            correct_answer=template.correct,
            **self._common(Scope.VOCAB),
        )

    def reading(self) -> ReadingTask:
        template: ReadingTemplate = pick_template(self.content.bank(Scope.READING), self.day_index)
        return ReadingTask(
            prompt=self._prompt(template.question),
            title=template.title,
            content=template.content,
            options=shuffle_options(template.correct, template.distractors, self.rng),
            correct_answer=template.correct,
            **self._common(Scope.READING),
        )

    def speaking(self) -> SpeakingPrompt:
        template: SpeakingTemplate = pick_template(self.content.bank(Scope.SPEAKING), self.day_index)
        return SpeakingPrompt(
            prompt=self._prompt(template.text),
            expected_length=template.expected_length,
            hints=list(template.hints),
            **self._common(Scope.SPEAKING),
        )

    def listening(self) -> Optional[ListeningTask]:
        bank = self.content.bank(Scope.LISTENING)
        if not bank:
            return None
        template: ListeningTemplate = pick_template(bank, self.day_index)
        return ListeningTask(
            prompt=self._prompt(template.question),
            title=template.title,
            transcript=template.transcript,
            options=shuffle_options(template.correct, template.distractors, self.rng),
            correct_answer=template.correct,
            **self._common(Scope.LISTENING),
        )

    def build(self, include_listening: bool) -> PlanDay:
        return PlanDay(
            day_index=self.day_index,
            theme=self.theme,
            vocab_task=self.vocab(),
            reading_task=self.reading(),
            speaking_prompt=self.speaking(),
            listening_task=self.listening() if include_listening else None,
        )


def generate_plan(
    band: Any,
    day_count: Optional[int] = None,
    *,
    rng: Optional[RandomSource] = None,
    catalog: Optional[CurriculumCatalog] = None,
    include_listening: bool = True,
) -> List[PlanDay]:
    """Generate ``day_count`` plan days for ``band``.

    Raises UnknownBandError for unrecognised bands and ValueError for a
    non-positive ``day_count``. Pass a seeded ``random.Random`` as ``rng``
    for reproducible option order.
    """

    resolved = parse_band(band)
    if day_count is None:
        day_count = default_day_count()
    if isinstance(day_count, bool) or not isinstance(day_count, int) or day_count < 1:
        raise ValueError(f"day_count must be a positive integer, got {day_count!r}")

    catalog = catalog or default_catalog()
    rng = rng if rng is not None else default_random_source()

    days = [
        _DayBuilder(catalog, resolved, day_index, rng).build(include_listening)
        for day_index in range(1, day_count + 1)
    ]
    _LOGGER.info(
        "Generated %d-day plan for band %s (themes=%d, catalog=%s)",
        day_count,
        resolved,
        len(catalog.theme_cycle(resolved)),
        catalog.version or catalog.path.name,
    )
    return days


def build_plan(
    learner_id: str,
    band: Any,
    start_date: date,
    day_count: Optional[int] = None,
    *,
    rng: Optional[RandomSource] = None,
    catalog: Optional[CurriculumCatalog] = None,
    include_listening: bool = True,
) -> Plan:
    """Wrap :func:`generate_plan` into a dated :class:`Plan`."""

    if day_count is None:
        day_count = default_day_count()
    days = generate_plan(
        band,
        day_count,
        rng=rng,
        catalog=catalog,
        include_listening=include_listening,
    )
    return Plan(
        learner_id=learner_id,
        band=parse_band(band),
        start_date=start_date,
        end_date=start_date + timedelta(days=day_count),
        days=days,
    )
