"""Pydantic schemas for questions, answers, plans and learner statistics."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from bands import ProficiencyBand, parse_band

__all__ = [
    "Scope",
    "Option",
    "Question",
    "Answer",
    "ScoreResult",
    "VocabTask",
    "ReadingTask",
    "ListeningTask",
    "SpeakingPrompt",
    "PlanDay",
    "Plan",
    "AssessmentSession",
    "PracticeSession",
    "LearnerStats",
    "PlanProgress",
]


class Scope(str, Enum):
    """Skill category of a question or plan task."""

    VOCAB = "vocab"
    GRAMMAR = "grammar"
    READING = "reading"
    LISTENING = "listening"
    SPEAKING = "speaking"

    def __str__(self) -> str:
        return self.value


def _coerce_band(value: Any) -> ProficiencyBand:
    return parse_band(value)


class Option(BaseModel):
    id: str
    text: str
    is_correct: bool = False

    model_config = {"frozen": True}


class Question(BaseModel):
    id: str
    text: str
    age_min: int = Field(ge=0, description="Youngest eligible learner age, inclusive.")
    age_max: int = Field(ge=0, description="Oldest eligible learner age, inclusive.")
    scope: Scope
    level_hint: ProficiencyBand | None = Field(
        default=None,
        description="Band the question is pitched at; informational only.",
    )
    options: list[Option] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("level_hint", mode="before")
    @classmethod
    def _parse_level_hint(cls, value: Any) -> Any:
        if value in (None, ""):
            return None
        return _coerce_band(value)

    @model_validator(mode="after")
    def _check_shape(self) -> "Question":
        if self.age_min > self.age_max:
            raise ValueError(
                f"Question {self.id}: age_min {self.age_min} exceeds age_max {self.age_max}"
            )
        option_ids = [option.id for option in self.options]
        if len(set(option_ids)) != len(option_ids):
            raise ValueError(f"Question {self.id}: duplicate option ids")
        if self.is_multiple_choice:
            correct = sum(1 for option in self.options if option.is_correct)
            if correct != 1:
                raise ValueError(
                    f"Question {self.id}: expected exactly one correct option, found {correct}"
                )
        return self

    @property
    def is_multiple_choice(self) -> bool:
        return self.scope is not Scope.SPEAKING or bool(self.options)

    def is_eligible(self, age: int) -> bool:
        return self.age_min <= age <= self.age_max

    def option(self, option_id: str) -> Option | None:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


class Answer(BaseModel):
    question_id: str
    scope: Scope
    selected_option_id: str | None = None
    free_text: str | None = None
    is_correct: bool
    answered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}


class ScoreResult(BaseModel):
    percentage: int = Field(ge=0, le=100)
    band: ProficiencyBand
    correct: int = Field(ge=0)
    total: int = Field(ge=1)

    model_config = {"frozen": True}


class _TaskBase(BaseModel):
    theme: str
    prompt: str = Field(description="Instruction or question shown to the learner.")
    duration_minutes: int = Field(gt=0)
    difficulty_week: int = Field(
        ge=1,
        description="Week used for difficulty annotation; capped by the curriculum.",
    )
    escalated: bool = False


class _ChoiceTask(_TaskBase):
    options: list[Option]
    correct_answer: str

    @model_validator(mode="after")
    def _exactly_one_correct(self):
        correct = [option for option in self.options if option.is_correct]
        if len(correct) != 1:
            raise ValueError(f"Task must have exactly one correct option, found {len(correct)}")
        if correct[0].text != self.correct_answer:
            raise ValueError("correct_answer must match the option flagged as correct")
        return self


class VocabTask(_ChoiceTask):
    scope: Literal[Scope.VOCAB] = Scope.VOCAB
    word: str
    definition: str


class ReadingTask(_ChoiceTask):
    scope: Literal[Scope.READING] = Scope.READING
    title: str
    content: str


class ListeningTask(_ChoiceTask):
    scope: Literal[Scope.LISTENING] = Scope.LISTENING
    title: str
    transcript: str = Field(description="Text read aloud to the learner.")


class SpeakingPrompt(_TaskBase):
    scope: Literal[Scope.SPEAKING] = Scope.SPEAKING
    expected_length: str
    hints: list[str] = Field(default_factory=list)


class PlanDay(BaseModel):
    day_index: int = Field(ge=1)
    theme: str
    vocab_task: VocabTask
    reading_task: ReadingTask
    speaking_prompt: SpeakingPrompt
    listening_task: ListeningTask | None = None

    @property
    def total_minutes(self) -> int:
        tasks = [self.vocab_task, self.reading_task, self.speaking_prompt, self.listening_task]
        return sum(task.duration_minutes for task in tasks if task is not None)


class Plan(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    learner_id: str
    band: ProficiencyBand
    start_date: date
    end_date: date
    is_active: bool = True
    days: list[PlanDay]

    @field_validator("band", mode="before")
    @classmethod
    def _parse_band(cls, value: Any) -> ProficiencyBand:
        return _coerce_band(value)

    @model_validator(mode="after")
    def _check_days(self) -> "Plan":
        indices = [day.day_index for day in self.days]
        if indices != list(range(1, len(indices) + 1)):
            raise ValueError("Plan days must be numbered contiguously from 1")
        if self.end_date < self.start_date:
            raise ValueError("Plan end_date precedes start_date")
        return self

    def day(self, day_index: int) -> PlanDay | None:
        if 1 <= day_index <= len(self.days):
            return self.days[day_index - 1]
        return None


class AssessmentSession(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    learner_id: str
    learner_age: int = Field(ge=3, le=18)
    status: Literal["ACTIVE", "FINISHED"] = "ACTIVE"
    answers: list[Answer] = Field(default_factory=list)
    score: int | None = None
    band: ProficiencyBand | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def answered_ids(self) -> set[str]:
        return {answer.question_id for answer in self.answers}

    @property
    def answered_scopes(self) -> list[Scope]:
        return [answer.scope for answer in self.answers]


class PracticeSession(BaseModel):
    learner_id: str
    day_index: int = Field(ge=1)
    plan_id: str | None = None
    vocab_correct: bool | None = None
    reading_correct: bool | None = None
    speaking_answer: str | None = Field(default=None, max_length=5000)
    total_time_ms: int | None = Field(default=None, ge=0)
    completed_at: datetime


class LearnerStats(BaseModel):
    total_sessions: int = 0
    unique_days_completed: int = 0
    vocab_accuracy: int = 0
    reading_accuracy: int = 0
    average_session_seconds: int = 0
    streak: int = 0


class PlanProgress(BaseModel):
    plan_id: str
    band: ProficiencyBand
    total_days: int
    completed_days: int
    progress_percentage: int
    vocab_accuracy: int
    reading_accuracy: int
    total_sessions: int
