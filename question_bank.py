"""Seed question bank used as the placement candidate pool."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from schemas import Question, Scope


class QuestionBankError(ValueError):
    """Raised when a question from the JSON bank fails validation."""


class QuestionNotFoundError(LookupError):
    """Raised when a question id is not present in the bank."""

    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(f"Question not found: {question_id}")


class QuestionBank:
    """Load, validate and query placement questions.

    Questions keep the order of the source file; that order is the
    creation order the selector falls back on within a scope.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        if path is None:
            path = os.getenv("QUESTION_BANK_PATH") or Path(__file__).resolve().parent / "content" / "questions.json"
        self.path = Path(path)
        self._questions: List[Question] = []
        self._by_id: Dict[str, Question] = {}
        self._load()

    @classmethod
    def from_questions(cls, questions: Iterable[Question | Dict[str, Any]]) -> "QuestionBank":
        bank = cls.__new__(cls)
        bank.path = Path("<memory>")
        bank._questions = []
        bank._by_id = {}
        bank._ingest(list(questions))
        return bank

    # ------------------------------------------------------------------
    # loading & validation
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if not self.path.exists():
            raise FileNotFoundError(f"Question bank file not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)

        if not isinstance(raw, list):
            raise QuestionBankError("Question bank root must be a JSON list")
        self._ingest(raw)

    def _ingest(self, entries: List[Any]) -> None:
        questions: List[Question] = []
        by_id: Dict[str, Question] = {}
        for entry in entries:
            if isinstance(entry, Question):
                question = entry
            elif isinstance(entry, dict):
                try:
                    question = Question.model_validate(entry)
                except ValidationError as exc:
                    raise QuestionBankError(f"Question {entry.get('id')} is invalid: {exc}") from exc
            else:
                raise QuestionBankError("Each question must be an object")

            if question.id in by_id:
                raise QuestionBankError(f"Duplicate question id detected: {question.id}")
            by_id[question.id] = question
            questions.append(question)

        self._questions = questions
        self._by_id = by_id

    @property
    def questions(self) -> List[Question]:
        return list(self._questions)

    def __len__(self) -> int:
        return len(self._questions)

    # ------------------------------------------------------------------
    # repository interface
    # ------------------------------------------------------------------
    def find_eligible(self, age: int, exclude_ids: Iterable[str] = ()) -> List[Question]:
        excluded = set(exclude_ids)
        return [q for q in self._questions if q.id not in excluded and q.is_eligible(age)]

    def find_by_id(self, question_id: str) -> Question:
        try:
            return self._by_id[question_id]
        except KeyError:
            raise QuestionNotFoundError(question_id) from None

    def filter_questions(self, *, scope: Optional[Scope] = None, age: Optional[int] = None) -> List[Question]:
        results = self._questions
        if scope is not None:
            results = [q for q in results if q.scope is Scope(scope)]
        if age is not None:
            results = [q for q in results if q.is_eligible(age)]
        return list(results)
