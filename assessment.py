"""Placement session and plan services on top of the pure engines.

The services own no storage. They talk to a question repository, a session
store and a plan store through the small protocols below; the in-memory
implementations are enough for tests and for embedding the engine in a
host application that persists elsewhere.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from bands import parse_band
from engines.plan_generator import build_plan
from engines.progress import day_index_for, plan_progress
from engines.question_selector import SelectionPolicy, next_question
from engines.randomness import RandomSource
from engines.scoring import grade_answer, score, scored_answers
from engines.validation import EmptyInputError
from content_bank import CurriculumCatalog
from question_bank import QuestionNotFoundError
from schemas import (
    Answer,
    AssessmentSession,
    Plan,
    PlanDay,
    PlanProgress,
    PracticeSession,
    Question,
    ScoreResult,
)

_LOGGER = logging.getLogger(__name__)


def _log_json(event: str, payload: Dict[str, Any]) -> None:
    """Emit one structured JSON log line per engine decision."""

    record = {"event": event, **payload}
    try:
        message = json.dumps(record, ensure_ascii=False, sort_keys=True, default=str)
    except (TypeError, ValueError):
        fallback = {
            "event": event,
            "error": "serialization_failed",
            "payload_repr": repr(payload),
        }
        message = json.dumps(fallback, ensure_ascii=False, sort_keys=True)
    _LOGGER.info(message)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _KeyedLocks:
    """One lock per key, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def __call__(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())


class ServiceError(Exception):
    """Base class for session workflow errors."""


class SessionNotFoundError(ServiceError, LookupError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Assessment session not found: {session_id}")


class SessionStateError(ServiceError):
    """Raised when an operation does not fit the session's current state."""


class DuplicateAnswerError(ServiceError):
    def __init__(self, session_id: str, question_id: str):
        self.session_id = session_id
        self.question_id = question_id
        super().__init__(f"Question {question_id} already answered in session {session_id}")


# ----------------------------------------------------------------------
# collaborator interfaces
# ----------------------------------------------------------------------
class QuestionRepository(Protocol):
    def find_eligible(self, age: int, exclude_ids: Iterable[str] = ()) -> List[Question]: ...

    def find_by_id(self, question_id: str) -> Question: ...


class SessionStore(Protocol):
    def get(self, session_id: str) -> Optional[AssessmentSession]: ...

    def save(self, session: AssessmentSession) -> None: ...

    def active_for_learner(self, learner_id: str) -> Optional[AssessmentSession]: ...


class PlanStore(Protocol):
    def get(self, plan_id: str) -> Optional[Plan]: ...

    def save(self, plan: Plan) -> None: ...

    def active_for_learner(self, learner_id: str) -> Optional[Plan]: ...

    def deactivate_for_learner(self, learner_id: str) -> int: ...


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, AssessmentSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[AssessmentSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session else None

    def save(self, session: AssessmentSession) -> None:
        with self._lock:
            self._sessions[session.id] = session.model_copy(deep=True)

    def active_for_learner(self, learner_id: str) -> Optional[AssessmentSession]:
        with self._lock:
            for session in self._sessions.values():
                if session.learner_id == learner_id and session.status == "ACTIVE":
                    return session.model_copy(deep=True)
        return None


class InMemoryPlanStore:
    def __init__(self) -> None:
        self._plans: Dict[str, Plan] = {}
        self._lock = threading.Lock()

    def get(self, plan_id: str) -> Optional[Plan]:
        with self._lock:
            plan = self._plans.get(plan_id)
            return plan.model_copy(deep=True) if plan else None

    def save(self, plan: Plan) -> None:
        with self._lock:
            self._plans[plan.id] = plan.model_copy(deep=True)

    def active_for_learner(self, learner_id: str) -> Optional[Plan]:
        with self._lock:
            for plan in self._plans.values():
                if plan.learner_id == learner_id and plan.is_active:
                    return plan.model_copy(deep=True)
        return None

    def deactivate_for_learner(self, learner_id: str) -> int:
        changed = 0
        with self._lock:
            for plan_id, plan in list(self._plans.items()):
                if plan.learner_id == learner_id and plan.is_active:
                    self._plans[plan_id] = plan.model_copy(update={"is_active": False})
                    changed += 1
        return changed


# ----------------------------------------------------------------------
# services
# ----------------------------------------------------------------------
class AssessmentService:
    """Drive a placement session: start, ask, record, finish.

    Read-check-write steps hold a per-session lock (per-learner for
    ``start``), so one service instance can be shared across threads.
    """

    def __init__(
        self,
        questions: QuestionRepository,
        sessions: SessionStore,
        *,
        policy: Optional[SelectionPolicy] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.questions = questions
        self.sessions = sessions
        self.policy = policy or SelectionPolicy.from_env()
        self.clock = clock
        self._session_locks = _KeyedLocks()
        self._learner_locks = _KeyedLocks()

    def _require(self, session_id: str, *, active: bool = True) -> AssessmentSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if active and session.status != "ACTIVE":
            raise SessionStateError(f"Assessment session {session_id} is not active")
        return session

    def get_session(self, session_id: str) -> AssessmentSession:
        return self._require(session_id, active=False)

    def start(self, learner_id: str, learner_age: int) -> AssessmentSession:
        with self._learner_locks(learner_id):
            existing = self.sessions.active_for_learner(learner_id)
            if existing is not None:
                raise SessionStateError(
                    f"Learner {learner_id} already has an active assessment session ({existing.id})"
                )
            session = AssessmentSession(learner_id=learner_id, learner_age=learner_age, started_at=self.clock())
            self.sessions.save(session)
        _log_json(
            "assessment_started",
            {"session_id": session.id, "learner_id": learner_id, "learner_age": learner_age},
        )
        return session

    def next_question(self, session_id: str) -> Optional[Question]:
        """Return the next question or ``None`` when the assessment is complete."""

        session = self._require(session_id)
        answered = session.answered_ids
        pool = self.questions.find_eligible(session.learner_age, answered)
        question = next_question(
            answered,
            session.learner_age,
            pool,
            answered_scopes=session.answered_scopes,
            policy=self.policy,
        )
        _log_json(
            "question_selected",
            {
                "session_id": session_id,
                "answered": len(answered),
                "pool": len(pool),
                "question_id": question.id if question else None,
                "scope": question.scope.value if question else None,
            },
        )
        return question

    def submit_answer(
        self,
        session_id: str,
        question_id: str,
        option_id: Optional[str] = None,
        free_text: Optional[str] = None,
    ) -> Answer:
        question = self.questions.find_by_id(question_id)
        with self._session_locks(session_id):
            session = self._require(session_id)
            if question_id in session.answered_ids:
                raise DuplicateAnswerError(session_id, question_id)

            answer = Answer(
                question_id=question.id,
                scope=question.scope,
                selected_option_id=option_id,
                free_text=free_text,
                is_correct=grade_answer(question, option_id, free_text),
                answered_at=self.clock(),
            )
            session.answers.append(answer)
            self.sessions.save(session)
        _LOGGER.debug("Recorded answer %s for session %s (correct=%s)", question_id, session_id, answer.is_correct)
        return answer

    def finish(self, session_id: str) -> ScoreResult:
        """Score the session's non-speaking answers and close it."""

        with self._session_locks(session_id):
            session = self._require(session_id)
            if not session.answers:
                raise EmptyInputError(f"No answers recorded for session {session_id}")
            counted = scored_answers(session.answers)
            if not counted:
                raise EmptyInputError(f"Session {session_id} has no scored (non-speaking) answers")

            result = score(counted)
            session.status = "FINISHED"
            session.score = result.percentage
            session.band = result.band
            session.finished_at = self.clock()
            self.sessions.save(session)
        _log_json(
            "assessment_finished",
            {
                "session_id": session_id,
                "learner_id": session.learner_id,
                "answers": len(session.answers),
                "scored": result.total,
                "score": result.percentage,
                "band": result.band.value,
            },
        )
        return result


class PlanService:
    """Create and look up dated plans for learners."""

    def __init__(self, plans: PlanStore, *, catalog: Optional[CurriculumCatalog] = None) -> None:
        self.plans = plans
        self.catalog = catalog
        self._learner_locks = _KeyedLocks()

    def create_plan(
        self,
        learner_id: str,
        band: Any,
        start_date: date,
        day_count: Optional[int] = None,
        *,
        rng: Optional[RandomSource] = None,
    ) -> Plan:
        resolved = parse_band(band)
        plan = build_plan(learner_id, resolved, start_date, day_count, rng=rng, catalog=self.catalog)
        with self._learner_locks(learner_id):
            replaced = self.plans.deactivate_for_learner(learner_id)
            self.plans.save(plan)
        _log_json(
            "plan_created",
            {
                "plan_id": plan.id,
                "learner_id": learner_id,
                "band": resolved.value,
                "days": len(plan.days),
                "start_date": plan.start_date.isoformat(),
                "end_date": plan.end_date.isoformat(),
                "replaced_plans": replaced,
            },
        )
        return plan

    def get_plan(self, plan_id: str) -> Plan:
        plan = self.plans.get(plan_id)
        if plan is None:
            raise LookupError(f"Plan not found: {plan_id}")
        return plan

    def day_for(self, plan: Plan, today: date) -> Optional[PlanDay]:
        """Return the plan day scheduled for ``today``; ``None`` outside the plan."""

        index = day_index_for(plan.start_date, today, len(plan.days))
        return plan.day(index) if index is not None else None

    def progress(self, plan_id: str, sessions: Iterable[PracticeSession]) -> PlanProgress:
        return plan_progress(self.get_plan(plan_id), sessions)


__all__ = [
    "AssessmentService",
    "PlanService",
    "InMemorySessionStore",
    "InMemoryPlanStore",
    "QuestionRepository",
    "SessionStore",
    "PlanStore",
    "ServiceError",
    "SessionNotFoundError",
    "SessionStateError",
    "DuplicateAnswerError",
    "QuestionNotFoundError",
]
