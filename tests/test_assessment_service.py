import json
import logging
import random
import threading
import time
from datetime import date, datetime, timezone

import pytest

from assessment import (
    AssessmentService,
    DuplicateAnswerError,
    InMemoryPlanStore,
    InMemorySessionStore,
    PlanService,
    SessionNotFoundError,
    SessionStateError,
)
from bands import ProficiencyBand
from engines.validation import EmptyInputError, UnknownBandError
from question_bank import QuestionBank, QuestionNotFoundError
from schemas import Scope


@pytest.fixture
def service(mixed_pool):
    clock = lambda: datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)
    return AssessmentService(QuestionBank.from_questions(mixed_pool), InMemorySessionStore(), clock=clock)


@pytest.fixture
def plans(catalog):
    return PlanService(InMemoryPlanStore(), catalog=catalog)


def test_full_session_flow(service):
    session = service.start("kid-1", 8)
    asked = []
    while True:
        question = service.next_question(session.id)
        if question is None:
            break
        asked.append(question.id)
        if question.scope is Scope.SPEAKING:
            service.submit_answer(session.id, question.id, free_text="I like my cat.")
        elif question.scope is Scope.VOCAB:
            service.submit_answer(session.id, question.id, option_id="a")
        else:
            service.submit_answer(session.id, question.id, option_id="b")

    assert asked == ["g1", "l1", "r1", "s1", "v1", "s2", "v2"]
    result = service.finish(session.id)
    # speaking answers are not scored: 3 of 5 correct
    assert (result.correct, result.total, result.percentage) == (3, 5, 60)
    assert result.band is ProficiencyBand.A1

    stored = service.get_session(session.id)
    assert stored.status == "FINISHED"
    assert stored.score == 60
    assert stored.band is ProficiencyBand.A1
    assert stored.finished_at == datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


def test_finished_session_rejects_further_work(service):
    session = service.start("kid-1", 8)
    service.submit_answer(session.id, "g1", option_id="b")
    service.finish(session.id)
    with pytest.raises(SessionStateError):
        service.submit_answer(session.id, "l1", option_id="b")
    with pytest.raises(SessionStateError):
        service.next_question(session.id)
    with pytest.raises(SessionStateError):
        service.finish(session.id)


def test_duplicate_and_unknown_answers(service):
    session = service.start("kid-1", 8)
    answer = service.submit_answer(session.id, "g1", option_id="b")
    assert answer.is_correct
    with pytest.raises(DuplicateAnswerError):
        service.submit_answer(session.id, "g1", option_id="a")
    with pytest.raises(QuestionNotFoundError):
        service.submit_answer(session.id, "nope", option_id="a")
    with pytest.raises(SessionNotFoundError):
        service.next_question("missing-session")


def test_one_active_session_per_learner(service):
    first = service.start("kid-1", 8)
    with pytest.raises(SessionStateError):
        service.start("kid-1", 8)
    service.submit_answer(first.id, "g1", option_id="b")
    service.finish(first.id)
    assert service.start("kid-1", 8).id != first.id


def test_finish_requires_scored_answers(service):
    session = service.start("kid-1", 8)
    with pytest.raises(EmptyInputError):
        service.finish(session.id)
    service.submit_answer(session.id, "s1", free_text="Hello there")
    with pytest.raises(EmptyInputError):
        service.finish(session.id)
    assert service.get_session(session.id).status == "ACTIVE"


def test_decisions_are_logged_as_json(service, caplog):
    caplog.set_level(logging.INFO, logger="assessment")
    session = service.start("kid-1", 8)
    service.next_question(session.id)
    events = [json.loads(record.getMessage()) for record in caplog.records if record.name == "assessment"]
    assert [event["event"] for event in events] == ["assessment_started", "question_selected"]
    assert events[1]["question_id"] == "g1"
    assert events[1]["scope"] == "grammar"


def test_create_plan_replaces_active_plan(plans, rng):
    first = plans.create_plan("kid-1", "A0", date(2024, 6, 1), rng=rng)
    second = plans.create_plan("kid-1", ProficiencyBand.A1, date(2024, 7, 1), 30, rng=rng)

    assert len(first.days) == 60
    assert len(second.days) == 30
    assert plans.get_plan(first.id).is_active is False
    assert plans.get_plan(second.id).is_active is True
    assert plans.plans.active_for_learner("kid-1").id == second.id

    with pytest.raises(UnknownBandError):
        plans.create_plan("kid-1", "C1", date(2024, 7, 1), rng=rng)
    with pytest.raises(LookupError):
        plans.get_plan("missing")


def test_day_for(plans, rng):
    plan = plans.create_plan("kid-2", "A2", date(2024, 6, 1), 10, rng=rng)
    assert plans.day_for(plan, date(2024, 6, 1)).day_index == 1
    assert plans.day_for(plan, date(2024, 6, 10)).day_index == 10
    assert plans.day_for(plan, date(2024, 6, 11)) is None
    assert plans.day_for(plan, date(2024, 5, 31)) is None


class _SlowSessionStore(InMemorySessionStore):
    """Session store whose reads take long enough for calls to overlap."""

    def get(self, session_id):
        session = super().get(session_id)
        time.sleep(0.05)
        return session

    def active_for_learner(self, learner_id):
        session = super().active_for_learner(learner_id)
        time.sleep(0.05)
        return session


class _SlowPlanStore(InMemoryPlanStore):
    def deactivate_for_learner(self, learner_id):
        changed = super().deactivate_for_learner(learner_id)
        time.sleep(0.05)
        return changed


def _run_together(*calls):
    errors = []

    def runner(call):
        try:
            call()
        except Exception as exc:  # collected for assertions
            errors.append(exc)

    threads = [threading.Thread(target=runner, args=(call,)) for call in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return errors


def test_concurrent_answers_are_all_recorded(mixed_pool):
    service = AssessmentService(QuestionBank.from_questions(mixed_pool), _SlowSessionStore())
    session = service.start("kid-1", 8)

    errors = _run_together(
        lambda: service.submit_answer(session.id, "g1", option_id="b"),
        lambda: service.submit_answer(session.id, "v1", option_id="b"),
    )

    assert errors == []
    assert service.get_session(session.id).answered_ids == {"g1", "v1"}


def test_concurrent_duplicate_answer_is_rejected(mixed_pool):
    service = AssessmentService(QuestionBank.from_questions(mixed_pool), _SlowSessionStore())
    session = service.start("kid-1", 8)

    errors = _run_together(
        lambda: service.submit_answer(session.id, "g1", option_id="b"),
        lambda: service.submit_answer(session.id, "g1", option_id="a"),
    )

    assert [type(error) for error in errors] == [DuplicateAnswerError]
    assert len(service.get_session(session.id).answers) == 1


def test_concurrent_starts_open_one_session(mixed_pool):
    store = _SlowSessionStore()
    service = AssessmentService(QuestionBank.from_questions(mixed_pool), store)

    errors = _run_together(lambda: service.start("kid-1", 8), lambda: service.start("kid-1", 8))

    assert [type(error) for error in errors] == [SessionStateError]


def test_concurrent_plans_leave_one_active(catalog):
    store = _SlowPlanStore()
    plans = PlanService(store, catalog=catalog)
    created = []

    errors = _run_together(
        lambda: created.append(plans.create_plan("kid-1", "A0", date(2024, 6, 1), 7, rng=random.Random(1))),
        lambda: created.append(plans.create_plan("kid-1", "A1", date(2024, 6, 1), 7, rng=random.Random(2))),
    )

    assert errors == []
    active = [plan for plan in created if store.get(plan.id).is_active]
    assert len(active) == 1
