import json
import random
import sys
from datetime import date, datetime, time, timedelta, timezone

from assessment import AssessmentService, InMemoryPlanStore, InMemorySessionStore, PlanService
from engines.progress import learner_stats
from question_bank import QuestionBank
from schemas import PracticeSession, Scope

# Simulated learners: age and chance of answering a multiple-choice question correctly
LEARNERS = {
    "emma": {"age": 8, "accuracy": 0.35},
    "liam": {"age": 10, "accuracy": 0.6},
    "sophia": {"age": 9, "accuracy": 0.9},
    "noah": {"age": 11, "accuracy": 0.75},
    "olivia": {"age": 12, "accuracy": 0.2},
}


def simulate_assessment(service, learner_id, profile, rng):
    session = service.start(learner_id, profile["age"])
    while True:
        question = service.next_question(session.id)
        if question is None:
            break
        if question.scope is Scope.SPEAKING:
            service.submit_answer(session.id, question.id, free_text="I like my dog because he is funny.")
            continue
        correct = next(option for option in question.options if option.is_correct)
        wrong = [option for option in question.options if not option.is_correct]
        pick = correct if rng.random() < profile["accuracy"] or not wrong else rng.choice(wrong)
        service.submit_answer(session.id, question.id, option_id=pick.id)
    return service.finish(session.id)


def simulate_practice(plan, learner_id, profile, rng, days):
    sessions = []
    for day in plan.days[:days]:
        sessions.append(
            PracticeSession(
                learner_id=learner_id,
                plan_id=plan.id,
                day_index=day.day_index,
                vocab_correct=rng.random() < profile["accuracy"],
                reading_correct=rng.random() < 0.75,
                speaking_answer="This is a sample speaking response.",
                total_time_ms=rng.randint(240_000, 900_000),
                completed_at=_day_timestamp(plan.start_date, day.day_index),
            )
        )
    return sessions


def _day_timestamp(start, day_index):
    return datetime.combine(start + timedelta(days=day_index - 1), time(17, 0), tzinfo=timezone.utc)


def run(seed=7, practice_days=5, start=None):
    rng = random.Random(seed)
    start = start or date.today()
    bank = QuestionBank()
    assessments = AssessmentService(bank, InMemorySessionStore())
    plans = PlanService(InMemoryPlanStore())

    report = {}
    for learner_id, profile in LEARNERS.items():
        result = simulate_assessment(assessments, learner_id, profile, rng)
        plan = plans.create_plan(learner_id, result.band, start, rng=rng)
        sessions = simulate_practice(plan, learner_id, profile, rng, practice_days)
        today = start + timedelta(days=practice_days - 1)
        report[learner_id] = {
            "age": profile["age"],
            "score": result.percentage,
            "band": result.band.value,
            "plan_id": plan.id,
            "first_theme": plan.days[0].theme,
            "stats": learner_stats(sessions, today).model_dump(),
            "progress": plans.progress(plan.id, sessions).model_dump(mode="json"),
        }
        print(f"{learner_id}: {result.percentage}% -> {result.band.value}", file=sys.stderr)
    return report


if __name__ == "__main__":
    print(json.dumps(run(), indent=2))
