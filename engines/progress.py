"""Learner progress statistics over completed plan-day practice sessions."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from engines.scoring import percentage
from schemas import LearnerStats, Plan, PlanProgress, PracticeSession


def _ratio(hits: int, total: int) -> int:
    return percentage(hits, total) if total else 0


def _as_date(moment: datetime | date) -> date:
    return moment.date() if isinstance(moment, datetime) else moment


def day_index_for(start_date: date, today: date, day_count: int = 60) -> Optional[int]:
    """Return the 1-based plan day for ``today`` or ``None`` outside the plan window."""

    offset = (_as_date(today) - _as_date(start_date)).days
    if 0 <= offset < day_count:
        return offset + 1
    return None


def current_streak(completion_dates: Iterable[date], today: date) -> int:
    """Count consecutive practice days ending today, or yesterday if today is still open."""

    days = {_as_date(value) for value in completion_dates}
    today = _as_date(today)
    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def learner_stats(sessions: Iterable[PracticeSession], today: date) -> LearnerStats:
    sessions = list(sessions)
    if not sessions:
        return LearnerStats()

    vocab = [s.vocab_correct for s in sessions if s.vocab_correct is not None]
    reading = [s.reading_correct for s in sessions if s.reading_correct is not None]
    timed = [s.total_time_ms for s in sessions if s.total_time_ms is not None]
    average_seconds = 0
    if timed:
        average_seconds = int(math.floor(sum(timed) / len(timed) / 1000 + 0.5))

    return LearnerStats(
        total_sessions=len(sessions),
        unique_days_completed=len({s.day_index for s in sessions}),
        vocab_accuracy=_ratio(sum(1 for ok in vocab if ok), len(vocab)),
        reading_accuracy=_ratio(sum(1 for ok in reading if ok), len(reading)),
        average_session_seconds=average_seconds,
        streak=current_streak((s.completed_at for s in sessions), today),
    )


def plan_progress(plan: Plan, sessions: Iterable[PracticeSession]) -> PlanProgress:
    """Summarise how much of ``plan`` has been practised.

    Sessions recorded against another plan are ignored. Accuracy counts a
    missing result as not correct.
    """

    relevant: List[PracticeSession] = [
        s for s in sessions if s.plan_id in (None, plan.id) and s.day_index <= len(plan.days)
    ]
    completed = {s.day_index for s in relevant}
    total = len(relevant)
    return PlanProgress(
        plan_id=plan.id,
        band=plan.band,
        total_days=len(plan.days),
        completed_days=len(completed),
        progress_percentage=_ratio(len(completed), len(plan.days)),
        vocab_accuracy=_ratio(sum(1 for s in relevant if s.vocab_correct), total),
        reading_accuracy=_ratio(sum(1 for s in relevant if s.reading_correct), total),
        total_sessions=total,
    )
