"""Next-question selection for live placement sessions.

Selection is stateless: the caller passes the session's answered question
ids (and, ideally, the scope of each answered question) on every call.
Candidates are filtered by age eligibility and answered ids, speaking
prompts are held back early in a session once one has been asked, and the
remaining questions are ordered by scope name and then by their position
in the pool so consecutive picks rotate through scopes.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from env_validation import get_env_int
from schemas import Question, Scope

_LOGGER = logging.getLogger(__name__)

ScopeCounts = Union[Mapping[Scope, int], Iterable[Scope]]


@dataclass(frozen=True)
class SelectionPolicy:
    """Tunable parameters for scope balancing."""

    throttled_scopes: frozenset = field(default_factory=lambda: frozenset({Scope.SPEAKING}))
    throttle_window: int = 5

    @classmethod
    def from_env(cls) -> "SelectionPolicy":
        return cls(throttle_window=get_env_int("SPEAKING_THROTTLE_WINDOW", 5, minimum=1))

    def blocked_scopes(self, scope_counts: Mapping[Scope, int], total_answered: int) -> set[Scope]:
        """Scopes to skip for this pick.

        A throttled scope is skipped while it has already been answered at
        least once and fewer than ``throttle_window`` questions are answered.
        """

        if total_answered >= self.throttle_window:
            return set()
        return {scope for scope in self.throttled_scopes if scope_counts.get(scope, 0) > 0}


DEFAULT_POLICY = SelectionPolicy()


def count_scopes(
    answered_ids: Iterable[str],
    candidate_pool: Sequence[Question],
    answered_scopes: Optional[ScopeCounts] = None,
) -> Counter:
    """Return per-scope answered counts.

    ``answered_scopes`` may be a mapping of scope to count or an iterable
    with one scope per answered question. A single scope (or scope
    name) counts as one answered question. Without it, scopes are looked up
    from pool entries whose ids were answered.
    """

    counts: Counter = Counter()
    if answered_scopes is None:
        answered = set(answered_ids)
        for question in candidate_pool:
            if question.id in answered:
                counts[question.scope] += 1
        return counts

    if isinstance(answered_scopes, str):
        counts[Scope(answered_scopes)] += 1
    elif isinstance(answered_scopes, Mapping):
        for scope, count in answered_scopes.items():
            counts[Scope(scope)] += int(count)
    else:
        for scope in answered_scopes:
            counts[Scope(scope)] += 1
    return counts


def eligible_questions(
    answered_ids: Iterable[str],
    learner_age: int,
    candidate_pool: Sequence[Question],
    *,
    answered_scopes: Optional[ScopeCounts] = None,
    policy: SelectionPolicy = DEFAULT_POLICY,
) -> List[Question]:
    """Return the ordered list of questions that may be asked next."""

    answered = set(answered_ids)
    counts = count_scopes(answered, candidate_pool, answered_scopes)
    blocked = policy.blocked_scopes(counts, len(answered))

    ranked = [
        (question.scope.value, position, question)
        for position, question in enumerate(candidate_pool)
        if question.id not in answered
        and question.is_eligible(learner_age)
        and question.scope not in blocked
    ]
    ranked.sort(key=lambda entry: (entry[0], entry[1]))
    return [question for _, _, question in ranked]


def next_question(
    answered_ids: Iterable[str],
    learner_age: int,
    candidate_pool: Sequence[Question],
    *,
    answered_scopes: Optional[ScopeCounts] = None,
    policy: SelectionPolicy = DEFAULT_POLICY,
) -> Optional[Question]:
    """Pick the next question, or ``None`` once the session is exhausted."""

    answered = set(answered_ids)
    candidates = eligible_questions(
        answered,
        learner_age,
        candidate_pool,
        answered_scopes=answered_scopes,
        policy=policy,
    )
    if not candidates:
        _LOGGER.debug(
            "No eligible question left (answered=%d, age=%s, pool=%d)",
            len(answered),
            learner_age,
            len(candidate_pool),
        )
        return None
    return candidates[0]
