import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def make_question(qid, scope="vocab", age_min=5, age_max=12, correct="b", options=("a", "b", "c")):
    from schemas import Question

    if scope == "speaking":
        option_rows = []
    else:
        option_rows = [
            {"id": oid, "text": f"Option {oid}", "is_correct": oid == correct} for oid in options
        ]
    return Question(
        id=qid,
        text=f"Question {qid}",
        age_min=age_min,
        age_max=age_max,
        scope=scope,
        options=option_rows,
    )


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def mixed_pool():
    return [
        make_question("v1", "vocab"),
        make_question("s1", "speaking"),
        make_question("r1", "reading"),
        make_question("g1", "grammar"),
        make_question("l1", "listening"),
        make_question("s2", "speaking"),
        make_question("v2", "vocab"),
        make_question("old", "vocab", age_min=13, age_max=16),
    ]


@pytest.fixture
def catalog():
    from content_bank import CurriculumCatalog

    return CurriculumCatalog(ROOT / "content" / "curriculum.json")


@pytest.fixture
def question_factory():
    return make_question
