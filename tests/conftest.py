"""
Shared fixtures: in-memory MongoDB, a controllable clock and seeded exam data
"""
import random
from typing import Dict, List

import pytest
from mongomock_motor import AsyncMongoMockClient

from app.db.question_store import QuestionStore
from app.models.common import CurrentUser
from app.services import study_session_service, test_session_service

START = 1_700_000_000

EXAM_ID = "exam_n10_008"
INACTIVE_EXAM_ID = "exam_retired"
EMPTY_EXAM_ID = "exam_empty"

# Canonical answer keys of the active, well-formed questions
ANSWER_KEY: Dict[str, List[int]] = {
    "q_1": [1],
    "q_2": [0, 2],
    "q_3": [3],
    "q_4": [0],
    "q_5": [2],
    "q_6": [1],
}
ACTIVE_QUESTION_IDS = list(ANSWER_KEY)


class FakeClock:
    """Epoch-seconds clock that only moves when told to"""

    def __init__(self, now: int = START):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int):
        self.now += seconds


def _question(qid, position, objective, correct, options=None, **extra):
    doc = {
        "id": qid,
        "examId": EXAM_ID,
        "objectiveId": objective,
        "questionText": f"Question {qid}?",
        "questionType": "multiple-choice",
        "options": options if options is not None else [f"{qid}-a", f"{qid}-b", f"{qid}-c", f"{qid}-d"],
        "correctAnswer": correct,
        "explanation": f"Because {qid}.",
        "isActive": True,
        "position": position,
    }
    doc.update(extra)
    return doc


QUESTIONS = [
    _question("q_1", 1, "obj_a", [1]),
    # Stored as stringified JSON
    _question(
        "q_2", 2, "obj_a", "[0, 2]",
        options='["q_2-a", "q_2-b", "q_2-c", "q_2-d"]',
        questionType="multiple-select"
    ),
    _question("q_3", 3, "obj_a", 3),
    _question("q_4", 4, "obj_b", [0]),
    _question("q_5", 5, "obj_b", [2]),
    _question("q_6", 6, "obj_b", [1]),
    _question("q_7", 7, "obj_b", [0], isActive=False),
    # Answer key points past the options; never served
    _question("q_8", 8, "obj_b", [9]),
    {
        "id": "q_r1",
        "examId": INACTIVE_EXAM_ID,
        "objectiveId": None,
        "questionText": "Retired?",
        "options": ["yes", "no"],
        "correctAnswer": [0],
        "isActive": True,
        "position": 1,
    },
]

EXAMS = [
    {
        "id": EXAM_ID,
        "code": "N10-008",
        "name": "CompTIA Network+",
        "vendor": {"name": "CompTIA"},
        "duration": 60,
        "totalQuestions": 5,
        "passingScore": 70,
        "isActive": True,
    },
    {
        "id": INACTIVE_EXAM_ID,
        "code": "OLD-001",
        "name": "Retired Exam",
        "vendor": "Legacy",
        "isActive": False,
    },
    {
        "id": EMPTY_EXAM_ID,
        "code": "NEW-001",
        "name": "Exam Without Questions",
        "isActive": True,
    },
]

OBJECTIVES = [
    {"id": "obj_a", "examId": EXAM_ID, "title": "Networking Fundamentals", "weight": 0.5},
    {"id": "obj_b", "examId": EXAM_ID, "title": "Network Security", "weight": 0.5},
]


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["certprep_test"]
    await database["exams"].insert_many([dict(e) for e in EXAMS])
    await database["objectives"].insert_many([dict(o) for o in OBJECTIVES])
    await database["questions"].insert_many([dict(q) for q in QUESTIONS])
    return database


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def user():
    return CurrentUser(id="user_a")


@pytest.fixture
def other_user():
    return CurrentUser(id="user_b")


@pytest.fixture
def admin():
    return CurrentUser(id="admin_1", isAdmin=True)


@pytest.fixture
def question_store(db):
    return QuestionStore(db, rng=random.Random(1234))


@pytest.fixture
def study_service(db, question_store, clock):
    return study_session_service.StudySessionService(db, question_store=question_store, clock=clock)


@pytest.fixture
def test_service(db, question_store, clock):
    return test_session_service.TestSessionService(db, question_store=question_store, clock=clock)


def displayed_key(session, question_id: str) -> List[int]:
    """Correct answer indices as displayed in a test session"""
    order = session.optionsOrder.get(question_id)
    key = ANSWER_KEY[question_id]
    if not order:
        return list(key)
    return [position for position, original in enumerate(order) if original in key]


def wrong_answer(session, question_id: str) -> List[int]:
    """A single displayed option that is not part of the key"""
    key = displayed_key(session, question_id)
    return [next(i for i in range(4) if i not in key)]
