import pytest

from app.core.errors import InvalidStateError, NotFoundError, VersionConflictError
from app.db.session_repository import SessionRepository
from app.models import sessions

from conftest import EXAM_ID, START


def _study(user_id="user_a", **overrides):
    fields = dict(
        userId=user_id,
        examId=EXAM_ID,
        questionsOrder=["q_1", "q_2", "q_3"],
        startedAt=START,
        lastActivityAt=START,
    )
    fields.update(overrides)
    return sessions.StudySession(**fields)


@pytest.fixture
def repository(db):
    return SessionRepository(db, "study")


async def test_create_and_get(repository):
    session = await repository.create(_study())

    stored = await repository.get_by_id(session.id)

    assert stored.id == session.id
    assert stored.version == 1
    assert stored.questionsOrder == ["q_1", "q_2", "q_3"]


async def test_open_slot_is_released_on_terminal_status(repository, db):
    session = await repository.create(_study())
    doc = await db["study_sessions"].find_one({"id": session.id})
    assert doc["openSlot"] == f"user_a:{EXAM_ID}"

    await repository.update(session.id, set_fields={"status": "completed"})

    doc = await db["study_sessions"].find_one({"id": session.id})
    assert "openSlot" not in doc


async def test_active_lookup_returns_open_session(repository):
    await repository.create(_study(status="completed", startedAt=START - 100))
    paused = await repository.create(_study(status="paused"))

    found = await repository.get_active_by_user_exam("user_a", EXAM_ID)

    assert found.id == paused.id
    assert await repository.get_active_by_user_exam("user_b", EXAM_ID) is None


async def test_update_applies_partial_patch_and_bumps_version(repository):
    session = await repository.create(_study())

    updated = await repository.update(
        session.id,
        set_fields={"currentQuestionIndex": 2},
        add_to_set={"flags": "q_2"},
        inc={"timeSpentSeconds": 15},
    )

    assert updated.currentQuestionIndex == 2
    assert updated.flags == ["q_2"]
    assert updated.timeSpentSeconds == 15
    assert updated.version == 2

    updated = await repository.update(session.id, pull={"flags": "q_2"})
    assert updated.flags == []
    assert updated.version == 3


async def test_update_rejects_disallowed_status(repository):
    session = await repository.create(_study(status="abandoned"))

    with pytest.raises(InvalidStateError):
        await repository.update(
            session.id,
            set_fields={"currentQuestionIndex": 1},
            allowed_statuses=("active", "paused"),
        )

    stored = await repository.get_by_id(session.id)
    assert stored.currentQuestionIndex == 0
    assert stored.version == 1


async def test_stale_version_is_rejected(repository):
    session = await repository.create(_study())
    await repository.update(session.id, set_fields={"currentQuestionIndex": 1}, expected_version=1)

    with pytest.raises(VersionConflictError):
        await repository.update(session.id, set_fields={"currentQuestionIndex": 2}, expected_version=1)

    stored = await repository.get_by_id(session.id)
    assert stored.currentQuestionIndex == 1
    assert stored.version == 2


async def test_update_unknown_session(repository):
    with pytest.raises(NotFoundError):
        await repository.update("study_missing", set_fields={"currentQuestionIndex": 1})


async def test_list_by_user_paginates_most_recent_first(repository):
    for offset in range(5):
        await repository.create(_study(status="completed", startedAt=START + offset))
    await repository.create(_study(user_id="user_b"))

    page_one, total = await repository.list_by_user("user_a", page=1, limit=2)
    page_three, _ = await repository.list_by_user("user_a", page=3, limit=2)

    assert total == 5
    assert [s.startedAt for s in page_one] == [START + 4, START + 3]
    assert [s.startedAt for s in page_three] == [START]


def test_unknown_kind_is_rejected(db):
    with pytest.raises(ValueError):
        SessionRepository(db, "exam")
