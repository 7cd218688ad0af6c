import httpx
import pytest

from app.api.deps import get_clock, get_db
from app.main import app

from conftest import EXAM_ID

USER = {"X-User-Id": "user_a"}
OTHER = {"X-User-Id": "user_b"}
ADMIN = {"X-User-Id": "admin_1", "X-User-Role": "admin"}


@pytest.fixture
async def client(db, clock):
    async def override_db():
        return db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_clock] = lambda: clock
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    app.dependency_overrides.clear()


async def test_identity_is_required(client):
    response = await client.post("/api/sessions/study/start", json={"examId": EXAM_ID})

    assert response.status_code == 401
    assert response.json() == {"success": False, "statusMessage": "Authentication required"}


async def test_invalid_body_is_rejected(client):
    response = await client.post(
        "/api/sessions/study/start", json={"examId": EXAM_ID, "mode": "cram"}, headers=USER
    )

    body = response.json()
    assert response.status_code == 400
    assert body["success"] is False
    assert body["statusMessage"] == "Invalid request data"
    assert body["data"]["errors"][0]["field"] == "mode"


async def test_study_session_flow(client):
    response = await client.post("/api/sessions/study/start", json={"examId": EXAM_ID}, headers=USER)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    session_id = body["data"]["session"]["id"]
    assert body["data"]["isResuming"] is False
    assert body["data"]["questions"][0]["correctAnswers"] == [1]

    response = await client.put(
        f"/api/sessions/study/{session_id}",
        json={"answer": {"questionId": "q_1", "selectedAnswers": [1]}, "currentQuestionIndex": 1},
        headers=USER,
    )
    assert response.status_code == 200
    session = response.json()["data"]
    assert session["answers"]["q_1"]["isCorrect"] is True
    assert session["version"] == 2

    response = await client.post(f"/api/sessions/study/{session_id}/pause", headers=USER)
    assert response.json()["data"]["status"] == "paused"
    response = await client.post(f"/api/sessions/study/{session_id}/resume", headers=USER)
    assert response.json()["data"]["status"] == "active"

    response = await client.get(f"/api/sessions/study/{session_id}", headers=USER)
    assert response.status_code == 200
    assert len(response.json()["data"]["questions"]) == 6

    response = await client.request(
        "DELETE", f"/api/sessions/study/{session_id}", json={"action": "complete"}, headers=USER
    )
    assert response.status_code == 200
    statistics = response.json()["data"]["statistics"]
    assert statistics["questionsAnswered"] == 1
    assert statistics["accuracy"] == 100

    response = await client.request(
        "DELETE", f"/api/sessions/study/{session_id}", json={"action": "abandon"}, headers=USER
    )
    assert response.status_code == 409
    assert response.json()["success"] is False


async def test_study_errors(client):
    response = await client.post("/api/sessions/study/start", json={"examId": EXAM_ID}, headers=USER)
    session_id = response.json()["data"]["session"]["id"]

    response = await client.get(f"/api/sessions/study/{session_id}", headers=OTHER)
    assert response.status_code == 403

    response = await client.get("/api/sessions/study/study_missing", headers=USER)
    assert response.status_code == 404

    response = await client.put(f"/api/sessions/study/{session_id}", json={}, headers=USER)
    assert response.status_code == 400

    response = await client.put(
        f"/api/sessions/study/{session_id}",
        json={"currentQuestionIndex": 1, "expectedVersion": 7},
        headers=USER,
    )
    assert response.status_code == 409

    response = await client.post(
        "/api/sessions/study/start", json={"examId": "exam_missing"}, headers=USER
    )
    assert response.status_code == 404
    assert response.json()["statusMessage"] == "Exam not found"


async def test_study_reports(client):
    response = await client.post("/api/sessions/study/start", json={"examId": EXAM_ID}, headers=USER)
    session_id = response.json()["data"]["session"]["id"]
    await client.put(
        f"/api/sessions/study/{session_id}",
        json={
            "answer": {"questionId": "q_4", "selectedAnswers": [3]},
            "bookmark": {"questionId": "q_4", "action": "add"},
        },
        headers=USER,
    )

    response = await client.get("/api/sessions/study/history", headers=USER)
    history = response.json()["data"]
    assert history["pagination"]["total"] == 1
    assert history["sessions"][0]["id"] == session_id

    response = await client.get(f"/api/sessions/study/bookmarks?examId={EXAM_ID}", headers=USER)
    bookmarks = response.json()["data"]
    assert [q["id"] for q in bookmarks["questions"]] == ["q_4"]
    assert bookmarks["hasMore"] is False

    response = await client.get(f"/api/sessions/study/weak-areas?examId={EXAM_ID}", headers=USER)
    weak_areas = response.json()["data"]["weakAreas"]
    assert [w["objectiveId"] for w in weak_areas] == ["obj_b"]
    assert weak_areas[0]["accuracy"] == 0

    response = await client.get(f"/api/sessions/study/analytics?examId={EXAM_ID}", headers=USER)
    assert response.status_code == 200
    analytics = response.json()["data"]
    assert analytics["totalSessions"] == 1
    assert analytics["totalQuestionsAnswered"] == 1
    assert analytics["sessionsByMode"] == {"sequential": 1}
    assert analytics["recentSessions"][0]["id"] == session_id
    assert analytics["performanceTrend"][0]["accuracy"] == 0


async def test_test_session_flow(client, clock):
    response = await client.post("/api/sessions/test/start", json={"examId": EXAM_ID}, headers=USER)
    assert response.status_code == 201
    data = response.json()["data"]
    session_id = data["session"]["id"]
    assert data["timeRemainingSeconds"] == 3600
    for question in data["questions"]:
        assert question["correctAnswers"] is None
        assert question["explanation"] is None
        assert "optionOrder" not in question

    response = await client.get(f"/api/sessions/test/{session_id}/results", headers=USER)
    assert response.status_code == 409

    response = await client.put(
        f"/api/sessions/test/{session_id}",
        json={"answer": {"questionIndex": 0, "selectedAnswers": [0]}},
        headers=USER,
    )
    assert response.status_code == 200
    first_id = data["session"]["questionsOrder"][0]
    assert response.json()["data"]["session"]["answers"][first_id]["isCorrect"] is None

    clock.advance(120)
    response = await client.get(f"/api/sessions/test/{session_id}", headers=USER)
    assert response.json()["data"]["timeRemainingSeconds"] == 3480

    response = await client.post(f"/api/sessions/test/{session_id}/submit", headers=USER)
    assert response.status_code == 200
    submitted = response.json()["data"]["session"]
    assert submitted["status"] == "submitted"
    assert submitted["unansweredCount"] == 4

    response = await client.post(f"/api/sessions/test/{session_id}/submit", headers=USER)
    assert response.status_code == 409

    response = await client.get(
        f"/api/sessions/test/{session_id}/results?detailed=true", headers=USER
    )
    results = response.json()["data"]
    assert results["results"]["totalQuestions"] == 5
    assert len(results["detailedResults"]) == 5
    assert results["detailedResults"][0]["correctAnswers"]

    response = await client.get("/api/sessions/test/history", headers=USER)
    assert response.json()["data"]["sessions"][0]["id"] == session_id


async def test_test_session_abandon_and_access(client):
    response = await client.post("/api/sessions/test/start", json={"examId": EXAM_ID}, headers=USER)
    session_id = response.json()["data"]["session"]["id"]

    response = await client.get(f"/api/sessions/test/{session_id}", headers=OTHER)
    assert response.status_code == 403
    response = await client.get(f"/api/sessions/test/{session_id}", headers=ADMIN)
    assert response.status_code == 200

    response = await client.delete(f"/api/sessions/test/{session_id}", headers=USER)
    assert response.status_code == 200
    assert response.json()["data"]["session"]["status"] == "abandoned"

    response = await client.put(
        f"/api/sessions/test/{session_id}", json={"currentQuestionIndex": 1}, headers=USER
    )
    assert response.status_code == 409

    response = await client.get("/api/sessions/test/test_missing", headers=USER)
    assert response.status_code == 404


async def test_root_and_health(client):
    response = await client.get("/")
    assert response.json()["status"] == "operational"

    # No MongoDB connection is opened in tests
    response = await client.get("/health")
    assert response.status_code == 503
    assert response.json()["components"]["mongodb"]["status"] == "unhealthy"
