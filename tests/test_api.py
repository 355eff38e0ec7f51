"""
HTTP layer tests through FastAPI's TestClient.
"""

import pytest

from tests.conftest import auth_headers, qid

API = "/api/v1"

EXAM_PAYLOAD = {
    "title": "Geography quiz",
    "duration_minutes": 20,
    "published": True,
    "questions": [
        {"type": "OBJECTIVE_SINGLE", "text": "Capital of France?", "options": ["Paris", "London"],
         "correct_answer": "Paris", "points": 10},
        {"type": "SUBJECTIVE", "text": "Describe the Seine.", "points": 5},
    ],
}


@pytest.fixture
def exam_id(client, admin):
    response = client.post(f"{API}/exams/", json=EXAM_PAYLOAD, headers=auth_headers(admin))
    assert response.status_code == 201
    return response.json()["id"]


class TestAuth:
    def test_missing_token(self, client):
        assert client.get(f"{API}/users/me").status_code == 401

    def test_garbage_token(self, client):
        response = client.get(f"{API}/users/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_me(self, client, candidate):
        response = client.get(f"{API}/users/me", headers=auth_headers(candidate))
        assert response.status_code == 200
        assert response.json()["email"] == "candidate@test.com"

    def test_candidate_cannot_create_exam(self, client, candidate):
        response = client.post(f"{API}/exams/", json=EXAM_PAYLOAD, headers=auth_headers(candidate))
        assert response.status_code == 403


class TestExams:
    def test_created_exam_derives_total_points(self, client, admin, exam_id):
        response = client.get(f"{API}/exams/{exam_id}", headers=auth_headers(admin))
        body = response.json()
        assert body["total_points"] == 15
        assert body["questions"][0]["correct_answer"] == "Paris"

    def test_candidate_view_hides_answers(self, client, candidate, exam_id):
        body = client.get(f"{API}/exams/{exam_id}", headers=auth_headers(candidate)).json()
        assert "correct_answer" not in body["questions"][0]
        assert "negative_marking_enabled" not in body

    def test_publishing_broken_exam_is_rejected(self, client, admin):
        payload = dict(EXAM_PAYLOAD, published=True, questions=[
            {"type": "OBJECTIVE_SINGLE", "text": "No key", "points": 1},
        ])
        response = client.post(f"{API}/exams/", json=payload, headers=auth_headers(admin))
        assert response.status_code == 422
        assert "correct answer" in response.json()["detail"]

    def test_extend_duration(self, client, admin, exam_id):
        response = client.patch(
            f"{API}/exams/{exam_id}/duration", json={"duration_minutes": 25}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["duration_minutes"] == 25
        assert response.json()["version"] == 2

    def test_zero_duration_is_rejected(self, client, admin, exam_id):
        response = client.patch(
            f"{API}/exams/{exam_id}/duration", json={"duration_minutes": 0}, headers=auth_headers(admin)
        )
        assert response.status_code == 422


class TestAttemptFlow:
    def test_start_draft_submit(self, client, candidate, admin, exam_id, db_session):
        headers = auth_headers(candidate)

        start = client.post(f"{API}/attempts/", json={"exam_id": exam_id}, headers=headers)
        assert start.status_code == 200
        body = start.json()
        assert body["resumed"] is False
        assert 0 < body["remaining_seconds"] <= 20 * 60 + 30
        assert "correct_answer" not in body["exam"]["questions"][0]
        submission_id = body["submission_id"]
        q1, q2 = (str(q["id"]) for q in body["exam"]["questions"])

        again = client.post(f"{API}/attempts/", json={"exam_id": exam_id}, headers=headers).json()
        assert again["submission_id"] == submission_id
        assert again["resumed"] is True
        assert again["started_at"] == body["started_at"]

        draft = client.put(
            f"{API}/attempts/{submission_id}/draft", json={"answers": {q1: "Paris"}}, headers=headers
        )
        assert draft.json()["saved"] is True

        submit = client.post(
            f"{API}/attempts/{submission_id}/submit",
            json={"answers": {q1: "Paris", q2: "A river."}},
            headers=headers,
        )
        assert submit.status_code == 200
        assert submit.json()["status"] == "PENDING_MANUAL_REVIEW"

        graded = client.post(
            f"{API}/scores/{submission_id}/questions/{q2}",
            json={"score": 4, "feedback": "good"},
            headers=auth_headers(admin),
        )
        assert graded.status_code == 200
        assert graded.json() == {
            "submission_id": submission_id, "question_id": int(q2), "score": 14.0, "status": "GRADED",
        }

        view = client.get(f"{API}/submissions/{submission_id}", headers=headers).json()
        assert view["score"] == 14
        assert view["passed"] is True
        assert view["question_results"][q2]["feedback"] == "good"

    def test_repeated_submit_returns_stored_result(self, client, candidate, exam_id):
        headers = auth_headers(candidate)
        submission_id = client.post(
            f"{API}/attempts/", json={"exam_id": exam_id}, headers=headers
        ).json()["submission_id"]

        first = client.post(f"{API}/attempts/{submission_id}/submit", json={"answers": {}}, headers=headers)
        second = client.post(f"{API}/attempts/{submission_id}/submit", json={"answers": {}}, headers=headers)

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()

    def test_other_candidate_is_forbidden(self, client, candidate, other_candidate, exam_id):
        submission_id = client.post(
            f"{API}/attempts/", json={"exam_id": exam_id}, headers=auth_headers(candidate)
        ).json()["submission_id"]

        response = client.get(f"{API}/submissions/{submission_id}", headers=auth_headers(other_candidate))

        assert response.status_code == 403

    def test_unknown_exam(self, client, candidate):
        response = client.post(f"{API}/attempts/", json={"exam_id": 4242}, headers=auth_headers(candidate))
        assert response.status_code == 404

    def test_timer(self, client, candidate, exam_id):
        headers = auth_headers(candidate)
        submission_id = client.post(
            f"{API}/attempts/", json={"exam_id": exam_id}, headers=headers
        ).json()["submission_id"]

        timer = client.get(f"{API}/attempts/{submission_id}/timer", headers=headers).json()

        assert timer["duration_minutes"] == 20
        assert timer["submitted"] is False


class TestReleaseEndpoints:
    def test_score_hidden_until_manual_release(self, client, candidate, admin, make_exam):
        exam = make_exam(release_mode="MANUAL")
        headers = auth_headers(candidate)
        submission_id = client.post(
            f"{API}/attempts/", json={"exam_id": exam.id}, headers=headers
        ).json()["submission_id"]

        submit = client.post(
            f"{API}/attempts/{submission_id}/submit", json={"answers": {qid(exam, 0): "B"}}, headers=headers
        ).json()
        assert submit["score"] is None
        assert "score" not in client.get(f"{API}/submissions/{submission_id}", headers=headers).json()

        released = client.post(f"{API}/releases/exams/{exam.id}", headers=auth_headers(admin))
        assert released.json() == {"released_count": 1}

        view = client.get(f"{API}/submissions/{submission_id}", headers=headers).json()
        assert view["score"] == 1

    def test_releasing_attempt_in_progress_conflicts(self, client, candidate, admin, make_exam):
        exam = make_exam(release_mode="MANUAL")
        submission_id = client.post(
            f"{API}/attempts/", json={"exam_id": exam.id}, headers=auth_headers(candidate)
        ).json()["submission_id"]

        response = client.put(
            f"{API}/releases/submissions/{submission_id}", json={"release": True}, headers=auth_headers(admin)
        )

        assert response.status_code == 409
        resumed = client.post(f"{API}/attempts/", json={"exam_id": exam.id}, headers=auth_headers(candidate))
        assert resumed.status_code == 200
        assert resumed.json()["submission_id"] == submission_id

    def test_candidate_cannot_release(self, client, candidate, make_exam):
        exam = make_exam(release_mode="MANUAL")
        response = client.post(f"{API}/releases/exams/{exam.id}", headers=auth_headers(candidate))
        assert response.status_code == 403


class TestJobs:
    def test_enqueue_regrade(self, client, admin, monkeypatch):
        from exam_engine.api.v1.endpoints import jobs

        calls = []
        monkeypatch.setattr(jobs, "enqueue_regrade_task", lambda exam_id=None: calls.append(exam_id) or "job-1")

        response = client.post(f"{API}/jobs/regrade", json={"exam_id": 7}, headers=auth_headers(admin))

        assert response.json() == {"job_id": "job-1"}
        assert calls == [7]


class TestHealth:
    def test_live(self, client):
        assert client.get(f"{API}/health/live").json() == {"status": "ok"}

    def test_db(self, client):
        assert client.get(f"{API}/health/db").json() == {"status": "ok"}
