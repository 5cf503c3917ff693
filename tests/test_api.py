import json
from datetime import timedelta

from fastapi import APIRouter
from fastapi.testclient import TestClient

from lms_api.app import app
from lms_api.models.db.question import QuestionType


def _start(client, headers, test_id) -> dict:
    response = client.post(f"/api/tests/{test_id}/start", headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_requires_bearer_token(client, make_test) -> None:
    test = make_test()
    assert client.get(f"/api/tests/{test.id}/can-take").status_code == 401
    response = client.get(
        f"/api/tests/{test.id}/can-take", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401


def test_inactive_user_is_rejected(client, make_user, make_test, auth_headers) -> None:
    inactive = make_user(is_active=False)
    test = make_test()
    response = client.get(f"/api/tests/{test.id}/can-take", headers=auth_headers(inactive))
    assert response.status_code == 401


def test_can_take_reports_localized_reason(client, clock, learner, make_test, auth_headers) -> None:
    test = make_test(available_from=clock.now() + timedelta(days=2))

    response = client.get(f"/api/tests/{test.id}/can-take", headers=auth_headers(learner, "ja"))

    assert response.status_code == 200
    assert response.json() == {
        "canTake": False,
        "reason": "テストはまだ利用できません",
        "reasonCode": "NOT_AVAILABLE_YET",
    }


def test_can_take_allowed(client, learner, make_test, auth_headers) -> None:
    test = make_test()
    response = client.get(f"/api/tests/{test.id}/can-take", headers=auth_headers(learner))
    assert response.json()["canTake"] is True


def test_start_returns_questions_without_answer_key(
    client, learner, make_question, make_test, auth_headers
) -> None:
    choice = make_question()
    essay = make_question(QuestionType.PROGRAMMING)
    test = make_test([choice, essay], time_limit_minutes=15)

    body = _start(client, auth_headers(learner), test.id)

    assert body["attemptNumber"] == 1
    assert body["expiresAt"] is not None
    assert [question["questionId"] for question in body["questions"]] == [choice.id, essay.id]
    assert "isCorrect" not in json.dumps(body)
    assert body["questions"][1]["options"] == []


def test_start_twice_conflicts(client, learner, make_question, make_test, auth_headers) -> None:
    test = make_test([make_question()])
    headers = auth_headers(learner)
    _start(client, headers, test.id)

    response = client.post(f"/api/tests/{test.id}/start", headers=headers)

    assert response.status_code == 409
    assert response.json()["reason"] == "ALREADY_IN_PROGRESS"
    assert response.json()["detail"] == "Test is already in progress"


def test_start_unpublished_is_bad_request(client, learner, make_test, auth_headers) -> None:
    test = make_test(is_published=False)
    response = client.post(f"/api/tests/{test.id}/start", headers=auth_headers(learner, "ja"))
    assert response.status_code == 400
    assert response.json()["detail"] == "テストが公開されていません"


def test_questions_and_session_follow_active_attempt(
    client, learner, make_question, make_test, auth_headers
) -> None:
    questions = [make_question(option_count=4) for _ in range(5)]
    test = make_test(questions, shuffle_questions=True, shuffle_options=True)
    headers = auth_headers(learner)

    assert client.get(f"/api/tests/{test.id}/session", headers=headers).json() is None
    response = client.get(f"/api/tests/{test.id}/questions", headers=headers)
    assert response.status_code == 409

    started = _start(client, headers, test.id)
    view = client.get(f"/api/tests/{test.id}/questions", headers=headers).json()
    assert view["questions"] == started["questions"]

    session = client.get(f"/api/tests/{test.id}/session", headers=headers).json()
    assert session["id"] == started["attemptId"]
    assert session["status"] == "IN_PROGRESS"


def test_submit_flow(client, learner, make_question, make_test, auth_headers) -> None:
    first = make_question(points=50)
    second = make_question(points=50)
    test = make_test([first, second], passing_score=50)
    headers = auth_headers(learner)
    started = _start(client, headers, test.id)

    response = client.post(
        f"/api/tests/{test.id}/submit",
        headers=headers,
        json={
            "testResultId": started["attemptId"],
            "answers": [{"questionId": first.id, "selectedOptionId": first.correct_option_id}],
        },
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "COMPLETED"
    assert body["score"] == 50
    assert body["isPassed"] is True
    assert body["timedOut"] is False
    assert body["answers"] == [{"questionId": first.id, "isCorrect": True, "pointsAwarded": 50}]

    again = client.post(
        f"/api/tests/{test.id}/submit",
        headers=headers,
        json={"testResultId": started["attemptId"], "answers": []},
    )
    assert again.status_code == 409
    assert again.json()["reason"] == "NOT_IN_PROGRESS"


def test_submit_rejects_malformed_answer(client, learner, make_question, make_test, auth_headers) -> None:
    question = make_question()
    test = make_test([question])
    headers = auth_headers(learner)
    started = _start(client, headers, test.id)

    response = client.post(
        f"/api/tests/{test.id}/submit",
        headers=headers,
        json={"testResultId": started["attemptId"], "answers": [{"questionId": question.id, "answerText": "B"}]},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert client.get(f"/api/tests/{test.id}/session", headers=headers).json()["status"] == "IN_PROGRESS"


def test_submit_hides_results_when_configured(
    client, learner, make_question, make_test, auth_headers
) -> None:
    question = make_question()
    test = make_test([question], show_results_immediately=False)
    headers = auth_headers(learner)
    started = _start(client, headers, test.id)

    body = client.post(
        f"/api/tests/{test.id}/submit",
        headers=headers,
        json={
            "testResultId": started["attemptId"],
            "answers": [{"questionId": question.id, "selectedOptionId": question.correct_option_id}],
        },
    ).json()

    assert body["status"] == "COMPLETED"
    assert body["score"] is None
    assert body["isPassed"] is None
    assert body["answers"] is None

    history = client.get("/api/tests/results/me", headers=headers).json()
    assert history["data"][0]["score"] is None


def test_late_submit_is_abandoned(client, clock, learner, make_question, make_test, auth_headers) -> None:
    question = make_question()
    test = make_test([question], time_limit_minutes=30, max_attempts=1, passing_score=70)
    headers = auth_headers(learner)
    started = _start(client, headers, test.id)
    clock.advance(minutes=45)

    body = client.post(
        f"/api/tests/{test.id}/submit",
        headers=headers,
        json={
            "testResultId": started["attemptId"],
            "answers": [{"questionId": question.id, "selectedOptionId": question.correct_option_id}],
        },
    ).json()

    assert body["status"] == "ABANDONED"
    assert body["timedOut"] is True
    assert body["score"] == 0
    assert body["isPassed"] is False

    can_take = client.get(f"/api/tests/{test.id}/can-take", headers=headers).json()
    assert can_take["reasonCode"] == "MAX_ATTEMPTS_EXCEEDED"
    assert can_take["reason"] == "Maximum attempts (1) exceeded"


def test_abandon_endpoint(client, learner, make_question, make_test, auth_headers) -> None:
    test = make_test([make_question()])
    headers = auth_headers(learner)
    started = _start(client, headers, test.id)

    response = client.post(
        f"/api/tests/{test.id}/abandon", headers=headers, json={"testResultId": started["attemptId"]}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ABANDONED"

    response = client.post(
        f"/api/tests/{test.id}/abandon", headers=headers, json={"testResultId": started["attemptId"]}
    )
    assert response.status_code == 409


def test_statistics_permissions(
    client, learner, instructor, admin, make_question, make_test, auth_headers
) -> None:
    test = make_test([make_question()])

    denied = client.get(f"/api/tests/{test.id}/statistics", headers=auth_headers(learner))
    assert denied.status_code == 403
    assert denied.json()["detail"] == "You can only view tests you created"

    for user in (instructor, admin):
        response = client.get(f"/api/tests/{test.id}/statistics", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["totalAttempts"] == 0
        assert response.json()["passRate"] == 0

    missing = client.get("/api/tests/424242/statistics", headers=auth_headers(admin))
    assert missing.status_code == 404


def test_results_history_and_pagination(
    client, learner, instructor, make_question, make_test, auth_headers
) -> None:
    question = make_question()
    test = make_test([question])
    headers = auth_headers(learner)
    for _ in range(3):
        started = _start(client, headers, test.id)
        client.post(
            f"/api/tests/{test.id}/submit",
            headers=headers,
            json={"testResultId": started["attemptId"], "answers": []},
        )

    mine = client.get(
        "/api/tests/results/me", headers=headers, params={"testId": test.id, "limit": 2}
    ).json()
    assert mine["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
    assert len(mine["data"]) == 2

    assert client.get(f"/api/tests/{test.id}/results", headers=headers).status_code == 403
    everyone = client.get(f"/api/tests/{test.id}/results", headers=auth_headers(instructor)).json()
    assert everyone["pagination"]["total"] == 3

    too_big = client.get("/api/tests/results/me", headers=headers, params={"limit": 1000})
    assert too_big.status_code == 422


def test_regrade_endpoint(client, learner, instructor, make_question, make_test, auth_headers) -> None:
    essay = make_question(QuestionType.ESSAY, points=20)
    test = make_test([essay])
    headers = auth_headers(learner)
    started = _start(client, headers, test.id)
    submitted = client.post(
        f"/api/tests/{test.id}/submit",
        headers=headers,
        json={"testResultId": started["attemptId"], "answers": [{"questionId": essay.id, "answerText": "Essay"}]},
    ).json()
    assert submitted["score"] == 0
    assert submitted["pendingReview"] == 1

    path = f"/api/tests/results/{started['attemptId']}/answers/{essay.id}"
    assert client.patch(path, headers=headers, json={"pointsAwarded": 20}).status_code == 403

    response = client.patch(path, headers=auth_headers(instructor), json={"pointsAwarded": 20})
    assert response.status_code == 200
    assert response.json()["score"] == 100
    assert response.json()["isPassed"] is True
    assert response.json()["pendingReview"] == 0


def test_cleanup_is_admin_only(client, clock, learner, admin, make_question, make_test, auth_headers) -> None:
    test = make_test([make_question()], time_limit_minutes=10)
    _start(client, auth_headers(learner), test.id)
    clock.advance(minutes=30)

    assert client.post("/api/tests/attempts/cleanup", headers=auth_headers(learner)).status_code == 403
    response = client.post(
        "/api/tests/attempts/cleanup", headers=auth_headers(admin), params={"graceMinutes": 0}
    )
    assert response.json() == {"abandoned": 1}


def test_catalog_management(client, instructor, learner, auth_headers) -> None:
    headers = auth_headers(instructor)
    question = client.post(
        "/api/questions",
        headers=headers,
        json={
            "title": "Sum",
            "questionText": "2 + 2?",
            "points": 4,
            "options": [{"text": "3"}, {"text": "4", "isCorrect": True}],
        },
    )
    assert question.status_code == 201
    question_id = question.json()["id"]

    created = client.post(
        "/api/tests",
        headers=headers,
        json={"title": "Arithmetic", "courseId": 1, "isPublished": True, "maxAttempts": 2},
    )
    assert created.status_code == 201
    test_id = created.json()["id"]

    added = client.post(
        f"/api/tests/{test_id}/questions", headers=headers, json={"questionId": question_id}
    )
    assert added.json() == {"testId": test_id, "questionId": question_id, "sortOrder": 1}

    managed = client.get(f"/api/tests/{test_id}", headers=headers).json()
    assert managed["questions"][0]["options"][1]["isCorrect"] is True

    public = client.get(f"/api/tests/{test_id}", headers=auth_headers(learner)).json()
    assert "questions" not in public

    forbidden = client.patch(f"/api/tests/{test_id}", headers=auth_headers(learner), json={"title": "x"})
    assert forbidden.status_code == 403

    bad_window = client.post(
        "/api/tests",
        headers=headers,
        json={
            "title": "Window",
            "courseId": 1,
            "availableFrom": "2026-05-01T00:00:00Z",
            "availableUntil": "2026-04-01T00:00:00Z",
        },
    )
    assert bad_window.status_code == 400

    assert client.delete(f"/api/tests/{test_id}/questions/{question_id}", headers=headers).status_code == 204
    assert client.delete(f"/api/tests/{test_id}", headers=headers).status_code == 204
    assert client.get(f"/api/tests/{test_id}", headers=headers).status_code == 404


def test_unexpected_error_hides_internals() -> None:
    router = APIRouter()

    @router.get("/api/_boom")
    def boom() -> None:
        raise RuntimeError("database password is hunter2")

    app.include_router(router)
    try:
        response = TestClient(app, raise_server_exceptions=False).get(
            "/api/_boom", headers={"X-Locale": "ja"}
        )
    finally:
        app.router.routes[:] = [
            route for route in app.router.routes if getattr(route, "path", None) != "/api/_boom"
        ]

    assert response.status_code == 500
    body = response.json()
    assert body["detail"] == "サーバー内部エラーが発生しました"
    assert "hunter2" not in response.text
    assert body["errorId"]


def test_list_tests_hides_other_users_drafts(client, learner, instructor, make_test, auth_headers) -> None:
    published = make_test(title="Published")
    draft = make_test(title="Draft", is_published=False)

    mine = client.get("/api/tests", headers=auth_headers(learner), params={"courseId": 1}).json()
    assert [test["id"] for test in mine["data"]] == [published.id]
    assert mine["pagination"] == {"page": 1, "limit": 10, "total": 1, "totalPages": 1}

    managed = client.get("/api/tests", headers=auth_headers(instructor)).json()
    assert [test["id"] for test in managed["data"]] == [draft.id, published.id]

    drafts = client.get(
        "/api/tests", headers=auth_headers(instructor), params={"isPublished": "false"}
    ).json()
    assert [test["id"] for test in drafts["data"]] == [draft.id]
