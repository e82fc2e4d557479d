import json
from types import SimpleNamespace

import pytest

from maxit_backend.constants import AMQP_RESPONSE_QUEUE_NAME
from maxit_backend.schemas.worker import QueueResponseMessage
from maxit_backend.services.submission import SubmissionService
from tests.conftest import auth_headers

API = "/api/v1"


def submit(client, user, task, language, filename="main.cpp", contest=None):
    data = {"task_id": str(task.id), "language_id": str(language.id)}
    if contest is not None:
        data["contest_id"] = str(contest.id)
    return client.post(
        f"{API}/submissions/submit",
        data=data,
        files={"solution": (filename, b"int main() { return 0; }\n", "text/plain")},
        headers=auth_headers(user),
    )


@pytest.fixture
def cpp(languages):
    return languages[("cpp", "17")]


@pytest.fixture
def assigned_task(client, teacher, student, make_task):
    task = make_task(teacher)
    client.post(
        f"{API}/tasks-management/tasks/{task.id}/assign/users",
        json={"user_ids": [student.id]},
        headers=auth_headers(teacher),
    )
    return task


def worker_result(submission_id: int, **payload) -> QueueResponseMessage:
    return QueueResponseMessage(
        message_id=str(submission_id), type="task", ok=True, payload=payload
    )


def test_submit_publishes_task(client, student, assigned_task, cpp, publisher, storage):
    response = submit(client, student, assigned_task, cpp)

    assert response.status_code == 201
    submission_id = response.json()["data"]["id"]

    assert len(publisher.published) == 1
    published = publisher.published[0]
    message = json.loads(published["body"])
    assert published["reply_to"] == AMQP_RESPONSE_QUEUE_NAME
    assert message["message_id"] == str(submission_id)
    assert message["type"] == "task"
    assert message["payload"]["language_type"] == "cpp"
    assert message["payload"]["language_version"] == "17"
    assert [test_case["order"] for test_case in message["payload"]["test_cases"]] == [1, 2]
    assert storage.keys(f"submissions/{assigned_task.id}/{student.id}/")

    details = client.get(f"{API}/submissions/{submission_id}", headers=auth_headers(student))
    data = details.json()["data"]
    assert data["status"] == "sent for evaluation"
    assert data["order"] == 1
    assert data["result"]["code"] == "unknown"
    assert [test["status"] for test in data["result"]["test_results"]] == [
        "not_executed",
        "not_executed",
    ]


def test_submission_order_increments(client, student, assigned_task, cpp):
    submit(client, student, assigned_task, cpp)
    second = submit(client, student, assigned_task, cpp)

    details = client.get(
        f"{API}/submissions/{second.json()['data']['id']}", headers=auth_headers(student)
    )

    assert details.json()["data"]["order"] == 2


def test_unassigned_task(client, teacher, student, make_task, cpp):
    task = make_task(teacher)

    response = submit(client, student, task, cpp)

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "ERR_TASK_NOT_ASSIGNED"


def test_unknown_task(client, student, cpp):
    response = submit(client, student, SimpleNamespace(id=999), cpp)

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "ERR_TASK_NOT_FOUND"


def test_extension_must_match_language(client, student, assigned_task, cpp):
    response = submit(client, student, assigned_task, cpp, filename="main.py")

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "ERR_INVALID_LANGUAGE"


def test_disabled_language(client, session, student, assigned_task, cpp):
    cpp.is_disabled = True
    session.add(cpp)
    session.commit()

    response = submit(client, student, assigned_task, cpp)
    languages = client.get(f"{API}/submissions/languages", headers=auth_headers(student))

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "ERR_INVALID_LANGUAGE"
    assert cpp.id not in [language["id"] for language in languages.json()["data"]]


def test_solution_too_large(client, student, assigned_task, cpp, monkeypatch):
    monkeypatch.setattr("maxit_backend.services.submission.MAX_SUBMISSION_FILE_SIZE", 4)

    response = submit(client, student, assigned_task, cpp)

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "ERR_FILE_TOO_LARGE"


def test_queue_outage_keeps_submission_received(
    client, student, admin, assigned_task, cpp, publisher
):
    publisher.is_ready = False

    response = submit(client, student, assigned_task, cpp)
    submission_id = response.json()["data"]["id"]
    before = client.get(f"{API}/submissions/{submission_id}", headers=auth_headers(student))
    queue_status = client.get(f"{API}/workers/queue/status", headers=auth_headers(admin))

    publisher.is_ready = True
    reconnect = client.post(f"{API}/workers/queue/reconnect", headers=auth_headers(admin))
    after = client.get(f"{API}/submissions/{submission_id}", headers=auth_headers(student))

    assert response.status_code == 201
    assert before.json()["data"]["status"] == "received"
    assert queue_status.json()["data"]["connected"] is False
    assert queue_status.json()["data"]["pending_submissions"] == 1
    assert reconnect.json()["data"]["message"] == (
        "Queue connected, 1 pending submissions republished"
    )
    assert after.json()["data"]["status"] == "sent for evaluation"


def test_lost_task_message_is_resent(
    client, session, student, assigned_task, cpp, queue_service, publisher
):
    submission_id = submit(client, student, assigned_task, cpp).json()["data"]["id"]
    url = f"{API}/submissions/{submission_id}"

    assert publisher.published[0]["message_id"] == str(submission_id)
    assert queue_service.mark_unsent(session, str(submission_id))
    after_loss = client.get(url, headers=auth_headers(student)).json()["data"]
    resent = queue_service.retry_pending(session)
    after_retry = client.get(url, headers=auth_headers(student)).json()["data"]

    assert after_loss["status"] == "received"
    assert resent == 1
    assert len(publisher.published) == 2
    assert after_retry["status"] == "sent for evaluation"


def test_unsent_non_task_messages_are_ignored(session, queue_service):
    assert not queue_service.mark_unsent(session, "0b5e3c9e-handshake")
    assert not queue_service.mark_unsent(session, None)
    assert not queue_service.mark_unsent(session, "999")


def test_submission_visibility(
    client, teacher, other_teacher, student, other_student, admin, assigned_task, cpp
):
    submission_id = submit(client, student, assigned_task, cpp).json()["data"]["id"]
    url = f"{API}/submissions/{submission_id}"

    assert client.get(url, headers=auth_headers(student)).status_code == 200
    assert client.get(url, headers=auth_headers(teacher)).status_code == 200
    assert client.get(url, headers=auth_headers(admin)).status_code == 200
    assert client.get(url, headers=auth_headers(other_student)).status_code == 403
    assert client.get(url, headers=auth_headers(other_teacher)).status_code == 403


def test_submission_listings(client, teacher, other_teacher, student, assigned_task, cpp):
    submission_id = submit(client, student, assigned_task, cpp).json()["data"]["id"]

    own = client.get(f"{API}/student/submissions", headers=auth_headers(student))
    by_task = client.get(
        f"{API}/submissions/tasks/{assigned_task.id}", headers=auth_headers(teacher)
    )
    by_user = client.get(f"{API}/submissions/users/{student.id}", headers=auth_headers(teacher))
    not_creator = client.get(
        f"{API}/submissions/tasks/{assigned_task.id}", headers=auth_headers(other_teacher)
    )

    assert [item["id"] for item in own.json()["data"]] == [submission_id]
    assert [item["id"] for item in by_task.json()["data"]] == [submission_id]
    assert [item["id"] for item in by_user.json()["data"]] == [submission_id]
    assert not_creator.status_code == 403


def test_student_cannot_list_other_users(client, student, other_student):
    response = client.get(
        f"{API}/submissions/users/{other_student.id}", headers=auth_headers(student)
    )

    assert response.status_code == 403


def test_missing_submission(client, student):
    response = client.get(f"{API}/submissions/999", headers=auth_headers(student))

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "ERR_SUBMISSION_NOT_FOUND"


# Worker results


def test_worker_result_is_stored(client, session, student, assigned_task, cpp, queue_service):
    submission_id = submit(client, student, assigned_task, cpp).json()["data"]["id"]

    SubmissionService(session, queue_service).handle_worker_result(
        worker_result(
            submission_id,
            code=2,
            message="1 of 2 tests failed",
            test_results=[
                {"order": 1, "passed": True, "status_code": 1, "execution_time": 0.01},
                {
                    "order": 2,
                    "passed": False,
                    "status_code": 3,
                    "execution_time": 1.0,
                    "error_message": "Time limit exceeded",
                },
            ],
        )
    )

    data = client.get(
        f"{API}/submissions/{submission_id}", headers=auth_headers(student)
    ).json()["data"]
    assert data["status"] == "evaluated"
    assert data["checked_at"] is not None
    assert data["result"]["code"] == "test_failed"
    assert data["result"]["message"] == "1 of 2 tests failed"
    assert [(test["passed"], test["status"]) for test in data["result"]["test_results"]] == [
        (True, "ok"),
        (False, "time_limit_exceeded"),
    ]


@pytest.mark.parametrize(
    ("ok", "payload", "code"),
    [
        (False, {"message": "Sandbox crashed"}, "internal_error"),
        (True, {"message": "no code"}, "invalid"),
        (True, {"code": 42}, "invalid"),
    ],
)
def test_unusable_worker_results(
    client, session, student, assigned_task, cpp, queue_service, ok, payload, code
):
    submission_id = submit(client, student, assigned_task, cpp).json()["data"]["id"]

    SubmissionService(session, queue_service).handle_worker_result(
        QueueResponseMessage(message_id=str(submission_id), type="task", ok=ok, payload=payload)
    )

    data = client.get(
        f"{API}/submissions/{submission_id}", headers=auth_headers(student)
    ).json()["data"]
    assert data["status"] == "evaluated"
    assert data["result"]["code"] == code


def test_result_for_unknown_submission_is_ignored(session, queue_service):
    SubmissionService(session, queue_service).handle_worker_result(worker_result(999, code=1))
    SubmissionService(session, queue_service).handle_worker_result(
        QueueResponseMessage(message_id="not-a-number", type="task", payload={"code": 1})
    )


# Contest submissions


@pytest.fixture
def contest_with_task(client, teacher, student, make_contest, make_task):
    contest = make_contest(teacher)
    task = make_task(teacher, "Contest task")
    client.post(
        f"{API}/contests-management/contests/{contest.id}/tasks",
        json={"task_id": task.id},
        headers=auth_headers(teacher),
    )
    return contest, task


def join(client, teacher, student, contest):
    client.post(f"{API}/student/contests/{contest.id}/register", headers=auth_headers(student))
    client.post(
        f"{API}/contests-management/contests/{contest.id}/registration-requests/{student.id}/approve",
        headers=auth_headers(teacher),
    )


def test_contest_submission_and_progress(
    client, session, teacher, student, contest_with_task, cpp, queue_service
):
    contest, task = contest_with_task
    join(client, teacher, student, contest)

    response = submit(client, student, task, cpp, contest=contest)
    submission_id = response.json()["data"]["id"]
    SubmissionService(session, queue_service).handle_worker_result(
        worker_result(
            submission_id,
            code=1,
            test_results=[
                {"order": 1, "passed": True, "status_code": 1},
                {"order": 2, "passed": True, "status_code": 1},
            ],
        )
    )

    progress = client.get(
        f"{API}/student/contests/{contest.id}/task-progress", headers=auth_headers(student)
    ).json()["data"]
    contest_submissions = client.get(
        f"{API}/contests-management/contests/{contest.id}/submissions",
        headers=auth_headers(teacher),
    ).json()["data"]

    assert response.status_code == 201
    assert progress[0]["attempts"] == 1
    assert progress[0]["best_result"] == "success"
    assert progress[0]["best_passed_tests"] == 2
    assert [item["id"] for item in contest_submissions] == [submission_id]


def test_contest_submission_requires_participation(client, student, contest_with_task, cpp):
    contest, task = contest_with_task

    response = submit(client, student, task, cpp, contest=contest)

    assert response.status_code == 403
    assert response.json()["data"]["code"] == "ERR_NOT_CONTEST_PARTICIPANT"


def test_contest_closed_for_submissions(
    client, session, teacher, student, contest_with_task, cpp
):
    contest, task = contest_with_task
    join(client, teacher, student, contest)
    client.patch(
        f"{API}/contests-management/contests/{contest.id}",
        json={"is_submission_open": False},
        headers=auth_headers(teacher),
    )

    response = submit(client, student, task, cpp, contest=contest)

    assert response.status_code == 403
    assert response.json()["data"]["code"] == "ERR_CONTEST_SUBMISSION_CLOSED"


def test_task_outside_contest(client, teacher, student, contest_with_task, make_task, cpp):
    contest, _ = contest_with_task
    join(client, teacher, student, contest)
    other_task = make_task(teacher, "Not in contest")

    response = submit(client, student, other_task, cpp, contest=contest)

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "ERR_TASK_NOT_IN_CONTEST"


def evaluate(session, queue_service, submission_id: int, passed: list[bool]):
    SubmissionService(session, queue_service).handle_worker_result(
        worker_result(
            submission_id,
            code=1 if all(passed) else 2,
            test_results=[
                {"order": order, "passed": ok, "status_code": 1 if ok else 2}
                for order, ok in enumerate(passed, start=1)
            ],
        )
    )


def test_contest_statistics(
    client, session, teacher, student, other_student, contest_with_task, cpp, queue_service
):
    contest, task = contest_with_task
    join(client, teacher, student, contest)
    join(client, teacher, other_student, contest)
    first = submit(client, student, task, cpp, contest=contest).json()["data"]["id"]
    second = submit(client, student, task, cpp, contest=contest).json()["data"]["id"]
    evaluate(session, queue_service, first, [True, False])
    evaluate(session, queue_service, second, [True, True])
    url = f"{API}/contests-management/contests/{contest.id}"
    headers = auth_headers(teacher)

    task_stats = client.get(f"{url}/task-stats", headers=headers).json()["data"]
    user_stats = client.get(f"{url}/user-stats", headers=headers).json()["data"]
    one_user = client.get(
        f"{url}/user-stats", params={"user_id": other_student.id}, headers=headers
    ).json()["data"]
    task_user_stats = client.get(f"{url}/tasks/{task.id}/user-stats", headers=headers).json()
    attempts = client.get(
        f"{url}/tasks/{task.id}/users/{student.id}/submissions", headers=headers
    ).json()["data"]

    assert task_stats == [
        {
            "task_id": task.id,
            "title": "Contest task",
            "submission_count": 2,
            "attempted_users": 1,
            "solved_users": 1,
        }
    ]
    assert [row["user"]["id"] for row in user_stats] == [student.id, other_student.id]
    assert [(row["total_submissions"], row["solved_tasks"]) for row in user_stats] == [(2, 1), (0, 0)]
    assert all(row["task_count"] == 1 for row in user_stats)
    assert [row["user"]["id"] for row in one_user] == [other_student.id]
    by_user = {row["user"]["id"]: row for row in task_user_stats["data"]}
    assert by_user[student.id]["attempts"] == 2
    assert by_user[student.id]["best_result"] == "success"
    assert by_user[student.id]["best_passed_tests"] == 2
    assert by_user[student.id]["test_case_count"] == 2
    assert by_user[student.id]["last_submitted_at"] is not None
    assert by_user[other_student.id]["attempts"] == 0
    assert by_user[other_student.id]["last_submitted_at"] is None
    assert {item["id"] for item in attempts} == {first, second}


def test_contest_statistics_for_task_outside_contest(
    client, teacher, other_teacher, contest_with_task, make_task
):
    contest, _ = contest_with_task
    other_task = make_task(teacher, "Not in contest")
    url = f"{API}/contests-management/contests/{contest.id}"

    response = client.get(
        f"{url}/tasks/{other_task.id}/user-stats", headers=auth_headers(teacher)
    )
    forbidden = client.get(f"{url}/task-stats", headers=auth_headers(other_teacher))

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "ERR_TASK_NOT_IN_CONTEST"
    assert forbidden.status_code == 403


def test_short_submission_listing(
    client, session, teacher, student, other_student, assigned_task, cpp, queue_service
):
    failed = submit(client, student, assigned_task, cpp).json()["data"]["id"]
    solved = submit(client, student, assigned_task, cpp).json()["data"]["id"]
    pending = submit(client, student, assigned_task, cpp).json()["data"]["id"]
    evaluate(session, queue_service, failed, [True, False])
    evaluate(session, queue_service, solved, [True, True])

    response = client.get(
        f"{API}/submissions/users/{student.id}/short", headers=auth_headers(teacher)
    )
    forbidden = client.get(
        f"{API}/submissions/users/{student.id}/short", headers=auth_headers(other_student)
    )

    by_id = {item["id"]: item for item in response.json()["data"]}
    assert by_id[failed] == {
        "id": failed,
        "task_id": assigned_task.id,
        "user_id": student.id,
        "passed": False,
        "how_many_passed": 1,
    }
    assert (by_id[solved]["passed"], by_id[solved]["how_many_passed"]) == (True, 2)
    assert (by_id[pending]["passed"], by_id[pending]["how_many_passed"]) == (False, 0)
    assert forbidden.status_code == 403


def test_group_submission_listing(
    client, teacher, other_teacher, admin, student, other_student, assigned_task, cpp
):
    submission_id = submit(client, student, assigned_task, cpp).json()["data"]["id"]
    group_id = client.post(
        f"{API}/groups/",
        json={"name": "Class 3C", "user_ids": [student.id]},
        headers=auth_headers(teacher),
    ).json()["data"]["id"]
    url = f"{API}/submissions/groups/{group_id}"

    as_creator = client.get(url, headers=auth_headers(teacher))
    as_admin = client.get(url, headers=auth_headers(admin))
    as_other_teacher = client.get(url, headers=auth_headers(other_teacher))
    as_student = client.get(url, headers=auth_headers(other_student))
    missing = client.get(f"{API}/submissions/groups/999", headers=auth_headers(admin))

    assert [item["id"] for item in as_creator.json()["data"]] == [submission_id]
    assert [item["id"] for item in as_admin.json()["data"]] == [submission_id]
    assert as_other_teacher.status_code == 403
    assert as_student.status_code == 403
    assert missing.status_code == 404
