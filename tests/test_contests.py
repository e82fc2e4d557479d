from datetime import timedelta

import pytest

from maxit_backend.lib.common import utcnow
from tests.conftest import auth_headers

API = "/api/v1"
MANAGEMENT = f"{API}/contests-management/contests"
STUDENT = f"{API}/student"


def iso(hours: float) -> str:
    return (utcnow() + timedelta(hours=hours)).isoformat()


def test_create_contest(client, teacher):
    response = client.post(
        f"{MANAGEMENT}/",
        json={"name": "Autumn cup", "start_at": iso(1), "end_at": iso(3)},
        headers=auth_headers(teacher),
    )

    assert response.status_code == 201
    contest_id = response.json()["data"]["id"]
    created = client.get(f"{MANAGEMENT}/created", headers=auth_headers(teacher)).json()["data"]
    assert [contest["id"] for contest in created] == [contest_id]


def test_create_contest_end_before_start(client, teacher):
    response = client.post(
        f"{MANAGEMENT}/",
        json={"name": "Backwards cup", "start_at": iso(3), "end_at": iso(1)},
        headers=auth_headers(teacher),
    )

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "ERR_END_BEFORE_START"


def test_duplicate_contest_name(client, teacher, make_contest):
    make_contest(teacher, "Spring cup")

    response = client.post(
        f"{MANAGEMENT}/", json={"name": "Spring cup", "start_at": iso(1)}, headers=auth_headers(teacher)
    )

    assert response.status_code == 409
    assert response.json()["data"]["code"] == "ERR_CONTEST_EXISTS"


def test_student_cannot_manage_contests(client, student):
    response = client.post(
        f"{MANAGEMENT}/", json={"name": "Student cup", "start_at": iso(1)}, headers=auth_headers(student)
    )

    assert response.status_code == 403


def test_edit_contest_can_clear_end(client, teacher, make_contest):
    contest = make_contest(teacher)

    response = client.patch(
        f"{MANAGEMENT}/{contest.id}",
        json={"end_at": None, "description": "Open ended"},
        headers=auth_headers(teacher),
    )

    data = response.json()["data"]
    assert response.status_code == 200
    assert data["end_at"] is None
    assert data["description"] == "Open ended"
    assert data["name"] == "Spring cup"


def test_edit_contest_rechecks_schedule(client, teacher, make_contest):
    contest = make_contest(teacher)

    response = client.patch(
        f"{MANAGEMENT}/{contest.id}", json={"start_at": iso(5)}, headers=auth_headers(teacher)
    )

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "ERR_END_BEFORE_START"


def test_managed_contests_follow_access_entries(client, teacher, other_teacher, make_contest):
    contest = make_contest(teacher)
    make_contest(other_teacher, "Other cup")

    before = client.get(f"{MANAGEMENT}/managed", headers=auth_headers(other_teacher)).json()["data"]
    client.post(
        f"{API}/access-control/contests/{contest.id}/collaborators",
        json={"user_id": other_teacher.id, "permission": "edit"},
        headers=auth_headers(teacher),
    )
    after = client.get(f"{MANAGEMENT}/managed", headers=auth_headers(other_teacher)).json()["data"]

    assert [item["name"] for item in before] == ["Other cup"]
    assert {item["name"] for item in after} == {"Other cup", "Spring cup"}


def test_delete_contest(client, teacher, make_contest):
    contest = make_contest(teacher)

    response = client.delete(f"{MANAGEMENT}/{contest.id}", headers=auth_headers(teacher))
    missing = client.get(f"{MANAGEMENT}/{contest.id}/tasks", headers=auth_headers(teacher))

    assert response.status_code == 200
    assert missing.status_code == 404
    assert missing.json()["data"]["code"] == "ERR_CONTEST_NOT_FOUND"


def test_add_task_defaults_to_contest_window(client, teacher, make_contest, make_task):
    contest = make_contest(teacher)
    task = make_task(teacher)
    headers = auth_headers(teacher)

    response = client.post(
        f"{MANAGEMENT}/{contest.id}/tasks", json={"task_id": task.id}, headers=headers
    )
    tasks = client.get(f"{MANAGEMENT}/{contest.id}/tasks", headers=headers).json()["data"]
    duplicate = client.post(
        f"{MANAGEMENT}/{contest.id}/tasks", json={"task_id": task.id}, headers=headers
    )

    assert response.status_code == 200
    assert len(tasks) == 1
    assert tasks[0]["task_id"] == task.id
    assert tasks[0]["is_submission_open"] is True
    assert tasks[0]["start_at"].startswith(contest.start_at.strftime("%Y-%m-%dT%H:%M"))
    assert duplicate.status_code == 409
    assert duplicate.json()["data"]["code"] == "ERR_TASK_ALREADY_IN_CONTEST"


def test_add_unknown_task(client, teacher, make_contest):
    contest = make_contest(teacher)

    response = client.post(
        f"{MANAGEMENT}/{contest.id}/tasks", json={"task_id": 999}, headers=auth_headers(teacher)
    )

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "ERR_TASK_NOT_FOUND"


def test_assignable_tasks_exclude_contest_tasks(client, teacher, make_contest, make_task):
    contest = make_contest(teacher)
    in_contest = make_task(teacher, "Already in")
    free = make_task(teacher, "Still free")
    headers = auth_headers(teacher)
    client.post(f"{MANAGEMENT}/{contest.id}/tasks", json={"task_id": in_contest.id}, headers=headers)

    response = client.get(f"{MANAGEMENT}/{contest.id}/tasks/assignable-tasks", headers=headers)

    assert [task["id"] for task in response.json()["data"]] == [free.id]


# Registration


def test_registration_flow(client, teacher, student, make_contest):
    contest = make_contest(teacher)

    registered = client.post(
        f"{STUDENT}/contests/{contest.id}/register", headers=auth_headers(student)
    )
    again = client.post(f"{STUDENT}/contests/{contest.id}/register", headers=auth_headers(student))
    pending = client.get(
        f"{MANAGEMENT}/{contest.id}/registration-requests", headers=auth_headers(teacher)
    ).json()["data"]
    approved = client.post(
        f"{MANAGEMENT}/{contest.id}/registration-requests/{student.id}/approve",
        headers=auth_headers(teacher),
    )
    tasks = client.get(f"{STUDENT}/contests/{contest.id}/tasks", headers=auth_headers(student))
    now_approved = client.get(
        f"{MANAGEMENT}/{contest.id}/registration-requests",
        params={"status": "approved"},
        headers=auth_headers(teacher),
    ).json()["data"]

    assert registered.status_code == 201
    assert again.status_code == 409
    assert again.json()["data"]["code"] == "ERR_ALREADY_REGISTERED"
    assert [request["user"]["id"] for request in pending] == [student.id]
    assert approved.status_code == 200
    assert tasks.status_code == 200
    assert now_approved[0]["reviewed_at"] is not None


def test_rejected_student_can_register_again(client, teacher, student, make_contest):
    contest = make_contest(teacher)
    client.post(f"{STUDENT}/contests/{contest.id}/register", headers=auth_headers(student))
    client.post(
        f"{MANAGEMENT}/{contest.id}/registration-requests/{student.id}/reject",
        headers=auth_headers(teacher),
    )

    participant_view = client.get(
        f"{STUDENT}/contests/{contest.id}/tasks", headers=auth_headers(student)
    )
    retry = client.post(f"{STUDENT}/contests/{contest.id}/register", headers=auth_headers(student))

    assert participant_view.status_code == 403
    assert participant_view.json()["data"]["code"] == "ERR_NOT_CONTEST_PARTICIPANT"
    assert retry.status_code == 201


def test_review_without_request(client, teacher, student, make_contest):
    contest = make_contest(teacher)

    response = client.post(
        f"{MANAGEMENT}/{contest.id}/registration-requests/{student.id}/approve",
        headers=auth_headers(teacher),
    )

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "ERR_NO_PENDING_REGISTRATION"


@pytest.mark.parametrize(
    ("fields", "code"),
    [
        ({"is_registration_open": False}, "ERR_CONTEST_REGISTRATION_CLOSED"),
        ({"start_at": utcnow() - timedelta(days=2), "end_at": utcnow() - timedelta(days=1)}, "ERR_CONTEST_ENDED"),
        ({"is_visible": False}, "ERR_NOT_AUTHORIZED"),
    ],
)
def test_registration_refused(client, teacher, student, make_contest, fields, code):
    contest = make_contest(teacher, **fields)

    response = client.post(f"{STUDENT}/contests/{contest.id}/register", headers=auth_headers(student))

    assert response.status_code == 403
    assert response.json()["data"]["code"] == code


def test_group_participant_cannot_register(client, session, teacher, student, make_contest):
    contest = make_contest(teacher)
    group_id = client.post(
        f"{API}/groups/",
        json={"name": "Class 3C", "user_ids": [student.id]},
        headers=auth_headers(teacher),
    ).json()["data"]["id"]
    client.post(
        f"{MANAGEMENT}/{contest.id}/groups",
        json={"group_ids": [group_id]},
        headers=auth_headers(teacher),
    )

    response = client.post(f"{STUDENT}/contests/{contest.id}/register", headers=auth_headers(student))

    assert response.status_code == 409
    assert response.json()["data"]["code"] == "ERR_ALREADY_PARTICIPANT"


# Student views


def test_available_contests(client, teacher, student, make_contest):
    ongoing = make_contest(teacher, "Ongoing cup")
    make_contest(teacher, "Hidden cup", is_visible=False)
    upcoming = make_contest(
        teacher,
        "Upcoming cup",
        start_at=utcnow() + timedelta(days=1),
        end_at=utcnow() + timedelta(days=2),
    )
    headers = auth_headers(student)
    client.post(f"{STUDENT}/contests/{ongoing.id}/register", headers=headers)

    current = client.get(f"{STUDENT}/contests", headers=headers).json()["data"]
    future = client.get(
        f"{STUDENT}/contests", params={"status": "upcoming"}, headers=headers
    ).json()["data"]

    assert [contest["id"] for contest in current] == [ongoing.id]
    assert current[0]["status"] == "ongoing"
    assert current[0]["registration_status"] == "awaiting_approval"
    assert [contest["id"] for contest in future] == [upcoming.id]
    assert future[0]["registration_status"] == "can_register"


def test_hidden_contest_details(client, teacher, student, make_contest):
    contest = make_contest(teacher, is_visible=False)

    as_student = client.get(f"{STUDENT}/contests/{contest.id}", headers=auth_headers(student))
    as_creator = client.get(f"{STUDENT}/contests/{contest.id}", headers=auth_headers(teacher))

    assert as_student.status_code == 403
    assert as_creator.status_code == 200


def test_task_progress(client, session, teacher, student, make_contest, make_task):
    contest = make_contest(teacher)
    task = make_task(teacher, test_cases=3)
    client.post(
        f"{MANAGEMENT}/{contest.id}/tasks", json={"task_id": task.id}, headers=auth_headers(teacher)
    )
    client.post(f"{STUDENT}/contests/{contest.id}/register", headers=auth_headers(student))
    client.post(
        f"{MANAGEMENT}/{contest.id}/registration-requests/{student.id}/approve",
        headers=auth_headers(teacher),
    )

    response = client.get(
        f"{STUDENT}/contests/{contest.id}/task-progress", headers=auth_headers(student)
    )

    progress = response.json()["data"]
    assert response.status_code == 200
    assert progress == [
        {
            "id": task.id,
            "title": task.title,
            "start_at": progress[0]["start_at"],
            "end_at": progress[0]["end_at"],
            "is_submission_open": True,
            "attempts": 0,
            "best_result": None,
            "best_passed_tests": 0,
            "test_case_count": 3,
        }
    ]


def test_contest_listing_follows_access(client, teacher, other_teacher, admin, make_contest):
    shared = make_contest(teacher)
    make_contest(teacher, "Private cup")
    own = make_contest(other_teacher, "Other cup")
    client.post(
        f"{API}/access-control/contests/{shared.id}/collaborators",
        json={"user_id": other_teacher.id, "permission": "view"},
        headers=auth_headers(teacher),
    )

    as_teacher = client.get(f"{MANAGEMENT}/", headers=auth_headers(other_teacher)).json()["data"]
    as_admin = client.get(f"{MANAGEMENT}/", headers=auth_headers(admin)).json()["data"]

    assert {contest["id"] for contest in as_teacher} == {shared.id, own.id}
    assert len(as_admin) == 3


def test_remove_tasks_from_contest(client, teacher, make_contest, make_task):
    contest = make_contest(teacher)
    kept = make_task(teacher, "Kept task")
    removed = make_task(teacher, "Removed task")
    headers = auth_headers(teacher)
    for task in (kept, removed):
        client.post(f"{MANAGEMENT}/{contest.id}/tasks", json={"task_id": task.id}, headers=headers)
    url = f"{MANAGEMENT}/{contest.id}/tasks"

    response = client.request("DELETE", url, json={"task_ids": [removed.id]}, headers=headers)
    tasks = client.get(url, headers=headers).json()["data"]
    again = client.request("DELETE", url, json={"task_ids": [removed.id]}, headers=headers)
    task_details = client.get(f"{API}/tasks/{removed.id}", headers=headers)

    assert response.json()["data"]["message"] == "Tasks removed from contest successfully"
    assert [task["task_id"] for task in tasks] == [kept.id]
    assert again.status_code == 404
    assert again.json()["data"]["code"] == "ERR_TASK_NOT_IN_CONTEST"
    assert task_details.status_code == 200


def test_remove_tasks_requires_ids(client, teacher, make_contest):
    contest = make_contest(teacher)

    response = client.request(
        "DELETE",
        f"{MANAGEMENT}/{contest.id}/tasks",
        json={"task_ids": []},
        headers=auth_headers(teacher),
    )

    assert response.status_code == 400


# Participant groups


def create_group(client, owner, name, user_ids=()) -> int:
    return client.post(
        f"{API}/groups/",
        json={"name": name, "user_ids": list(user_ids)},
        headers=auth_headers(owner),
    ).json()["data"]["id"]


def test_contest_groups(client, teacher, other_teacher, admin, student, make_contest):
    contest = make_contest(teacher)
    joined = create_group(client, teacher, "Class 3C", [student.id])
    free = create_group(client, teacher, "Class 3D")
    foreign = create_group(client, other_teacher, "Someone else's")
    headers = auth_headers(teacher)
    url = f"{MANAGEMENT}/{contest.id}/groups"
    client.post(url, json={"group_ids": [joined]}, headers=headers)

    groups = client.get(url, headers=headers).json()["data"]
    assignable = client.get(f"{url}/assignable", headers=headers).json()["data"]
    assignable_for_admin = client.get(f"{url}/assignable", headers=auth_headers(admin)).json()

    assert [group["id"] for group in groups] == [joined]
    assert [group["id"] for group in assignable] == [free]
    assert {group["id"] for group in assignable_for_admin["data"]} == {free, foreign}


def test_remove_contest_groups(client, teacher, student, make_contest):
    contest = make_contest(teacher)
    group_id = create_group(client, teacher, "Class 3C", [student.id])
    headers = auth_headers(teacher)
    url = f"{MANAGEMENT}/{contest.id}/groups"
    client.post(url, json={"group_ids": [group_id]}, headers=headers)

    response = client.request("DELETE", url, json={"group_ids": [group_id]}, headers=headers)
    groups = client.get(url, headers=headers).json()["data"]
    registration = client.post(
        f"{STUDENT}/contests/{contest.id}/register", headers=auth_headers(student)
    )
    unknown = client.request("DELETE", url, json={"group_ids": [999]}, headers=headers)

    assert response.json()["data"]["message"] == "Groups removed from contest successfully"
    assert groups == []
    assert registration.status_code == 201
    assert unknown.status_code == 404
    assert unknown.json()["data"]["code"] == "ERR_GROUP_NOT_FOUND"


def test_contest_groups_need_access(client, teacher, other_teacher, make_contest):
    contest = make_contest(teacher)

    response = client.get(
        f"{MANAGEMENT}/{contest.id}/groups/assignable", headers=auth_headers(other_teacher)
    )

    assert response.status_code == 403
