from tests.conftest import auth_headers

API = "/api/v1"


def create_group(client, user, name="Class 1A", user_ids=()):
    response = client.post(
        f"{API}/groups/",
        json={"name": name, "user_ids": list(user_ids)},
        headers=auth_headers(user),
    )
    assert response.status_code == 201, response.json()
    return response.json()["data"]["id"]


def test_create_group_with_members(client, teacher, student, other_student):
    group_id = create_group(client, teacher, user_ids=[student.id, other_student.id])

    response = client.get(f"{API}/groups/{group_id}", headers=auth_headers(teacher))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Class 1A"
    assert [user["id"] for user in data["users"]] == [student.id, other_student.id]


def test_student_cannot_create_group(client, student):
    response = client.post(f"{API}/groups/", json={"name": "Sneaky"}, headers=auth_headers(student))

    assert response.status_code == 403


def test_create_group_with_unknown_user(client, teacher):
    response = client.post(
        f"{API}/groups/", json={"name": "Ghosts", "user_ids": [999]}, headers=auth_headers(teacher)
    )

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "ERR_USER_NOT_FOUND"


def test_create_group_with_duplicate_ids(client, teacher, student):
    response = client.post(
        f"{API}/groups/",
        json={"name": "Twice", "user_ids": [student.id, student.id]},
        headers=auth_headers(teacher),
    )

    assert response.status_code == 400
    assert response.json()["data"]["user_ids"] == {"code": "INVALID_FIELD"}


def test_teacher_sees_only_own_groups(client, teacher, other_teacher, admin):
    create_group(client, teacher, "Mine")
    create_group(client, other_teacher, "Theirs")

    teacher_groups = client.get(f"{API}/groups/", headers=auth_headers(teacher)).json()["data"]
    admin_groups = client.get(f"{API}/groups/", headers=auth_headers(admin)).json()["data"]

    assert [group["name"] for group in teacher_groups] == ["Mine"]
    assert len(admin_groups) == 2


def test_other_teacher_cannot_edit(client, teacher, other_teacher):
    group_id = create_group(client, teacher)

    response = client.put(
        f"{API}/groups/{group_id}", json={"name": "Hijacked"}, headers=auth_headers(other_teacher)
    )

    assert response.status_code == 403


def test_edit_and_delete_group(client, teacher):
    group_id = create_group(client, teacher)

    edited = client.put(
        f"{API}/groups/{group_id}", json={"name": "Class 2B"}, headers=auth_headers(teacher)
    )
    deleted = client.delete(f"{API}/groups/{group_id}", headers=auth_headers(teacher))
    missing = client.get(f"{API}/groups/{group_id}", headers=auth_headers(teacher))

    assert edited.json()["data"]["name"] == "Class 2B"
    assert deleted.status_code == 200
    assert missing.status_code == 404
    assert missing.json()["data"]["code"] == "ERR_GROUP_NOT_FOUND"


def test_add_and_remove_members(client, teacher, student, other_student):
    group_id = create_group(client, teacher, user_ids=[student.id])

    client.post(
        f"{API}/groups/{group_id}/users",
        json={"user_ids": [student.id, other_student.id]},
        headers=auth_headers(teacher),
    )
    after_add = client.get(f"{API}/groups/{group_id}/users", headers=auth_headers(teacher))

    client.request(
        "DELETE",
        f"{API}/groups/{group_id}/users",
        json={"user_ids": [student.id]},
        headers=auth_headers(teacher),
    )
    after_remove = client.get(f"{API}/groups/{group_id}/users", headers=auth_headers(teacher))

    assert [user["id"] for user in after_add.json()["data"]] == [student.id, other_student.id]
    assert [user["id"] for user in after_remove.json()["data"]] == [other_student.id]


def test_empty_member_list_is_rejected(client, teacher):
    group_id = create_group(client, teacher)

    response = client.post(
        f"{API}/groups/{group_id}/users", json={"user_ids": []}, headers=auth_headers(teacher)
    )

    assert response.status_code == 400
    assert response.json()["data"]["user_ids"] == {"code": "MIN_LENGTH_1"}


def test_group_tasks_visible_to_members_only(
    client, teacher, student, other_student, make_task
):
    group_id = create_group(client, teacher, user_ids=[student.id])
    task = make_task(teacher)
    client.post(
        f"{API}/tasks-management/tasks/{task.id}/assign/groups",
        json={"group_ids": [group_id]},
        headers=auth_headers(teacher),
    )

    member = client.get(f"{API}/groups/{group_id}/tasks", headers=auth_headers(student))
    outsider = client.get(f"{API}/groups/{group_id}/tasks", headers=auth_headers(other_student))

    assert [item["id"] for item in member.json()["data"]] == [task.id]
    assert outsider.status_code == 403
