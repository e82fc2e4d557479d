from tests.conftest import auth_headers

API = "/api/v1"
MANAGEMENT = f"{API}/languages-management/languages"


def test_list_includes_disabled_languages(client, session, admin, languages):
    c99 = languages[("c", "99")]
    c99.is_disabled = True
    session.add(c99)
    session.commit()

    response = client.get(f"{MANAGEMENT}/", headers=auth_headers(admin))

    listed = {item["id"]: item for item in response.json()["data"]}
    assert response.status_code == 200
    assert len(listed) == len(languages)
    assert listed[c99.id]["is_disabled"] is True
    assert listed[languages[("cpp", "17")].id]["is_disabled"] is False


def test_toggle_language(client, admin, student, languages):
    cpp = languages[("cpp", "17")]
    url = f"{MANAGEMENT}/{cpp.id}"

    disabled = client.patch(url, headers=auth_headers(admin)).json()["data"]
    enabled_for_students = client.get(
        f"{API}/submissions/languages", headers=auth_headers(student)
    ).json()["data"]
    enabled_again = client.patch(url, headers=auth_headers(admin)).json()["data"]

    assert disabled["is_disabled"] is True
    assert cpp.id not in [language["id"] for language in enabled_for_students]
    assert enabled_again["is_disabled"] is False


def test_toggle_unknown_language(client, admin):
    response = client.patch(f"{MANAGEMENT}/999", headers=auth_headers(admin))

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "ERR_LANGUAGE_NOT_FOUND"


def test_language_management_requires_admin(client, teacher, languages):
    response = client.get(f"{MANAGEMENT}/", headers=auth_headers(teacher))

    assert response.status_code == 403
