from pathlib import Path

import pytest
import yaml
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from maxit_backend.errors import DEFAULT_MESSAGES, ERROR_STATUS, ErrorCode, ServiceError
from maxit_backend.exception_handlers import register_exception_handlers, validation_code
from tests.conftest import auth_headers

EXPECTED_STATUS = yaml.safe_load((Path(__file__).parent / "error_codes.yaml").read_text())


class Item(BaseModel):
    name: str = Field(min_length=2, max_length=5)
    count: int


@pytest.fixture
def bare_client() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/service-error")
    def raise_service_error():
        raise ServiceError(ErrorCode.CONTEST_ENDED, "Spring cup is over")

    @app.get("/unauthenticated")
    def raise_unauthenticated():
        raise ServiceError(ErrorCode.NOT_AUTHENTICATED)

    @app.get("/crash")
    def crash():
        raise RuntimeError("boom")

    @app.post("/items")
    def create_item(item: Item):
        return item

    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.parametrize(("code", "status"), EXPECTED_STATUS.items())
def test_error_status(code, status):
    assert ServiceError(ErrorCode(code)).status_code == status


def test_every_code_is_described():
    for code in ErrorCode:
        assert code in ERROR_STATUS
        assert DEFAULT_MESSAGES[code]


def test_service_error_envelope(bare_client):
    response = bare_client.get("/service-error")

    assert response.status_code == 403
    assert response.json() == {
        "ok": False,
        "data": {"code": "ERR_CONTEST_ENDED", "message": "Spring cup is over"},
    }


def test_unauthenticated_sets_challenge(bare_client):
    response = bare_client.get("/unauthenticated")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json()["data"]["message"] == "Not authenticated"


def test_unhandled_error(bare_client):
    response = bare_client.get("/crash")

    assert response.status_code == 500
    assert response.json() == {
        "ok": False,
        "data": {"code": "ERR_INTERNAL", "message": "Internal server error"},
    }


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ({}, {"name": {"code": "FIELD_REQUIRED"}, "count": {"code": "FIELD_REQUIRED"}}),
        ({"name": "a", "count": 1}, {"name": {"code": "MIN_LENGTH_2"}}),
        ({"name": "abcdef", "count": 1}, {"name": {"code": "MAX_LENGTH_5"}}),
        ({"name": "ab", "count": "many"}, {"count": {"code": "INVALID_FIELD"}}),
    ],
)
def test_validation_errors(bare_client, body, expected):
    response = bare_client.post("/items", json=body)

    assert response.status_code == 400
    assert response.json() == {"ok": False, "data": expected}


def test_malformed_json(bare_client):
    response = bare_client.post(
        "/items", content=b'{"name": ', headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["data"] == {"body": {"code": "INVALID_JSON"}}


@pytest.mark.parametrize(
    ("error", "code"),
    [
        ({"type": "missing"}, "FIELD_REQUIRED"),
        ({"type": "string_too_short", "ctx": {"min_length": 3}}, "MIN_LENGTH_3"),
        ({"type": "too_long", "ctx": {"max_length": 10}}, "MAX_LENGTH_10"),
        ({"type": "field_must_match", "ctx": {"other": "password"}}, "FIELD_MUST_MATCH_password"),
        ({"type": "enum"}, "INVALID_ENUM"),
        ({"type": "value_error", "msg": "value is not a valid email address"}, "INVALID_EMAIL"),
        ({"type": "int_parsing"}, "INVALID_FIELD"),
    ],
)
def test_validation_code(error, code):
    assert validation_code(error) == code


def test_unknown_route(client):
    response = client.get("/api/v1/does-not-exist")

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "ERR_NOT_FOUND"


def test_method_not_allowed(client, student):
    response = client.put("/api/v1/auth/login", headers=auth_headers(student))

    assert response.status_code == 405
    assert response.json()["data"]["code"] == "ERR_METHOD_NOT_ALLOWED"
