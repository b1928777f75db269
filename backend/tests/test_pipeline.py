"""
Request pipeline tests.

Validates:
- The API key is required on every route
- The rate gate runs before the API-key check and is shared by every caller
- Errors render as {status, code, message}
- CORS headers are negotiated before the pipeline
"""

import pytest
from fastapi.testclient import TestClient

from tests.conftest import API_KEY, make_config, make_server
from warp_server.errors import WarpError
from warp_server.models.definition import SESSION_DEFINITION, USER_DEFINITION
from warp_server.registry import FunctionDefinition
from warp_server.server import WarpServer
from warp_server.services.rate_gate import RateGate


class TestRateGate:
    def test_admits_capacity_then_rejects_next(self):
        gate = RateGate(limit=5, interval=60)

        assert [gate.admit() for _ in range(5)] == [True] * 5
        assert gate.admit() is False

    def test_hit_raises_too_many_requests(self):
        gate = RateGate(limit=1, interval=60)
        gate.hit()

        with pytest.raises(WarpError) as exc:
            gate.hit()
        assert exc.value.code == WarpError.Code.TooManyRequests
        assert exc.value.status_code == 429

    def test_reset_refills_budget(self):
        gate = RateGate(limit=1, interval=60)
        gate.hit()
        gate.reset()

        assert gate.admit() is True

    def test_gates_do_not_share_state(self):
        first = RateGate(limit=1, interval=60)
        second = RateGate(limit=1, interval=60)
        first.hit()

        assert second.admit() is True


def test_missing_api_key(client: TestClient):
    response = client.get("/users", headers={"X-Warp-API-Key": ""})

    assert response.status_code == 401
    assert response.json() == {
        "status": 401,
        "code": WarpError.Code.InvalidAPIKey,
        "message": "Invalid API Key",
    }


def test_wrong_api_key_rejected_before_business_logic(client: TestClient):
    response = client.post(
        "/users",
        json={"username": "alice", "password": "secret", "email": "a@example.com"},
        headers={"X-Warp-API-Key": "wrong"},
    )
    assert response.status_code == 401

    assert client.get("/users").json()["result"] == []


def test_throttle_is_global_and_runs_before_api_key(session, tmp_path):
    server = make_server(tmp_path, throttle_limit=3)

    with TestClient(server.create_app()) as client:
        # Requests with a bad key still spend the shared budget
        for _ in range(2):
            assert client.get("/users", headers={"X-Warp-API-Key": "wrong"}).status_code == 401
        assert client.get("/users", headers={"X-Warp-API-Key": API_KEY}).status_code == 200

        response = client.get("/users", headers={"X-Warp-API-Key": API_KEY})
        assert response.status_code == 429
        assert response.json()["code"] == WarpError.Code.TooManyRequests

        # A different caller shares the same bucket
        other = client.get("/classes/Article", headers={"X-Warp-API-Key": API_KEY, "X-Forwarded-For": "10.0.0.9"})
        assert other.status_code == 429


def test_cors_preflight(client: TestClient):
    response = client.options(
        "/users",
        headers={"Origin": "http://example.com", "Access-Control-Request-Method": "GET"},
    )

    assert response.status_code == 200
    assert "access-control-allow-origin" in response.headers


def test_prefix_mounting(session, tmp_path):
    server = make_server(tmp_path)

    with TestClient(server.create_app(prefix="/api/1"), headers={"X-Warp-API-Key": API_KEY}) as client:
        assert client.get("/api/1/users").status_code == 200
        assert client.get("/users").status_code == 404


def test_startup_creates_tables_and_checks_database(tmp_path):
    # Server builds its own in-memory engine here, not the shared test engine
    server = WarpServer(make_config(tmp_path, database_url="sqlite://"))
    server.register_auth_models(USER_DEFINITION, SESSION_DEFINITION)

    with TestClient(server.create_app(), headers={"X-Warp-API-Key": API_KEY}) as client:
        assert client.get("/users").json() == {"status": 200, "message": "Success", "result": []}


def test_unknown_route_uses_error_envelope(client: TestClient):
    response = client.get("/nowhere")

    assert response.status_code == 404
    assert response.json() == {"status": 404, "code": WarpError.Code.ObjectNotFound, "message": "Not Found"}


def test_wrong_method_uses_error_envelope(client: TestClient):
    response = client.patch("/users")

    assert response.status_code == 405
    assert response.json()["code"] == WarpError.Code.ForbiddenOperation
    assert "allow" in response.headers


def test_unexpected_error_renders_internal_server_error(session, tmp_path, caplog):
    def broken(call):
        raise RuntimeError("boom")

    server = make_server(tmp_path)
    server.register_function(FunctionDefinition(name="broken", handler=broken))

    app = server.create_app()
    with TestClient(app, headers={"X-Warp-API-Key": API_KEY}, raise_server_exceptions=False) as client:
        response = client.post("/functions/broken")

    assert response.status_code == 500
    assert response.json() == {
        "status": 500,
        "code": WarpError.Code.InternalServerError,
        "message": "Internal server error",
    }
    assert "Unhandled error on POST /functions/broken" in caplog.text
