"""HTTP transport: status mapping, request ids, introspection and health."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from homebox_config import HomeboxConfig
from homebox_kernel.exceptions import StoreUnavailableError
from homebox_server.__main__ import apply_cli_overrides, main, parse_args
from homebox_server.app import STATUS_BY_KIND, create_app
from homebox_services.facade import InventoryFacade


@pytest.fixture
def client(facade):
    with TestClient(create_app(facade)) as test_client:
        yield test_client


def _post(client, operation, headers=None, **arguments):
    return client.post("/api/v1", json={"operation": operation, "arguments": arguments}, headers=headers)


class TestApiEndpoint:
    def test_success(self, client):
        response = _post(client, "createLocation", name="Garage")
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Garage"

    @pytest.mark.parametrize(
        "operation,arguments,status,kind",
        [
            ("createLocation", {"name": ""}, 400, "ValidationError"),
            ("location", {"id": str(uuid4())}, 404, "NotFoundError"),
            ("resolveLabel", {"payload": "HB1"}, 400, "DecodeError"),
            ("noSuchThing", {}, 400, "ValidationError"),
        ],
    )
    def test_error_status(self, client, operation, arguments, status, kind):
        response = _post(client, operation, **arguments)
        assert response.status_code == status
        assert response.json()["error"]["kind"] == kind

    def test_conflict_status(self, client):
        box = _post(client, "createContainer", name="Box").json()["data"]
        _post(client, "createItem", name="Hammer", container=box["id"])
        response = _post(client, "deleteContainer", id=box["id"])
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONTAINER_NOT_EMPTY"

    def test_invalid_json_body(self, client):
        response = client.post(
            "/api/v1", content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ARGUMENT"

    def test_non_object_body(self, client):
        response = client.post("/api/v1", json=[1, 2, 3])
        assert response.status_code == 400
        assert response.json()["error"]["kind"] == "ValidationError"

    def test_request_id_header_reaches_logs(self, client, captured_logs):
        _post(client, "locations", headers={"X-Request-ID": "trace-7"})
        assert any(
            r.get("request_id") == "trace-7" and r["message"] == "request_completed"
            for r in captured_logs()
        )

    def test_status_table_covers_every_kind(self):
        assert set(STATUS_BY_KIND) == {
            "ValidationError",
            "NotFoundError",
            "ConflictError",
            "DecodeError",
            "StoreUnavailable",
        }


class TestIntrospection:
    def test_schema(self, client):
        body = client.get("/api/v1/schema").json()
        assert {"queries", "mutations", "types"} <= set(body)

    def test_sdl(self, client):
        response = client.get("/sdl")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "type Query {" in response.text


class TestHealth:
    def test_ok(self, client):
        body = client.get("/healthz").json()
        assert body["status"] == "ok"

    def test_store_down(self, session_factory):
        class DownFacade(InventoryFacade):
            def ping(self):
                raise StoreUnavailableError("connection refused")

        with TestClient(create_app(DownFacade(session_factory))) as down:
            response = down.get("/healthz")
        assert response.status_code == 503
        assert response.json()["status"] == "unavailable"


class TestCommandLine:
    def test_flags(self):
        args = parse_args(["-a", "0.0.0.0:8000", "-d", "sqlite:///x.db", "--cache", "memory://"])
        config = apply_cli_overrides(HomeboxConfig(), args)
        assert config.server.port == 8000
        assert config.database.url == "sqlite:///x.db"
        assert config.cache.url == "memory://"

    def test_no_flags_keep_config(self):
        assert apply_cli_overrides(HomeboxConfig(), parse_args([])) == HomeboxConfig()

    def test_bad_config_exits_with_2(self, tmp_path, capsys):
        path = tmp_path / "config.yaml"
        path.write_text("server:\n  address: nowhere\n")
        assert main(["-c", str(path)]) == 2
        assert "Error in config file" in capsys.readouterr().err

    def test_missing_config_file_exits_with_2(self, tmp_path):
        assert main(["-c", str(tmp_path / "missing.yaml")]) == 2

    def test_bad_address_flag_exits_with_2(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main(["-a", "nowhere"]) == 2
        assert "address" in capsys.readouterr().err
