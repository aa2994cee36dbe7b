"""
Tests for the HTTP binding.

The app runs in storage mock mode with settings injected through
dependency_overrides, so no environment or bucket is needed.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

from gcs_activity.api import dependencies
from gcs_activity.config.settings import Settings, get_settings
from gcs_activity.main import create_app

CREDENTIALS = '{"type": "service_account"}'


def make_client(**overrides) -> TestClient:
    settings = Settings(**{"storage_mock_mode": True, **overrides})
    app = create_app(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(app)


@pytest.fixture
def client():
    dependencies.reset_mock_storage_client()
    yield make_client()
    dependencies.reset_mock_storage_client()


def eval_body(operation: str, **fields) -> dict:
    body = {
        "jsonCredentials": CREDENTIALS,
        "bucketName": "flow-bucket",
        "operation": operation,
        "objectName": "api/object.txt",
    }
    body.update(fields)
    return body


class TestEvalEndpoint:

    def test_write_then_read(self, client):
        response = client.post(
            "/api/v1/activity/eval",
            json=eval_body("WRITE", objectContent="hello", writeOption="NEW"),
        )
        assert response.status_code == 200
        assert response.json() == {"done": True, "output": None, "error": None}

        response = client.post("/api/v1/activity/eval", json=eval_body("READ"))

        assert response.status_code == 200
        assert response.json()["output"] == "hello"

    def test_new_onto_existing_is_conflict(self, client):
        body = eval_body("WRITE", objectContent="hello", writeOption="NEW")
        client.post("/api/v1/activity/eval", json=body)

        response = client.post("/api/v1/activity/eval", json=body)

        assert response.status_code == 409
        assert response.json()["done"] is False
        assert response.json()["error"]["code"] == "already_exists"

    def test_read_missing_is_not_found(self, client):
        response = client.post("/api/v1/activity/eval", json=eval_body("READ"))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"
        assert response.json()["error"]["status_code"] == 404

    def test_unsupported_operation_is_bad_request(self, client):
        response = client.post("/api/v1/activity/eval", json=eval_body("PATCH"))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "unsupported_operation"

    def test_unpaired_acl_is_bad_request(self, client):
        response = client.post(
            "/api/v1/activity/eval",
            json=eval_body(
                "WRITE",
                objectContent="x",
                objectACL={"user1": "alice@example.com"},
            ),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_failed"

    def test_bad_credentials_outside_mock_mode(self):
        client = make_client(storage_mock_mode=False)

        response = client.post(
            "/api/v1/activity/eval",
            json=eval_body("READ", jsonCredentials="not json"),
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "authentication_failed"


class TestApiKey:

    def test_key_required_when_configured(self):
        client = make_client(api_keys="k1,k2")

        response = client.post("/api/v1/activity/eval", json=eval_body("READ"))

        assert response.status_code == 403

    def test_valid_key_accepted(self):
        dependencies.reset_mock_storage_client()
        client = make_client(api_keys="k1,k2")

        response = client.post(
            "/api/v1/activity/eval",
            json=eval_body("READ"),
            headers={"X-API-Key": "k2"},
        )

        # Authenticated; the object just doesn't exist
        assert response.status_code == 404


class TestHealthAndMetadata:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["details"] == {"mock_mode": True}

    def test_ready(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_metadata(self, client):
        response = client.get("/api/v1/activity/metadata")

        assert response.status_code == 200
        assert response.json()["name"] == "gcs-object-storage"


class TestSharedMockStorage:

    def test_concurrent_first_requests_share_one_store(self):
        dependencies.reset_mock_storage_client()

        with ThreadPoolExecutor(max_workers=8) as pool:
            clients = list(pool.map(lambda _: dependencies.get_mock_storage_client(), range(16)))

        assert all(client is clients[0] for client in clients)
        dependencies.reset_mock_storage_client()
