"""
Unit tests for the GCS storage client.

The Google SDK is patched out: storage.Client is replaced with a MagicMock
and credential parsing is stubbed, so we can check which SDK calls happen
and how SDK errors are translated, all without network access.
"""

import json
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud.storage import exceptions as storage_exceptions

from gcs_activity.core.activity import StorageObjectActivity
from gcs_activity.core.errors import (
    AuthenticationError,
    ObjectNotFoundError,
    TransportError,
)
from gcs_activity.core.models import AclGrant, AclRole
from gcs_activity.infrastructure.storage import client as client_module
from gcs_activity.infrastructure.storage.client import (
    CONTENT_TYPE,
    GCSStorageClient,
    MockStorageClient,
    StorageConfig,
    create_storage_client,
    load_service_account,
)

SERVICE_ACCOUNT = json.dumps({
    "type": "service_account",
    "project_id": "demo-project",
    "client_email": "flows@demo-project.iam.gserviceaccount.com",
})


@pytest.fixture
def sdk():
    """Patch credential parsing and storage.Client; yield the mocks."""
    credentials = MagicMock(
        project_id="demo-project",
        service_account_email="flows@demo-project.iam.gserviceaccount.com",
    )
    with patch.object(
        client_module.service_account.Credentials,
        "from_service_account_info",
        return_value=credentials,
    ) as from_info, patch.object(client_module.storage, "Client") as client_cls:
        blob = client_cls.return_value.bucket.return_value.blob.return_value
        blob.generation = 1700000000000001
        yield {
            "from_info": from_info,
            "client_cls": client_cls,
            "client": client_cls.return_value,
            "blob": blob,
            "credentials": credentials,
        }


@pytest.fixture
def gcs(sdk) -> GCSStorageClient:
    return GCSStorageClient(StorageConfig(credentials_json=SERVICE_ACCOUNT))


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class TestAuthentication:
    """Credential parsing happens locally and fails as AuthenticationError."""

    def test_empty_credentials_rejected(self):
        with pytest.raises(AuthenticationError, match="required"):
            StorageConfig(credentials_json="")

    def test_non_json_credentials_rejected(self):
        with pytest.raises(AuthenticationError, match="not valid JSON"):
            load_service_account(StorageConfig(credentials_json="<<Private Key JSON>>"))

    def test_json_array_rejected(self):
        with pytest.raises(AuthenticationError, match="JSON object"):
            load_service_account(StorageConfig(credentials_json="[]"))

    def test_incomplete_service_account_rejected(self):
        """google-auth refuses keys without client_email/token_uri."""
        with pytest.raises(AuthenticationError, match="Invalid service account"):
            load_service_account(StorageConfig(credentials_json='{"type": "service_account"}'))

    def test_client_uses_key_project(self, sdk, gcs):
        sdk["client_cls"].assert_called_once_with(
            project="demo-project", credentials=sdk["credentials"]
        )

    def test_configured_project_wins(self, sdk):
        GCSStorageClient(StorageConfig(credentials_json=SERVICE_ACCOUNT, project="other"))

        sdk["client_cls"].assert_called_once_with(
            project="other", credentials=sdk["credentials"]
        )

    def test_scopes_passed_to_credentials(self, sdk, gcs):
        info = json.loads(SERVICE_ACCOUNT)
        sdk["from_info"].assert_called_once_with(
            info, scopes=[client_module.FULL_CONTROL_SCOPE]
        )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

class TestOperations:
    """Each operation is one SDK call on a lazily resolved blob."""

    def test_read_decodes_utf8(self, sdk, gcs):
        sdk["blob"].download_as_bytes.return_value = "grüße".encode("utf-8")

        assert gcs.read_object("flow-bucket", "a/b.txt") == "grüße"
        sdk["client"].bucket.assert_called_with("flow-bucket")
        sdk["client"].bucket.return_value.blob.assert_called_with("a/b.txt")

    def test_read_binary_content_is_a_transport_error(self, sdk, gcs):
        sdk["blob"].download_as_bytes.return_value = b"\xff\xfe\x00"

        with pytest.raises(TransportError, match="not UTF-8"):
            gcs.read_object("flow-bucket", "image.png")

    def test_write_uploads_text(self, sdk, gcs):
        gcs.write_object("flow-bucket", "a.txt", "hello")

        sdk["blob"].upload_from_string.assert_called_once_with(
            "hello", content_type=CONTENT_TYPE
        )
        sdk["blob"].acl.save.assert_not_called()

    def test_write_applies_grants(self, sdk, gcs):
        grants = [
            AclGrant("alice@example.com", AclRole.READER),
            AclGrant("allUsers", AclRole.READER),
        ]

        gcs.write_object("flow-bucket", "a.txt", "hello", grants)

        sdk["blob"].acl.save.assert_called_once_with(
            acl=[
                {"entity": "user-alice@example.com", "role": "READER"},
                {"entity": "allUsers", "role": "READER"},
            ],
            if_generation_match=1700000000000001,
        )

    def test_delete(self, sdk, gcs):
        gcs.delete_object("flow-bucket", "a.txt")

        sdk["blob"].delete.assert_called_once_with()


class TestErrorTranslation:
    """SDK exceptions become activity errors, chained to the original."""

    def test_not_found(self, sdk, gcs):
        original = api_exceptions.NotFound("No such object")
        sdk["blob"].download_as_bytes.side_effect = original

        with pytest.raises(ObjectNotFoundError) as excinfo:
            gcs.read_object("flow-bucket", "missing.txt")

        assert excinfo.value.status_code == 404
        assert "gs://flow-bucket/missing.txt" in excinfo.value.message
        assert excinfo.value.__cause__ is original

    def test_forbidden_keeps_status(self, sdk, gcs):
        sdk["blob"].upload_from_string.side_effect = api_exceptions.Forbidden("denied")

        with pytest.raises(TransportError) as excinfo:
            gcs.write_object("flow-bucket", "a.txt", "x")

        assert excinfo.value.status_code == 403
        assert not isinstance(excinfo.value, ObjectNotFoundError)

    def test_acl_failure_is_a_write_failure(self, sdk, gcs):
        sdk["blob"].acl.save.side_effect = api_exceptions.BadRequest("bad entity")

        with pytest.raises(TransportError, match="Write failed"):
            gcs.write_object(
                "flow-bucket", "a.txt", "x", [AclGrant("bob@example.com", AclRole.OWNER)]
            )

    def test_checksum_mismatch_is_transport(self, sdk, gcs):
        original = storage_exceptions.DataCorruption(MagicMock(), "Checksum mismatch")
        sdk["blob"].download_as_bytes.side_effect = original

        with pytest.raises(TransportError, match="Checksum mismatch") as excinfo:
            gcs.read_object("flow-bucket", "a.txt")

        assert excinfo.value.__cause__ is original

    def test_invalid_response_is_transport(self, sdk, gcs):
        sdk["blob"].upload_from_string.side_effect = storage_exceptions.InvalidResponse(
            MagicMock(), "Unexpected status 308"
        )

        with pytest.raises(TransportError, match="Unexpected status 308"):
            gcs.write_object("flow-bucket", "a.txt", "x")

    def test_corrupted_download_is_a_failed_result(self, sdk):
        sdk["blob"].download_as_bytes.side_effect = storage_exceptions.DataCorruption(
            MagicMock(), "Checksum mismatch"
        )
        activity = StorageObjectActivity(
            lambda credentials: GCSStorageClient(StorageConfig(credentials_json=credentials))
        )

        result = activity.evaluate({
            "jsonCredentials": SERVICE_ACCOUNT,
            "bucketName": "flow-bucket",
            "operation": "READ",
            "objectName": "a.txt",
        })

        assert not result.done
        assert isinstance(result.error, TransportError)

    def test_refresh_error_is_authentication(self, sdk, gcs):
        sdk["blob"].delete.side_effect = auth_exceptions.RefreshError("invalid_grant")

        with pytest.raises(AuthenticationError, match="delete"):
            gcs.delete_object("flow-bucket", "a.txt")

    def test_connection_error_is_transport(self, sdk, gcs):
        sdk["blob"].download_as_bytes.side_effect = ConnectionError("reset by peer")

        with pytest.raises(TransportError, match="reset by peer") as excinfo:
            gcs.read_object("flow-bucket", "a.txt")

        assert excinfo.value.status_code is None

    def test_programming_errors_are_not_translated(self, sdk, gcs):
        sdk["blob"].delete.side_effect = TypeError("bug")

        with pytest.raises(TypeError):
            gcs.delete_object("flow-bucket", "a.txt")


class TestAclFailureRollback:
    """A write whose grants are refused does not leave a stray object behind."""

    GRANTS = [AclGrant("bob@example.com", AclRole.WRITER)]

    def test_new_object_is_removed(self, sdk, gcs):
        sdk["blob"].acl.save.side_effect = api_exceptions.BadRequest("Invalid role")

        with pytest.raises(TransportError, match="uploaded object was removed") as excinfo:
            gcs.write_object("flow-bucket", "a.txt", "x", self.GRANTS, new_object=True)

        assert excinfo.value.status_code == 400
        sdk["blob"].upload_from_string.assert_called_once()
        sdk["blob"].delete.assert_called_once_with(if_generation_match=1700000000000001)

    def test_replaced_object_is_kept_and_reported(self, sdk, gcs):
        sdk["blob"].acl.save.side_effect = api_exceptions.BadRequest("Invalid role")

        with pytest.raises(TransportError, match="content was committed"):
            gcs.write_object("flow-bucket", "a.txt", "x", self.GRANTS)

        sdk["blob"].delete.assert_not_called()

    def test_failed_removal_is_reported(self, sdk, gcs):
        sdk["blob"].acl.save.side_effect = api_exceptions.BadRequest("Invalid role")
        sdk["blob"].delete.side_effect = api_exceptions.PreconditionFailed("generation moved")

        with pytest.raises(TransportError, match="content was committed") as excinfo:
            gcs.write_object("flow-bucket", "a.txt", "x", self.GRANTS, new_object=True)

        # The ACL failure is what gets reported, not the cleanup failure
        assert excinfo.value.status_code == 400

    def test_activity_rolls_back_new_write(self, sdk):
        sdk["blob"].download_as_bytes.side_effect = api_exceptions.NotFound("No such object")
        sdk["blob"].acl.save.side_effect = api_exceptions.BadRequest("Invalid role")
        activity = StorageObjectActivity(
            lambda credentials: GCSStorageClient(StorageConfig(credentials_json=credentials))
        )

        result = activity.evaluate({
            "jsonCredentials": SERVICE_ACCOUNT,
            "bucketName": "flow-bucket",
            "operation": "WRITE",
            "objectName": "a.txt",
            "objectContent": "x",
            "writeOption": "NEW",
            "objectACL": {"user1": "bob@example.com", "role1": "WRITER"},
        })

        assert not result.done
        assert isinstance(result.error, TransportError)
        sdk["blob"].delete.assert_called_once_with(if_generation_match=1700000000000001)


# ---------------------------------------------------------------------------
# Mock client and factory
# ---------------------------------------------------------------------------

class TestMockStorageClient:

    def test_round_trip_and_delete(self):
        mock = MockStorageClient()

        mock.write_object("b", "o", "content")
        assert mock.read_object("b", "o") == "content"

        mock.delete_object("b", "o")
        with pytest.raises(ObjectNotFoundError):
            mock.read_object("b", "o")

    def test_buckets_are_separate(self):
        mock = MockStorageClient()
        mock.write_object("one", "o", "1")

        with pytest.raises(ObjectNotFoundError):
            mock.read_object("two", "o")

    def test_overwrite_replaces_grants(self):
        mock = MockStorageClient()
        mock.write_object("b", "o", "x", [AclGrant("a@example.com", AclRole.READER)])
        mock.write_object("b", "o", "y")

        assert mock.grants_for("b", "o") == []

    def test_concurrent_writes_are_all_kept(self):
        mock = MockStorageClient()
        names = [f"obj-{i}" for i in range(200)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda name: mock.write_object("b", name, name), names))

        assert all(mock.read_object("b", name) == name for name in names)


class TestCreateStorageClient:

    def test_mock_mode(self):
        assert isinstance(create_storage_client(mock_mode=True), MockStorageClient)

    def test_config_required_outside_mock_mode(self):
        with pytest.raises(ValueError, match="config is required"):
            create_storage_client()

    def test_gcs_client_from_config(self, sdk):
        client = create_storage_client(StorageConfig(credentials_json=SERVICE_ACCOUNT))
        assert isinstance(client, GCSStorageClient)
