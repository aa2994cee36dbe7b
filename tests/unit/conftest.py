"""Shared fixtures for unit tests."""

import pytest

from gcs_activity.config.settings import DEFAULT_METADATA_PATH
from gcs_activity.core.activity import StorageObjectActivity
from gcs_activity.host.metadata import ActivityMetadata, load_metadata
from gcs_activity.infrastructure.storage.client import MockStorageClient

CREDENTIALS = '{"type": "service_account", "project_id": "demo-project"}'
BUCKET = "flow-bucket"
OBJECT = "folder/greeting.txt"


@pytest.fixture(scope="session")
def metadata() -> ActivityMetadata:
    """The packaged activity.json, loaded once for the test run."""
    return load_metadata(DEFAULT_METADATA_PATH)


@pytest.fixture
def storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def activity(storage, metadata) -> StorageObjectActivity:
    """Activity wired to the in-memory store with the declared defaults."""
    return StorageObjectActivity(lambda credentials: storage, defaults=metadata.defaults())


@pytest.fixture
def make_inputs():
    """Build an input record; keyword arguments override or add host fields."""
    def _make(operation: str, **fields):
        inputs = {
            "jsonCredentials": CREDENTIALS,
            "bucketName": BUCKET,
            "operation": operation,
            "objectName": OBJECT,
        }
        inputs.update(fields)
        return inputs
    return _make
