"""
Object storage client for the activity.

Talks to Google Cloud Storage through google-cloud-storage, authenticating
with service-account JSON supplied per invocation. Mock mode keeps objects
in memory, enabling flows and API tests without a real bucket.

Both clients satisfy core.activity.ObjectStorageClient and report failures
with the activity's own error types.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional, Sequence

from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage
from google.cloud.storage import exceptions as storage_exceptions
from google.oauth2 import service_account

from gcs_activity.core.activity import ObjectStorageClient
from gcs_activity.core.errors import (
    ActivityError,
    AuthenticationError,
    ObjectNotFoundError,
    TransportError,
)
from gcs_activity.core.models import AclGrant

logger = logging.getLogger(__name__)

FULL_CONTROL_SCOPE = "https://www.googleapis.com/auth/devstorage.full_control"

CONTENT_TYPE = "text/plain; charset=utf-8"

# Everything the SDK raises for a failed call, including checksum mismatches
# and unexpected raw responses from the upload/download transport
_SDK_ERRORS = (
    api_exceptions.GoogleAPIError,
    auth_exceptions.GoogleAuthError,
    storage_exceptions.InvalidResponse,
    storage_exceptions.DataCorruption,
    OSError,
)


@dataclass
class StorageConfig:
    """
    Configuration for one authenticated GCS client.

    credentials_json is the service-account key file content, exactly as
    the host passes it in. project falls back to the key's project_id.
    """
    credentials_json: str
    project: Optional[str] = None
    # Object ACLs need full control; plain read/write works without grants.
    scopes: list[str] = field(default_factory=lambda: [FULL_CONTROL_SCOPE])

    def __post_init__(self) -> None:
        if not self.credentials_json:
            raise AuthenticationError("Credentials are required")


def load_service_account(config: StorageConfig) -> service_account.Credentials:
    """Parse service-account JSON into credentials, without any network call."""
    try:
        info = json.loads(config.credentials_json)
    except ValueError as e:
        raise AuthenticationError(f"Credentials are not valid JSON: {e}") from e

    if not isinstance(info, dict):
        raise AuthenticationError("Credentials must be a JSON object")

    try:
        return service_account.Credentials.from_service_account_info(
            info, scopes=config.scopes
        )
    except (ValueError, auth_exceptions.GoogleAuthError) as e:
        raise AuthenticationError(f"Invalid service account credentials: {e}") from e


class GCSStorageClient:
    """
    Google Cloud Storage client.

    Bucket and blob handles are resolved lazily: building them makes no
    request, so a missing bucket or object only shows up when an operation
    runs. Each method performs one blocking SDK call; the SDK reads and
    writes whole payloads and closes its streams before returning.
    """

    def __init__(self, config: StorageConfig) -> None:
        credentials = load_service_account(config)
        project = config.project or credentials.project_id

        try:
            self._client = storage.Client(project=project, credentials=credentials)
        except (ValueError, auth_exceptions.GoogleAuthError) as e:
            raise AuthenticationError(f"Could not create storage client: {e}") from e

        logger.info(
            "Initialized GCS storage client",
            extra={
                "project": project,
                "service_account": credentials.service_account_email,
            },
        )

    def read_object(self, bucket_name: str, object_name: str) -> str:
        """Download the whole object and decode it as UTF-8."""
        blob = self._blob(bucket_name, object_name)
        try:
            data = blob.download_as_bytes()
        except _SDK_ERRORS as e:
            raise self._translate(e, "read", bucket_name, object_name) from e

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TransportError(
                f"Object {object_name!r} is not UTF-8 text: {e}"
            ) from e

    def write_object(
        self,
        bucket_name: str,
        object_name: str,
        content: str,
        grants: Sequence[AclGrant] = (),
        new_object: bool = False,
    ) -> None:
        """
        Upload content, replacing the object, then apply ACL grants.

        Grants replace the object's ACL as a whole, the same way an ACL
        supplied at creation time would, and are pinned to the generation
        just uploaded. If they cannot be saved and new_object is set, that
        generation is deleted again so no object is left behind with the
        bucket's default ACL.
        """
        blob = self._blob(bucket_name, object_name)
        try:
            blob.upload_from_string(content, content_type=CONTENT_TYPE)
        except _SDK_ERRORS as e:
            raise self._translate(e, "write", bucket_name, object_name) from e

        if grants:
            generation = blob.generation
            try:
                blob.acl.save(
                    acl=[grant.to_dict() for grant in grants],
                    if_generation_match=generation,
                )
            except _SDK_ERRORS as e:
                if new_object and self._remove_generation(blob, generation):
                    note = "ACL not applied, the uploaded object was removed"
                else:
                    note = "ACL not applied, content was committed with the bucket default ACL"
                raise self._translate(
                    e, "write", bucket_name, object_name, note=note
                ) from e

        logger.debug(
            "Uploaded object",
            extra={
                "bucket": bucket_name,
                "object": object_name,
                "size_chars": len(content),
                "grants": [grant.entity for grant in grants],
            },
        )

    def delete_object(self, bucket_name: str, object_name: str) -> None:
        blob = self._blob(bucket_name, object_name)
        try:
            blob.delete()
        except _SDK_ERRORS as e:
            raise self._translate(e, "delete", bucket_name, object_name) from e

        logger.debug("Deleted object", extra={"bucket": bucket_name, "object": object_name})

    def _blob(self, bucket_name: str, object_name: str) -> storage.Blob:
        """Resolve bucket and object handles. No request is made here."""
        return self._client.bucket(bucket_name).blob(object_name)

    def _remove_generation(self, blob: storage.Blob, generation: Optional[int]) -> bool:
        """Delete the generation this client just uploaded. True on success."""
        try:
            blob.delete(if_generation_match=generation)
        except _SDK_ERRORS as e:
            logger.error(
                "Could not remove object after failed ACL update",
                extra={"object": blob.name, "generation": generation, "error": str(e)},
            )
            return False
        return True

    def _translate(
        self,
        error: Exception,
        action: str,
        bucket_name: str,
        object_name: str,
        note: str = "",
    ) -> ActivityError:
        """Map an SDK exception onto the activity's error types."""
        where = f"gs://{bucket_name}/{object_name}"
        suffix = f" ({note})" if note else ""

        if isinstance(error, api_exceptions.NotFound):
            return ObjectNotFoundError(f"Object not found: {where}{suffix}")

        if isinstance(error, auth_exceptions.GoogleAuthError):
            logger.error(
                "Credentials rejected",
                extra={"action": action, "bucket": bucket_name, "error": str(error)},
            )
            return AuthenticationError(f"Credentials rejected during {action}: {error}{suffix}")

        if isinstance(error, api_exceptions.GoogleAPICallError):
            logger.error(
                "Storage call failed",
                extra={
                    "action": action,
                    "bucket": bucket_name,
                    "object": object_name,
                    "status": error.code,
                    "error": str(error),
                },
            )
            return TransportError(
                f"{action.capitalize()} failed for {where}: {error.message}{suffix}",
                status_code=error.code,
            )

        logger.error(
            "Storage transport failed",
            extra={"action": action, "bucket": bucket_name, "error": str(error)},
        )
        return TransportError(f"{action.capitalize()} failed for {where}: {error}{suffix}")


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Objects live in a dict keyed by (bucket, object); ACL grants are kept
    alongside so tests can assert on them. Buckets spring into existence
    on first write. One instance is shared by concurrent requests in the
    HTTP binding, so every access holds the lock.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], str] = {}
        self._acls: dict[tuple[str, str], list[AclGrant]] = {}
        self._lock = threading.Lock()
        logger.info("Initialized mock storage client (in-memory)")

    def read_object(self, bucket_name: str, object_name: str) -> str:
        key = (bucket_name, object_name)
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(f"Object not found: gs://{bucket_name}/{object_name}")
            return self._objects[key]

    def write_object(
        self,
        bucket_name: str,
        object_name: str,
        content: str,
        grants: Sequence[AclGrant] = (),
        new_object: bool = False,
    ) -> None:
        key = (bucket_name, object_name)
        with self._lock:
            self._objects[key] = content
            self._acls[key] = list(grants)

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket_name, "object": object_name, "size_chars": len(content)},
        )

    def delete_object(self, bucket_name: str, object_name: str) -> None:
        key = (bucket_name, object_name)
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(f"Object not found: gs://{bucket_name}/{object_name}")
            del self._objects[key]
            self._acls.pop(key, None)

    def grants_for(self, bucket_name: str, object_name: str) -> list[AclGrant]:
        """ACL grants attached by the last write (test helper)."""
        with self._lock:
            return list(self._acls.get((bucket_name, object_name), []))


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return an in-memory mock client

    Returns:
        GCSStorageClient or MockStorageClient
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return GCSStorageClient(config)
