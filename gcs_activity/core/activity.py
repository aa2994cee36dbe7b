"""
The storage object activity.

One invocation = one input record in, one ActivityResult out:

    validate -> authenticate -> resolve bucket/object -> run operation -> map result

The activity knows nothing about Google Cloud. It asks an injected
client factory for an ObjectStorageClient built from the invocation's
credentials, so every call gets its own client and nothing is shared
between invocations.
"""

import logging
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from .acl import resolve_grants
from .errors import ActivityError, AlreadyExistsError, ObjectNotFoundError
from .models import (
    AclGrant,
    ActivityInput,
    ActivityResult,
    Operation,
    WriteMode,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStorageClient(Protocol):
    """
    Interface for object storage backends.

    Implementations raise errors from core.errors: ObjectNotFoundError for
    a missing object, TransportError for anything else the service
    rejects, AuthenticationError when credentials are refused.
    """

    def read_object(self, bucket_name: str, object_name: str) -> str:
        """Return the full object content."""
        ...

    def write_object(
        self,
        bucket_name: str,
        object_name: str,
        content: str,
        grants: Sequence[AclGrant] = (),
        new_object: bool = False,
    ) -> None:
        """
        Create or replace the object, attaching any ACL grants.

        new_object marks a write that is creating the object; if its grants
        cannot be applied the backend removes the object again.
        """
        ...

    def delete_object(self, bucket_name: str, object_name: str) -> None:
        """Remove the object."""
        ...


# Builds an authenticated client from the credentials blob.
ClientFactory = Callable[[str], ObjectStorageClient]


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------

class StorageObjectActivity:
    """
    READ / WRITE / DELETE a single object in a bucket.

    Args:
        client_factory: Called once per invocation with the credentials.
        defaults: Host-declared input defaults, applied beneath the
            supplied inputs (see ActivityMetadata.defaults).
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._client_factory = client_factory
        self._defaults = dict(defaults or {})

    def evaluate(self, inputs: Mapping[str, Any]) -> ActivityResult:
        """
        Run one invocation.

        Every ActivityError becomes a failed result; anything else is a bug
        and propagates to the caller.
        """
        try:
            request = ActivityInput.from_inputs({**self._defaults, **inputs})
            operation = Operation.parse(request.operation)
        except ActivityError as e:
            logger.warning("Rejected activity input", extra={"error_code": e.code})
            return ActivityResult.failure(e)

        log_context = {
            "operation": operation.value,
            "bucket": request.bucket_name,
            "object": request.object_name,
        }

        try:
            output = self._run(operation, request)
        except ActivityError as e:
            logger.warning(
                "Activity failed",
                extra={**log_context, "error_code": e.code, "error": e.message},
            )
            return ActivityResult.failure(e)

        logger.info("Activity completed", extra=log_context)
        return ActivityResult.success(output)

    def _run(self, operation: Operation, request: ActivityInput) -> Optional[str]:
        # Validate everything the write needs before touching the network
        mode, grants = WriteMode.NEW, []
        if operation is Operation.WRITE:
            mode = request.resolve_write_mode()
            grants = resolve_grants(request.acl, request.acl_grants)

        client = self._client_factory(request.credentials)

        if operation is Operation.READ:
            return client.read_object(request.bucket_name, request.object_name)

        if operation is Operation.DELETE:
            client.delete_object(request.bucket_name, request.object_name)
            return None

        write_object(
            client,
            request.bucket_name,
            request.object_name,
            request.object_content,
            mode,
            grants,
        )
        return None


# ---------------------------------------------------------------------------
# Write modes
# ---------------------------------------------------------------------------

def read_existing(client: ObjectStorageClient, bucket_name: str, object_name: str) -> str:
    """
    Current content of an object, or "" when it does not exist.

    Only not-found counts as empty. Permission and transport failures
    propagate so a write never silently clobbers content it could not see.
    """
    try:
        return client.read_object(bucket_name, object_name)
    except ObjectNotFoundError:
        return ""


def write_object(
    client: ObjectStorageClient,
    bucket_name: str,
    object_name: str,
    content: str,
    mode: WriteMode,
    grants: Sequence[AclGrant] = (),
) -> None:
    """Apply one write according to its mode."""
    if mode is WriteMode.NEW:
        if read_existing(client, bucket_name, object_name):
            raise AlreadyExistsError(
                f"Object {object_name!r} already exists in bucket {bucket_name!r}"
            )
    elif mode is WriteMode.APPEND:
        content = read_existing(client, bucket_name, object_name) + content

    logger.debug(
        "Writing object",
        extra={
            "bucket": bucket_name,
            "object": object_name,
            "mode": mode.value,
            "size_chars": len(content),
            "grants": len(grants),
        },
    )
    client.write_object(
        bucket_name, object_name, content, grants, new_object=mode is WriteMode.NEW
    )
