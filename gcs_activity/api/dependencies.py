"""
FastAPI dependency injection.

Dependencies provide settings, metadata and a ready-to-run activity to
route handlers. Routes never build storage clients themselves; the
activity asks the client factory for a fresh one on every invocation.
"""

import logging
import threading
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.activity import ClientFactory, ObjectStorageClient, StorageObjectActivity
from ..host.metadata import ActivityMetadata
from ..infrastructure.storage.client import (
    MockStorageClient,
    StorageConfig,
    create_storage_client,
)

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Global mock instance (shared across requests so written objects can be read back)
_mock_storage_client = None
_mock_storage_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    When no keys are configured the check is skipped; the binding is then
    expected to sit behind the workflow host's own network boundary.

    Raises 403 if key is invalid or missing.
    """
    allowed = settings.api_keys_list
    if not allowed:
        return ""

    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in allowed:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Activity Dependencies
# ---------------------------------------------------------------------------

def get_metadata(request: Request) -> ActivityMetadata:
    """Metadata loaded once by the application factory."""
    return request.app.state.metadata


def get_mock_storage_client() -> MockStorageClient:
    """Shared in-memory client used in mock mode."""
    global _mock_storage_client

    # /eval handlers run concurrently in the threadpool
    with _mock_storage_lock:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client for session")
        return _mock_storage_client


def reset_mock_storage_client() -> None:
    """Drop the shared mock so the next request starts empty (tests)."""
    global _mock_storage_client
    with _mock_storage_lock:
        _mock_storage_client = None


def get_client_factory(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ClientFactory:
    """
    Provide the per-invocation client factory.

    Returns either a GCS factory or one that hands back the shared mock.
    """
    if settings.storage_mock_mode:
        mock_client = get_mock_storage_client()
        logger.debug("Using shared mock storage client")

        def mock_factory(credentials_json: str) -> ObjectStorageClient:
            return mock_client

        return mock_factory

    def gcs_factory(credentials_json: str) -> ObjectStorageClient:
        config = StorageConfig(
            credentials_json=credentials_json,
            project=settings.gcp_project,
        )
        return create_storage_client(config=config)

    return gcs_factory


def get_activity(
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
    metadata: Annotated[ActivityMetadata, Depends(get_metadata)],
) -> StorageObjectActivity:
    """The activity is stateless, so a new instance per request is fine."""
    return StorageObjectActivity(client_factory, defaults=metadata.defaults())


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
ActivityDep = Annotated[StorageObjectActivity, Depends(get_activity)]
MetadataDep = Annotated[ActivityMetadata, Depends(get_metadata)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
