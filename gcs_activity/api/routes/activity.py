"""
Activity API endpoints.

The HTTP binding for workflow hosts that call activities over the network:

1. Host posts the input record (POST /eval), using the activity's input names
2. The activity runs one READ / WRITE / DELETE
3. Host receives {"done": ..., "output": ...} or an error body

Error responses keep the same body shape as successes so a host can read
"done" without caring about the status code.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ...core.errors import (
    ActivityError,
    AlreadyExistsError,
    AuthenticationError,
    ObjectNotFoundError,
    TransportError,
    UnsupportedOperationError,
    ValidationError,
)
from ..dependencies import ActivityDep, AuthenticatedUser, MetadataDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class ErrorBody(BaseModel):
    """Structured activity error."""
    code: str = Field(description="Stable error code, e.g. already_exists")
    message: str = Field(description="Human-readable description")
    status_code: Optional[int] = Field(
        default=None,
        description="Status reported by the storage service, for transport errors"
    )


class EvalResponse(BaseModel):
    """Result of one activity evaluation."""
    done: bool = Field(description="True when the operation completed")
    output: Optional[str] = Field(
        default=None,
        description="Object content (READ only)"
    )
    error: Optional[ErrorBody] = None


# Most specific first: ObjectNotFoundError is a TransportError.
_ERROR_STATUS: list[tuple[type[ActivityError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnsupportedOperationError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (ObjectNotFoundError, status.HTTP_404_NOT_FOUND),
    (TransportError, status.HTTP_502_BAD_GATEWAY),
]


def status_for_error(error: ActivityError) -> int:
    """HTTP status for an activity error."""
    for error_type, http_status in _ERROR_STATUS:
        if isinstance(error, error_type):
            return http_status
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/eval",
    response_model=EvalResponse,
    status_code=status.HTTP_200_OK,
    summary="Evaluate the activity",
    responses={
        400: {"model": EvalResponse, "description": "Invalid input or operation"},
        401: {"model": EvalResponse, "description": "Credentials malformed or rejected"},
        404: {"model": EvalResponse, "description": "Object not found"},
        409: {"model": EvalResponse, "description": "NEW write onto existing content"},
        502: {"model": EvalResponse, "description": "Storage service failure"},
    },
)
def evaluate_activity(
    activity: ActivityDep,
    _: AuthenticatedUser,
    inputs: dict[str, Any] = Body(..., description="Input record keyed by activity input name"),
):
    """
    Run one READ / WRITE / DELETE.

    Plain def, not async: storage calls block, so FastAPI runs this in
    its threadpool.
    """
    result = activity.evaluate(inputs)

    if result.ok:
        return EvalResponse(done=True, output=result.output)

    error = result.error
    http_status = status_for_error(error)
    body = EvalResponse(done=False, error=ErrorBody(**error.to_dict()))

    logger.info(
        "Activity evaluation returned error",
        extra={"error_code": error.code, "status": http_status},
    )

    return JSONResponse(status_code=http_status, content=body.model_dump())


@router.get(
    "/metadata",
    summary="Activity metadata",
    description="Declared inputs and outputs, as loaded from activity.json.",
)
async def get_activity_metadata(metadata: MetadataDep) -> dict[str, Any]:
    return metadata.model_dump()
