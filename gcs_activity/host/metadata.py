"""
Activity metadata.

activity.json declares the inputs and outputs the host binds. It is read
once by whoever builds the activity (the app factory, a test fixture) and
handed around as a value; nothing here caches it at module level.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


class MetadataError(Exception):
    """Raised when activity.json is missing or malformed."""
    pass


class ActivityAttribute(BaseModel):
    """One declared input or output."""
    name: str
    type: str = "string"
    required: bool = False
    allowed: Optional[list[str]] = None
    value: Any = None


class ActivityMetadata(BaseModel):
    """Parsed activity.json."""
    name: str
    version: str
    title: str = ""
    description: str = ""
    inputs: list[ActivityAttribute] = Field(default_factory=list)
    outputs: list[ActivityAttribute] = Field(default_factory=list)

    @property
    def input_names(self) -> set[str]:
        return {attr.name for attr in self.inputs}

    @property
    def output_names(self) -> set[str]:
        return {attr.name for attr in self.outputs}

    def defaults(self) -> dict[str, Any]:
        """Declared default values for inputs that have one."""
        return {attr.name: attr.value for attr in self.inputs if attr.value is not None}


def load_metadata(path: Union[str, Path]) -> ActivityMetadata:
    """Read and validate activity.json."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise MetadataError(f"Cannot read activity metadata at {path}: {e}") from e
    except ValueError as e:
        raise MetadataError(f"Activity metadata at {path} is not valid JSON: {e}") from e

    try:
        metadata = ActivityMetadata.model_validate(raw)
    except PydanticValidationError as e:
        raise MetadataError(f"Activity metadata at {path} is malformed: {e}") from e

    logger.info(
        "Loaded activity metadata",
        extra={"activity": metadata.name, "version": metadata.version, "path": str(path)},
    )
    return metadata
