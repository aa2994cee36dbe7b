"""
Host-facing pieces: activity metadata and the input/output context.
"""

from .context import ActivityContext, SimpleActivityContext, eval_with_context
from .metadata import ActivityMetadata, MetadataError, load_metadata

__all__ = [
    "ActivityContext",
    "ActivityMetadata",
    "MetadataError",
    "SimpleActivityContext",
    "eval_with_context",
    "load_metadata",
]
