"""
Host context contract.

Workflow engines hand an activity a context to read inputs from and write
outputs to, and expect (done, error) back. eval_with_context adapts
StorageObjectActivity.evaluate to that shape.
"""

from typing import Any, Optional, Protocol

from ..core.activity import StorageObjectActivity
from ..core.errors import ActivityError, ValidationError
from .metadata import ActivityMetadata


class ActivityContext(Protocol):
    """What the activity needs from the host for one invocation."""

    def get_input(self, name: str) -> Any:
        ...

    def set_output(self, name: str, value: Any) -> None:
        ...


class SimpleActivityContext:
    """
    Dictionary-backed context.

    Used by tests and by callers embedding the activity directly. Only
    names the metadata declares can be set.
    """

    def __init__(self, metadata: ActivityMetadata) -> None:
        self._metadata = metadata
        self.inputs: dict[str, Any] = {}
        self.outputs: dict[str, Any] = {}

    def set_input(self, name: str, value: Any) -> None:
        if name not in self._metadata.input_names:
            raise ValidationError(f"Activity {self._metadata.name!r} has no input {name!r}")
        self.inputs[name] = value

    def get_input(self, name: str) -> Any:
        return self.inputs.get(name)

    def set_output(self, name: str, value: Any) -> None:
        if name not in self._metadata.output_names:
            raise ValidationError(f"Activity {self._metadata.name!r} has no output {name!r}")
        self.outputs[name] = value

    def get_output(self, name: str) -> Any:
        return self.outputs.get(name)


def eval_with_context(
    activity: StorageObjectActivity,
    context: ActivityContext,
    metadata: ActivityMetadata,
) -> tuple[bool, Optional[ActivityError]]:
    """
    Run the activity against a host context.

    Inputs the host left unset are omitted rather than passed as None, so
    declared defaults still apply.
    """
    inputs = {}
    for name in metadata.input_names:
        value = context.get_input(name)
        if value is not None:
            inputs[name] = value

    result = activity.evaluate(inputs)
    for name, value in result.as_output().items():
        context.set_output(name, value)

    return result.done, result.error
