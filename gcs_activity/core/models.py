"""
Domain models for the storage activity.

The enums and value objects here have no dependency on the Google Cloud SDK.
ActivityInput is the one pydantic model: it sits on the host boundary and
turns a loosely-typed input record into validated fields, so a missing
bucket name is reported instead of silently becoming an empty string.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import (
    ActivityError,
    UnsupportedOperationError,
    UnsupportedOptionError,
    ValidationError,
)


class Operation(Enum):
    """What the activity does with the object."""
    READ = "READ"
    WRITE = "WRITE"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: str) -> "Operation":
        """Case-insensitive lookup. Unknown selectors are reported, never fatal."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise UnsupportedOperationError(f"Unsupported operation: {value!r}") from None


class WriteMode(Enum):
    """
    Policy for a WRITE against an object that may already have content.

    NEW refuses to replace non-empty content, OVERWRITE replaces it,
    APPEND concatenates onto it.
    """
    NEW = "NEW"
    OVERWRITE = "OVERWRITE"
    APPEND = "APPEND"

    @classmethod
    def parse(cls, value: str) -> "WriteMode":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise UnsupportedOptionError(f"Unsupported write option: {value!r}") from None

    @classmethod
    def from_flags(cls, overwrite: bool, append: bool) -> "WriteMode":
        """Map the boolean overwrite/append pair onto a mode."""
        if not overwrite:
            return cls.NEW  # append is meaningless without overwrite
        return cls.APPEND if append else cls.OVERWRITE


class AclRole(Enum):
    """Object ACL roles accepted on write."""
    READER = "READER"
    WRITER = "WRITER"
    OWNER = "OWNER"

    @classmethod
    def parse(cls, value: str) -> "AclRole":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValidationError(
                f"Unsupported ACL role {value!r}; expected one of READER, WRITER, OWNER"
            ) from None


# Principals that are already GCS ACL entities and must not be prefixed.
_ENTITY_PREFIXES = ("user-", "group-", "domain-", "project-")
_SPECIAL_ENTITIES = ("allUsers", "allAuthenticatedUsers")


@dataclass(frozen=True)
class AclGrant:
    """
    A (principal, role) pair attached to an object on write.

    Frozen because grants are values: two grants to the same principal
    with the same role are the same grant.
    """
    principal: str
    role: AclRole

    def __post_init__(self) -> None:
        if not self.principal.strip():
            raise ValidationError("ACL principal cannot be empty")

    @property
    def entity(self) -> str:
        """GCS ACL entity string, e.g. 'user-alice@example.com'."""
        if self.principal in _SPECIAL_ENTITIES or self.principal.startswith(_ENTITY_PREFIXES):
            return self.principal
        return f"user-{self.principal}"

    def to_dict(self) -> dict[str, str]:
        return {"entity": self.entity, "role": self.role.value}


def stringify_content(value: Any) -> str:
    """
    Render host-supplied content as the text that gets stored.

    Hosts hand over scalars as well as strings (a number typed into a
    workflow field, for instance).
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class ActivityInput(BaseModel):
    """
    One invocation's input record, keyed by the host's field names.

    Required fields must be present and non-empty. Unknown host fields are
    ignored so older flows that still send removed inputs keep working.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    credentials: str = Field(alias="jsonCredentials", min_length=1, repr=False)
    bucket_name: str = Field(alias="bucketName", min_length=1)
    operation: str = Field(alias="operation", min_length=1)
    object_name: str = Field(alias="objectName", min_length=1)
    object_content: str = Field(default="", alias="objectContent")
    write_option: Optional[str] = Field(default=None, alias="writeOption")
    overwrite: Optional[bool] = Field(default=None, alias="overwrite")
    append: Optional[bool] = Field(default=None, alias="append")
    acl: Optional[dict[str, str]] = Field(default=None, alias="objectACL")
    acl_grants: Optional[list[Any]] = Field(default=None, alias="aclGrants")

    @field_validator("object_content", mode="before")
    @classmethod
    def _stringify_content(cls, value: Any) -> str:
        return stringify_content(value)

    @field_validator("write_option", mode="before")
    @classmethod
    def _blank_option_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_inputs(cls, inputs: Mapping[str, Any]) -> "ActivityInput":
        """Validate a raw host record, reporting problems as ValidationError."""
        try:
            return cls.model_validate(dict(inputs))
        except PydanticValidationError as e:
            problems = []
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"]) or "input"
                problems.append(f"{field}: {error['msg']}")
            raise ValidationError("Invalid activity input - " + "; ".join(problems))

    def resolve_write_mode(self, default: WriteMode = WriteMode.NEW) -> WriteMode:
        """
        Decide the write mode from whichever contract the caller used.

        An explicit writeOption string wins over the boolean flags; with
        neither present the default applies.
        """
        if self.write_option is not None:
            return WriteMode.parse(self.write_option)
        if self.overwrite is not None or self.append is not None:
            return WriteMode.from_flags(bool(self.overwrite), bool(self.append))
        return default


@dataclass
class ActivityResult:
    """
    Outcome of one evaluation.

    Mirrors the host contract: done is False whenever error is set, and
    output is only populated by READ.
    """
    done: bool
    output: Optional[str] = None
    error: Optional[ActivityError] = None

    @property
    def ok(self) -> bool:
        return self.done and self.error is None

    @classmethod
    def success(cls, output: Optional[str] = None) -> "ActivityResult":
        return cls(done=True, output=output)

    @classmethod
    def failure(cls, error: ActivityError) -> "ActivityResult":
        return cls(done=False, error=error)

    def as_output(self) -> dict[str, str]:
        """Host output record."""
        if self.output is None:
            return {}
        return {"output": self.output}
