# Core data models for mcpfleet
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

T = TypeVar("T")

# ABOUTME: Separators inside a package identifier, e.g. 'uvx::github-mcp@1.0.0'
PACKAGE_PREFIX_DELIMITER = "::"
PACKAGE_VERSION_DELIMITER = "@"


class UpsertResult(str, Enum):
    """Outcome of a create/update/delete style operation."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    NOOP = "noop"


def determine_result(old: T | None, new: T | None) -> UpsertResult:
    """Classify the transition of an optional scalar.

    ABOUTME: absent->absent and equal values are Noop
    ABOUTME: absent->present is Created, present->absent is Deleted, otherwise Updated
    """
    if old is None and new is None:
        return UpsertResult.NOOP
    if old is None:
        return UpsertResult.CREATED
    if new is None:
        return UpsertResult.DELETED
    if old != new:
        return UpsertResult.UPDATED
    return UpsertResult.NOOP


def determine_list_result(old: Sequence[str] | None, new: Sequence[str] | None) -> UpsertResult:
    """Classify the transition of an optional string list.

    An empty list counts as absent; otherwise lists compare by length and element order.
    """
    if not old and not new:
        return UpsertResult.NOOP
    if not old:
        return UpsertResult.CREATED
    if not new:
        return UpsertResult.DELETED
    if list(old) != list(new):
        return UpsertResult.UPDATED
    return UpsertResult.NOOP


def strip_version(package: str) -> str:
    """Remove the '@version' suffix (after the last '@') from a package."""
    head, sep, _ = package.rpartition(PACKAGE_VERSION_DELIMITER)
    return head if sep else package


def strip_prefix(package: str) -> str:
    """Remove the 'runtime::' prefix (up to and including the first '::')."""
    _, sep, tail = package.partition(PACKAGE_PREFIX_DELIMITER)
    return tail if sep else package


def _same_elements(a: Sequence[str], b: Sequence[str]) -> bool:
    return set(a) == set(b)


@dataclass(frozen=True, eq=False)
class ServerEntry:
    """A declared MCP sub-server.

    ABOUTME: Frozen to prevent accidental mutation of entries held by a document
    ABOUTME: Equality treats every list as a set except required_positional_args
    """
    name: str
    package: str
    tools: list[str] = field(default_factory=list)
    required_env_vars: list[str] = field(default_factory=list)
    required_positional_args: list[str] = field(default_factory=list)
    required_value_args: list[str] = field(default_factory=list)
    required_bool_args: list[str] = field(default_factory=list)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServerEntry):
            return NotImplemented

        return (
            self.name == other.name
            and self.package == other.package
            and self.required_positional_args == other.required_positional_args
            and _same_elements(self.tools, other.tools)
            and _same_elements(self.required_env_vars, other.required_env_vars)
            and _same_elements(self.required_value_args, other.required_value_args)
            and _same_elements(self.required_bool_args, other.required_bool_args)
        )

    __hash__ = None  # type: ignore[assignment]

    def key(self) -> tuple[str, str]:
        """Identity used for duplicate detection: (name, package without version)."""
        return self.name, strip_version(self.package)

    def package_version(self) -> str:
        """Version of the package, or the prefix-stripped package when unversioned.

        Examples:
            >>> ServerEntry(name="gh", package="uvx::github-mcp@1.0.0").package_version()
            '1.0.0'
        """
        package = strip_prefix(self.package)
        _, sep, version = package.rpartition(PACKAGE_VERSION_DELIMITER)
        return version if sep else package

    def package_name(self) -> str:
        """Package without runtime prefix or version, e.g. 'github-mcp'."""
        return strip_version(strip_prefix(self.package))

    def required_arguments(self) -> list[str]:
        """All required arguments: positional first, then value flags, then bool flags."""
        return [
            *self.required_positional_args,
            *self.required_value_args,
            *self.required_bool_args,
        ]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk table, omitting empty lists."""
        result: dict[str, Any] = {
            "name": self.name,
            "package": self.package,
        }
        optional = {
            "tools": self.tools,
            "required_env": self.required_env_vars,
            "required_args_positional": self.required_positional_args,
            "required_args": self.required_value_args,
            "required_args_bool": self.required_bool_args,
        }
        for key, values in optional.items():
            if values:
                result[key] = list(values)

        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerEntry":
        """Build an entry from an on-disk table.

        Raises:
            ValueError: If a field has the wrong type
        """
        return cls(
            name=_string(data, "name"),
            package=_string(data, "package"),
            tools=_string_list(data, "tools"),
            required_env_vars=_string_list(data, "required_env"),
            required_positional_args=_string_list(data, "required_args_positional"),
            required_value_args=_string_list(data, "required_args"),
            required_bool_args=_string_list(data, "required_args_bool"),
        )


def _string(data: dict[str, Any], key: str) -> str:
    value = data.get(key, "")
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"'{key}' must be a list of strings")
    return list(value)
