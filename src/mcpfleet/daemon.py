# Typed option tree for daemon runtime parameters
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Protocol, runtime_checkable

from mcpfleet.errors import (
    InvalidKeyError,
    InvalidValueError,
    NotSetError,
    SectionNotSetError,
    ValidationFailure,
)
from mcpfleet.models import UpsertResult, determine_list_result, determine_result
from mcpfleet.utils.duration import Duration
from mcpfleet.utils.parsing import (
    HTTP_METHODS,
    is_valid_addr,
    normalize_key,
    parse_bool,
    parse_duration,
    parse_string_list,
)

logger = logging.getLogger(__name__)

# ABOUTME: Type tags reported by available_keys()
TYPE_STRING = "string"
TYPE_BOOL = "bool"
TYPE_DURATION = "duration"
TYPE_STRING_LIST = "[]string"

WILDCARD = "*"
PATH_SEPARATOR = "."

LeafValue = str | bool | Duration | list[str]


@dataclass(frozen=True)
class SchemaKey:
    """One addressable leaf: dotted path, type tag and human description."""

    path: str
    type: str
    description: str


@runtime_checkable
class Getter(Protocol):
    def get(self, *keys: str) -> Any:
        """Return every set value, or the value at the given path segments."""
        ...


@runtime_checkable
class Setter(Protocol):
    def set(self, path: str, value: str) -> UpsertResult:
        """Set (or clear, with an empty value) the leaf at a dotted path."""
        ...


@runtime_checkable
class Validator(Protocol):
    def validate(self) -> None:
        """Raise ValidationFailure listing every problem."""
        ...


@runtime_checkable
class SchemaProvider(Protocol):
    def available_keys(self) -> list[SchemaKey]:
        """List every addressable leaf."""
        ...


@dataclass(frozen=True)
class _Leaf:
    type: str
    description: str


class _OptionSection:
    """Shared get/set/schema machinery for option sections.

    ABOUTME: Subclasses declare LEAVES (key -> _Leaf) and SUBSECTIONS (key -> section class)
    ABOUTME: Attribute names equal the on-disk keys, so dispatch is a table lookup
    ABOUTME: Subclasses add their own checks in _check()
    """

    LABEL: ClassVar[str] = ""
    PATH: ClassVar[str] = ""
    ERROR_PREFIX: ClassVar[str] = ""
    LEAVES: ClassVar[dict[str, _Leaf]] = {}
    SUBSECTIONS: ClassVar[dict[str, type["_OptionSection"]]] = {}

    def _qualify(self, key: str) -> str:
        return f"{self.PATH}{PATH_SEPARATOR}{key}" if self.PATH else key

    # Getter

    def get(self, *keys: str) -> Any:
        """Read values from this section.

        Args:
            *keys: Path segments; none returns every set value as a dict

        Raises:
            InvalidKeyError: Unknown key, or a leaf followed by further segments
            NotSetError: The leaf has no value
            SectionNotSetError: A subsection on the path is absent
        """
        if not keys:
            return self._get_all()

        key = normalize_key(keys[0])
        rest = keys[1:]

        if key in self.LEAVES:
            if rest:
                raise InvalidKeyError(f"{key} is not a subsection")
            value = getattr(self, key)
            if value is None or value == []:
                raise NotSetError(f"{self._qualify(key)} not set")
            return list(value) if isinstance(value, list) else value

        if key in self.SUBSECTIONS:
            child = getattr(self, key)
            if child is None:
                raise SectionNotSetError(f"{self._qualify(key)} not set")
            return child.get(*rest)

        raise InvalidKeyError(f"unknown {self.LABEL} config key: {key}")

    def _get_all(self) -> dict[str, Any]:
        result: dict[str, Any] = {}

        for key in self.LEAVES:
            value = getattr(self, key)
            if value is None or value == []:
                continue
            result[key] = list(value) if isinstance(value, list) else value

        for key in self.SUBSECTIONS:
            child = getattr(self, key)
            if child is None:
                continue
            values = child._get_all()
            if values:
                result[key] = values

        return result

    # Setter

    def set(self, path: str, value: str) -> UpsertResult:
        """Set the leaf at a dotted path from its string form.

        ABOUTME: An empty value clears the leaf
        ABOUTME: Missing subsections are created, but only kept once the child set succeeds

        Raises:
            InvalidKeyError: If the path does not name a leaf
            InvalidValueError: If the value cannot be parsed for the leaf's type
        """
        if not path.strip():
            raise InvalidKeyError(f"{self.LABEL} config path cannot be empty")

        head, _, rest = path.partition(PATH_SEPARATOR)
        key = normalize_key(head)

        if key in self.LEAVES:
            if rest:
                raise InvalidKeyError(f"{key} is not a subsection")
            return self._set_leaf(key, value)

        if key in self.SUBSECTIONS:
            if not rest.strip():
                raise InvalidKeyError(
                    f"{self._qualify(key)} is a subsection, expected {self._qualify(key)}.<key>"
                )
            child = getattr(self, key)
            if child is None:
                child = self.SUBSECTIONS[key]()
            result = child.set(rest, value)
            setattr(self, key, child)
            return result

        raise InvalidKeyError(f"unknown {self.LABEL} config key: {key}")

    def _set_leaf(self, key: str, value: str) -> UpsertResult:
        leaf = self.LEAVES[key]
        old = getattr(self, key)
        new = None if value == "" else self._parse_leaf(key, leaf, value)
        setattr(self, key, new)

        if leaf.type == TYPE_STRING_LIST:
            result = determine_list_result(old, new)
        else:
            result = determine_result(old, new)

        logger.debug(f"Set {self._qualify(key)}: {result.value}")
        return result

    def _parse_leaf(self, key: str, leaf: _Leaf, value: str) -> LeafValue | None:
        if leaf.type == TYPE_STRING:
            return value
        if leaf.type == TYPE_STRING_LIST:
            return parse_string_list(value)

        try:
            if leaf.type == TYPE_BOOL:
                return parse_bool(value)
            return parse_duration(value)
        except ValueError as e:
            raise InvalidValueError(self._qualify(key), value, str(e)) from e

    # SchemaProvider

    def available_keys(self) -> list[SchemaKey]:
        """Every addressable leaf, whether or not it is currently set."""
        keys = [SchemaKey(key, leaf.type, leaf.description) for key, leaf in self.LEAVES.items()]

        for name, section_class in self.SUBSECTIONS.items():
            for child_key in section_class().available_keys():
                keys.append(
                    SchemaKey(
                        path=f"{name}{PATH_SEPARATOR}{child_key.path}",
                        type=child_key.type,
                        description=child_key.description,
                    )
                )

        return keys

    # Validator

    def validate(self) -> None:
        """Check this section and every present subsection.

        Raises:
            ValidationFailure: With one message per problem
        """
        problems: list[str | ValidationFailure] = list(self._check())

        for key in self.SUBSECTIONS:
            child = getattr(self, key)
            if child is None:
                continue
            try:
                child.validate()
            except ValidationFailure as e:
                problems.append(e.prefixed(child.ERROR_PREFIX))

        failure = ValidationFailure.join(problems)
        if failure is not None:
            raise failure

    def _check(self) -> list[str]:
        return []

    # Serialization

    def to_dict(self) -> dict[str, Any]:
        """On-disk table for this section; durations use their canonical form."""
        result: dict[str, Any] = {}

        for key in self.LEAVES:
            value = getattr(self, key)
            if value is None or value == []:
                continue
            if isinstance(value, Duration):
                result[key] = value.canonical()
            elif isinstance(value, list):
                result[key] = list(value)
            else:
                result[key] = value

        for key in self.SUBSECTIONS:
            child = getattr(self, key)
            if child is None:
                continue
            table = child.to_dict()
            if table:
                result[key] = table

        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Any:
        """Build a section from an on-disk table.

        ABOUTME: Unknown keys are logged and ignored

        Raises:
            ValueError: If a value has the wrong type or a duration is malformed
        """
        section = cls()
        path = cls.PATH or "daemon"

        if not isinstance(data, dict):
            raise ValueError(f"'{path}' must be a table")

        for raw_key, raw_value in data.items():
            key = normalize_key(raw_key)
            if key in cls.LEAVES:
                setattr(section, key, _decode_leaf(f"{path}.{key}", cls.LEAVES[key], raw_value))
            elif key in cls.SUBSECTIONS:
                setattr(section, key, cls.SUBSECTIONS[key].from_dict(raw_value))
            else:
                logger.warning(f"Ignoring unknown key '{path}.{raw_key}'")

        return section


def _decode_leaf(path: str, leaf: _Leaf, value: Any) -> LeafValue:
    if leaf.type == TYPE_BOOL:
        if not isinstance(value, bool):
            raise ValueError(f"'{path}' must be a boolean")
        return value

    if leaf.type == TYPE_STRING_LIST:
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ValueError(f"'{path}' must be a list of strings")
        return list(value)

    if not isinstance(value, str):
        raise ValueError(f"'{path}' must be a string")

    if leaf.type == TYPE_DURATION:
        try:
            return Duration.parse(value)
        except ValueError as e:
            raise ValueError(f"'{path}': {e}") from e

    return value


@dataclass
class APITimeoutSection(_OptionSection):
    """Timeouts for the daemon's API server."""

    LABEL: ClassVar[str] = "API timeout"
    PATH: ClassVar[str] = "api.timeout"
    ERROR_PREFIX: ClassVar[str] = "timeout configuration error"
    LEAVES: ClassVar[dict[str, _Leaf]] = {
        "shutdown": _Leaf(TYPE_DURATION, "API server shutdown timeout"),
    }

    shutdown: Duration | None = None

    def _check(self) -> list[str]:
        if self.shutdown is not None and not self.shutdown.is_positive():
            return ["API shutdown timeout must be positive"]
        return []


@dataclass
class CORSSection(_OptionSection):
    """Cross-Origin Resource Sharing settings for the API server.

    ABOUTME: allow_origins entries are '*' or host:port
    ABOUTME: allow_methods entries are '*' or a standard HTTP request method
    """

    LABEL: ClassVar[str] = "CORS"
    PATH: ClassVar[str] = "api.cors"
    ERROR_PREFIX: ClassVar[str] = "CORS configuration error"
    LEAVES: ClassVar[dict[str, _Leaf]] = {
        "enable": _Leaf(TYPE_BOOL, "Enable CORS support"),
        "allow_origins": _Leaf(TYPE_STRING_LIST, "Allowed origins for CORS requests"),
        "allow_methods": _Leaf(TYPE_STRING_LIST, "Allowed HTTP methods for CORS requests"),
        "allow_headers": _Leaf(TYPE_STRING_LIST, "Allowed headers for CORS requests"),
        "expose_headers": _Leaf(TYPE_STRING_LIST, "Headers exposed to the client"),
        "allow_credentials": _Leaf(TYPE_BOOL, "Allow credentials in CORS requests"),
        "max_age": _Leaf(TYPE_DURATION, "Maximum age for CORS preflight cache"),
    }

    enable: bool | None = None
    allow_origins: list[str] | None = None
    allow_methods: list[str] | None = None
    allow_headers: list[str] | None = None
    expose_headers: list[str] | None = None
    allow_credentials: bool | None = None
    max_age: Duration | None = None

    def enable_or_default(self, default: bool) -> bool:
        """The enable setting, or default when it is not set."""
        return default if self.enable is None else self.enable

    def _check(self) -> list[str]:
        problems: list[str] = []

        for origin in self.allow_origins or []:
            if origin == WILDCARD:
                continue
            if origin == "":
                problems.append("CORS origin cannot be empty")
            elif not is_valid_addr(origin):
                problems.append(f"invalid origin address: {origin}")

        for method in self.allow_methods or []:
            if method == WILDCARD:
                continue
            if method == "":
                problems.append("CORS method cannot be empty")
            elif method not in HTTP_METHODS:
                problems.append(f"CORS method {method} is not a valid HTTP request method")

        if self.max_age is not None and not self.max_age.is_positive():
            problems.append("CORS max age must be positive")

        return problems


@dataclass
class APISection(_OptionSection):
    """API server settings: bind address, timeouts and CORS."""

    LABEL: ClassVar[str] = "API"
    PATH: ClassVar[str] = "api"
    ERROR_PREFIX: ClassVar[str] = "API configuration error"
    LEAVES: ClassVar[dict[str, _Leaf]] = {
        "addr": _Leaf(TYPE_STRING, "API server address (host:port)"),
    }
    SUBSECTIONS: ClassVar[dict[str, type[_OptionSection]]] = {
        "timeout": APITimeoutSection,
        "cors": CORSSection,
    }

    addr: str | None = None
    timeout: APITimeoutSection | None = None
    cors: CORSSection | None = None

    def _check(self) -> list[str]:
        if self.addr is None:
            return []
        if self.addr == "":
            return ["API address cannot be empty"]
        if not is_valid_addr(self.addr):
            return [f'API address "{self.addr}" appears to be invalid (expected format: host:port)']
        return []


@dataclass
class MCPTimeoutSection(_OptionSection):
    LABEL: ClassVar[str] = "MCP timeout"
    PATH: ClassVar[str] = "mcp.timeout"
    ERROR_PREFIX: ClassVar[str] = "timeout configuration error"
    LEAVES: ClassVar[dict[str, _Leaf]] = {
        "shutdown": _Leaf(TYPE_DURATION, "MCP server shutdown timeout"),
        "init": _Leaf(TYPE_DURATION, "MCP server initialization timeout"),
        "health": _Leaf(TYPE_DURATION, "Health check timeout for MCP servers"),
    }

    shutdown: Duration | None = None
    init: Duration | None = None
    health: Duration | None = None

    def _check(self) -> list[str]:
        problems = []
        for key in self.LEAVES:
            value = getattr(self, key)
            if value is not None and not value.is_positive():
                problems.append(f"MCP {key} timeout must be positive")
        return problems


@dataclass
class MCPIntervalSection(_OptionSection):
    LABEL: ClassVar[str] = "MCP interval"
    PATH: ClassVar[str] = "mcp.interval"
    ERROR_PREFIX: ClassVar[str] = "interval configuration error"
    LEAVES: ClassVar[dict[str, _Leaf]] = {
        "health": _Leaf(TYPE_DURATION, "Health check interval for MCP servers"),
    }

    health: Duration | None = None

    def _check(self) -> list[str]:
        if self.health is not None and not self.health.is_positive():
            return ["MCP health interval must be positive"]
        return []


@dataclass
class MCPSection(_OptionSection):
    """Settings for the managed MCP sub-servers."""

    LABEL: ClassVar[str] = "MCP"
    PATH: ClassVar[str] = "mcp"
    ERROR_PREFIX: ClassVar[str] = "MCP configuration error"
    SUBSECTIONS: ClassVar[dict[str, type[_OptionSection]]] = {
        "timeout": MCPTimeoutSection,
        "interval": MCPIntervalSection,
    }

    timeout: MCPTimeoutSection | None = None
    interval: MCPIntervalSection | None = None


@dataclass
class DaemonOptions(_OptionSection):
    """Root of the daemon option tree, stored under [daemon].

    ABOUTME: Addressed by dotted paths such as 'api.cors.allow_origins' or 'mcp.timeout.shutdown'
    ABOUTME: Every leaf is absent, set, or cleared back to absent

    Examples:
        >>> options = DaemonOptions()
        >>> options.set("mcp.timeout.shutdown", "30s")
        <UpsertResult.CREATED: 'created'>
        >>> str(options.get("mcp", "timeout", "shutdown"))
        '30s'
    """

    LABEL: ClassVar[str] = "daemon"
    ERROR_PREFIX: ClassVar[str] = "daemon configuration error"
    SUBSECTIONS: ClassVar[dict[str, type[_OptionSection]]] = {
        "api": APISection,
        "mcp": MCPSection,
    }

    api: APISection | None = field(default=None)
    mcp: MCPSection | None = field(default=None)

    def remove(self, path: str) -> UpsertResult:
        """Clear the leaf at path; same as set(path, "")."""
        return self.set(path, "")
