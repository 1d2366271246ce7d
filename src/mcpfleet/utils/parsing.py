# ABOUTME: Parsing primitives shared by the option tree and the plugin model
# ABOUTME: Keys are trimmed + lowercased; values arrive as raw strings from the CLI
import ipaddress

from mcpfleet.utils.duration import Duration

# ABOUTME: Accepted spellings for boolean values (compared case-insensitively)
TRUE_VALUES = frozenset({"true", "t", "1"})
FALSE_VALUES = frozenset({"false", "f", "0"})

# ABOUTME: Standard HTTP request methods accepted in CORS allow_methods
HTTP_METHODS = frozenset({
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "CONNECT",
    "OPTIONS",
    "TRACE",
    "PATCH",
})

MAX_HOSTNAME_LENGTH = 253


def normalize_key(key: str) -> str:
    """Trim whitespace and lowercase a key or path segment."""
    return key.strip().lower()


def parse_bool(value: str) -> bool:
    """Parse a boolean from true/t/1 or false/f/0 (any case).

    Raises:
        ValueError: For anything else, including 'yes' and 'no'
    """
    lowered = value.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"invalid value: '{value}'")


def parse_duration(value: str) -> Duration:
    """Parse a duration string.

    Raises:
        ValueError: If the string is not a valid duration
    """
    try:
        return Duration.parse(value)
    except ValueError as e:
        raise ValueError(f"invalid duration format: {e}") from e


def parse_string_list(value: str) -> list[str] | None:
    """Split a comma-separated string into trimmed elements.

    Returns:
        None for blank input, otherwise the trimmed elements in order

    Examples:
        >>> parse_string_list(" GET, POST ")
        ['GET', 'POST']
        >>> parse_string_list("   ") is None
        True
    """
    if not value.strip():
        return None
    return [part.strip() for part in value.split(",")]


def split_host_port(addr: str) -> tuple[str, str]:
    """Split 'host:port' (or '[v6]:port') into its parts.

    Raises:
        ValueError: When the address has no port separator or is malformed
    """
    if addr.startswith("["):
        end = addr.find("]")
        if end == -1:
            raise ValueError(f"missing ']' in address {addr}")
        if end + 1 >= len(addr) or addr[end + 1] != ":":
            raise ValueError(f"missing port in address {addr}")
        host = addr[1:end]
        port = addr[end + 2:]
        if "[" in port or "]" in port:
            raise ValueError(f"unexpected bracket in address {addr}")
        return host, port

    if ":" not in addr:
        raise ValueError(f"missing port in address {addr}")

    host, _, port = addr.rpartition(":")
    if ":" in host:
        raise ValueError(f"too many colons in address {addr}")
    if "[" in host or "]" in host:
        raise ValueError(f"unexpected bracket in address {addr}")
    return host, port


def is_valid_addr(addr: str) -> bool:
    """Basic host:port validation.

    ABOUTME: ':' alone (empty host and port) is valid and means bind-all
    ABOUTME: Empty host is allowed; empty port only together with empty host
    """
    try:
        host, port = split_host_port(addr)
    except ValueError:
        return False

    if not host and not port:
        return True
    if not port:
        return False

    if host:
        if any(ch in host for ch in " \t\n\r"):
            return False
        try:
            ipaddress.ip_address(host)
        except ValueError:
            if len(host) > MAX_HOSTNAME_LENGTH:
                return False

    return True
