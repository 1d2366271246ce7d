# ABOUTME: Tests for value parsers and host:port validation
import pytest

from mcpfleet.utils.duration import SECOND
from mcpfleet.utils.parsing import (
    is_valid_addr,
    normalize_key,
    parse_bool,
    parse_duration,
    parse_string_list,
)


def test_normalize_key():
    """Test keys are trimmed and lowercased."""
    assert normalize_key("  API ") == "api"


@pytest.mark.parametrize("value", ["true", "T", "1", "TRUE"])
def test_parse_bool_true(value):
    """Test accepted true spellings."""
    assert parse_bool(value) is True


@pytest.mark.parametrize("value", ["false", "F", "0", "False"])
def test_parse_bool_false(value):
    """Test accepted false spellings."""
    assert parse_bool(value) is False


@pytest.mark.parametrize("value", ["yes", "no", "", "on"])
def test_parse_bool_rejects_other_values(value):
    """Test yes/no and friends are rejected."""
    with pytest.raises(ValueError, match="invalid value"):
        parse_bool(value)


def test_parse_duration():
    """Test duration parsing and its error message."""
    assert parse_duration("30s").nanoseconds == 30 * SECOND
    with pytest.raises(ValueError, match="invalid duration format"):
        parse_duration("thirty seconds")


def test_parse_string_list():
    """Test comma-separated values are split and trimmed."""
    assert parse_string_list(" GET, POST ,PUT") == ["GET", "POST", "PUT"]
    assert parse_string_list("single") == ["single"]
    assert parse_string_list("") is None
    assert parse_string_list("   ") is None


@pytest.mark.parametrize(
    "addr",
    [
        ":",
        ":8080",
        "localhost:8080",
        "0.0.0.0:8090",
        "[::1]:8080",
        "example.com:443",
    ],
)
def test_valid_addresses(addr):
    """Test addresses accepted as host:port."""
    assert is_valid_addr(addr)


@pytest.mark.parametrize(
    "addr",
    [
        "",
        "localhost",
        "localhost:",
        "bad host:80",
        "a:b:c",
        "[::1]",
        "x" * 254 + ":80",
    ],
)
def test_invalid_addresses(addr):
    """Test addresses rejected as host:port."""
    assert not is_valid_addr(addr)
