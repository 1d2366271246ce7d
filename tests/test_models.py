# Tests for core data models
import pytest

from mcpfleet.models import (
    ServerEntry,
    UpsertResult,
    determine_list_result,
    determine_result,
    strip_prefix,
    strip_version,
)


def test_server_entry_creation():
    """Test creating ServerEntry instances."""
    entry = ServerEntry(name="github", package="uvx::github-mcp@1.0.0", tools=["create_issue"])
    assert entry.name == "github"
    assert entry.tools == ["create_issue"]
    assert entry.required_env_vars == []


def test_server_entry_immutability():
    """Test that ServerEntry is frozen (immutable)."""
    entry = ServerEntry(name="github", package="uvx::github-mcp@1.0.0")
    with pytest.raises(AttributeError):
        entry.name = "other"


def test_server_entry_equality_ignores_set_order():
    """Test tools, env vars, value and bool args compare as sets."""
    a = ServerEntry(
        name="x",
        package="r::x@1",
        tools=["a", "b"],
        required_env_vars=["A", "B"],
        required_value_args=["--one", "--two"],
        required_bool_args=["--f", "--g"],
    )
    b = ServerEntry(
        name="x",
        package="r::x@1",
        tools=["b", "a"],
        required_env_vars=["B", "A"],
        required_value_args=["--two", "--one"],
        required_bool_args=["--g", "--f"],
    )
    assert a == b


def test_server_entry_equality_positional_order_matters():
    """Test positional args compare in order."""
    a = ServerEntry(name="x", package="r::x@1", required_positional_args=["one", "two"])
    b = ServerEntry(name="x", package="r::x@1", required_positional_args=["two", "one"])
    assert a != b


def test_server_entry_inequality():
    """Test differing packages are unequal."""
    assert ServerEntry(name="x", package="r::x@1") != ServerEntry(name="x", package="r::x@2")


def test_package_accessors():
    """Test package name and version helpers."""
    entry = ServerEntry(name="github", package="uvx::github-mcp@1.0.0")
    assert entry.package_version() == "1.0.0"
    assert entry.package_name() == "github-mcp"
    assert entry.key() == ("github", "uvx::github-mcp")


def test_package_version_without_version():
    """Test an unversioned package returns the prefix-stripped package."""
    entry = ServerEntry(name="fs", package="npx::@scope/fs")
    assert entry.package_version() == "scope/fs"
    assert ServerEntry(name="t", package="uvx::tool").package_version() == "tool"


def test_strip_helpers():
    """Test version and prefix stripping."""
    assert strip_version("uvx::a@b@1.2") == "uvx::a@b"
    assert strip_version("uvx::a") == "uvx::a"
    assert strip_prefix("uvx::a::b") == "a::b"
    assert strip_prefix("plain") == "plain"


def test_required_arguments_order():
    """Test required arguments are positional, then value, then bool."""
    entry = ServerEntry(
        name="x",
        package="r::x@1",
        required_positional_args=["path"],
        required_value_args=["--token"],
        required_bool_args=["--debug"],
    )
    assert entry.required_arguments() == ["path", "--token", "--debug"]


def test_server_entry_dict_round_trip():
    """Test on-disk keys and omission of empty lists."""
    entry = ServerEntry(
        name="github",
        package="uvx::github-mcp@1.0.0",
        tools=["create_issue"],
        required_env_vars=["GITHUB_TOKEN"],
    )
    data = entry.to_dict()
    assert data == {
        "name": "github",
        "package": "uvx::github-mcp@1.0.0",
        "tools": ["create_issue"],
        "required_env": ["GITHUB_TOKEN"],
    }
    assert ServerEntry.from_dict(data) == entry


def test_server_entry_from_dict_rejects_bad_types():
    """Test wrong field types raise ValueError."""
    with pytest.raises(ValueError, match="tools"):
        ServerEntry.from_dict({"name": "x", "package": "p", "tools": "a"})
    with pytest.raises(ValueError, match="name"):
        ServerEntry.from_dict({"name": 3, "package": "p"})


@pytest.mark.parametrize(
    "old,new,expected",
    [
        (None, None, UpsertResult.NOOP),
        (None, "a", UpsertResult.CREATED),
        ("a", None, UpsertResult.DELETED),
        ("a", "b", UpsertResult.UPDATED),
        ("a", "a", UpsertResult.NOOP),
        (False, True, UpsertResult.UPDATED),
    ],
)
def test_determine_result(old, new, expected):
    """Test classification of optional scalar transitions."""
    assert determine_result(old, new) is expected


@pytest.mark.parametrize(
    "old,new,expected",
    [
        (None, [], UpsertResult.NOOP),
        ([], ["a"], UpsertResult.CREATED),
        (["a"], None, UpsertResult.DELETED),
        (["a", "b"], ["b", "a"], UpsertResult.UPDATED),
        (["a"], ["a", "b"], UpsertResult.UPDATED),
        (["a", "b"], ["a", "b"], UpsertResult.NOOP),
    ],
)
def test_determine_list_result(old, new, expected):
    """Test classification of string list transitions."""
    assert determine_list_result(old, new) is expected
