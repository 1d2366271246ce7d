# ABOUTME: Tests for ValidatingLoader and the plugin binary predicate
from pathlib import Path

import pytest

from mcpfleet.config import (
    DefaultLoader,
    Document,
    Loader,
    ValidatingLoader,
    load_config,
    validate_plugin_binaries,
)
from mcpfleet.errors import ConfigLoadError, ValidationFailure
from mcpfleet.plugins import Category, PluginEntry, PluginSet


class StubLoader:
    """Loader returning a fixed document and recording the paths it was asked for."""

    def __init__(self, document: Document) -> None:
        self.document = document
        self.paths: list[str | Path] = []

    def load(self, path: str | Path) -> Document:
        self.paths.append(path)
        return self.document


def _write_plugin_config(tmp_path: Path, plugin_dir: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(
        "servers = []\n\n"
        "[plugins]\n"
        f'dir = "{plugin_dir}"\n\n'
        "[[plugins.authentication]]\n"
        'name = "jwt-auth"\n'
        'flows = ["request"]\n'
    )
    return path


def test_requires_inner_loader():
    """Test a missing inner loader is rejected."""
    with pytest.raises(ValueError, match="inner loader cannot be None"):
        ValidatingLoader(None)


def test_is_a_loader():
    """Test the decorator satisfies the Loader protocol."""
    assert isinstance(ValidatingLoader(DefaultLoader()), Loader)


def test_no_predicates_passes_through():
    """Test the inner document is returned as-is."""
    document = Document()
    inner = StubLoader(document)

    assert ValidatingLoader(inner).load("config.toml") is document
    assert inner.paths == ["config.toml"]


def test_predicates_run_in_order():
    """Test every predicate sees the loaded document, in order."""
    document = Document()
    calls: list[str] = []

    loader = ValidatingLoader(
        StubLoader(document),
        lambda doc: calls.append("first"),
        lambda doc: calls.append("second"),
    )
    loader.load("config.toml")

    assert calls == ["first", "second"]


def test_first_failing_predicate_aborts():
    """Test later predicates do not run after a failure."""
    calls: list[str] = []

    def fail(doc: Document) -> None:
        raise ValidationFailure("nope")

    loader = ValidatingLoader(StubLoader(Document()), fail, lambda doc: calls.append("late"))

    with pytest.raises(ValidationFailure, match="nope"):
        loader.load("config.toml")
    assert calls == []


def test_inner_failure_propagates(tmp_path):
    """Test inner load errors are not wrapped."""
    loader = ValidatingLoader(DefaultLoader(), validate_plugin_binaries)
    with pytest.raises(ConfigLoadError, match="cannot be found"):
        loader.load(tmp_path / "missing.toml")


def test_plugin_binaries_without_plugins():
    """Test documents without plugins pass."""
    validate_plugin_binaries(Document())
    validate_plugin_binaries(Document(plugins=PluginSet()))


def test_plugin_binaries_missing():
    """Test a plugin missing from the directory is reported."""
    plugins = PluginSet(dir="/nonexistent/plugins")
    plugins.entries[Category.AUDIT].append(PluginEntry(name="log", flows=["request"]))

    with pytest.raises(ValidationFailure, match="plugin directory /nonexistent/plugins"):
        validate_plugin_binaries(Document(plugins=plugins))


def test_load_config_checks_binaries(tmp_path):
    """Test load_config with check_binaries loads when every binary exists."""
    plugin_dir = tmp_path / "plugins"
    plugin_dir.mkdir()
    binary = plugin_dir / "jwt-auth"
    binary.write_text("#!/bin/sh\n")
    binary.chmod(0o755)

    document = load_config(_write_plugin_config(tmp_path, plugin_dir), check_binaries=True)

    assert document.plugin(Category.AUTHENTICATION, "jwt-auth") is not None
