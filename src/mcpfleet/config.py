# Configuration document loading, validation and persistence for mcpfleet
import copy
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, TypeVar, runtime_checkable

import tomli
import tomli_w

from mcpfleet.daemon import DaemonOptions
from mcpfleet.errors import (
    ConfigLoadError,
    ConfigSaveError,
    ConflictError,
    NotFoundError,
    ValidationFailure,
)
from mcpfleet.models import ServerEntry, UpsertResult
from mcpfleet.plugins import Category, PluginEntry, PluginSet
from mcpfleet.utils.files import REGULAR_FILE_MODE, write_text_atomic

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ABOUTME: Config file looked up in the current directory by default
DEFAULT_CONFIG_FILE = ".mcpfleet.toml"

# ABOUTME: Environment variable overriding the default config file path
CONFIG_FILE_ENV_VAR = "MCPFLEET_CONFIG_FILE"

# ABOUTME: Contents written by init: a document with no servers
SKELETON = "servers = []\n"


def get_config_path(override: str | Path | None = None) -> Path:
    """Return the path of the config document.

    ABOUTME: Precedence: explicit override, then $MCPFLEET_CONFIG_FILE, then ./.mcpfleet.toml
    ABOUTME: The file may not exist yet - use init_config() to create it

    Args:
        override: Path given on the command line, if any

    Returns:
        Path to the config file
    """
    if override is not None and str(override).strip():
        return Path(str(override).strip())

    from_env = os.environ.get(CONFIG_FILE_ENV_VAR, "").strip()
    if from_env:
        return Path(from_env)

    return Path(DEFAULT_CONFIG_FILE)


def validate_servers(servers: list[ServerEntry]) -> None:
    """Check server entries in two phases, stopping at the first problem.

    ABOUTME: Field phase: names are unique, names and packages are non-empty
    ABOUTME: Distinct phase: no two entries share (name, package without version)
    ABOUTME: A repeated name whose package base also matches is reported as a duplicate entry

    Raises:
        ConflictError: For a duplicate name or duplicate (name, package)
        ValidationFailure: For an empty name or package
    """
    seen_names: dict[str, ServerEntry] = {}
    for entry in servers:
        previous = seen_names.get(entry.name)
        if previous is not None:
            if previous.key() == entry.key():
                _raise_duplicate_entry(entry)
            raise ConflictError(f"duplicate server name '{entry.name}'")
        seen_names[entry.name] = entry

        if not entry.name.strip():
            raise ValidationFailure("server entry has empty name")
        if not entry.package.strip():
            raise ValidationFailure("server entry has empty package")

    seen_keys: set[tuple[str, str]] = set()
    for entry in servers:
        key = entry.key()
        if key in seen_keys:
            _raise_duplicate_entry(entry)
        seen_keys.add(key)


def _raise_duplicate_entry(entry: ServerEntry) -> None:
    name, package = entry.key()
    raise ConflictError(f"duplicate server entry: name: '{name}' package: '{package}'")


def _is_noop(result: Any) -> bool:
    if isinstance(result, list):
        return all(item is UpsertResult.NOOP for item in result)
    return result is UpsertResult.NOOP


@dataclass
class Document:
    """The whole configuration file: servers, plugin pipeline and daemon options.

    ABOUTME: source_path is attached by the loader and never written to the file
    ABOUTME: Mutations run on a copy, validate it, commit it, then save
    ABOUTME: A failed validation leaves this document untouched
    """
    servers: list[ServerEntry] = field(default_factory=list)
    plugins: PluginSet | None = None
    daemon: DaemonOptions | None = None
    source_path: Path | None = field(default=None, compare=False, repr=False)

    def validate(self) -> None:
        """Validate servers, daemon options and plugins.

        Raises:
            ValidationFailure: A single problem is raised as-is; several are joined
        """
        problems: list[ValidationFailure] = []

        try:
            validate_servers(self.servers)
        except ValidationFailure as e:
            problems.append(e)

        if self.daemon is not None:
            try:
                self.daemon.validate()
            except ValidationFailure as e:
                problems.append(e.prefixed("daemon configuration error"))

        if self.plugins is not None:
            try:
                self.plugins.validate()
            except ValidationFailure as e:
                problems.append(e.prefixed("plugin configuration error"))

        if len(problems) == 1:
            raise problems[0]

        failure = ValidationFailure.join(problems)
        if failure is not None:
            raise failure

    def save(self) -> None:
        """Validate and write the document back to source_path.

        Raises:
            ValidationFailure: If the document is invalid
            ConfigSaveError: If there is no source path or the write fails
        """
        if self.source_path is None:
            raise ConfigSaveError("config file path not present")

        self.validate()
        content = tomli_w.dumps(self.to_dict())

        try:
            write_text_atomic(self.source_path, content, REGULAR_FILE_MODE)
        except OSError as e:
            raise ConfigSaveError(f"failed to save updated config: {e}") from e

        logger.debug(f"Saved config to {self.source_path}")

    def _apply(self, mutate: Callable[["Document"], T]) -> T:
        """Run mutate on a copy; on a real change, validate, commit and save."""
        candidate = copy.deepcopy(self)
        result = mutate(candidate)

        if _is_noop(result):
            return result

        candidate.validate()

        self.servers = candidate.servers
        self.plugins = candidate.plugins
        self.daemon = candidate.daemon

        self.save()
        return result

    # Servers

    def add_server(self, entry: ServerEntry) -> UpsertResult:
        """Append a server entry and save.

        Raises:
            ConflictError: If the name, or the (name, package) pair, is already declared
            ValidationFailure: If the entry has an empty name or package
        """
        def mutate(doc: Document) -> UpsertResult:
            doc.servers.append(entry)
            return UpsertResult.CREATED

        result = self._apply(mutate)
        logger.debug(f"Added server '{entry.name}'")
        return result

    def remove_server(self, name: str) -> UpsertResult:
        """Remove every server entry with this name and save.

        Raises:
            ValidationFailure: If name is empty
            NotFoundError: If no server has this name
        """
        name = name.strip()
        if not name:
            raise ValidationFailure("server name cannot be empty")

        def mutate(doc: Document) -> UpsertResult:
            kept = [entry for entry in doc.servers if entry.name != name]
            if len(kept) == len(doc.servers):
                raise NotFoundError(f"server '{name}' not found in config")
            doc.servers = kept
            return UpsertResult.DELETED

        result = self._apply(mutate)
        logger.debug(f"Removed server '{name}'")
        return result

    def list_servers(self) -> list[ServerEntry]:
        return list(self.servers)

    # Plugins

    def plugin(self, category: Category | str, name: str) -> PluginEntry | None:
        if self.plugins is None:
            return None
        return self.plugins.plugin(category, name)

    def list_plugins(self, category: Category | str) -> list[PluginEntry]:
        if self.plugins is None:
            return []
        return self.plugins.list_plugins(category)

    def upsert_plugin(self, category: Category | str, entry: PluginEntry) -> UpsertResult:
        """Create or update a plugin in a category and save when something changed."""
        def mutate(doc: Document) -> UpsertResult:
            if doc.plugins is None:
                doc.plugins = PluginSet()
            return doc.plugins.upsert(category, entry)

        return self._apply(mutate)

    def delete_plugin(self, category: Category | str, name: str) -> UpsertResult:
        """Remove a plugin from a category and save.

        Raises:
            NotFoundError: If no plugins are configured or the plugin is missing
        """
        def mutate(doc: Document) -> UpsertResult:
            if doc.plugins is None:
                raise NotFoundError("no plugins configured")
            return doc.plugins.delete(category, name)

        return self._apply(mutate)

    def move_plugin(self, category: Category | str, name: str, **options: Any) -> UpsertResult:
        """Reorder or recategorize a plugin and save when something changed.

        Args:
            category: Category the plugin is currently in
            name: Plugin name
            **options: to_category, before, after, position and force, as for PluginSet.move

        Raises:
            NotFoundError: If no plugins are configured or a plugin is missing
        """
        def mutate(doc: Document) -> UpsertResult:
            if doc.plugins is None:
                raise NotFoundError("no plugins configured")
            return doc.plugins.move(category, name, **options)

        return self._apply(mutate)

    # Daemon options

    def get_daemon_option(self, *keys: str) -> Any:
        """Read daemon options; with no keys, every set value as a nested dict."""
        daemon = self.daemon if self.daemon is not None else DaemonOptions()
        return daemon.get(*keys)

    def set_daemon_option(self, path: str, value: str) -> UpsertResult:
        """Set a daemon option by dotted path and save when something changed."""
        def mutate(doc: Document) -> UpsertResult:
            if doc.daemon is None:
                doc.daemon = DaemonOptions()
            return doc.daemon.set(path, value)

        return self._apply(mutate)

    def set_daemon_options(self, assignments: list[tuple[str, str]]) -> list[UpsertResult]:
        """Set several daemon options in one change.

        Either every assignment is applied and saved, or none is.

        Args:
            assignments: (dotted path, value) pairs, applied in order

        Raises:
            InvalidKeyError: If a path is unknown
            InvalidValueError: If a value does not parse
            ValidationFailure: If the resulting options are invalid
        """
        def mutate(doc: Document) -> list[UpsertResult]:
            if doc.daemon is None:
                doc.daemon = DaemonOptions()
            return [doc.daemon.set(path, value) for path, value in assignments]

        return self._apply(mutate)

    def remove_daemon_option(self, path: str) -> UpsertResult:
        """Clear a daemon option by dotted path and save when something changed."""
        def mutate(doc: Document) -> UpsertResult:
            if doc.daemon is None:
                doc.daemon = DaemonOptions()
            return doc.daemon.remove(path)

        return self._apply(mutate)

    def remove_daemon_options(self, paths: list[str]) -> list[UpsertResult]:
        """Clear several daemon options in one change, all or nothing."""
        def mutate(doc: Document) -> list[UpsertResult]:
            if doc.daemon is None:
                doc.daemon = DaemonOptions()
            return [doc.daemon.remove(path) for path in paths]

        return self._apply(mutate)

    # Serialization

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk structure; source_path is not included."""
        result: dict[str, Any] = {
            "servers": [entry.to_dict() for entry in self.servers],
        }

        if self.daemon is not None:
            daemon = self.daemon.to_dict()
            if daemon:
                result["daemon"] = daemon

        if self.plugins is not None:
            plugins = self.plugins.to_dict()
            if plugins:
                result["plugins"] = plugins

        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        """Build a document from parsed TOML.

        ABOUTME: Unknown top-level keys are logged and ignored

        Raises:
            ValueError: If a section has the wrong shape
        """
        document = cls()

        for key, value in data.items():
            if key == "servers":
                if not isinstance(value, list):
                    raise ValueError("'servers' must be an array")
                document.servers = [_server_from_dict(item) for item in value]
            elif key == "plugins":
                document.plugins = PluginSet.from_dict(value)
            elif key == "daemon":
                document.daemon = DaemonOptions.from_dict(value)
            else:
                logger.warning(f"Ignoring unknown key '{key}'")

        return document


def _server_from_dict(data: Any) -> ServerEntry:
    if not isinstance(data, dict):
        raise ValueError("server entry must be a table")
    return ServerEntry.from_dict(data)


@runtime_checkable
class Loader(Protocol):
    """Anything that can produce a validated Document from a path."""

    def load(self, path: str | Path) -> Document:
        """Load, validate and return the document at path."""
        ...


@runtime_checkable
class Initializer(Protocol):
    def init(self, path: str | Path) -> None:
        """Create a new, empty document at path."""
        ...


class DefaultLoader:
    """Reads and creates TOML config documents on the local file system."""

    def init(self, path: str | Path) -> None:
        """Create the skeleton document.

        Raises:
            FileExistsError: If path already exists
            OSError: If the file cannot be written
        """
        path = Path(path)
        if path.exists():
            raise FileExistsError(f"{path} already exists")

        write_text_atomic(path, SKELETON, REGULAR_FILE_MODE)
        logger.info(f"Created {path}")

    def load(self, path: str | Path) -> Document:
        """Load and validate the document at path.

        ABOUTME: Every failure is raised as ConfigLoadError, chained to its cause

        Raises:
            ConfigLoadError: If the path is empty or missing, the file is unreadable,
                empty or malformed, or the document fails validation
        """
        raw = str(path).strip()
        if not raw:
            raise ConfigLoadError("path cannot be empty")
        path = Path(raw)

        try:
            path.stat()
        except FileNotFoundError as e:
            raise ConfigLoadError("config file cannot be found, run: 'mcpfleet init'") from e
        except OSError as e:
            raise ConfigLoadError(f"failed to stat config file ({path}): {e}") from e

        try:
            with path.open("rb") as f:
                data = tomli.load(f)
        except (OSError, tomli.TOMLDecodeError) as e:
            raise ConfigLoadError(f"failed to decode config from file ({path}): {e}") from e

        if not data:
            raise ConfigLoadError(f"config file is empty ({path})")

        try:
            document = Document.from_dict(data)
        except ValueError as e:
            raise ConfigLoadError(f"failed to decode config from file ({path}): {e}") from e

        try:
            document.validate()
        except ValidationFailure as e:
            raise ConfigLoadError(f"failed to validate existing config ({path}): {e}") from e

        document.source_path = path
        logger.debug(f"Loaded config from {path} ({len(document.servers)} server(s))")
        return document


ValidationPredicate = Callable[[Document], None]


class ValidatingLoader:
    """Loader decorator that runs extra checks on every loaded document.

    ABOUTME: Predicates run in order after the inner load succeeds
    ABOUTME: The first predicate to raise aborts the load

    Examples:
        >>> loader = ValidatingLoader(DefaultLoader(), validate_plugin_binaries)
    """

    def __init__(self, inner: Loader | None, *predicates: ValidationPredicate) -> None:
        if inner is None:
            raise ValueError("inner loader cannot be None")
        self.inner = inner
        self.predicates = list(predicates)

    def load(self, path: str | Path) -> Document:
        document = self.inner.load(path)
        for predicate in self.predicates:
            predicate(document)
        return document


def validate_plugin_binaries(document: Document) -> None:
    """Check that every configured plugin exists as an executable in plugins.dir.

    ABOUTME: No plugin section, or an empty dir, means plugins are disabled

    Raises:
        ValidationFailure: If the directory is unreadable or plugins are missing
    """
    if document.plugins is None:
        return
    document.plugins.validate_plugin_directory()


def init_config(path: str | Path | None = None) -> Path:
    """Create the skeleton document at path (or the resolved default) and return its path."""
    config_path = get_config_path(path)
    DefaultLoader().init(config_path)
    return config_path


def load_config(path: str | Path | None = None, check_binaries: bool = False) -> Document:
    """Load the document at path (or the resolved default).

    Args:
        path: Explicit config path; see get_config_path() for the fallbacks
        check_binaries: Also require every plugin to exist in plugins.dir

    Raises:
        ConfigLoadError: If the document cannot be loaded
        ValidationFailure: If check_binaries is set and plugins are missing
    """
    loader: Loader = DefaultLoader()
    if check_binaries:
        loader = ValidatingLoader(loader, validate_plugin_binaries)
    return loader.load(get_config_path(path))
