# Plugin pipeline model: categories, flows, entries and ordering operations
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from mcpfleet.errors import ConflictError, NotFoundError, ValidationFailure
from mcpfleet.models import UpsertResult
from mcpfleet.utils.files import discover_executables
from mcpfleet.utils.parsing import normalize_key

logger = logging.getLogger(__name__)

UNKNOWN_PLUGIN_NAME = "unknown"
POSITION_END = -1


class Category(str, Enum):
    """Pipeline stage a plugin belongs to.

    ABOUTME: Definition order is the on-disk storage order
    ABOUTME: Execution order is ordered_categories(), which puts observability first
    """

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RATE_LIMITING = "rate_limiting"
    VALIDATION = "validation"
    CONTENT = "content"
    OBSERVABILITY = "observability"
    AUDIT = "audit"

    @classmethod
    def parse(cls, value: "str | Category") -> "Category":
        """Parse a category name (trimmed, case-insensitive).

        Raises:
            ValueError: If value is not one of the seven categories

        Examples:
            >>> Category.parse(" Rate_Limiting ")
            <Category.RATE_LIMITING: 'rate_limiting'>
        """
        if isinstance(value, Category):
            return value

        normalized = normalize_key(value)
        for category in cls:
            if category.value == normalized:
                return category

        raise ValueError(f"invalid category '{normalized}', must be one of {format_categories()}")


class Flow(str, Enum):
    """Phase of a request/response exchange in which a plugin runs."""

    REQUEST = "request"
    RESPONSE = "response"


_PIPELINE_ORDER = (
    Category.OBSERVABILITY,
    Category.AUTHENTICATION,
    Category.AUTHORIZATION,
    Category.RATE_LIMITING,
    Category.VALIDATION,
    Category.CONTENT,
    Category.AUDIT,
)


def ordered_categories() -> list[Category]:
    """Categories in pipeline execution order (observability first, audit last)."""
    return list(_PIPELINE_ORDER)


def format_categories(categories: Iterable[Category] | None = None) -> str:
    """Sorted, comma-separated category names, e.g. for help and error text."""
    if categories is None:
        categories = _PIPELINE_ORDER
    return ", ".join(sorted(category.value for category in categories))


def allowed_flows() -> set[Flow]:
    """A fresh set of every valid flow."""
    return set(Flow)


def ordered_flow_names() -> list[str]:
    """Names of the valid flows in sorted order."""
    return sorted(flow.value for flow in Flow)


def _parse_flow(value: str) -> Flow | None:
    normalized = normalize_key(value)
    for flow in Flow:
        if flow.value == normalized:
            return flow
    return None


def parse_flows_distinct(values: Iterable[str]) -> set[Flow]:
    """Normalize values and keep the distinct valid flows; invalid values are dropped.

    Examples:
        >>> sorted(parse_flows_distinct([" REQUEST", "request", "bogus"]))
        [<Flow.REQUEST: 'request'>]
    """
    flows: set[Flow] = set()
    for value in values:
        flow = _parse_flow(value)
        if flow is not None:
            flows.add(flow)
    return flows


@dataclass(frozen=True, eq=False)
class PluginEntry:
    """A single plugin in a pipeline category.

    ABOUTME: Flows keep their stored order and duplicates; validate() rejects duplicates
    ABOUTME: Equality compares flows as a set
    """
    name: str
    flows: list[str] = field(default_factory=list)
    commit_hash: str | None = None
    required: bool | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PluginEntry):
            return NotImplemented

        return (
            self.name == other.name
            and self.commit_hash == other.commit_hash
            and self.required == other.required
            and self.flows_distinct() == other.flows_distinct()
        )

    __hash__ = None  # type: ignore[assignment]

    def flows_distinct(self) -> set[str]:
        """The stored flows as a set."""
        return {str(flow.value) if isinstance(flow, Flow) else flow for flow in self.flows}

    def has_flow(self, flow: Flow | str) -> bool:
        """True when the plugin runs in the given flow."""
        value = flow.value if isinstance(flow, Flow) else flow
        return value in self.flows_distinct()

    def validate(self) -> None:
        """Check the name and flows.

        Raises:
            ValidationFailure: With every problem found
        """
        problems: list[str] = []

        if not self.name.strip():
            problems.append("plugin name is required")

        if not self.flows:
            problems.append("at least one flow is required")

        seen: set[str] = set()
        for flow in self.flows:
            value = flow.value if isinstance(flow, Flow) else flow
            if value not in {f.value for f in Flow}:
                allowed = ", ".join(ordered_flow_names())
                problems.append(f"invalid flow '{value}' (allowed: {allowed})")
            if value in seen:
                problems.append(f"duplicate flow: {value}")
            seen.add(value)

        if problems:
            raise ValidationFailure(problems)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name}
        if self.commit_hash is not None:
            result["commit_hash"] = self.commit_hash
        if self.required is not None:
            result["required"] = self.required
        result["flows"] = [flow.value if isinstance(flow, Flow) else flow for flow in self.flows]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PluginEntry":
        """Build an entry from an on-disk table.

        Raises:
            ValueError: If a field has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("plugin entry must be a table")

        name = data.get("name", "")
        commit_hash = data.get("commit_hash")
        required = data.get("required")
        flows = data.get("flows", [])

        if not isinstance(name, str):
            raise ValueError("plugin 'name' must be a string")
        if commit_hash is not None and not isinstance(commit_hash, str):
            raise ValueError(f"plugin '{name}': 'commit_hash' must be a string")
        if required is not None and not isinstance(required, bool):
            raise ValueError(f"plugin '{name}': 'required' must be a boolean")
        if not isinstance(flows, list) or not all(isinstance(flow, str) for flow in flows):
            raise ValueError(f"plugin '{name}': 'flows' must be a list of strings")

        return cls(name=name, flows=list(flows), commit_hash=commit_hash, required=required)


def _empty_categories() -> dict[Category, list[PluginEntry]]:
    return {category: [] for category in Category}


def _index_of(entries: list[PluginEntry], name: str) -> int:
    for i, entry in enumerate(entries):
        if entry.name == name:
            return i
    return -1


@dataclass
class PluginSet:
    """The categorized plugin pipeline, stored under [plugins].

    ABOUTME: Each category keeps a user-controlled order that is also its execution order
    ABOUTME: dir, when set, names the directory holding the plugin executables
    """
    dir: str = ""
    entries: dict[Category, list[PluginEntry]] = field(default_factory=_empty_categories)

    def _category_entries(self, category: Category | str) -> list[PluginEntry]:
        return self.entries.setdefault(Category.parse(category), [])

    def plugin(self, category: Category | str, name: str) -> PluginEntry | None:
        """Look up a plugin by name; None when it or the category is unknown."""
        try:
            entries = self._category_entries(category)
        except ValueError:
            return None

        index = _index_of(entries, name.strip())
        return entries[index] if index >= 0 else None

    def list_plugins(self, category: Category | str) -> list[PluginEntry]:
        """Copy of a category's entries; empty for an unknown category."""
        try:
            return list(self._category_entries(category))
        except ValueError:
            return []

    def all_categories(self) -> dict[Category, list[PluginEntry]]:
        """Copies of every non-empty category, in storage order."""
        return {
            category: list(entries)
            for category, entries in self.entries.items()
            if entries
        }

    def plugin_names_distinct(self) -> set[str]:
        """Every plugin name configured in any category."""
        return {entry.name for entries in self.entries.values() for entry in entries}

    def upsert(self, category: Category | str, entry: PluginEntry) -> UpsertResult:
        """Create or replace a plugin in a category.

        ABOUTME: Appends when absent, replaces in place when different, Noop when equal

        Raises:
            ValueError: If category is unknown
            ValidationFailure: If the entry is invalid
        """
        entry = replace(entry, name=entry.name.strip())
        if not entry.name:
            raise ValidationFailure("plugin name cannot be empty")

        try:
            entry.validate()
        except ValidationFailure as e:
            raise e.prefixed("plugin validation failed") from e

        entries = self._category_entries(category)
        index = _index_of(entries, entry.name)

        if index < 0:
            entries.append(entry)
            return UpsertResult.CREATED
        if entries[index] == entry:
            return UpsertResult.NOOP

        entries[index] = entry
        return UpsertResult.UPDATED

    def delete(self, category: Category | str, name: str) -> UpsertResult:
        """Remove a plugin from a category.

        Raises:
            ValueError: If category is unknown
            ValidationFailure: If name is empty
            NotFoundError: If no plugin with that name exists in the category
        """
        name = name.strip()
        if not name:
            raise ValidationFailure("plugin name cannot be empty")

        parsed = Category.parse(category)
        entries = self._category_entries(parsed)
        index = _index_of(entries, name)
        if index < 0:
            raise NotFoundError(f"plugin '{name}' not found in category '{parsed.value}'")

        del entries[index]
        return UpsertResult.DELETED

    def move(
        self,
        category: Category | str,
        name: str,
        *,
        to_category: Category | str | None = None,
        before: str | None = None,
        after: str | None = None,
        position: int | None = None,
        force: bool = False,
    ) -> UpsertResult:
        """Move a plugin to another category and/or another place in its category.

        ABOUTME: to_category runs first and appends to the target category
        ABOUTME: Then at most one of before, after, position applies (in that precedence)
        ABOUTME: A cross-category move reports Updated even if the positioning was a Noop

        Args:
            category: Category the plugin is currently in
            name: Plugin name
            to_category: Destination category
            before: Place immediately before this plugin
            after: Place immediately after this plugin
            position: 1-based position; -1 is the end, values out of range are clamped
            force: Replace a same-named plugin already in to_category

        Returns:
            UPDATED when the order or category changed, otherwise NOOP

        Raises:
            ValueError: If no directive is given or a category is unknown
            NotFoundError: If the plugin or the before/after target is missing
            ConflictError: If to_category already holds the name and force is False
        """
        if to_category is None and before is None and after is None and position is None:
            raise ValueError("no move operation specified")

        name = name.strip()
        current = Category.parse(category)
        moved = False

        if to_category is not None:
            target = Category.parse(to_category)
            if target != current:
                self._move_to_category(current, name, target, force)
                current = target
                moved = True

        if before is not None:
            result = self._move_relative(current, name, before.strip(), after=False)
        elif after is not None:
            result = self._move_relative(current, name, after.strip(), after=True)
        elif position is not None:
            result = self._move_to_position(current, name, position)
        else:
            result = UpsertResult.NOOP

        if moved:
            return UpsertResult.UPDATED
        return result

    def _source_index(self, category: Category, name: str) -> int:
        index = _index_of(self._category_entries(category), name)
        if index < 0:
            raise NotFoundError(f"plugin '{name}' not found in category '{category.value}'")
        return index

    def _move_to_category(self, source: Category, name: str, target: Category, force: bool) -> None:
        source_entries = self._category_entries(source)
        target_entries = self._category_entries(target)
        index = self._source_index(source, name)

        existing = _index_of(target_entries, name)
        if existing >= 0 and not force:
            raise ConflictError(
                f"plugin '{name}' already exists in category '{target.value}', "
                "use --force to overwrite"
            )

        entry = source_entries.pop(index)
        if existing >= 0:
            del target_entries[existing]
        target_entries.append(entry)
        logger.debug(f"Moved plugin '{name}' from '{source.value}' to '{target.value}'")

    def _reorder(self, category: Category, reordered: list[PluginEntry]) -> UpsertResult:
        entries = self._category_entries(category)
        if [e.name for e in reordered] == [e.name for e in entries]:
            return UpsertResult.NOOP

        entries[:] = reordered
        return UpsertResult.UPDATED

    def _move_relative(self, category: Category, name: str, target_name: str, after: bool) -> UpsertResult:
        entries = self._category_entries(category)
        index = self._source_index(category, name)

        if _index_of(entries, target_name) < 0:
            raise NotFoundError(
                f"target plugin '{target_name}' not found in category '{category.value}'"
            )
        if target_name == name:
            return UpsertResult.NOOP

        reordered = entries[:index] + entries[index + 1:]
        target_index = _index_of(reordered, target_name)
        reordered.insert(target_index + 1 if after else target_index, entries[index])
        return self._reorder(category, reordered)

    def _move_to_position(self, category: Category, name: str, position: int) -> UpsertResult:
        entries = self._category_entries(category)
        index = self._source_index(category, name)

        count = len(entries)
        if position == POSITION_END:
            target_index = count - 1
        else:
            target_index = min(max(position, 1), count) - 1

        reordered = entries[:index] + entries[index + 1:]
        reordered.insert(target_index, entries[index])
        return self._reorder(category, reordered)

    def validate_plugin_directory(self) -> None:
        """Check that every configured plugin exists as an executable in dir.

        ABOUTME: An empty dir means plugins are disabled, so there is nothing to check

        Raises:
            ValidationFailure: If dir cannot be read or plugins are missing from it
        """
        if not self.dir.strip():
            return

        try:
            available = discover_executables(self.dir)
        except OSError as e:
            raise ValidationFailure(f"plugin directory {self.dir}: {e}") from e

        missing = [
            f"plugin {name} not found in directory {self.dir}"
            for name in sorted(self.plugin_names_distinct())
            if name not in available
        ]
        if missing:
            raise ValidationFailure(missing)

    def validate(self) -> None:
        """Validate every entry in every category, then the plugin directory.

        Raises:
            ValidationFailure: With one message per problem across all categories
        """
        problems: list[str | ValidationFailure] = []

        for category, entries in self.entries.items():
            for entry in entries:
                try:
                    entry.validate()
                except ValidationFailure as e:
                    name = entry.name if entry.name.strip() else UNKNOWN_PLUGIN_NAME
                    problems.append(e.prefixed(f"plugin '{name}' in category '{category.value}'"))

        try:
            self.validate_plugin_directory()
        except ValidationFailure as e:
            problems.append(e)

        failure = ValidationFailure.join(problems)
        if failure is not None:
            raise failure

    def to_dict(self) -> dict[str, Any]:
        """On-disk table; empty categories and an empty dir are omitted."""
        result: dict[str, Any] = {}
        if self.dir:
            result["dir"] = self.dir
        for category in Category:
            entries = self.entries.get(category, [])
            if entries:
                result[category.value] = [entry.to_dict() for entry in entries]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PluginSet":
        """Build a plugin set from the [plugins] table.

        ABOUTME: Unknown keys are logged and ignored

        Raises:
            ValueError: If a value has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("'plugins' must be a table")

        plugin_set = cls()
        for key, value in data.items():
            if key == "dir":
                if not isinstance(value, str):
                    raise ValueError("'plugins.dir' must be a string")
                plugin_set.dir = value
                continue

            try:
                category = Category.parse(key)
            except ValueError:
                logger.warning(f"Ignoring unknown key 'plugins.{key}'")
                continue

            if not isinstance(value, list):
                raise ValueError(f"'plugins.{key}' must be an array of tables")
            plugin_set.entries[category] = [PluginEntry.from_dict(item) for item in value]

        return plugin_set
