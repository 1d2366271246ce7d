# CLI interface for mcpfleet
import argparse
import logging
import sys
from collections.abc import Callable
from typing import Any

from mcpfleet import __version__
from mcpfleet.config import Document, get_config_path, init_config, load_config
from mcpfleet.daemon import DaemonOptions
from mcpfleet.errors import ConfigError, ConfigLoadError, ConfigSaveError
from mcpfleet.models import ServerEntry, UpsertResult
from mcpfleet.plugins import Category, PluginEntry, ordered_categories, ordered_flow_names
from mcpfleet.utils.parsing import normalize_key

# ABOUTME: Exit codes
# 0 = success, 1 = operation or validation error, 2 = config load error, 3 = fatal
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_FATAL = 3

CATEGORY_CHOICES = [category.value for category in Category]


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ", ".join(value)
    return str(value)


def _flatten(values: dict[str, Any], prefix: str = "") -> list[tuple[str, Any]]:
    """Turn nested option dicts into (dotted.key, value) pairs."""
    pairs: list[tuple[str, Any]] = []
    for key, value in values.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            pairs.extend(_flatten(value, path))
        else:
            pairs.append((path, value))
    return pairs


def _print_plugin(entry: PluginEntry, indent: str = "  ") -> None:
    print(f"{indent}{entry.name}")
    print(f"{indent}  flows: {', '.join(entry.flows)}")
    if entry.required is not None:
        print(f"{indent}  required: {_format_value(entry.required)}")
    if entry.commit_hash:
        print(f"{indent}  commit_hash: {entry.commit_hash}")


def cmd_init(args: argparse.Namespace) -> int:
    """Create an empty config document."""
    path = init_config(args.config_file)
    print(f"Created {path}")
    return EXIT_SUCCESS


def cmd_list(args: argparse.Namespace) -> int:
    """Execute list command.

    ABOUTME: Loads config and displays all declared servers
    """
    config_path = get_config_path(args.config_file)
    document = load_config(config_path)
    servers = document.list_servers()

    print(f"MCP Servers in {config_path}:")
    print()

    for server in servers:
        print(f"  {server.name}")
        print(f"    package: {server.package}")
        if server.tools:
            print(f"    tools: {', '.join(server.tools)}")
        if server.required_env_vars:
            print(f"    required env: {', '.join(server.required_env_vars)}")
        if server.required_arguments():
            print(f"    required args: {' '.join(server.required_arguments())}")
        print()

    print(f"Total: {len(servers)} server(s)")
    return EXIT_SUCCESS


def cmd_add(args: argparse.Namespace) -> int:
    """Execute add command.

    ABOUTME: Declares a new MCP server; duplicates are rejected before anything is saved
    """
    document = load_config(args.config_file)
    entry = ServerEntry(
        name=args.name.strip(),
        package=args.package.strip(),
        tools=args.tool or [],
        required_env_vars=args.required_env or [],
        required_positional_args=args.required_positional_arg or [],
        required_value_args=args.required_arg or [],
        required_bool_args=args.required_bool_arg or [],
    )

    document.add_server(entry)
    print(f"Added server '{entry.name}' ({entry.package})")
    return EXIT_SUCCESS


def cmd_remove(args: argparse.Namespace) -> int:
    """Execute remove command."""
    document = load_config(args.config_file)
    document.remove_server(args.name)
    print(f"Removed server '{args.name.strip()}'")
    return EXIT_SUCCESS


def cmd_daemon_get(args: argparse.Namespace) -> int:
    """Print one daemon option, or every set option as dotted key = value lines."""
    document = load_config(args.config_file)
    keys = args.key.split(".") if args.key else []
    value = document.get_daemon_option(*keys)

    if isinstance(value, dict):
        prefix = ".".join(normalize_key(k) for k in keys)
        for path, leaf in sorted(_flatten(value, prefix)):
            print(f"{path} = {_format_value(leaf)}")
    else:
        print(_format_value(value))

    return EXIT_SUCCESS


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1].strip()
    return value


def _parse_assignments(pairs: list[str]) -> list[tuple[str, str]]:
    assignments: list[tuple[str, str]] = []
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        value = _unquote(value.strip())
        if not sep or not key:
            raise ValueError(f"invalid assignment '{pair}', expected KEY=VALUE")
        if not value:
            raise ValueError(f"value for '{key}' cannot be empty, use 'daemon remove {key}'")
        assignments.append((key, value))
    return assignments


def cmd_daemon_set(args: argparse.Namespace) -> int:
    """Set daemon options from KEY=VALUE pairs, all or none."""
    assignments = _parse_assignments(args.assignments)
    document = load_config(args.config_file)

    results = document.set_daemon_options(assignments)
    for (key, _), result in zip(assignments, results):
        print(f"{key}: {result.value}")

    return EXIT_SUCCESS


def cmd_daemon_remove(args: argparse.Namespace) -> int:
    """Clear daemon options."""
    document = load_config(args.config_file)

    results = document.remove_daemon_options(args.keys)
    for key, result in zip(args.keys, results):
        print(f"{key}: {result.value}")

    return EXIT_SUCCESS


def cmd_daemon_keys(args: argparse.Namespace) -> int:
    """List every daemon option key with its type."""
    for key in DaemonOptions().available_keys():
        print(f"{key.path} ({key.type}): {key.description}")
    return EXIT_SUCCESS


def cmd_daemon_validate(args: argparse.Namespace) -> int:
    """Load the document, which validates it, and report."""
    config_path = get_config_path(args.config_file)
    load_config(config_path)
    print(f"Daemon configuration in {config_path} is valid")
    return EXIT_SUCCESS


def cmd_plugins_list(args: argparse.Namespace) -> int:
    """List plugins in pipeline order, optionally for one category."""
    document = load_config(args.config_file)
    categories = [Category.parse(args.category)] if args.category else ordered_categories()

    total = 0
    for category in categories:
        entries = document.list_plugins(category)
        if not entries and not args.category:
            continue
        print(f"{category.value}:")
        for entry in entries:
            _print_plugin(entry)
        total += len(entries)

    print(f"Total: {total} plugin(s)")
    return EXIT_SUCCESS


def cmd_plugins_get(args: argparse.Namespace) -> int:
    document = load_config(args.config_file)
    entry = document.plugin(args.category, args.name)
    if entry is None:
        print(f"Error: plugin '{args.name}' not found in category '{args.category}'")
        return EXIT_ERROR

    _print_plugin(entry, indent="")
    return EXIT_SUCCESS


def cmd_plugins_set(args: argparse.Namespace) -> int:
    """Create or update a plugin; unspecified fields keep their current values."""
    document = load_config(args.config_file)
    existing = document.plugin(args.category, args.name)

    flows = args.flow or (list(existing.flows) if existing else [])
    required = args.required
    commit_hash = args.commit_hash
    if existing is not None:
        if required is None:
            required = existing.required
        if commit_hash is None:
            commit_hash = existing.commit_hash

    entry = PluginEntry(name=args.name, flows=flows, commit_hash=commit_hash, required=required)
    result = document.upsert_plugin(args.category, entry)
    print(f"Plugin '{args.name.strip()}' in category '{args.category}': {result.value}")
    return EXIT_SUCCESS


def cmd_plugins_remove(args: argparse.Namespace) -> int:
    document = load_config(args.config_file)
    result = document.delete_plugin(args.category, args.name)
    print(f"Plugin '{args.name.strip()}' in category '{args.category}': {result.value}")
    return EXIT_SUCCESS


def cmd_plugins_move(args: argparse.Namespace) -> int:
    """Reorder a plugin or move it to another category."""
    document = load_config(args.config_file)
    result = document.move_plugin(
        args.category,
        args.name,
        to_category=args.to_category,
        before=args.before,
        after=args.after,
        position=args.position,
        force=args.force,
    )

    if result is UpsertResult.NOOP:
        print(f"Plugin '{args.name}' is already in the requested position")
    else:
        print(f"Plugin '{args.name}' moved")
    return EXIT_SUCCESS


def cmd_plugins_validate(args: argparse.Namespace) -> int:
    """Validate plugin configuration, optionally checking plugin executables exist."""
    config_path = get_config_path(args.config_file)
    document: Document = load_config(config_path, check_binaries=args.check_binaries)

    count = 0
    if document.plugins is not None:
        count = len(document.plugins.plugin_names_distinct())
    print(f"Plugin configuration in {config_path} is valid ({count} distinct plugin(s))")
    return EXIT_SUCCESS


def run_command(handler: Callable[[argparse.Namespace], int], args: argparse.Namespace) -> int:
    """Run a command handler and map exceptions to exit codes.

    ABOUTME: Load failures exit 2, save failures exit 3, other errors exit 1
    """
    try:
        return handler(args)
    except ConfigLoadError as e:
        print(f"Error: {e}")
        return EXIT_CONFIG_ERROR
    except ConfigSaveError as e:
        print(f"Fatal error: {e}")
        return EXIT_FATAL
    except (ConfigError, ValueError, OSError) as e:
        print(f"Error: {e}")
        return EXIT_ERROR


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpfleet",
        description="Manage the MCP servers, plugin pipeline and daemon options of an mcpfleet config"
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"mcpfleet v{__version__}"
    )
    parser.add_argument(
        "--config-file",
        help="Path to the config file (default: $MCPFLEET_CONFIG_FILE or ./.mcpfleet.toml)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init", help="Create an empty config file")
    init_parser.set_defaults(handler=cmd_init)

    list_parser = subparsers.add_parser("list", help="List declared MCP servers")
    list_parser.set_defaults(handler=cmd_list)

    add_parser = subparsers.add_parser("add", help="Declare an MCP server")
    add_parser.add_argument("name", help="Unique server name")
    add_parser.add_argument("--package", required=True, help="Package, e.g. uvx::github-mcp@1.0.0")
    add_parser.add_argument("--tool", action="append", help="Tool to expose (repeatable)")
    add_parser.add_argument("--required-env", action="append", help="Required environment variable (repeatable)")
    add_parser.add_argument("--required-arg", action="append", help="Required value flag (repeatable)")
    add_parser.add_argument(
        "--required-positional-arg",
        action="append",
        help="Required positional argument, in order (repeatable)"
    )
    add_parser.add_argument("--required-bool-arg", action="append", help="Required boolean flag (repeatable)")
    add_parser.set_defaults(handler=cmd_add)

    remove_parser = subparsers.add_parser("remove", help="Remove an MCP server")
    remove_parser.add_argument("name", help="Name of the server to remove")
    remove_parser.set_defaults(handler=cmd_remove)

    _add_daemon_commands(subparsers)
    _add_plugin_commands(subparsers)

    return parser


def _add_daemon_commands(subparsers: Any) -> None:
    daemon_parser = subparsers.add_parser("daemon", help="Get and set daemon options")
    daemon_sub = daemon_parser.add_subparsers(dest="daemon_command", required=True)

    get_parser = daemon_sub.add_parser("get", help="Show one option, or all set options")
    get_parser.add_argument("key", nargs="?", help="Dotted key, e.g. api.cors.allow_origins")
    get_parser.set_defaults(handler=cmd_daemon_get)

    set_parser = daemon_sub.add_parser("set", help="Set options")
    set_parser.add_argument("assignments", nargs="+", metavar="KEY=VALUE")
    set_parser.set_defaults(handler=cmd_daemon_set)

    remove_parser = daemon_sub.add_parser("remove", help="Clear options")
    remove_parser.add_argument("keys", nargs="+", metavar="KEY")
    remove_parser.set_defaults(handler=cmd_daemon_remove)

    keys_parser = daemon_sub.add_parser("keys", help="List every option key")
    keys_parser.set_defaults(handler=cmd_daemon_keys)

    validate_parser = daemon_sub.add_parser("validate", help="Validate daemon options")
    validate_parser.set_defaults(handler=cmd_daemon_validate)


def _add_plugin_commands(subparsers: Any) -> None:
    plugins_parser = subparsers.add_parser("plugins", help="Manage the plugin pipeline")
    plugins_sub = plugins_parser.add_subparsers(dest="plugins_command", required=True)

    def add_target(p: argparse.ArgumentParser) -> None:
        p.add_argument("category", type=normalize_key, choices=CATEGORY_CHOICES)
        p.add_argument("name")

    list_parser = plugins_sub.add_parser("list", help="List plugins in pipeline order")
    list_parser.add_argument("--category", type=normalize_key, choices=CATEGORY_CHOICES)
    list_parser.set_defaults(handler=cmd_plugins_list)

    get_parser = plugins_sub.add_parser("get", help="Show one plugin")
    add_target(get_parser)
    get_parser.set_defaults(handler=cmd_plugins_get)

    set_parser = plugins_sub.add_parser("set", help="Create or update a plugin")
    add_target(set_parser)
    set_parser.add_argument(
        "--flow",
        action="append",
        type=normalize_key,
        choices=ordered_flow_names(),
        help="Flow the plugin runs in (repeatable)"
    )
    required_group = set_parser.add_mutually_exclusive_group()
    required_group.add_argument("--required", dest="required", action="store_const", const=True)
    required_group.add_argument("--optional", dest="required", action="store_const", const=False)
    set_parser.add_argument("--commit-hash")
    set_parser.set_defaults(handler=cmd_plugins_set, required=None)

    remove_parser = plugins_sub.add_parser("remove", help="Remove a plugin")
    add_target(remove_parser)
    remove_parser.set_defaults(handler=cmd_plugins_remove)

    move_parser = plugins_sub.add_parser("move", help="Reorder a plugin or change its category")
    add_target(move_parser)
    move_parser.add_argument("--to-category", type=normalize_key, choices=CATEGORY_CHOICES)
    placement = move_parser.add_mutually_exclusive_group()
    placement.add_argument("--before", metavar="NAME")
    placement.add_argument("--after", metavar="NAME")
    placement.add_argument("--position", type=int, help="1-based position, -1 for the end")
    move_parser.add_argument("--force", action="store_true", help="Replace a same-named plugin in --to-category")
    move_parser.set_defaults(handler=cmd_plugins_move)

    validate_parser = plugins_sub.add_parser("validate", help="Validate plugin configuration")
    validate_parser.add_argument(
        "--check-binaries",
        action="store_true",
        help="Also require each plugin executable to exist in plugins.dir"
    )
    validate_parser.set_defaults(handler=cmd_plugins_validate)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    ABOUTME: Parses args and dispatches to the selected command
    ABOUTME: Returns exit code for sys.exit()
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s - %(message)s",
    )

    handler = getattr(args, "handler", None)
    if handler is None:
        # No command specified, show help
        parser.print_help()
        return EXIT_SUCCESS

    return run_command(handler, args)


if __name__ == "__main__":
    sys.exit(main())
