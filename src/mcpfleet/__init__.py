# mcpfleet - Configuration core for an MCP server fleet daemon
# ABOUTME: Version information
__version__ = "0.1.0"

# ABOUTME: Export argument vector normalization and merging
from mcpfleet.args import merge_args, normalize_args, process_all_args, remove_matching_flags

# ABOUTME: Export the document, loaders and config path resolution
from mcpfleet.config import (
    DefaultLoader,
    Document,
    Loader,
    ValidatingLoader,
    get_config_path,
    init_config,
    load_config,
    validate_plugin_binaries,
)
from mcpfleet.daemon import DaemonOptions, SchemaKey

# ABOUTME: Export the error hierarchy
from mcpfleet.errors import (
    ConfigError,
    ConfigLoadError,
    ConfigSaveError,
    ConflictError,
    InvalidKeyError,
    InvalidValueError,
    NotFoundError,
    NotSetError,
    SectionNotSetError,
    ValidationFailure,
)
from mcpfleet.models import ServerEntry, UpsertResult
from mcpfleet.plugins import Category, Flow, PluginEntry, PluginSet

__all__ = [
    "__version__",
    "merge_args",
    "normalize_args",
    "process_all_args",
    "remove_matching_flags",
    "DefaultLoader",
    "Document",
    "Loader",
    "ValidatingLoader",
    "get_config_path",
    "init_config",
    "load_config",
    "validate_plugin_binaries",
    "DaemonOptions",
    "SchemaKey",
    "ConfigError",
    "ConfigLoadError",
    "ConfigSaveError",
    "ConflictError",
    "InvalidKeyError",
    "InvalidValueError",
    "NotFoundError",
    "NotSetError",
    "SectionNotSetError",
    "ValidationFailure",
    "ServerEntry",
    "UpsertResult",
    "Category",
    "Flow",
    "PluginEntry",
    "PluginSet",
]
