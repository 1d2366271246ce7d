# ABOUTME: Utility modules for mcpfleet
# ABOUTME: Exports duration, parsing and file-system helpers

from mcpfleet.utils.duration import Duration
from mcpfleet.utils.files import REGULAR_FILE_MODE, discover_executables, write_text_atomic
from mcpfleet.utils.parsing import (
    HTTP_METHODS,
    is_valid_addr,
    normalize_key,
    parse_bool,
    parse_duration,
    parse_string_list,
)

__all__ = [
    "Duration",
    "REGULAR_FILE_MODE",
    "discover_executables",
    "write_text_atomic",
    "HTTP_METHODS",
    "is_valid_addr",
    "normalize_key",
    "parse_bool",
    "parse_duration",
    "parse_string_list",
]
