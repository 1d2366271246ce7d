# ABOUTME: File-system helpers for the config document and plugin directory
# ABOUTME: Writes go through a temp file + rename so readers never see a torn file
import logging
import os
import stat
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

# ABOUTME: Permissions for standard files (configuration, exports)
REGULAR_FILE_MODE = 0o644

_EXECUTE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def write_text_atomic(path: Path, content: str, mode: int = REGULAR_FILE_MODE) -> None:
    """Atomically replace path with content.

    ABOUTME: Writes to a temp file in the same directory, then renames over path
    ABOUTME: The temp file is removed if anything fails

    Raises:
        OSError: If the file cannot be written
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}-", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_path, mode)
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.debug(f"Wrote {path}")


def discover_executables(directory: str | Path) -> set[str]:
    """Return the names of executable regular files in directory.

    ABOUTME: Skips subdirectories and hidden entries (leading '.')
    ABOUTME: Follows symlinks; broken or unreadable entries are skipped

    Args:
        directory: Directory to scan

    Returns:
        Set of file names that have any execute permission bit set

    Raises:
        FileNotFoundError: If directory does not exist
        NotADirectoryError: If directory is not a directory
    """
    directory = Path(directory)
    executables: set[str] = set()

    for entry in directory.iterdir():
        if entry.name.startswith("."):
            continue

        try:
            info = entry.stat()
        except OSError as e:
            logger.debug(f"Skipping unreadable entry {entry}: {e}")
            continue

        if stat.S_ISREG(info.st_mode) and info.st_mode & _EXECUTE_BITS:
            executables.add(entry.name)

    return executables
