"""File operations utilities for personal-server CLI."""

import logging
import os
import shutil
import sys
from datetime import datetime
from typing import Optional

from .errors import FilesystemError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
COPY_CHUNK_SIZE = 1024 * 1024


def timestamp(moment: Optional[datetime] = None) -> str:
    """Format a moment (default: now) as used in backup file names."""
    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


def ensure_directory(path: str) -> str:
    """
    Create a directory and its parents.

    Raises:
        FilesystemError: If the directory cannot be created
    """
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Failed to create directory {path}: {e}") from e
    return path


def copy_file(source: str, destination: str, preserve_mode: bool = False) -> None:
    """
    Stream a file to a new location.

    Args:
        source: File to copy
        destination: Target path
        preserve_mode: Copy the permission bits as well

    Raises:
        FilesystemError: If the file cannot be read or written
    """
    try:
        with open(source, "rb") as src, open(destination, "wb") as dest:
            shutil.copyfileobj(src, dest, COPY_CHUNK_SIZE)
        if preserve_mode:
            shutil.copymode(source, destination)
    except OSError as e:
        raise FilesystemError(f"Failed to copy {source} to {destination}: {e}") from e


def remove_file(path: str) -> bool:
    """Remove a file, logging a warning instead of failing."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Failed to remove %s: %s", path, e)
        return False
    return True


def remove_tree(path: str) -> bool:
    """Remove a directory tree, logging a warning instead of failing."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Failed to remove directory %s: %s", path, e)
        return False
    return True


def resolve_executable() -> Optional[str]:
    """
    Locate the file of the running command, with symlinks resolved.

    A Python source file, as seen under ``python -m``, is not a runnable
    command and gives None.

    Returns:
        Optional[str]: Absolute real path, or None if it cannot be found
    """
    candidate = sys.argv[0] if sys.argv and sys.argv[0] else ""

    if candidate and os.sep not in candidate:
        candidate = shutil.which(candidate) or ""

    if not candidate or not os.path.isfile(candidate):
        return None

    resolved = os.path.realpath(candidate)
    if resolved.endswith(".py") or not os.access(resolved, os.X_OK):
        return None

    return resolved
