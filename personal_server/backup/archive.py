"""Backup archive assembly."""

import logging
import os
from typing import Optional

from personal_server.utils.errors import FilesystemError, PersonalServerError
from personal_server.utils.files import copy_file, ensure_directory, remove_file, resolve_executable
from personal_server.utils.process import CancellationToken, run

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "global_backup_"
ARCHIVE_SUFFIX = ".tar.gz"


def archive_name(run_timestamp: str) -> str:
    return f"{ARCHIVE_PREFIX}{run_timestamp}{ARCHIVE_SUFFIX}"


class ArchiveBuilder:
    """Builds one compressed archive out of a staging directory."""

    def __init__(self, staging_root: str = "backups"):
        self.staging_root = os.path.abspath(staging_root)

    def create_staging_dir(self, run_timestamp: str) -> str:
        """
        Create the staging directory of a run.

        Raises:
            FilesystemError: If it already exists or cannot be created
        """
        path = os.path.join(self.staging_root, f"{ARCHIVE_PREFIX}{run_timestamp}")
        if os.path.exists(path):
            raise FilesystemError(f"Staging directory already exists: {path}")
        ensure_directory(path)
        logger.info("Staging directory: %s", path)
        return path

    def _include(self, staging_dir: str, source: str, label: str, preserve_mode: bool = False) -> Optional[str]:
        destination = os.path.join(staging_dir, os.path.basename(source))
        try:
            copy_file(source, destination, preserve_mode=preserve_mode)
        except FilesystemError as e:
            logger.warning("Could not include %s: %s", label, e.message)
            return None

        logger.info("%s included: %s", label.capitalize(), os.path.basename(source))
        return os.path.basename(source)

    def include_executable(self, staging_dir: str, executable: Optional[str] = None) -> Optional[str]:
        """
        Copy the running executable into the staging directory.

        Symlinks are resolved first and permission bits are kept. Failure is
        only a warning.

        Returns:
            Optional[str]: The copied file name, or None if it was skipped
        """
        executable = os.path.realpath(executable) if executable else resolve_executable()
        if not executable:
            logger.warning("Could not locate the running executable, backing up without it")
            return None
        return self._include(staging_dir, executable, "binary", preserve_mode=True)

    def include_config(self, staging_dir: str, config_path: str) -> Optional[str]:
        """Copy the active configuration file. Failure is only a warning."""
        if not config_path or not os.path.isfile(config_path):
            logger.warning("Configuration file %s not found, backing up without it", config_path)
            return None
        return self._include(staging_dir, config_path, "config file")

    def build(self, staging_dir: str, token: CancellationToken) -> str:
        """
        Compress the staging directory into ``<staging_dir>.tar.gz``.

        Returns:
            str: Path of the archive

        Raises:
            SubprocessError: If tar fails
        """
        parent, base = os.path.split(os.path.abspath(staging_dir))
        archive_path = os.path.join(parent, base + ARCHIVE_SUFFIX)

        logger.info("Creating archive %s", os.path.basename(archive_path))
        try:
            run(["tar", "-czf", archive_path, "-C", parent, base], token, name="tar")
        except PersonalServerError:
            remove_file(archive_path)
            raise

        logger.info("Archive created: %s (%d bytes)", os.path.basename(archive_path), os.path.getsize(archive_path))
        return archive_path
