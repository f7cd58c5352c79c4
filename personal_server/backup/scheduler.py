"""Backup scheduling through the user's crontab.

The crontab edits are pure text transforms; only ``CrontabStore`` touches
the real scheduler.
"""

import logging
import os
import shlex
import subprocess
from typing import List, Optional, Tuple

from personal_server.utils.errors import (
    FilesystemError,
    SubprocessError,
    ValidationError,
    create_error_suggestions,
)
from personal_server.utils.files import resolve_executable

logger = logging.getLogger(__name__)

MANAGED_TAG = "personal-server-backup-job"
CRON_MACROS = ("@yearly", "@annually", "@monthly", "@weekly", "@daily", "@midnight", "@hourly", "@reboot")


def validate_cron_expression(expression: str) -> str:
    """
    Check the shape of a cron expression.

    Raises:
        ValidationError: If it is neither five fields nor a known macro
    """
    expression = (expression or "").strip()
    fields = expression.split()

    if len(fields) == 1 and fields[0] in CRON_MACROS:
        return expression
    if len(fields) != 5:
        raise ValidationError(
            f"Invalid cron expression: '{expression}'",
            suggestions=["Use five fields, e.g. '0 3 * * *', or a macro such as '@daily'"],
        )
    return " ".join(fields)


def build_command(executable: str, config_path: str) -> str:
    """Build the command cron runs for a scheduled backup."""
    return f"{shlex.quote(executable)} --config {shlex.quote(config_path)} backup"


def build_cron_line(expression: str, command: str, tag: str = MANAGED_TAG) -> str:
    return f"{expression} {command} # {tag}"


def add_entry(table: str, line: str) -> str:
    """Append a line to a crontab, making sure the existing text ends with a newline."""
    if table and not table.endswith("\n"):
        table += "\n"
    return table + line + "\n"


def remove_entries(table: str, tag: str = MANAGED_TAG) -> Tuple[str, int]:
    """
    Drop every line carrying ``tag``.

    All other lines, blank ones included, are kept in order.

    Returns:
        Tuple[str, int]: The new table and the number of removed lines
    """
    lines = table.split("\n")
    kept = [line for line in lines if tag not in line]
    return "\n".join(kept), len(lines) - len(kept)


def managed_entries(table: str, tag: str = MANAGED_TAG) -> List[str]:
    return [line for line in table.splitlines() if tag in line]


class CrontabStore:
    """Reads and replaces the current user's crontab with the ``crontab`` command."""

    def __init__(self, command: str = "crontab"):
        self.command = command

    def _run(self, args: List[str], input_text: Optional[str] = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run([self.command] + args, input=input_text, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise SubprocessError(
                f"Command not found: {self.command}",
                command=self.command,
                suggestions=create_error_suggestions("crontab_unavailable"),
            ) from e

    def read(self) -> Optional[str]:
        """
        Return the current crontab.

        Returns:
            Optional[str]: The table text, or None if the user has no crontab

        Raises:
            SubprocessError: If ``crontab -l`` fails for another reason
        """
        result = self._run(["-l"])
        if result.returncode == 0:
            return result.stdout
        if result.returncode == 1 and "no crontab" in result.stderr.lower():
            return None

        raise SubprocessError(
            "Failed to read crontab",
            command=f"{self.command} -l",
            returncode=result.returncode,
            details=result.stderr.strip() or None,
        )

    def write(self, table: str) -> None:
        """Replace the whole crontab in one ``crontab -`` call."""
        result = self._run(["-"], input_text=table)
        if result.returncode != 0:
            raise SubprocessError(
                "Failed to install crontab",
                command=f"{self.command} -",
                returncode=result.returncode,
                details=result.stderr.strip() or None,
            )


class ScheduleManager:
    """Manages the tagged backup entries in the crontab."""

    def __init__(self, store: Optional[CrontabStore] = None, tag: str = MANAGED_TAG):
        self.store = store or CrontabStore()
        self.tag = tag

    def add(self, expression: str, config_path: str, executable: Optional[str] = None) -> str:
        """
        Install a scheduled backup.

        Entries are not deduplicated; an existing managed entry only causes
        a warning.

        Args:
            expression: Cron expression
            config_path: Configuration file the scheduled run uses
            executable: Executable to run (defaults to the running one)

        Returns:
            str: The installed crontab line

        Raises:
            ValidationError: If the cron expression is malformed
            FilesystemError: If the running executable cannot be located
            SubprocessError: If the crontab cannot be read or written
        """
        expression = validate_cron_expression(expression)

        executable = executable or resolve_executable()
        if not executable:
            raise FilesystemError(
                "Cannot locate the running executable",
                suggestions=["Run the installed 'personal-server' command instead of a module invocation"],
            )

        line = build_cron_line(expression, build_command(executable, os.path.abspath(config_path)), self.tag)

        table = self.store.read() or ""
        existing = managed_entries(table, self.tag)
        if existing:
            logger.warning("%d backup schedule entries already exist, adding another", len(existing))

        self.store.write(add_entry(table, line))
        logger.info("Backup scheduled: %s", expression)
        return line

    def clear(self) -> int:
        """
        Remove every managed entry.

        Returns:
            int: Number of removed entries, 0 when nothing was scheduled
        """
        table = self.store.read()
        if table is None:
            logger.warning("No backup schedule found")
            return 0

        new_table, removed = remove_entries(table, self.tag)
        if not removed:
            logger.warning("No backup schedule found")
            return 0

        self.store.write(new_table)
        logger.info("Removed %d backup schedule entries", removed)
        return removed

    def show(self) -> List[str]:
        table = self.store.read()
        return managed_entries(table, self.tag) if table else []
