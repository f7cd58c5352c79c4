"""Error handling utilities for personal-server CLI."""

import sys
import traceback
from typing import Optional

import click


class PersonalServerError(Exception):
    """Base exception for personal-server CLI errors."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[list] = None,
    ):
        self.message = message
        self.details = details
        self.suggestions = suggestions or []
        # Set by the backup pipeline to the stage that failed
        self.stage: Optional[str] = None
        super().__init__(message)


class ConfigurationError(PersonalServerError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(PersonalServerError):
    """Raised when user supplied input is rejected."""

    pass


class SubprocessError(PersonalServerError):
    """Raised when an external command fails to start or exits non-zero."""

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        returncode: Optional[int] = None,
        details: Optional[str] = None,
        suggestions: Optional[list] = None,
    ):
        self.command = command
        self.returncode = returncode
        super().__init__(message, details=details, suggestions=suggestions)


class NetworkError(PersonalServerError):
    """Raised when network operations fail."""

    pass


class AuthenticationError(NetworkError):
    """Raised when the remote store rejects the supplied credentials."""

    pass


class RemoteNotFoundError(NetworkError):
    """Raised when a remote resource does not exist."""

    pass


class FilesystemError(PersonalServerError):
    """Raised when local filesystem operations fail."""

    pass


class KubernetesError(PersonalServerError):
    """Raised when cluster lookups fail."""

    pass


class PartialFailure(PersonalServerError):
    """Some, but not all, workloads were backed up. Not fatal."""

    def __init__(self, succeeded: int, failed: int):
        self.succeeded = succeeded
        self.failed = failed
        super().__init__(f"{failed} of {succeeded + failed} workload backups failed")


class TotalFailure(PersonalServerError):
    """No workload was backed up."""

    pass


class OperationCancelled(PersonalServerError):
    """Raised when the caller cancels an in-flight operation."""

    pass


class ErrorHandler:
    """Handles and formats errors for user-friendly display."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def handle_error(self, error: Exception, context: Optional[str] = None) -> None:
        """
        Handle and display error with appropriate formatting.

        Args:
            error: Exception to handle
            context: Optional context about when/where error occurred
        """
        if isinstance(error, PersonalServerError):
            self._handle_personal_server_error(error, context)
        else:
            self._handle_generic_error(error, context)

    def _handle_personal_server_error(self, error: PersonalServerError, context: Optional[str]) -> None:
        """Handle personal-server specific errors."""
        click.echo(f"✗ {error.message}", err=True)

        if context:
            click.echo(f"Context: {context}", err=True)

        if error.stage:
            click.echo(f"Stage: {error.stage}", err=True)

        if error.details:
            click.echo(f"Details: {error.details}", err=True)

        if error.suggestions:
            click.echo("\nSuggestions:", err=True)
            for suggestion in error.suggestions:
                click.echo(f"  • {suggestion}", err=True)

        if self.verbose:
            click.echo("\nFull traceback:", err=True)
            traceback.print_exc()

    def _handle_generic_error(self, error: Exception, context: Optional[str]) -> None:
        """Handle generic Python exceptions."""
        error_type = type(error).__name__

        if isinstance(error, FileNotFoundError):
            message = f"File not found: {error}"
            suggestions = [
                "Check that the file path is correct",
                "Ensure the file exists and is readable",
            ]
        elif isinstance(error, PermissionError):
            message = f"Permission denied: {error}"
            suggestions = [
                "Check file/directory permissions",
                "Try running with appropriate privileges",
            ]
        elif isinstance(error, ConnectionError):
            message = f"Connection failed: {error}"
            suggestions = [
                "Check your network connection",
                "Verify that the target service is running",
            ]
        else:
            message = f"{error_type}: {error}"
            suggestions = []

        click.echo(f"✗ {message}", err=True)

        if context:
            click.echo(f"Context: {context}", err=True)

        if suggestions:
            click.echo("\nSuggestions:", err=True)
            for suggestion in suggestions:
                click.echo(f"  • {suggestion}", err=True)

        if self.verbose:
            click.echo("\nFull traceback:", err=True)
            traceback.print_exc()

    def exit_with_error(self, error: Exception, context: Optional[str] = None, exit_code: int = 1) -> None:
        """Handle error and exit with specified code."""
        self.handle_error(error, context)
        sys.exit(exit_code)


def create_error_suggestions(error_type: str, **kwargs) -> list:
    """
    Create contextual error suggestions based on error type and context.

    Args:
        error_type: Type of error
        **kwargs: Additional context information

    Returns:
        list: List of suggestion strings
    """
    suggestions = {
        "command_not_found": [
            f"Install '{kwargs.get('command', 'the command')}' and make sure it is on PATH",
        ],
        "gpg_failed": [
            "Check that the passphrase is correct",
            "Verify that gpg can run non-interactively (gpg --batch)",
        ],
        "webdav_auth_failed": [
            "Check backup.webdav_username and backup.webdav_password",
            "Verify the account can write to the WebDAV collection",
        ],
        "network_unreachable": [
            "Check your network connection",
            "Verify backup.webdav_host is reachable",
        ],
        "configuration_invalid": [
            "Check YAML syntax in configuration file",
            "Verify all required fields are present",
        ],
        "crontab_unavailable": [
            "Make sure cron is installed and 'crontab' is on PATH",
        ],
    }

    return suggestions.get(error_type, [])


def format_validation_errors(errors: list) -> str:
    """
    Format validation errors for display.

    Args:
        errors: List of validation error messages

    Returns:
        str: Formatted error message
    """
    if not errors:
        return "No validation errors"

    if len(errors) == 1:
        return f"Validation error: {errors[0]}"

    formatted = "Validation errors:\n"
    for i, error in enumerate(errors, 1):
        formatted += f"  {i}. {error}\n"

    return formatted.strip()
