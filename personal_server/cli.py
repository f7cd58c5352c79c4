"""Main CLI entry point for personal-server CLI tool.

This module provides the command-line interface for personal-server, the tool
that manages the workloads of a single-node Kubernetes personal server. It
includes commands for the encrypted backup pipeline, restoring archives,
scheduling recurring backups and inspecting the configuration.

The CLI is built using Click and provides a hierarchical command structure
with comprehensive help and error handling.
"""

import os
from typing import Optional

import click

from personal_server import __version__
from personal_server.config.manager import DEFAULT_CONFIG_FILE
from personal_server.utils.errors import ErrorHandler
from personal_server.utils.logging import setup_logging


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Path to the configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--log-file", help="Log to file in addition to console")
@click.pass_context
def cli(ctx: click.Context, config_path: str, verbose: bool, log_file: Optional[str]) -> None:
    """personal-server - Personal Kubernetes server management tool.

    Backs up every workload of the server into one encrypted archive stored
    on WebDAV, restores such archives and schedules recurring backups.

    Args:
        ctx: Click context object containing shared state
        config_path: Configuration file, recorded as an absolute path
        verbose: Enable verbose output for detailed logging
        log_file: Optional path to log file for additional logging
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = os.path.abspath(config_path)
    ctx.obj["verbose"] = verbose
    ctx.obj["log_file"] = log_file
    ctx.obj["error_handler"] = ErrorHandler(verbose=verbose)

    # Setup logging
    setup_logging(verbose=verbose, log_file=log_file)


def _load_config(ctx: click.Context):
    """Load the configuration selected with --config, exiting on failure."""
    try:
        from personal_server.config import ConfigManager

        return ConfigManager().load_config(ctx.obj["config_path"])
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Configuration loading")


@cli.group(invoke_without_command=True, context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--decrypt", "decrypt_path", metavar="PATH", help="Decrypt and extract a local encrypted archive")
@click.option(
    "--passphrase",
    envvar="PERSONAL_SERVER_PASSPHRASE",
    help="Passphrase for --decrypt (or PERSONAL_SERVER_PASSPHRASE)",
)
@click.option("--dest", default=".", show_default=True, help="Extraction directory for --decrypt")
@click.pass_context
def backup(ctx: click.Context, decrypt_path: Optional[str], passphrase: Optional[str], dest: str) -> None:
    """Back up every workload into one encrypted archive.

    Without a subcommand this runs the full pipeline: each workload that
    supports backup exports its data, everything is archived together with
    the executable and the configuration file, encrypted with gpg and
    uploaded to WebDAV.

    Args:
        ctx: Click context object
        decrypt_path: Local encrypted archive to decrypt instead of backing up
        passphrase: Passphrase used with --decrypt
        dest: Directory the decrypted archive is extracted into
    """
    if ctx.invoked_subcommand is not None:
        if decrypt_path is not None:
            raise click.UsageError("--decrypt cannot be combined with a subcommand")
        return

    if decrypt_path is not None:
        _decrypt(ctx, decrypt_path, passphrase or "", dest)
    else:
        _run_backup(ctx)


def _decrypt(ctx: click.Context, encrypted_path: str, passphrase: str, dest: str) -> None:
    try:
        from personal_server.backup import RecoveryManager
        from personal_server.utils.process import CancellationToken, cancel_on_signals

        click.echo(f"Decrypting {encrypted_path}...")

        with cancel_on_signals(CancellationToken()) as token:
            destination = RecoveryManager().decrypt_and_extract(encrypted_path, passphrase, dest, token)

        click.echo(f"✓ Archive decrypted and extracted into {destination}")

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Archive decryption")


def _run_backup(ctx: click.Context) -> None:
    config = _load_config(ctx)

    from personal_server.backup import BackupManager, create_reporter
    from personal_server.utils.process import CancellationToken, cancel_on_signals

    reporter = create_reporter(config.backup.sentry_dsn)

    try:
        click.echo("Starting backup...")

        with cancel_on_signals(CancellationToken()) as token:
            report = BackupManager(config, reporter=reporter).run(token)

        click.echo(f"✓ Backup completed: {report.archive_name}")
        click.echo(f"\nWorkloads: {report.success_count} successful, {report.fail_count} failed")
        if ctx.obj["verbose"]:
            for result in report.results:
                click.echo(f"  - {result.name}: {result.outcome}")
        click.echo(f"Size: {report.files_size_mb} MB")
        click.echo(f"Uploaded to: {report.remote_url}")

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Backup")
    finally:
        reporter.flush()


@backup.command()
@click.argument("remote_file")
@click.pass_context
def download(ctx: click.Context, remote_file: str) -> None:
    """Download an encrypted archive into the current directory.

    An existing local file with the same name is never overwritten.

    Args:
        ctx: Click context object
        remote_file: Path of the archive on the WebDAV server
    """
    config = _load_config(ctx)

    try:
        from personal_server.backup import RecoveryManager, RemoteArchiveStore
        from personal_server.utils.process import CancellationToken, cancel_on_signals

        settings = config.backup
        settings.require("webdav_host", "webdav_username", "webdav_password")
        store = RemoteArchiveStore(settings.webdav_host, settings.webdav_username, settings.webdav_password)

        click.echo(f"Downloading {remote_file}...")

        with cancel_on_signals(CancellationToken()) as token:
            local_path = RecoveryManager(store).download(remote_file, token)

        click.echo(f"✓ Downloaded to {local_path}")

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Archive download")


@backup.command()
@click.argument("remote_file")
@click.option(
    "--passphrase",
    envvar="PERSONAL_SERVER_PASSPHRASE",
    help="Archive passphrase (defaults to backup.passphrase)",
)
@click.option("--dest", default=".", show_default=True, help="Extraction directory")
@click.pass_context
def restore(ctx: click.Context, remote_file: str, passphrase: Optional[str], dest: str) -> None:
    """Download an encrypted archive, then decrypt and extract it.

    Args:
        ctx: Click context object
        remote_file: Path of the archive on the WebDAV server
        passphrase: Passphrase overriding the configured one
        dest: Directory the archive is extracted into
    """
    config = _load_config(ctx)

    try:
        from personal_server.backup import RecoveryManager, RemoteArchiveStore
        from personal_server.utils.process import CancellationToken, cancel_on_signals

        settings = config.backup
        settings.require("webdav_host", "webdav_username", "webdav_password")
        store = RemoteArchiveStore(settings.webdav_host, settings.webdav_username, settings.webdav_password)
        recovery = RecoveryManager(store, cipher_algo=settings.cipher_algo)

        click.echo(f"Restoring {remote_file}...")

        with cancel_on_signals(CancellationToken()) as token:
            destination = recovery.restore(remote_file, passphrase or settings.passphrase, dest, token)

        click.echo(f"✓ Archive restored into {destination}")

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Archive restore")


@backup.group(invoke_without_command=True, context_settings={"help_option_names": ["-h", "--help"]})
@click.pass_context
def schedule(ctx: click.Context) -> None:
    """Schedule recurring backups in the user's crontab.

    Without a subcommand this adds an entry running `backup` with the
    configured cron expression. Existing entries are kept, so running it
    twice schedules the backup twice.

    Args:
        ctx: Click context object
    """
    if ctx.invoked_subcommand is not None:
        return

    config = _load_config(ctx)

    try:
        from personal_server.backup import ScheduleManager

        config.backup.require("cron")
        line = ScheduleManager().add(config.backup.cron, config.path)

        click.echo("✓ Backup scheduled")
        click.echo(f"  {line}")

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Backup scheduling")


@schedule.command()
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Remove every scheduled backup from the crontab.

    Args:
        ctx: Click context object
    """
    try:
        from personal_server.backup import ScheduleManager

        removed = ScheduleManager().clear()

        if removed:
            click.echo(f"✓ Removed {removed} scheduled backup(s)")
        else:
            click.echo("No backup schedule found")

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Backup schedule removal")


@schedule.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Show the scheduled backups.

    Args:
        ctx: Click context object
    """
    try:
        from personal_server.backup import ScheduleManager

        entries = ScheduleManager().show()

        if not entries:
            click.echo("No backup schedule found")
            return

        click.echo(f"Scheduled backups ({len(entries)}):")
        for entry in entries:
            click.echo(f"  {entry}")

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Backup schedule listing")


@cli.command(name="config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the loaded configuration with secrets masked.

    Args:
        ctx: Click context object
    """
    config = _load_config(ctx)

    import yaml

    click.echo(f"Configuration: {config.path}")
    click.echo("=" * 50)
    click.echo(yaml.safe_dump(config.to_dict(mask_secrets=True), default_flow_style=False, sort_keys=False))


@cli.command()
@click.pass_context
def workloads(ctx: click.Context) -> None:
    """List registered workloads and whether they support backup.

    Args:
        ctx: Click context object
    """
    config = _load_config(ctx)

    from personal_server.workloads import default_registry

    registry = default_registry()

    click.echo("Workloads")
    click.echo("=" * 50)

    for name in registry.names():
        configured = not registry.requires_module_config(name) or config.get_module(name) is not None
        status_icon = "✓" if configured else "✗"
        backup_text = "backup" if registry.supports_backup(name) else "no backup"
        click.echo(f"  {status_icon} {name}: {backup_text}")

        if ctx.obj["verbose"] and configured:
            click.echo(f"    Namespace: {registry.get(name, config).namespace}")

    click.echo(f"\nSummary: {sum(1 for n in registry.names() if registry.supports_backup(n))} workloads support backup")


if __name__ == "__main__":
    cli()
