"""Full backup pipeline."""

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from personal_server.config import Config
from personal_server.utils.errors import (
    OperationCancelled,
    PartialFailure,
    PersonalServerError,
    TotalFailure,
)
from personal_server.utils.files import remove_file, remove_tree, timestamp
from personal_server.utils.process import CancellationToken
from personal_server.workloads import WorkloadRegistry, default_registry

from .archive import ArchiveBuilder
from .collector import SUCCEEDED, WorkloadBackupCollector, WorkloadBackupResult
from .encryption import SymmetricEncryptor
from .reporter import Reporter
from .storage import RemoteArchiveStore

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = ("passphrase", "webdav_host", "webdav_username", "webdav_password")


@dataclass
class BackupJob:
    """State of one backup run."""

    timestamp: str
    staging_dir: str
    workloads: List[str] = field(default_factory=list)
    success_count: int = 0
    fail_count: int = 0
    archive_path: Optional[str] = None
    encrypted_path: Optional[str] = None
    included_files: List[str] = field(default_factory=list)


@dataclass
class BackupReport:
    """Summary of a completed backup run."""

    archive_name: str
    remote_url: str
    included_files: List[str]
    files_size: int
    success_count: int
    fail_count: int
    timestamp: str
    results: List[WorkloadBackupResult] = field(default_factory=list)

    @property
    def files_size_mb(self) -> float:
        return round(self.files_size / (1024 * 1024), 2)

    def to_info(self) -> Dict[str, Any]:
        """Event context sent to the reporter."""
        return {
            "archive_name": self.archive_name,
            "included_files": list(self.included_files),
            "files_size": self.files_size,
            "files_size_mb": self.files_size_mb,
            "success_count": self.success_count,
            "fail_count": self.fail_count,
            "timestamp": self.timestamp,
        }


class BackupManager:
    """Runs collect, archive, encrypt and upload for every workload."""

    def __init__(
        self,
        config: Config,
        registry: Optional[WorkloadRegistry] = None,
        reporter: Optional[Reporter] = None,
        store: Optional[RemoteArchiveStore] = None,
        encryptor: Optional[SymmetricEncryptor] = None,
        archive_builder: Optional[ArchiveBuilder] = None,
    ):
        """
        Initialize backup manager.

        Collaborators not given are built from the configuration.

        Args:
            config: Loaded configuration
            registry: Workload registry (the built-in one by default)
            reporter: Telemetry receiver (no-op by default)
            store: Remote archive store
            encryptor: Archive encryptor
            archive_builder: Archive builder
        """
        settings = config.backup
        self.config = config
        self.registry = registry or default_registry()
        self.reporter = reporter or Reporter()
        self.store = store or RemoteArchiveStore(
            settings.webdav_host, settings.webdav_username, settings.webdav_password
        )
        self.encryptor = encryptor or SymmetricEncryptor(settings.passphrase, settings.cipher_algo)
        self.archive_builder = archive_builder or ArchiveBuilder(settings.staging_dir)
        self.collector = WorkloadBackupCollector(
            self.registry, config, reporter=self.reporter, max_workers=settings.max_workers
        )

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        try:
            yield
        except PersonalServerError as e:
            if e.stage is None:
                e.stage = name
            if not isinstance(e, OperationCancelled):
                self.reporter.capture_failure(e, stage=name)
            raise

    def run(self, token: CancellationToken) -> BackupReport:
        """
        Run the full backup pipeline.

        Individual workload failures are not fatal. Everything after
        collection is: the first failing stage aborts the run.

        Returns:
            BackupReport: Summary of the run

        Raises:
            ConfigurationError: If a required setting is missing
            TotalFailure: If no workload was backed up
            PersonalServerError: If the archive, encrypt or upload stage fails
        """
        self.config.backup.require(*REQUIRED_SETTINGS)

        run_timestamp = timestamp()
        with self._stage("staging"):
            staging_dir = self.archive_builder.create_staging_dir(run_timestamp)
        job = BackupJob(timestamp=run_timestamp, staging_dir=staging_dir)

        logger.info("Backing up workloads")
        try:
            with self._stage("collect"):
                summary = self.collector.collect(staging_dir, token)
        except (TotalFailure, OperationCancelled):
            remove_tree(staging_dir)
            raise

        job.workloads = summary.names(SUCCEEDED)
        job.success_count = summary.success_count
        job.fail_count = summary.fail_count
        job.included_files = [f"module:{name}" for name in job.workloads]

        binary = self.archive_builder.include_executable(staging_dir)
        if binary:
            job.included_files.append(f"binary:{binary}")
        config_file = self.archive_builder.include_config(staging_dir, self.config.path)
        if config_file:
            job.included_files.append(f"config:{config_file}")

        with self._stage("archive"):
            job.archive_path = self.archive_builder.build(staging_dir, token)

        with self._stage("encrypt"):
            job.encrypted_path = self.encryptor.encrypt(job.archive_path, token)
        remove_tree(staging_dir)

        files_size = os.path.getsize(job.encrypted_path)

        with self._stage("upload"):
            remote_url = self.store.upload(job.encrypted_path, token)
        remove_file(job.encrypted_path)

        report = BackupReport(
            archive_name=os.path.basename(job.encrypted_path),
            remote_url=remote_url,
            included_files=job.included_files,
            files_size=files_size,
            success_count=job.success_count,
            fail_count=job.fail_count,
            timestamp=job.timestamp,
            results=summary.results,
        )

        if job.fail_count:
            logger.warning(PartialFailure(job.success_count, job.fail_count).message)

        self.reporter.capture_success(report.to_info())
        logger.info("Backup completed: %s (%.2f MB)", report.archive_name, report.files_size_mb)
        return report
