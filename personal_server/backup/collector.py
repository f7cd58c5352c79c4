"""Per-workload backup collection."""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from personal_server.config import Config
from personal_server.utils.errors import (
    ConfigurationError,
    OperationCancelled,
    PersonalServerError,
    TotalFailure,
)
from personal_server.utils.files import remove_tree
from personal_server.utils.process import CancellationToken
from personal_server.workloads import Backuper, WorkloadRegistry

from .reporter import Reporter

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
FAILED = "failed"
SKIPPED_NO_CAPABILITY = "skipped-no-capability"
SKIPPED_UNAVAILABLE = "skipped-unavailable"


@dataclass
class WorkloadBackupResult:
    """Outcome of one workload's backup."""

    name: str
    outcome: str
    error: Optional[str] = None


@dataclass
class CollectionSummary:
    results: List[WorkloadBackupResult] = field(default_factory=list)
    success_count: int = 0
    fail_count: int = 0

    def names(self, outcome: str) -> List[str]:
        return [result.name for result in self.results if result.outcome == outcome]

    def format(self) -> str:
        return f"{self.success_count} successful, {self.fail_count} failed"


class WorkloadBackupCollector:
    """Runs every backup-capable workload into its own staging subdirectory."""

    def __init__(
        self,
        registry: WorkloadRegistry,
        config: Config,
        reporter: Optional[Reporter] = None,
        max_workers: int = 1,
    ):
        """
        Initialize collector.

        Args:
            registry: Registry the workloads are discovered from
            config: Loaded configuration
            reporter: Receives one event per failed workload
            max_workers: Number of workloads backed up concurrently
        """
        self.registry = registry
        self.config = config
        self.reporter = reporter or Reporter()
        self.max_workers = max(1, max_workers)
        self._lock = threading.Lock()

    def _plan(self) -> Tuple[List[Backuper], List[WorkloadBackupResult]]:
        backupers: List[Backuper] = []
        skipped: List[WorkloadBackupResult] = []

        for name in self.registry.names():
            try:
                backuper = self.registry.try_get_backuper(name, self.config)
            except ConfigurationError as e:
                logger.warning("Skipping %s: %s", name, e.message)
                skipped.append(WorkloadBackupResult(name, SKIPPED_UNAVAILABLE, e.message))
                continue

            if backuper is None:
                logger.debug("Skipping %s: backup not supported", name)
                skipped.append(WorkloadBackupResult(name, SKIPPED_NO_CAPABILITY))
            else:
                backupers.append(backuper)

        return backupers, skipped

    def _backup_one(
        self,
        backuper: Backuper,
        staging_dir: str,
        summary: CollectionSummary,
        token: CancellationToken,
    ) -> WorkloadBackupResult:
        token.raise_if_cancelled()
        destination = os.path.join(staging_dir, backuper.name)
        logger.info("Backing up %s", backuper.name)

        try:
            backuper.backup(destination, token)
        except OperationCancelled:
            raise
        except Exception as e:
            if token.cancelled:
                raise OperationCancelled("Operation cancelled") from e

            message = e.message if isinstance(e, PersonalServerError) else str(e)
            logger.error("✗ %s backup failed: %s", backuper.name, message)
            remove_tree(destination)
            self.reporter.capture_workload_failure(backuper.name, e)
            with self._lock:
                summary.fail_count += 1
            return WorkloadBackupResult(backuper.name, FAILED, message)

        logger.info("✓ %s backup completed", backuper.name)
        with self._lock:
            summary.success_count += 1
        return WorkloadBackupResult(backuper.name, SUCCEEDED)

    def collect(self, staging_dir: str, token: CancellationToken) -> CollectionSummary:
        """
        Back up every workload that supports it.

        A failing workload is logged, counted and reported; the others still
        run.

        Returns:
            CollectionSummary: Results in registration order

        Raises:
            TotalFailure: If no workload was backed up
            OperationCancelled: If the token is cancelled
        """
        backupers, skipped = self._plan()
        summary = CollectionSummary()

        if self.max_workers > 1 and len(backupers) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="backup") as pool:
                futures = [pool.submit(self._backup_one, b, staging_dir, summary, token) for b in backupers]
                completed = [future.result() for future in futures]
        else:
            completed = [self._backup_one(b, staging_dir, summary, token) for b in backupers]

        by_name = {result.name: result for result in completed + skipped}
        summary.results = [by_name[name] for name in self.registry.names() if name in by_name]

        logger.info("Workload backups: %s", summary.format())

        if summary.success_count == 0:
            raise TotalFailure(
                "No workload was backed up",
                details=summary.format(),
                suggestions=["Check the log above for the individual workload errors"],
            )

        return summary
