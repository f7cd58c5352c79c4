"""Backup, restore and scheduling for personal server workloads."""

from .archive import ArchiveBuilder
from .collector import CollectionSummary, WorkloadBackupCollector, WorkloadBackupResult
from .encryption import SymmetricEncryptor
from .manager import BackupJob, BackupManager, BackupReport
from .recovery import RecoveryManager
from .reporter import Reporter, SentryReporter, create_reporter
from .scheduler import CrontabStore, ScheduleManager
from .storage import RemoteArchiveStore

__all__ = [
    "ArchiveBuilder",
    "BackupJob",
    "BackupManager",
    "BackupReport",
    "CollectionSummary",
    "CrontabStore",
    "RecoveryManager",
    "RemoteArchiveStore",
    "Reporter",
    "ScheduleManager",
    "SentryReporter",
    "SymmetricEncryptor",
    "WorkloadBackupCollector",
    "WorkloadBackupResult",
    "create_reporter",
]
