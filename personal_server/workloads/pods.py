"""Workloads backed up by streaming data out of their pod."""

import logging
import os
from typing import List, Optional

from personal_server.templates.backup_info import BACKUP_INFO_FILE, render_backup_info
from personal_server.utils.errors import FilesystemError, PersonalServerError
from personal_server.utils.files import ensure_directory, remove_file, timestamp
from personal_server.utils.process import CancellationToken, run

from . import kube
from .base import Workload

logger = logging.getLogger(__name__)


class PodWorkload(Workload):
    """Workload running as a single labelled pod."""

    #: Human readable name used in metadata
    title = "Workload"
    #: Value of the pod's ``app`` label (defaults to the workload name)
    app_label: Optional[str] = None
    #: Container to exec into, if not the pod's default one
    container: Optional[str] = None

    def find_pod(self) -> str:
        return kube.find_pod(self.namespace, self.app_label or self.name)

    def exec_args(self, pod: str, *command: str, interactive: bool = False) -> List[str]:
        """Build a ``kubectl exec`` argument vector."""
        args = kube.kubectl_command() + ["exec"]
        if interactive:
            args.append("-i")
        args += ["-n", self.namespace, pod]
        if self.container:
            args += ["-c", self.container]
        return args + ["--"] + list(command)

    def write_metadata(self, destination_dir: str, pod: str, files: List[str]) -> None:
        """Write the backup metadata file."""
        content = render_backup_info(
            title=self.title,
            backup_dir=destination_dir,
            namespace=self.namespace,
            pod=pod,
            files=files,
            container=self.container or "",
        )
        path = os.path.join(destination_dir, BACKUP_INFO_FILE)
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise FilesystemError(f"Failed to write metadata {path}: {e}") from e

    def stream_to_file(self, args: List[str], path: str, token: CancellationToken, name: str) -> int:
        """
        Run a command with its standard output streamed into ``path``.

        A partially written file is removed on failure.

        Returns:
            int: Size of the written file in bytes
        """
        try:
            with open(path, "wb") as out:
                run(args, token, name=name, stdout=out)
        except OSError as e:
            remove_file(path)
            raise FilesystemError(f"Failed to write {path}: {e}") from e
        except PersonalServerError:
            remove_file(path)
            raise

        return os.path.getsize(path)


class PodDataWorkload(PodWorkload):
    """Workload whose state lives in a data directory inside its pod."""

    data_path = "/data"

    def before_export(self, pod: str, token: CancellationToken) -> None:
        """Hook run once the pod is known, before its data is exported."""

    def backup(self, destination_dir: str, token: CancellationToken) -> None:
        """
        Archive the pod's data directory into ``destination_dir``.

        Args:
            destination_dir: Directory receiving the backup files
            token: Cancellation token
        """
        logger.info("Starting %s backup into %s", self.title, destination_dir)
        ensure_directory(destination_dir)

        pod = self.find_pod()
        self.before_export(pod, token)

        data_file = os.path.join(destination_dir, f"{self.name}_data_{timestamp()}.tar.gz")

        args = self.exec_args(pod, "tar", "czf", "-", "-C", self.data_path, ".")
        size = self.stream_to_file(args, data_file, token, name=f"{self.name} data export")
        logger.info("%s data archived: %s (%d bytes)", self.title, os.path.basename(data_file), size)

        self.write_metadata(destination_dir, pod, [os.path.basename(data_file)])


class GiteaWorkload(PodDataWorkload):
    title = "Gitea"


class BitwardenWorkload(PodDataWorkload):
    title = "Bitwarden"


class HobbyPodWorkload(PodDataWorkload):
    title = "Hobby pod"


class WebdavWorkload(PodDataWorkload):
    title = "WebDAV"
    # The server image has no tar, the sidecar mounts the same volume
    container = "backup-helper"
