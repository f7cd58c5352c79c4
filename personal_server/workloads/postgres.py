"""Postgres workload."""

import logging
import os

from personal_server.utils.errors import FilesystemError, PersonalServerError
from personal_server.utils.files import ensure_directory, remove_file, timestamp
from personal_server.utils.process import CancellationToken, run_pipeline

from .pods import PodWorkload

logger = logging.getLogger(__name__)

DUMP_COMMAND = 'pg_dumpall -U "$POSTGRES_USER" --clean --if-exists'


class PostgresWorkload(PodWorkload):
    """Postgres server, backed up with a full ``pg_dumpall``."""

    title = "Postgres"

    def backup(self, destination_dir: str, token: CancellationToken) -> None:
        """
        Dump every database of the cluster into a gzip file.

        The dump runs inside the pod and is piped through a local gzip
        process straight into the destination file.
        """
        logger.info("Starting Postgres backup into %s", destination_dir)
        ensure_directory(destination_dir)

        pod = self.find_pod()
        dump_file = os.path.join(destination_dir, f"postgres_dump_{timestamp()}.sql.gz")

        try:
            with open(dump_file, "wb") as out:
                run_pipeline(
                    self.exec_args(pod, "bash", "-c", DUMP_COMMAND),
                    ["gzip", "-c"],
                    token,
                    first_name="pg_dumpall",
                    second_name="gzip",
                    second_stdout=out,
                )
        except OSError as e:
            remove_file(dump_file)
            raise FilesystemError(f"Failed to write {dump_file}: {e}") from e
        except PersonalServerError:
            remove_file(dump_file)
            raise

        logger.info("Postgres dump written: %s (%d bytes)", os.path.basename(dump_file), os.path.getsize(dump_file))
        self.write_metadata(destination_dir, pod, [os.path.basename(dump_file)])
