"""Redis workload."""

import logging

from personal_server.utils.errors import PersonalServerError
from personal_server.utils.process import CancellationToken, run

from .pods import PodDataWorkload

logger = logging.getLogger(__name__)

# The password arrives on stdin so it never shows up in an argument list
SAVE_WITH_AUTH = 'REDISCLI_AUTH="$(cat)" exec redis-cli SAVE'


class RedisWorkload(PodDataWorkload):
    """Redis server, persisted with SAVE before its data directory is archived."""

    title = "Redis"

    def before_export(self, pod: str, token: CancellationToken) -> None:
        """Ask Redis to write its dataset to disk. Best effort."""
        password = self.module.get_secret("redis_password") if self.module else ""

        try:
            if password:
                run(
                    self.exec_args(pod, "sh", "-c", SAVE_WITH_AUTH, interactive=True),
                    token,
                    name="redis-cli SAVE",
                    input_data=password.encode("utf-8"),
                )
            else:
                run(self.exec_args(pod, "redis-cli", "SAVE"), token, name="redis-cli SAVE")
        except PersonalServerError as e:
            if token.cancelled:
                raise
            logger.warning("Failed to trigger Redis SAVE: %s", e.message)
        else:
            logger.info("Redis SAVE completed")
