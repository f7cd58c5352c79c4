"""Archive download and restore."""

import logging
import os
from typing import Optional

from personal_server.utils.errors import ConfigurationError
from personal_server.utils.process import CancellationToken

from .encryption import DEFAULT_CIPHER_ALGO, SymmetricEncryptor
from .storage import RemoteArchiveStore

logger = logging.getLogger(__name__)


class RecoveryManager:
    """Brings encrypted backups back onto the local disk."""

    def __init__(self, store: Optional[RemoteArchiveStore] = None, cipher_algo: str = DEFAULT_CIPHER_ALGO):
        """
        Initialize recovery manager.

        Args:
            store: Remote store, only needed to download
            cipher_algo: Cipher the archives were sealed with
        """
        self.store = store
        self.cipher_algo = cipher_algo

    def decrypt_and_extract(
        self,
        encrypted_path: str,
        passphrase: str,
        destination_dir: str,
        token: CancellationToken,
    ) -> str:
        """
        Decrypt a local archive and extract it.

        Returns:
            str: Absolute extraction directory

        Raises:
            ConfigurationError: If the passphrase is empty (checked before anything runs)
            SubprocessError: If decryption or extraction fails
        """
        encryptor = SymmetricEncryptor(passphrase, self.cipher_algo)
        encryptor.require_passphrase()

        destination_dir = os.path.abspath(destination_dir)
        encryptor.decrypt(encrypted_path, destination_dir, token)
        return destination_dir

    def download(self, remote_path: str, token: CancellationToken, directory: str = ".") -> str:
        """
        Download a remote archive without decrypting it.

        Returns:
            str: Local path of the archive
        """
        if self.store is None:
            raise ConfigurationError("No remote store configured")
        return self.store.download(remote_path, token, directory=directory)

    def restore(
        self,
        remote_path: str,
        passphrase: str,
        destination_dir: str,
        token: CancellationToken,
        directory: str = ".",
    ) -> str:
        """
        Download a remote archive, then decrypt and extract it.

        The downloaded encrypted file is kept.

        Returns:
            str: Absolute extraction directory
        """
        SymmetricEncryptor(passphrase, self.cipher_algo).require_passphrase()

        local_path = self.download(remote_path, token, directory=directory)
        logger.info("Restoring %s", os.path.basename(local_path))
        return self.decrypt_and_extract(local_path, passphrase, destination_dir, token)
