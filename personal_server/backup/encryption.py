"""Symmetric archive encryption with gpg."""

import logging
import os
from typing import List

from personal_server.utils.errors import (
    ConfigurationError,
    FilesystemError,
    PersonalServerError,
    create_error_suggestions,
)
from personal_server.utils.files import ensure_directory, remove_file
from personal_server.utils.process import CancellationToken, run, run_pipeline

logger = logging.getLogger(__name__)

ENCRYPTED_SUFFIX = ".gpg"
DEFAULT_CIPHER_ALGO = "AES256"


class SymmetricEncryptor:
    """
    Seals and unseals archives with a passphrase.

    The passphrase is only ever written to gpg's standard input, never passed
    as an argument, so it does not show up in process listings.
    """

    def __init__(self, passphrase: str, cipher_algo: str = DEFAULT_CIPHER_ALGO, gpg: str = "gpg"):
        self._passphrase = passphrase
        self.cipher_algo = cipher_algo or DEFAULT_CIPHER_ALGO
        self.gpg = gpg

    def __repr__(self) -> str:
        return f"SymmetricEncryptor(cipher_algo={self.cipher_algo!r})"

    def require_passphrase(self) -> None:
        """
        Raises:
            ConfigurationError: If the passphrase is empty
        """
        if not self._passphrase:
            raise ConfigurationError(
                "Encryption passphrase is not set",
                suggestions=["Set backup.passphrase in the configuration or pass --passphrase"],
            )

    def _base_args(self) -> List[str]:
        return [
            self.gpg,
            "--batch",
            "--yes",
            "--no-symkey-cache",
            "--pinentry-mode",
            "loopback",
            "--passphrase-fd",
            "0",
        ]

    def _passphrase_input(self) -> bytes:
        return (self._passphrase + "\n").encode("utf-8")

    def encrypt(self, archive_path: str, token: CancellationToken) -> str:
        """
        Encrypt an archive next to itself and delete the plaintext.

        The plaintext is kept when encryption fails so the run can be retried.

        Args:
            archive_path: Plaintext archive
            token: Cancellation token

        Returns:
            str: Path of the encrypted archive

        Raises:
            ConfigurationError: If the passphrase is empty
            SubprocessError: If gpg fails
        """
        self.require_passphrase()
        encrypted_path = archive_path + ENCRYPTED_SUFFIX

        logger.info("Encrypting %s", os.path.basename(archive_path))
        args = self._base_args() + [
            "--symmetric",
            "--cipher-algo",
            self.cipher_algo,
            "-o",
            encrypted_path,
            archive_path,
        ]
        try:
            run(
                args,
                token,
                name="gpg encrypt",
                input_data=self._passphrase_input(),
                suggestions=create_error_suggestions("gpg_failed"),
            )
        except PersonalServerError:
            remove_file(encrypted_path)
            raise

        remove_file(archive_path)
        logger.info("Archive encrypted: %s", os.path.basename(encrypted_path))
        return encrypted_path

    def decrypt(self, encrypted_path: str, destination_dir: str, token: CancellationToken) -> None:
        """
        Decrypt an archive and extract it into ``destination_dir``.

        gpg's output is piped straight into tar; both must succeed.

        Raises:
            ConfigurationError: If the passphrase is empty
            FilesystemError: If the encrypted file does not exist
            SubprocessError: If gpg or tar fails
        """
        self.require_passphrase()
        if not os.path.isfile(encrypted_path):
            raise FilesystemError(f"Encrypted archive not found: {encrypted_path}")
        ensure_directory(destination_dir)

        logger.info("Decrypting %s into %s", os.path.basename(encrypted_path), destination_dir)
        run_pipeline(
            self._base_args() + ["--decrypt", encrypted_path],
            ["tar", "-xz", "-C", destination_dir],
            token,
            first_name="gpg decrypt",
            second_name="tar extract",
            first_input=self._passphrase_input(),
            first_suggestions=create_error_suggestions("gpg_failed"),
        )
        logger.info("Archive extracted into %s", destination_dir)
