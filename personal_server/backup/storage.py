"""Remote archive storage over WebDAV."""

import logging
import os
import posixpath
from typing import IO, Optional
from urllib.parse import quote

import requests
from requests.auth import HTTPBasicAuth

from personal_server.utils.errors import (
    AuthenticationError,
    FilesystemError,
    NetworkError,
    PersonalServerError,
    RemoteNotFoundError,
    ValidationError,
    create_error_suggestions,
)
from personal_server.utils.files import remove_file
from personal_server.utils.process import CancellationToken

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
# Only connecting is bounded; transfers run until done or cancelled
CONNECT_TIMEOUT = 30


def local_name_for(remote_path: str) -> str:
    """
    Derive a local file name from a remote path.

    Raises:
        ValidationError: If the normalized base name is empty, '.', '..' or '/'
    """
    name = posixpath.basename(posixpath.normpath(remote_path or "."))
    if name in ("", ".", "..", "/"):
        raise ValidationError(f"Invalid remote file path: '{remote_path}'")
    return name


class CancellableReader:
    """File wrapper checking a cancellation token between reads."""

    def __init__(self, fileobj: IO[bytes], size: int, token: CancellationToken):
        self._fileobj = fileobj
        self._size = size
        self._token = token

    def __len__(self) -> int:
        return self._size

    def read(self, size: int = -1) -> bytes:
        self._token.raise_if_cancelled()
        return self._fileobj.read(size)


class RemoteArchiveStore:
    """Uploads and downloads archives with HTTP Basic Auth."""

    def __init__(self, host: str, username: str, password: str, session: Optional[requests.Session] = None):
        """
        Initialize remote store.

        Args:
            host: Base URL of the WebDAV collection
            username: WebDAV user
            password: WebDAV password
            session: Optional requests session (a new one by default)
        """
        self.host = host.rstrip("/")
        self.auth = HTTPBasicAuth(username, password)
        self.session = session or requests.Session()

    def url_for(self, remote_path: str) -> str:
        path = posixpath.normpath("/" + remote_path.lstrip("/"))
        return self.host + quote(path)

    def _check_response(self, response: requests.Response, action: str, remote: str) -> None:
        if response.ok:
            return

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(
                f"WebDAV rejected the credentials while trying to {action} '{remote}' (HTTP {status})",
                suggestions=create_error_suggestions("webdav_auth_failed"),
            )
        if status == 404:
            raise RemoteNotFoundError(f"Remote file not found: '{remote}'")

        raise NetworkError(f"Failed to {action} '{remote}': HTTP {status} {response.reason}")

    def upload(self, local_path: str, token: CancellationToken) -> str:
        """
        Stream a local file to ``<host>/<basename>``, replacing any existing one.

        Returns:
            str: URL of the uploaded file

        Raises:
            FilesystemError: If the local file cannot be read
            NetworkError: If the transfer fails or is rejected
            OperationCancelled: If the token is cancelled
        """
        token.raise_if_cancelled()
        name = os.path.basename(local_path)
        url = self.url_for(name)

        logger.info("Uploading %s", name)
        try:
            size = os.path.getsize(local_path)
            with open(local_path, "rb") as f:
                response = self.session.put(
                    url,
                    data=CancellableReader(f, size, token),
                    auth=self.auth,
                    timeout=(CONNECT_TIMEOUT, None),
                )
        except requests.RequestException as e:
            raise NetworkError(
                f"Upload of '{name}' failed",
                details=str(e),
                suggestions=create_error_suggestions("network_unreachable"),
            ) from e
        except OSError as e:
            raise FilesystemError(f"Failed to read {local_path}: {e}") from e

        with response:
            self._check_response(response, "upload", name)

        logger.info("Uploaded %s (%d bytes)", name, size)
        return url

    def download(self, remote_path: str, token: CancellationToken, directory: str = ".") -> str:
        """
        Stream a remote file into ``directory``.

        The local name is the normalized base name of ``remote_path``. An
        existing local file is never overwritten and a partial file is removed
        on failure.

        Returns:
            str: Path of the downloaded file

        Raises:
            ValidationError: If the remote path has no usable base name
            FilesystemError: If the local file exists or cannot be written
            NetworkError: If the transfer fails or is rejected
        """
        name = local_name_for(remote_path)
        local_path = os.path.join(directory, name)
        if os.path.lexists(local_path):
            raise FilesystemError(
                f"Local file already exists: {local_path}",
                suggestions=["Move or delete the existing file first"],
            )

        token.raise_if_cancelled()
        url = self.url_for(remote_path)
        logger.info("Downloading %s", remote_path)

        created = False
        try:
            with self.session.get(url, auth=self.auth, stream=True, timeout=(CONNECT_TIMEOUT, None)) as response:
                self._check_response(response, "download", remote_path)
                with open(local_path, "xb") as out:
                    created = True
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        token.raise_if_cancelled()
                        out.write(chunk)
        except FileExistsError as e:
            raise FilesystemError(f"Local file already exists: {local_path}") from e
        except requests.RequestException as e:
            if created:
                remove_file(local_path)
            raise NetworkError(
                f"Download of '{remote_path}' failed",
                details=str(e),
                suggestions=create_error_suggestions("network_unreachable"),
            ) from e
        except OSError as e:
            if created:
                remove_file(local_path)
            raise FilesystemError(f"Failed to write {local_path}: {e}") from e
        except PersonalServerError:
            if created:
                remove_file(local_path)
            raise

        logger.info("Downloaded %s (%d bytes)", local_path, os.path.getsize(local_path))
        return local_path
