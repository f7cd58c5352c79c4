"""Subprocess helpers with cooperative cancellation.

Every external command the CLI runs (tar, gpg, gzip, kubectl, crontab) goes
through these helpers so that a cancelled operation never leaves a child
process behind. Data always flows through pipes or file handles; nothing here
buffers a payload in memory.
"""

import logging
import signal
import subprocess
import threading
from contextlib import contextmanager
from typing import IO, Any, Dict, Iterator, Optional, Sequence, Union

from .errors import (
    OperationCancelled,
    PersonalServerError,
    SubprocessError,
    create_error_suggestions,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.2
TERMINATE_GRACE = 5.0

StreamTarget = Union[None, int, IO[Any]]


class CancellationToken:
    """Thread-safe cancellation flag shared by every step of an operation."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled")


@contextmanager
def cancel_on_signals(token: CancellationToken) -> Iterator[CancellationToken]:
    """
    Cancel ``token`` on SIGINT/SIGTERM for the duration of the block.

    Previous handlers are restored on exit.
    """

    def _handler(signum, frame):
        logger.warning("Received signal %s, cancelling", signum)
        token.cancel()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def spawn(
    args: Sequence[str],
    token: CancellationToken,
    name: Optional[str] = None,
    stdin: StreamTarget = subprocess.DEVNULL,
    stdout: StreamTarget = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.Popen:
    """
    Start a process.

    Args:
        args: Argument vector
        token: Cancellation token checked before starting
        name: Human readable name used in errors (defaults to args[0])
        stdin: Standard input source
        stdout: Standard output target
        env: Optional environment for the child

    Returns:
        subprocess.Popen: The running process

    Raises:
        OperationCancelled: If the token was already cancelled
        SubprocessError: If the process cannot be started
    """
    token.raise_if_cancelled()
    name = name or args[0]

    try:
        return subprocess.Popen(list(args), stdin=stdin, stdout=stdout, env=env)
    except FileNotFoundError as e:
        raise SubprocessError(
            f"Command not found: {args[0]}",
            command=name,
            details=str(e),
            suggestions=create_error_suggestions("command_not_found", command=args[0]),
        ) from e
    except OSError as e:
        raise SubprocessError(f"Failed to start {name}: {e}", command=name) from e


def terminate(process: subprocess.Popen) -> None:
    """Terminate a process, killing it if it ignores SIGTERM."""
    if process.poll() is not None:
        return

    process.terminate()
    try:
        process.wait(timeout=TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


def wait(process: subprocess.Popen, token: CancellationToken, name: str) -> int:
    """
    Wait for a process, terminating it if the token is cancelled.

    Returns:
        int: The exit status

    Raises:
        OperationCancelled: If the token was cancelled while waiting
    """
    while True:
        try:
            return process.wait(timeout=POLL_INTERVAL)
        except subprocess.TimeoutExpired:
            if token.cancelled:
                logger.warning("Terminating %s", name)
                terminate(process)
                raise OperationCancelled(f"{name} cancelled")


def check_returncode(returncode: int, name: str, suggestions: Optional[list] = None) -> None:
    """Raise SubprocessError for a non-zero exit status."""
    if returncode != 0:
        raise SubprocessError(
            f"{name} exited with status {returncode}",
            command=name,
            returncode=returncode,
            suggestions=suggestions,
        )


def write_stdin(process: subprocess.Popen, data: bytes, name: str) -> bool:
    """
    Write ``data`` to a process' standard input and close it.

    Returns:
        bool: False if the process closed its input before reading everything
    """
    try:
        process.stdin.write(data)
        process.stdin.flush()
    except BrokenPipeError:
        logger.debug("%s closed its standard input early", name)
        return False
    finally:
        try:
            process.stdin.close()
        except BrokenPipeError:
            logger.debug("%s closed its standard input early", name)

    return True


def run(
    args: Sequence[str],
    token: CancellationToken,
    name: Optional[str] = None,
    stdin: StreamTarget = subprocess.DEVNULL,
    stdout: StreamTarget = None,
    input_data: Optional[bytes] = None,
    env: Optional[Dict[str, str]] = None,
    suggestions: Optional[list] = None,
) -> None:
    """
    Run a single process to completion.

    When ``input_data`` is given it is written through a pipe to the child's
    standard input, which is then closed. This keeps secrets out of the
    argument vector.

    Raises:
        SubprocessError: On start failure, non-zero exit or broken input pipe
        OperationCancelled: If the token is cancelled
    """
    name = name or args[0]
    if input_data is not None:
        stdin = subprocess.PIPE

    process = spawn(args, token, name=name, stdin=stdin, stdout=stdout, env=env)

    delivered = True
    if input_data is not None:
        delivered = write_stdin(process, input_data, name)

    returncode = wait(process, token, name)
    check_returncode(returncode, name, suggestions)

    if not delivered:
        raise SubprocessError(f"{name} closed its input early", command=name, returncode=returncode)


def run_pipeline(
    first_args: Sequence[str],
    second_args: Sequence[str],
    token: CancellationToken,
    first_name: Optional[str] = None,
    second_name: Optional[str] = None,
    first_input: Optional[bytes] = None,
    second_stdout: StreamTarget = None,
    first_env: Optional[Dict[str, str]] = None,
    first_suggestions: Optional[list] = None,
) -> None:
    """
    Run ``first | second`` with the first process' stdout wired to the second's stdin.

    Both processes are always awaited and both exit statuses are checked,
    the first process' failure being reported in preference to the second's.

    Args:
        first_args: Producer argument vector
        second_args: Consumer argument vector
        token: Cancellation token
        first_name: Producer name for errors
        second_name: Consumer name for errors
        first_input: Bytes piped into the producer's stdin before it is closed
        second_stdout: Where the consumer writes its output
        first_env: Optional environment for the producer
        first_suggestions: Suggestions attached to a producer failure
    """
    first_name = first_name or first_args[0]
    second_name = second_name or second_args[0]

    first = spawn(
        first_args,
        token,
        name=first_name,
        stdin=subprocess.PIPE if first_input is not None else subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        env=first_env,
    )

    try:
        second = spawn(second_args, token, name=second_name, stdin=first.stdout, stdout=second_stdout)
    except PersonalServerError:
        terminate(first)
        raise

    # Only the consumer holds the read end now, so the producer gets
    # SIGPIPE if the consumer exits early.
    first.stdout.close()

    delivered = True
    if first_input is not None:
        delivered = write_stdin(first, first_input, first_name)

    try:
        first_rc = wait(first, token, first_name)
        second_rc = wait(second, token, second_name)
    except OperationCancelled:
        terminate(first)
        terminate(second)
        raise

    check_returncode(first_rc, first_name, first_suggestions)
    check_returncode(second_rc, second_name)

    if not delivered:
        raise SubprocessError(f"{first_name} closed its input early", command=first_name, returncode=first_rc)
