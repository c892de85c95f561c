"""
Connector interface shared by SSH and Kubernetes executors.
"""

import socket
from abc import ABC, abstractmethod
from typing import Optional

from ...sanitizer import sanitize_exception
from .result import ErrorType, ExecOptions, ExecResult, LimitedByteArrayOutputStream


class Connector(ABC):
    """
    Protocol-specific executor.

    Implementations must never raise from ``execute``: every failure becomes
    an ExecResult. Sessions, channels and processes are released on every
    exit path.
    """

    #: Unique type identifier matched against Node.connector_type
    connector_type: str = ""

    @abstractmethod
    def execute(self, credential: str, node, command: str, options: ExecOptions) -> ExecResult:
        """
        Run a command on the node.

        Args:
            credential: Decrypted credential (password, private key or kubeconfig)
            node: Target Node
            command: Command text
            options: Execution limits

        Returns:
            ExecResult
        """

    @abstractmethod
    def test_connection(self, credential: str, node, options: Optional[ExecOptions] = None) -> bool:
        """Check that the node is reachable and the credential is accepted."""

    def error_result(self, exc: BaseException, stage: str) -> ExecResult:
        """Map an exception to an ExecResult without exposing its message."""
        error_type = map_exception(exc)
        if error_type is ErrorType.TIMEOUT:
            return ExecResult(stderr=f"{stage} timed out", timed_out=True)
        return ExecResult.failure(error_type, f"{stage} failed: {sanitize_exception(exc)}")


def map_exception(exc: BaseException) -> ErrorType:
    """Nearest ErrorType for an exception raised by a transport."""
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return ErrorType.TIMEOUT
    if isinstance(exc, PermissionError):
        return ErrorType.PERMISSION_DENIED
    if isinstance(exc, FileNotFoundError):
        return ErrorType.RESOURCE_NOT_FOUND
    if isinstance(exc, (ConnectionError, socket.gaierror, OSError)):
        return ErrorType.NETWORK_ERROR
    return ErrorType.INTERNAL_ERROR


def build_result(
    stdout: LimitedByteArrayOutputStream,
    stderr: LimitedByteArrayOutputStream,
    exit_code: int,
    timed_out: bool = False,
    error_type: Optional[ErrorType] = None,
) -> ExecResult:
    """Assemble an ExecResult from two capture buffers."""
    return ExecResult(
        stdout=stdout.decode(),
        stderr=stderr.decode(),
        exit_code=exit_code,
        truncated=stdout.truncated or stderr.truncated,
        original_length=stdout.original_length + stderr.original_length,
        timed_out=timed_out,
        error_type=error_type,
    )
