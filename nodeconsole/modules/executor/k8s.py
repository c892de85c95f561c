#!/usr/bin/env python3
"""
Kubernetes connector.

Runs read-only kubectl verbs against the cluster described by the node's
kubeconfig. The kubeconfig only exists as a 0600 temp file for the
duration of one call.
"""

import contextlib
import logging
import os
import shlex
import subprocess
import tempfile
import threading
from typing import IO, List, Optional, Tuple

from ...sanitizer import command_summary, sanitize_exception
from .base import Connector, build_result
from .kubectl_policy import KubectlPolicy
from .result import ErrorType, ExecOptions, ExecResult, LimitedByteArrayOutputStream

logger = logging.getLogger("nodeconsole.k8s-connector")

CHUNK_SIZE = 32768

# Lower-cased stderr fragments and the error they indicate, checked in order
_STDERR_ERRORS: Tuple[Tuple[str, ErrorType], ...] = (
    ("context deadline exceeded", ErrorType.TIMEOUT),
    ("client.timeout exceeded", ErrorType.TIMEOUT),
    ("i/o timeout", ErrorType.TIMEOUT),
    ("unauthorized", ErrorType.AUTHENTICATION_FAILED),
    ("you must be logged in", ErrorType.AUTHENTICATION_FAILED),
    ("forbidden", ErrorType.PERMISSION_DENIED),
    ("notfound", ErrorType.RESOURCE_NOT_FOUND),
    ("not found", ErrorType.RESOURCE_NOT_FOUND),
    ("unable to connect to the server", ErrorType.NETWORK_ERROR),
    ("connection refused", ErrorType.NETWORK_ERROR),
    ("no such host", ErrorType.NETWORK_ERROR),
)


def classify_kubectl_error(stderr: str) -> ErrorType:
    """Map kubectl stderr text to an ErrorType."""
    lowered = stderr.lower()
    for fragment, error_type in _STDERR_ERRORS:
        if fragment in lowered:
            return error_type
    return ErrorType.INTERNAL_ERROR


def _pump(stream: IO[bytes], sink: LimitedByteArrayOutputStream) -> None:
    """Copy a pipe into a bounded buffer until EOF."""
    try:
        for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
            sink.write(chunk)
    except (OSError, ValueError):
        # Pipe closed after the process was killed
        pass
    finally:
        with contextlib.suppress(OSError):
            stream.close()


class K8sConnector(Connector):
    """Executes allow-listed kubectl verbs."""

    connector_type = "k8s"

    def __init__(
        self,
        kubectl_path: str = "kubectl",
        policy: Optional[KubectlPolicy] = None,
        connect_timeout_seconds: int = 30,
    ):
        """
        Initialize Kubernetes connector.

        Args:
            kubectl_path: kubectl binary
            policy: Verb/flag policy; read-only defaults when omitted
            connect_timeout_seconds: Default API request timeout
        """
        self.kubectl_path = kubectl_path
        self.policy = policy or KubectlPolicy()
        self.connect_timeout_seconds = connect_timeout_seconds

    def parse_args(self, command: str) -> Tuple[Optional[List[str]], Optional[str]]:
        """
        Split a command into kubectl arguments and validate them.

        Returns:
            Tuple of (args, rejection_reason); args is None when rejected
        """
        if not command or not command.strip():
            return None, "Empty command"
        try:
            args = shlex.split(command)
        except ValueError:
            return None, "Malformed command (unbalanced quotes)"
        if args and args[0].lower() == "kubectl":
            args = args[1:]
        if not args:
            return None, "Empty command"

        args[0] = args[0].lower()
        ok, reason = self.policy.check(args)
        if not ok:
            return None, reason
        return args, None

    def execute(self, credential: str, node, command: str, options: ExecOptions) -> ExecResult:
        args, reason = self.parse_args(command)
        if args is None:
            logger.warning(f"Rejected kubectl command {command_summary(command)}: {reason}")
            return ExecResult.validation_error(reason)

        connect_timeout = options.connect_timeout_seconds or self.connect_timeout_seconds
        logger.info(f"Running kubectl {args[0]} ({command_summary(command)}) on node {node.alias}")

        try:
            with self._kubeconfig_file(credential) as kubeconfig:
                return self._run(kubeconfig, args, options, connect_timeout)
        except FileNotFoundError:
            logger.error(f"kubectl binary not found: {self.kubectl_path}")
            return ExecResult.failure(ErrorType.INTERNAL_ERROR, "kubectl binary not found")
        except Exception as e:
            logger.error(f"kubectl execution failed: {sanitize_exception(e)}")
            return self.error_result(e, "kubectl execution")

    @contextlib.contextmanager
    def _kubeconfig_file(self, credential: str):
        """Write the kubeconfig to a private temp file and remove it afterwards."""
        fd, path = tempfile.mkstemp(prefix="nodeconsole-", suffix=".kubeconfig")
        try:
            os.chmod(path, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(credential)
            yield path
        finally:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(path)

    def _command_line(self, kubeconfig: str, args: List[str], connect_timeout: int) -> List[str]:
        return [
            self.kubectl_path,
            f"--kubeconfig={kubeconfig}",
            f"--request-timeout={connect_timeout}s",
        ] + args

    def _run(
        self, kubeconfig: str, args: List[str], options: ExecOptions, connect_timeout: int
    ) -> ExecResult:
        stdout = LimitedByteArrayOutputStream(options.max_output_bytes)
        stderr = LimitedByteArrayOutputStream(options.max_output_bytes)

        process = subprocess.Popen(
            self._command_line(kubeconfig, args, connect_timeout),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        pumps = [
            threading.Thread(target=_pump, args=(process.stdout, stdout), daemon=True),
            threading.Thread(target=_pump, args=(process.stderr, stderr), daemon=True),
        ]
        for pump in pumps:
            pump.start()

        timed_out = False
        try:
            exit_code = process.wait(timeout=options.timeout_seconds)
        except subprocess.TimeoutExpired:
            timed_out = True
            process.kill()
            process.wait()
            exit_code = -1
        finally:
            if process.poll() is None:
                process.kill()
                process.wait()
            for pump in pumps:
                pump.join(timeout=5)

        if timed_out:
            logger.warning(f"kubectl {args[0]} timed out after {options.timeout_seconds}s")
            return build_result(stdout, stderr, exit_code=-1, timed_out=True)

        if exit_code != 0:
            error_type = classify_kubectl_error(stderr.decode())
            if error_type is ErrorType.TIMEOUT:
                logger.warning(f"kubectl {args[0]} hit the request timeout ({connect_timeout}s)")
                return build_result(stdout, stderr, exit_code=-1, timed_out=True)
            return build_result(stdout, stderr, exit_code=exit_code, error_type=error_type)

        return build_result(stdout, stderr, exit_code=0)

    def test_connection(self, credential: str, node, options: Optional[ExecOptions] = None) -> bool:
        connect_timeout = options.connect_timeout_seconds if options else self.connect_timeout_seconds
        probe = ExecOptions(
            timeout_seconds=connect_timeout * 2,
            max_output_bytes=4096,
            connect_timeout_seconds=connect_timeout,
        )
        try:
            with self._kubeconfig_file(credential) as kubeconfig:
                result = self._run(kubeconfig, ["version", "-o", "json"], probe, connect_timeout)
        except Exception as e:
            logger.warning(f"Kubernetes connection test for node {node.alias} failed: {sanitize_exception(e)}")
            return False

        ok = result.exit_code == 0 and result.error_type is ErrorType.NONE
        logger.info(f"Kubernetes connection test for node {node.alias}: {'ok' if ok else result.error_type.value}")
        return ok
