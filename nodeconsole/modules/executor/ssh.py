#!/usr/bin/env python3
"""
SSH connector.

Runs one command per connection through paramiko. The connect timeout
bounds TCP connect, banner exchange and authentication; the execution
timeout bounds the command itself. The client is closed on every path.
"""

import io
import logging
import time
from typing import Optional

import paramiko

from ...sanitizer import command_summary, sanitize_exception, sanitize_host
from .base import Connector, build_result
from .result import ErrorType, ExecOptions, ExecResult, LimitedByteArrayOutputStream

logger = logging.getLogger("nodeconsole.ssh-connector")

DEFAULT_SSH_PORT = 22
CHUNK_SIZE = 32768
POLL_INTERVAL = 0.05

_KEY_CLASSES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


class PrivateKeyError(Exception):
    """Stored private key could not be parsed."""


def load_private_key(key_text: str) -> paramiko.PKey:
    """
    Parse PEM/OpenSSH private key text.

    Raises:
        PrivateKeyError: If no supported key type accepts the text
    """
    for key_class in _KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(key_text))
        except (paramiko.SSHException, ValueError):
            continue
    raise PrivateKeyError("Unsupported or invalid private key")


class SshConnector(Connector):
    """Executes shell commands over SSH."""

    connector_type = "ssh"

    def __init__(
        self,
        connect_timeout_seconds: int = 30,
        strict_host_keys: bool = False,
        known_hosts_path: Optional[str] = None,
    ):
        """
        Initialize SSH connector.

        Args:
            connect_timeout_seconds: Default connect/auth window
            strict_host_keys: Reject hosts missing from known_hosts
            known_hosts_path: Extra known_hosts file to load
        """
        self.connect_timeout_seconds = connect_timeout_seconds
        self.strict_host_keys = strict_host_keys
        self.known_hosts_path = known_hosts_path

    def _connect(self, credential: str, node, connect_timeout: int) -> paramiko.SSHClient:
        connect_args = {
            "hostname": node.host,
            "port": node.port or DEFAULT_SSH_PORT,
            "username": node.username,
            "timeout": connect_timeout,
            "banner_timeout": connect_timeout,
            "auth_timeout": connect_timeout,
            "allow_agent": False,
            "look_for_keys": False,
        }
        if _auth_type(node) == "key":
            connect_args["pkey"] = load_private_key(credential)
        else:
            connect_args["password"] = credential

        client = paramiko.SSHClient()
        try:
            if self.strict_host_keys:
                client.load_system_host_keys()
                if self.known_hosts_path:
                    client.load_host_keys(self.known_hosts_path)
                client.set_missing_host_key_policy(paramiko.RejectPolicy())
            else:
                client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            client.connect(**connect_args)
        except BaseException:
            client.close()
            raise
        return client

    def execute(self, credential: str, node, command: str, options: ExecOptions) -> ExecResult:
        if not command or not command.strip():
            return ExecResult.validation_error("Empty command")
        if not node.username:
            return ExecResult.validation_error("username is required for SSH nodes")

        host = sanitize_host(node.host)
        connect_timeout = options.connect_timeout_seconds or self.connect_timeout_seconds

        try:
            client = self._connect(credential, node, connect_timeout)
        except PrivateKeyError as e:
            logger.warning(f"SSH key rejected for {host}: {sanitize_exception(e)}")
            return ExecResult.failure(ErrorType.AUTHENTICATION_FAILED, "Invalid private key")
        except Exception as e:
            logger.warning(f"SSH connect to {host} failed: {sanitize_exception(e)}")
            return self._connect_error(e)

        try:
            logger.info(f"Running {command_summary(command)} on {host}")
            return self._run(client, command, options, connect_timeout)
        except Exception as e:
            logger.error(f"SSH execution on {host} failed: {sanitize_exception(e)}")
            return self.error_result(e, "SSH execution")
        finally:
            client.close()

    def _connect_error(self, exc: Exception) -> ExecResult:
        if isinstance(exc, (paramiko.AuthenticationException, paramiko.BadHostKeyException)):
            return ExecResult.failure(
                ErrorType.AUTHENTICATION_FAILED,
                f"SSH authentication failed: {sanitize_exception(exc)}",
            )
        if isinstance(exc, paramiko.SSHException):
            return ExecResult.failure(
                ErrorType.NETWORK_ERROR, f"SSH connection failed: {sanitize_exception(exc)}"
            )
        return self.error_result(exc, "SSH connection")

    def _run(
        self, client: paramiko.SSHClient, command: str, options: ExecOptions, connect_timeout: int
    ) -> ExecResult:
        stdout = LimitedByteArrayOutputStream(options.max_output_bytes)
        stderr = LimitedByteArrayOutputStream(options.max_output_bytes)

        transport = client.get_transport()
        if transport is None or not transport.is_active():
            return ExecResult.failure(ErrorType.NETWORK_ERROR, "SSH transport is not active")

        channel = transport.open_session(timeout=connect_timeout)
        try:
            channel.exec_command(command)
            deadline = time.monotonic() + options.timeout_seconds
            timed_out = False

            while True:
                progressed = False
                if channel.recv_ready():
                    stdout.write(channel.recv(CHUNK_SIZE))
                    progressed = True
                if channel.recv_stderr_ready():
                    stderr.write(channel.recv_stderr(CHUNK_SIZE))
                    progressed = True
                if (
                    channel.exit_status_ready()
                    and not channel.recv_ready()
                    and not channel.recv_stderr_ready()
                ):
                    break
                if time.monotonic() >= deadline:
                    timed_out = True
                    break
                if not progressed:
                    time.sleep(POLL_INTERVAL)

            if timed_out:
                logger.warning(f"SSH command timed out after {options.timeout_seconds}s")
                return build_result(stdout, stderr, exit_code=-1, timed_out=True)

            exit_code = channel.recv_exit_status()
            return build_result(stdout, stderr, exit_code=exit_code)
        finally:
            channel.close()

    def test_connection(self, credential: str, node, options: Optional[ExecOptions] = None) -> bool:
        connect_timeout = options.connect_timeout_seconds if options else self.connect_timeout_seconds
        host = sanitize_host(node.host)
        try:
            client = self._connect(credential, node, connect_timeout)
        except Exception as e:
            logger.warning(f"SSH connection test to {host} failed: {sanitize_exception(e)}")
            return False

        try:
            transport = client.get_transport()
            active = transport is not None and transport.is_active()
            logger.info(f"SSH connection test to {host}: {'ok' if active else 'inactive'}")
            return active
        finally:
            client.close()


def _auth_type(node) -> str:
    auth_type = getattr(node, "auth_type", None)
    return getattr(auth_type, "value", auth_type) or "password"
