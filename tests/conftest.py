"""
Shared pytest fixtures for NodeConsole tests.

This module provides common fixtures including:
- KubectlMocker: Mock kubectl subprocesses with canned responses
- SshMocker: Mock paramiko clients and channels
- Cipher, node and gateway builders
"""

import io
import os
import re
import subprocess
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Union
from unittest.mock import patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from nodeconsole.config.provider import NodeConsoleConfig
from nodeconsole.modules.audit import AuditStore
from nodeconsole.modules.crypto import CredentialCipher
from nodeconsole.modules.executor import Connector, ConnectorFactory, ExecResult
from nodeconsole.modules.gateway import NodeConsoleService
from nodeconsole.modules.node import InMemoryNodeRepository, Node

TEST_KEY = "0123456789abcdef" * 4
OTHER_KEY = "fedcba9876543210" * 4


# =============================================================================
# Kubectl Mocking Infrastructure
# =============================================================================

@dataclass
class KubectlResponse:
    """Represents a mocked kubectl command response."""
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    hang: bool = False


@dataclass
class KubectlCall:
    """Record of a kubectl call made during testing."""
    command: List[str]
    args: List[str]
    kubeconfig_path: Optional[str] = None
    kubeconfig_content: Optional[str] = None
    matched_pattern: Optional[str] = None


class FakeKubectlProcess:
    """Popen stand-in that serves a KubectlResponse."""

    def __init__(self, response: KubectlResponse):
        self._response = response
        self.stdout = io.BytesIO(response.stdout.encode("utf-8"))
        self.stderr = io.BytesIO(response.stderr.encode("utf-8"))
        self.returncode: Optional[int] = None
        self.killed = False

    def wait(self, timeout: Optional[float] = None) -> int:
        if self._response.hang and not self.killed:
            raise subprocess.TimeoutExpired(cmd="kubectl", timeout=timeout)
        self.returncode = -9 if self.killed else self._response.returncode
        return self.returncode

    def poll(self) -> Optional[int]:
        return self.returncode

    def kill(self) -> None:
        self.killed = True


class KubectlMocker:
    """
    Mock kubectl subprocesses with pattern-matched responses.

    Usage:
        def test_pods(kubectl_mocker):
            kubectl_mocker.register("get pods", KubectlResponse(stdout="NAME ..."))
            result = connector.execute(kubeconfig, node, "get pods", ExecOptions())
            assert kubectl_mocker.was_called_with("get pods")
    """

    def __init__(self):
        self._responses: List[tuple] = []
        self._call_history: List[KubectlCall] = []
        self._default_response = KubectlResponse(
            stderr="Error: mock not configured for this command",
            returncode=1
        )
        self.processes: List[FakeKubectlProcess] = []

    def register(
        self,
        pattern: Union[str, Pattern],
        response: KubectlResponse,
    ) -> "KubectlMocker":
        """Register a response for commands matching the pattern (substring or regex)."""
        self._responses.append((pattern, response))
        return self

    def mock_popen(self, cmd: List[str], **kwargs: Any) -> FakeKubectlProcess:
        """Side effect for subprocess.Popen."""
        kubeconfig_path = None
        kubeconfig_content = None
        args = []
        for part in cmd[1:]:
            if part.startswith("--kubeconfig="):
                kubeconfig_path = part.split("=", 1)[1]
                with open(kubeconfig_path) as f:
                    kubeconfig_content = f.read()
            elif part.startswith("--request-timeout="):
                continue
            else:
                args.append(part)

        kubectl_args = " ".join(args)
        matched_pattern = None
        response = self._default_response
        for pattern, resp in self._responses:
            if isinstance(pattern, str):
                if pattern in kubectl_args:
                    matched_pattern, response = pattern, resp
                    break
            elif pattern.search(kubectl_args):
                matched_pattern, response = pattern.pattern, resp
                break

        self._call_history.append(
            KubectlCall(
                command=list(cmd),
                args=args,
                kubeconfig_path=kubeconfig_path,
                kubeconfig_content=kubeconfig_content,
                matched_pattern=matched_pattern,
            )
        )
        process = FakeKubectlProcess(response)
        self.processes.append(process)
        return process

    @property
    def calls(self) -> List[KubectlCall]:
        return self._call_history

    @property
    def call_count(self) -> int:
        return len(self._call_history)

    def was_called_with(self, pattern: str) -> bool:
        """Check if any call's arguments contained the given pattern."""
        return any(pattern in " ".join(call.args) for call in self._call_history)


@pytest.fixture
def kubectl_mocker():
    """KubectlMocker with subprocess.Popen patched."""
    mocker = KubectlMocker()
    with patch("subprocess.Popen", side_effect=mocker.mock_popen):
        yield mocker


# =============================================================================
# SSH Mocking Infrastructure
# =============================================================================

class FakeChannel:
    """paramiko Channel stand-in serving scripted output."""

    def __init__(
        self,
        stdout: bytes = b"",
        stderr: bytes = b"",
        exit_status: int = 0,
        hang: bool = False,
        chunk_size: int = 1024,
    ):
        self._stdout = [stdout[i:i + chunk_size] for i in range(0, len(stdout), chunk_size)]
        self._stderr = [stderr[i:i + chunk_size] for i in range(0, len(stderr), chunk_size)]
        self.exit_status = exit_status
        self.hang = hang
        self.command: Optional[str] = None
        self.closed = False

    def exec_command(self, command: str) -> None:
        self.command = command

    def recv_ready(self) -> bool:
        return bool(self._stdout)

    def recv(self, nbytes: int) -> bytes:
        return self._stdout.pop(0)

    def recv_stderr_ready(self) -> bool:
        return bool(self._stderr)

    def recv_stderr(self, nbytes: int) -> bytes:
        return self._stderr.pop(0)

    def exit_status_ready(self) -> bool:
        return not self.hang and not self._stdout and not self._stderr

    def recv_exit_status(self) -> int:
        return self.exit_status

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    def __init__(self, channel: FakeChannel, active: bool = True):
        self.channel = channel
        self.active = active

    def is_active(self) -> bool:
        return self.active

    def open_session(self, timeout: Optional[float] = None) -> FakeChannel:
        return self.channel


class FakeSSHClient:
    """paramiko SSHClient stand-in."""

    def __init__(self, mocker: "SshMocker"):
        self._mocker = mocker
        self.connect_kwargs: Dict[str, Any] = {}
        self.policy = None
        self.closed = False
        self._transport: Optional[FakeTransport] = None

    def set_missing_host_key_policy(self, policy: Any) -> None:
        self.policy = policy

    def load_system_host_keys(self) -> None:
        pass

    def load_host_keys(self, filename: str) -> None:
        pass

    def connect(self, **kwargs: Any) -> None:
        self.connect_kwargs = kwargs
        if self._mocker.connect_error is not None:
            raise self._mocker.connect_error
        self._transport = FakeTransport(self._mocker.channel, self._mocker.transport_active)

    def get_transport(self) -> Optional[FakeTransport]:
        return self._transport

    def close(self) -> None:
        self.closed = True


@dataclass
class SshMocker:
    """Configures what the fake SSH client does."""
    channel: FakeChannel = field(default_factory=FakeChannel)
    connect_error: Optional[BaseException] = None
    transport_active: bool = True
    clients: List[FakeSSHClient] = field(default_factory=list)

    def new_client(self) -> FakeSSHClient:
        client = FakeSSHClient(self)
        self.clients.append(client)
        return client

    @property
    def last_client(self) -> FakeSSHClient:
        return self.clients[-1]


@pytest.fixture
def ssh_mocker():
    """SshMocker with paramiko.SSHClient patched."""
    mocker = SshMocker()
    with patch("paramiko.SSHClient", side_effect=mocker.new_client):
        yield mocker


# =============================================================================
# Domain fixtures
# =============================================================================

@pytest.fixture
def cipher():
    """Initialized credential cipher with a fixed test key."""
    c = CredentialCipher(TEST_KEY)
    c.init()
    return c


@pytest.fixture
def make_node(cipher):
    """Build a Node with an encrypted credential."""

    def _make(
        connector_type: str = "ssh",
        credential: str = "s3cret-password",
        **overrides: Any,
    ) -> Node:
        defaults: Dict[str, Any] = {
            "alias": f"{connector_type}-node",
            "connector_type": connector_type,
            "auth_type": "password" if connector_type == "ssh" else "kubeconfig",
            "encrypted_credential": cipher.encrypt(credential),
        }
        if connector_type == "ssh":
            defaults.update({"host": "203.0.113.10", "port": 22, "username": "deploy"})
        defaults.update(overrides)
        return Node(**defaults)

    return _make


class RecordingConnector(Connector):
    """Connector that records calls and returns a canned result."""

    def __init__(self, connector_type: str = "ssh", result: Optional[ExecResult] = None):
        self.connector_type = connector_type
        self.result = result or ExecResult(stdout="ok\n")
        self.calls: List[Dict[str, Any]] = []
        self.connection_ok = True

    def execute(self, credential, node, command, options):
        self.calls.append(
            {"credential": credential, "node": node, "command": command, "options": options}
        )
        return self.result

    def test_connection(self, credential, node, options=None):
        self.calls.append({"credential": credential, "node": node, "test": True})
        return self.connection_ok


@pytest.fixture
def gateway_config():
    return NodeConsoleConfig(encryption_key=TEST_KEY, default_safety_policy="standard")


@pytest.fixture
def recording_connectors():
    return {"ssh": RecordingConnector("ssh"), "k8s": RecordingConnector("k8s")}


@pytest.fixture
def gateway(cipher, gateway_config, recording_connectors):
    """NodeConsoleService wired to recording connectors and an in-memory audit store."""
    factory = ConnectorFactory(recording_connectors.values()).init()
    audit = AuditStore()
    service = NodeConsoleService(
        cipher=cipher,
        factory=factory,
        config=gateway_config,
        repository=InMemoryNodeRepository(),
        audit=audit,
    )
    yield service
    audit.close()


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "kubectl_mock: Tests using mocked kubectl subprocess calls"
    )
    config.addinivalue_line(
        "markers", "ssh_mock: Tests using a mocked paramiko client"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
