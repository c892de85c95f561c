"""
Executor Module - Black Box Interface

Purpose: Run commands on remote nodes over SSH or kubectl
Interface: Connector.execute()/test_connection(), ConnectorFactory, ExecResult, ExecOptions
Hidden: paramiko sessions, kubectl subprocesses, output capture, timeout enforcement

New connector types plug in by subclassing Connector and registering with the factory.
"""

from .base import Connector
from .factory import ConnectorFactory
from .k8s import K8sConnector
from .kubectl_policy import KubectlPolicy
from .result import ErrorType, ExecOptions, ExecResult, LimitedByteArrayOutputStream
from .ssh import SshConnector

__all__ = [
    "Connector",
    "ConnectorFactory",
    "ErrorType",
    "ExecOptions",
    "ExecResult",
    "K8sConnector",
    "KubectlPolicy",
    "LimitedByteArrayOutputStream",
    "SshConnector",
]
