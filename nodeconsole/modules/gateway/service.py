"""
NodeConsole gateway service.

The caller-facing API: node management plus ``execute`` and
``test_connection``. Expected failures (validation, policy, auth, network,
timeouts) come back as ExecResult; only configuration errors raise.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ...config.provider import NodeConsoleConfig
from ...errors import (
    CredentialDecryptionError,
    DuplicateNodeError,
    NodeNotFoundError,
    NodeValidationError,
)
from ...sanitizer import command_summary, sanitize_exception, sanitize_host
from ..audit import AuditStore
from ..crypto import CredentialCipher
from ..executor import ConnectorFactory, ErrorType, ExecOptions, ExecResult
from ..node import AuthType, InMemoryNodeRepository, Node, NodeRepository, NodeValidator
from ..safety import ClassificationResult, Decision, RemoteCommandClassifier, SafetyPolicy
from .health import check_health

logger = logging.getLogger("nodeconsole.gateway")

# Fields a caller may change through update()
_UPDATABLE_FIELDS = {
    "alias",
    "display_name",
    "host",
    "port",
    "username",
    "auth_type",
    "safety_policy",
    "tags",
}


def _build_node(fields: Dict[str, Any]) -> Node:
    """Validate node fields, reporting model errors as NodeValidationError."""
    try:
        return Node.model_validate(fields)
    except ValidationError as e:
        raise NodeValidationError(
            [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()]
        ) from e


class NodeConsoleService:
    """Secure remote command execution gateway."""

    def __init__(
        self,
        cipher: CredentialCipher,
        factory: ConnectorFactory,
        config: NodeConsoleConfig,
        repository: Optional[NodeRepository] = None,
        classifier: Optional[RemoteCommandClassifier] = None,
        validator: Optional[NodeValidator] = None,
        audit: Optional[AuditStore] = None,
    ):
        """
        Initialize gateway.

        Args:
            cipher: Initialized credential cipher
            factory: Initialized connector factory
            config: Gateway configuration
            repository: Node store (in-memory when omitted)
            classifier: Command classifier
            validator: Node validator
            audit: Audit store (disabled when omitted)
        """
        self.cipher = cipher
        self.factory = factory
        self.config = config
        self.repository = repository if repository is not None else InMemoryNodeRepository()
        self.classifier = classifier or RemoteCommandClassifier()
        self.validator = validator or NodeValidator()
        self.audit = audit

    # ------------------------------------------------------------------
    # Node management
    # ------------------------------------------------------------------

    def register(
        self,
        alias: str,
        connector_type: str,
        auth_type: Union[AuthType, str],
        credential: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        safety_policy: Union[SafetyPolicy, str, None] = None,
        display_name: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Node:
        """
        Validate and store a new node with its credential encrypted.

        Raises:
            NodeValidationError: If any node rule is violated
            DuplicateNodeError: If the alias is taken
        """
        if connector_type and not self.factory.supports(connector_type):
            raise NodeValidationError([f"unsupported connectorType '{connector_type}'"])
        self.validator.validate(connector_type, host, port, username)
        if not credential:
            raise NodeValidationError(["credential is required"])
        if self.repository.find_by_alias(alias) is not None:
            raise DuplicateNodeError(alias)

        node = _build_node(
            {
                "alias": alias,
                "display_name": display_name,
                "connector_type": connector_type,
                "host": host,
                "port": port,
                "username": username,
                "auth_type": auth_type,
                "encrypted_credential": self.cipher.encrypt(credential),
                "safety_policy": self.classifier.guard.resolve_policy(
                    safety_policy or self.config.default_safety_policy
                ),
                "tags": [] if tags is None else tags,
            }
        )
        self.repository.save(node)
        logger.info(
            f"Registered {node.connector_type} node {node.alias} ({sanitize_host(node.host)}), "
            f"policy {node.safety_policy.value}"
        )
        self._audit_node(node, "register", True)
        return node

    def update(self, node_id: str, credential: Optional[str] = None, **changes: Any) -> Node:
        """
        Update node fields and optionally replace the credential.

        Raises:
            NodeNotFoundError: If the node does not exist
            NodeValidationError: If the updated node would be invalid
            DuplicateNodeError: If the new alias is taken
        """
        node = self.get(node_id)

        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise NodeValidationError([f"field '{name}' cannot be updated" for name in sorted(unknown)])

        if "safety_policy" in changes:
            changes["safety_policy"] = self.classifier.guard.resolve_policy(changes["safety_policy"])

        new_alias = changes.get("alias")
        if new_alias and new_alias != node.alias:
            existing = self.repository.find_by_alias(new_alias)
            if existing is not None and existing.id != node.id:
                raise DuplicateNodeError(new_alias)

        self.validator.validate(
            node.connector_type,
            changes.get("host", node.host),
            changes.get("port", node.port),
            changes.get("username", node.username),
        )

        if credential:
            changes["encrypted_credential"] = self.cipher.encrypt(credential)
        changes["updated_at"] = datetime.now(timezone.utc)

        updated = _build_node({**dict(node), **changes})
        self.repository.save(updated)
        logger.info(f"Updated node {updated.alias}")
        self._audit_node(updated, "update", True)
        return updated

    def remove(self, node_id: str) -> None:
        """
        Delete a node.

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        node = self.get(node_id)
        self.repository.delete(node_id)
        logger.info(f"Removed node {node.alias}")
        self._audit_node(node, "remove", True)

    def health(self) -> Dict[str, Any]:
        """Gateway health summary."""
        return check_health(self.cipher, self.factory)

    def get(self, node_id: str) -> Node:
        node = self.repository.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def find_by_alias(self, alias: str) -> Optional[Node]:
        return self.repository.find_by_alias(alias)

    def list_nodes(
        self, connector_type: Optional[str] = None, tag: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Public node views for an agent, never including credentials."""
        nodes = self.repository.list_all()
        if connector_type:
            nodes = [n for n in nodes if n.connector_type == connector_type.lower()]
        if tag:
            nodes = [n for n in nodes if tag in n.tags]
        return [n.to_public_dict() for n in nodes]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def evaluate(self, node_id: str, command: str) -> ClassificationResult:
        """
        Classify a command under the node's policy without running it.

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        return self._classify(self.get(node_id), command)

    def _classify(self, node: Node, command: str) -> ClassificationResult:
        text = command.strip()
        if node.connector_type == "k8s" and not text.lower().startswith("kubectl"):
            text = f"kubectl {text}"
        return self.classifier.classify(text, node.safety_policy)

    def _effective_options(self, options: Optional[ExecOptions]) -> ExecOptions:
        if options is None:
            options = ExecOptions(
                timeout_seconds=self.config.exec_timeout_seconds,
                max_output_bytes=self.config.max_output_bytes,
                connect_timeout_seconds=self.config.ssh_timeout_seconds,
            )
        return options.bounded(
            self.config.max_exec_timeout_seconds,
            self.config.max_output_limit,
            self.config.ssh_timeout_seconds,
        )

    def execute(
        self,
        node_id: str,
        command: str,
        options: Optional[ExecOptions] = None,
        confirmed: bool = False,
    ) -> ExecResult:
        """
        Run a command on a node.

        Args:
            node_id: Target node id
            command: Command text (kubectl arguments for K8s nodes)
            options: Execution limits, clamped to gateway maxima
            confirmed: Caller obtained explicit human confirmation

        Returns:
            ExecResult; failures are reported through ``error_type``

        Raises:
            UnknownConnectorError: If the node's connector type is not registered
        """
        node = self.repository.get(node_id)
        if node is None:
            logger.warning(f"Execution requested for unknown node {node_id}")
            return ExecResult.failure(ErrorType.RESOURCE_NOT_FOUND, f"Node not found: {node_id}")

        if not command or not command.strip():
            self._audit_command(node, command, "rejected", detail="Empty command")
            return ExecResult.validation_error("Empty command")

        try:
            self.validator.validate_node(node)
        except NodeValidationError as e:
            logger.warning(f"Node {node.alias} failed validation before execution")
            self._audit_command(node, command, "rejected", detail=str(e))
            return ExecResult.validation_error(str(e))

        classification = self._classify(node, command)
        summary = command_summary(command)

        if classification.decision is Decision.BLOCK:
            logger.warning(
                f"Blocked {classification.level.name} command {summary} on node {node.alias}: "
                f"{classification.reason}"
            )
            self._audit_command(node, command, "blocked", classification, confirmed, classification.reason)
            return ExecResult.validation_error(f"Command blocked: {classification.reason}")

        if classification.decision is Decision.REQUIRE_HITL and not confirmed:
            logger.info(
                f"Command {summary} on node {node.alias} requires confirmation "
                f"({classification.level.name} under {classification.policy.value} policy)"
            )
            self._audit_command(
                node, command, "pending_confirmation", classification, confirmed, classification.reason
            )
            return ExecResult.validation_error(
                f"Human confirmation required: {classification.level.name} command under "
                f"{classification.policy.value} policy ({classification.reason})"
            )

        connector = self.factory.get(node.connector_type)
        effective = self._effective_options(options)

        try:
            credential = self.cipher.decrypt_credential(node.encrypted_credential)
        except CredentialDecryptionError as e:
            logger.error(f"Credential for node {node.alias} could not be decrypted: {sanitize_exception(e)}")
            self._audit_command(node, command, "rejected", classification, confirmed, "credential decryption failed")
            return ExecResult.failure(ErrorType.INTERNAL_ERROR, "Stored credential could not be decrypted")

        logger.info(
            f"Executing {summary} on node {node.alias} ({sanitize_host(node.host)}) "
            f"via {connector.connector_type}, timeout {effective.timeout_seconds}s"
        )
        started = time.monotonic()
        try:
            result = connector.execute(credential, node, command, effective)
        except Exception as e:
            logger.error(f"Connector {connector.connector_type} raised {sanitize_exception(e)}")
            result = ExecResult.failure(
                ErrorType.INTERNAL_ERROR, f"Execution failed: {sanitize_exception(e)}"
            )
        finally:
            del credential
        duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            f"Finished {summary} on node {node.alias}: exit {result.exit_code}, "
            f"{result.error_type.value}, {duration_ms}ms"
            + (" (truncated)" if result.truncated else "")
        )
        self._audit_command(
            node,
            command,
            "executed",
            classification,
            confirmed,
            result=result,
            duration_ms=duration_ms,
        )
        return result

    def test_connection(self, node_id: str) -> bool:
        """
        Check connectivity and credentials for a node.

        Raises:
            NodeNotFoundError: If the node does not exist
            UnknownConnectorError: If the node's connector type is not registered
        """
        node = self.get(node_id)
        connector = self.factory.get(node.connector_type)

        try:
            self.validator.validate_node(node)
            credential = self.cipher.decrypt_credential(node.encrypted_credential)
        except (NodeValidationError, CredentialDecryptionError) as e:
            logger.warning(f"Connection test for node {node.alias} skipped: {sanitize_exception(e)}")
            success = False
        else:
            options = self._effective_options(None)
            try:
                success = bool(connector.test_connection(credential, node, options))
            except Exception as e:
                logger.error(f"Connection test for node {node.alias} raised {sanitize_exception(e)}")
                success = False
            finally:
                del credential

        self.repository.save(
            node.model_copy(
                update={
                    "last_tested_at": datetime.now(timezone.utc),
                    "last_test_success": success,
                }
            )
        )
        logger.info(f"Connection test for node {node.alias}: {'ok' if success else 'failed'}")
        self._audit_node(node, "test", success)
        return success

    # ------------------------------------------------------------------
    # Audit helpers
    # ------------------------------------------------------------------

    def _audit_node(self, node: Node, operation: str, success: bool) -> None:
        if self.audit is not None:
            self.audit.record_node_operation(node.id, operation, success, node_alias=node.alias)

    def _audit_command(
        self,
        node: Node,
        command: Optional[str],
        status: str,
        classification: Optional[ClassificationResult] = None,
        confirmed: bool = False,
        detail: Optional[str] = None,
        result: Optional[ExecResult] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        if self.audit is None:
            return
        self.audit.record_command(
            node_id=node.id,
            command=command,
            status=status,
            node_alias=node.alias,
            connector_type=node.connector_type,
            safety_level=classification.level.name if classification else None,
            safety_policy=classification.policy.value if classification else node.safety_policy.value,
            decision=classification.decision.value if classification else None,
            confirmed=confirmed,
            detail=detail,
            error_type=result.error_type.value if result else ErrorType.VALIDATION_ERROR.value,
            exit_code=result.exit_code if result else -1,
            duration_ms=duration_ms,
            truncated=result.truncated if result else None,
        )
