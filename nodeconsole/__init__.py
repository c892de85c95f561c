"""
NodeConsole - Secure Remote Command Execution Gateway

Lets an autonomous agent run shell commands on registered SSH hosts or
read-only kubectl verbs against Kubernetes clusters, without letting
destructive operations execute silently or credentials leak.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- crypto: Credential encryption at rest
- node: Node model, validation and repository
- safety: Command risk classification and policy decisions
- executor: Connectors (SSH, Kubernetes) and the bounded result model
- audit: Command and node operation audit trail
- gateway: Caller-facing service and composition root
"""

__version__ = "1.0.0"
