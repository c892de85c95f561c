"""
Audit Module - Black Box Interface

Purpose: Keep a queryable trail of every execution attempt and node change
Interface: AuditStore.record_command(), record_node_operation(), query(), get_command_stats()
Hidden: SQLite schema, metrics counters

Raw command text is never stored; only the verb and a length/hash summary.
"""

from .store import AuditStore

__all__ = ["AuditStore"]
