"""
Safety Module - Black Box Interface

Purpose: Decide whether a remote command may run, needs confirmation, or is blocked
Interface: RemoteCommandClassifier.classify(), SafetyPolicyGuard.decide()
Hidden: Pattern tables, shell tokenization, policy table

Both components are pure; neither performs I/O.
"""

from .classifier import ClassificationResult, RemoteCommandClassifier
from .policy import Decision, SafetyLevel, SafetyPolicy, SafetyPolicyGuard

__all__ = [
    "ClassificationResult",
    "Decision",
    "RemoteCommandClassifier",
    "SafetyLevel",
    "SafetyPolicy",
    "SafetyPolicyGuard",
]
