#!/usr/bin/env python3
"""
Remote command risk classifier.

Assigns every command exactly one safety tier:

- DESTRUCTIVE: any destructive rule matches anywhere in the command
- READ_ONLY: every segment of the command is a known inspection command
- SIDE_EFFECT: everything else

Classification is case-insensitive and deterministic. The policy decision
is delegated to SafetyPolicyGuard.
"""

import logging
import re
import shlex
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Pattern, Tuple, Union

from .policy import Decision, SafetyLevel, SafetyPolicy, SafetyPolicyGuard

logger = logging.getLogger("nodeconsole.classifier")

# Optional directory prefix on an executable
_PATH = r"(?:[^\s'\";&|]*/)?"

# Prefixes that run the following word as a command
_WRAPPER = (
    r"(?:"
    r"(?:sudo|doas)(?:\s+-[a-z-]+(?:[=\s]+(?!-)[^\s;&|]+)?)*"
    r"|nohup|exec|command|time"
    r"|env(?:\s+-[a-z-]+|\s+[a-z_][a-z0-9_]*=[^\s;&|]*)*"
    r"|[a-z_][a-z0-9_]*=[^\s;&|]*"
    r"|nice(?:\s+-n)?(?:\s+-?\d+)?"
    r"|timeout(?:\s+-[a-z-]+(?:[=\s]+[a-z0-9]+)?)*\s+\d+(?:\.\d+)?[smhd]?"
    r"|xargs(?:\s+-[a-z-]+(?:[=\s]+(?!-)[^\s;&|]+)?)*"
    r"|(?:ba|z|k|da)?sh(?:\s+-[a-z]+)*?\s+-[a-z]*c"
    r")"
)

# Start of a command: beginning of text or after a separator, then any
# wrappers, an opening quote and a directory prefix
_CMD = (
    r"(?:^|[;&|(`\n]|\$\()\s*"
    r"(?:['\"]?" + _PATH + _WRAPPER + r"\s+)*"
    r"['\"]?" + _PATH
)


@dataclass(frozen=True)
class ClassificationRule:
    """A compiled pattern and the reason reported when it matches."""

    pattern: Pattern
    reason: str


def _rule(regex: str, reason: str) -> ClassificationRule:
    return ClassificationRule(re.compile(regex, re.IGNORECASE), reason)


DESTRUCTIVE_RULES: Tuple[ClassificationRule, ...] = (
    # Recursive delete
    _rule(r"\brm\s+(?:[^\s;&|]+\s+)*?(?:-[a-z]*r[a-z]*|--recursive)\b", "Recursive delete operation"),
    _rule(r"\b(?:del|erase)\s+(?:/[a-z]\s+)*/[sq]\b", "Recursive delete operation"),
    _rule(r"\b(?:rmdir|rd)\s+(?:/[a-z]\s+)*/s\b", "Recursive delete operation"),
    _rule(r"\bremove-item\b.*-recurse\b", "Recursive delete operation"),
    # Power state
    _rule(_CMD + r"(?:shutdown|reboot|halt|poweroff)\b", "System shutdown/reboot"),
    _rule(_CMD + r"init\s+[06]\b", "System shutdown/reboot"),
    _rule(r"\bsystemctl\s+(?:poweroff|reboot|halt|kexec)\b", "System shutdown/reboot"),
    # Disk
    _rule(r"\bmkfs\b", "Disk format operation"),
    _rule(r"\bformat\s+[a-z]:", "Disk format operation"),
    _rule(r"\bformat-volume\b", "Disk format operation"),
    _rule(r"\bdd\s+[^;&|]*\b(?:if|of)=", "Raw disk write operation"),
    _rule(r">\s*/dev/(?:sd[a-z]|hd[a-z]|xvd[a-z]|vd[a-z]|nvme\d)", "Raw disk write operation"),
    # Kubernetes
    _rule(
        r"\bkubectl\s+(?:-[^\s;&|]+(?:\s+[^\s;&|-][^\s;&|]*)?\s+)*?(?:delete|drain)\b",
        "Destructive Kubernetes operation",
    ),
    # SQL
    _rule(r"\bdrop\s+(?:database|table|schema|index|view|user)\b", "Database destructive operation"),
    _rule(r"\btruncate\s+table\b", "Database destructive operation"),
    _rule(r"\bdelete\s+from\s+[\w.`\"\[\]]+\s*(?:;|$)", "Database destructive operation"),
    # Remote code execution
    _rule(
        r"\b(?:curl|wget)\b[^|]*\|\s*(?:sudo\s+)?(?:sh|bash|zsh|ksh|dash|python[0-9.]*|perl|ruby)\b",
        "Remote code execution",
    ),
    # Firewall
    _rule(r"\bip6?tables\s+(?:-t\s+\w+\s+)?(?:-f|--flush)\b", "Firewall rule modification"),
    _rule(r"\bufw\s+(?:disable|reset)\b", "Firewall rule modification"),
    _rule(r"\bnft\s+flush\b", "Firewall rule modification"),
    # Version control history
    _rule(r"\bgit\s+push\b[^;&|]*(?:--force\b|--force-with-lease\b|\s-f\b)", "Dangerous git operation"),
    _rule(r"\bgit\s+reset\s+(?:\S+\s+)*?--hard\b", "Dangerous git operation"),
    _rule(r"\bgit\s+clean\s+(?:\S+\s+)*?-[a-z]*f", "Dangerous git operation"),
    # Credentials on the command line
    _rule(r"(?:password|passwd)\s*[=:]", "Contains sensitive credentials"),
    _rule(r"--password\b", "Contains sensitive credentials"),
    _rule(
        r"(?:secret|credential|api[_-]?key|access[_-]?token|auth[_-]?token)\s*[=:]",
        "Contains sensitive credentials",
    ),
    # Permissions
    _rule(r"\bchmod\s+(?:\S+\s+)*?(?:-[a-z]*r[a-z]*\b|--recursive\b|0?777\b)", "Recursive permission change"),
    _rule(r"\bchown\s+(?:\S+\s+)*?(?:-[a-z]*r[a-z]*\b|--recursive\b)", "Recursive ownership change"),
    # Processes
    _rule(r"\bkill\s+-(?:9|kill|sigkill)\b", "Forced process termination"),
    _rule(r"\bpkill\s+-(?:9|kill|sigkill)\b", "Forced process termination"),
    _rule(_CMD + r"killall\b", "Forced process termination"),
    # Containers
    _rule(r"\b(?:docker|podman)\s+(?:system\s+prune|volume\s+prune|rmi?\b)", "Container removal operation"),
)

# Commands that only inspect state, keyed by their first token
READ_ONLY_COMMANDS: FrozenSet[str] = frozenset({
    # Resources and processes
    "df", "du", "free", "top", "htop", "ps", "pgrep", "uptime", "uname", "hostname",
    "whoami", "id", "w", "who", "last", "date", "printenv", "pwd", "echo",
    "vmstat", "iostat", "mpstat", "nproc", "arch",
    # Files
    "cat", "ls", "ll", "grep", "egrep", "fgrep", "tail", "head", "less", "more", "wc",
    "find", "file", "stat", "diff", "md5sum", "sha256sum", "which", "readlink",
    "realpath", "basename", "dirname", "sort", "uniq", "cut", "tr", "column",
    # System
    "journalctl", "dmesg", "lsblk", "lscpu", "lsmem", "lspci", "lsusb",
    "lsof", "lsmod", "blkid", "getent", "mount",
    # Network probes
    "netstat", "ss", "ping", "ping6", "traceroute", "tracepath", "dig",
    "nslookup", "host", "arp", "route", "ifconfig",
})

# Multi-token commands whose sub-command decides the tier
READ_ONLY_SUBCOMMANDS = {
    "systemctl": frozenset({"status", "is-active", "is-enabled", "is-failed", "list-units",
                            "list-unit-files", "list-timers", "show", "cat"}),
    "service": None,
    "kubectl": frozenset({"get", "describe", "logs", "top", "explain", "version",
                          "cluster-info", "api-resources", "api-versions", "events"}),
    "docker": frozenset({"ps", "images", "logs", "inspect", "stats", "info", "version", "top"}),
    "podman": frozenset({"ps", "images", "logs", "inspect", "stats", "info", "version", "top"}),
    "ip": frozenset({"addr", "a", "address", "route", "r", "link", "l", "neigh", "rule"}),
    "git": frozenset({"status", "log", "diff", "show", "branch", "remote", "describe", "rev-parse"}),
}

# Words that turn an otherwise read-only command into a write
_MUTATING_WORDS = {
    "find": {"-delete", "-exec", "-execdir", "-ok", "-okdir", "-fprint", "-fprintf", "-fls"},
    "sort": {"-o", "--output"},
    "date": {"-s", "--set"},
    "dmesg": {"-c", "--clear", "--console-off", "--console-on", "--console-level"},
    "journalctl": {"--rotate", "--flush", "--vacuum-size", "--vacuum-time", "--vacuum-files"},
    "ip": {"add", "del", "delete", "change", "replace", "flush", "set", "append", "prepend"},
    "git": {"-d", "--delete", "-m", "--move", "add", "remove", "rm", "rename", "set-url", "prune"},
}

# Commands that are read-only only with at most this many operands
_MAX_OPERANDS = {"mount": 0, "hostname": 0, "route": 0, "arp": 0, "ifconfig": 1, "uniq": 1}

_SQL_READ = re.compile(r"^(?:select|show|describe|desc|explain)\b")
_SQL_WRITE = re.compile(r"\binto\b|\bexplain\s+analy[sz]e\b|\bfor\s+update\b")

_SEPARATOR_CHARS = set(";&|()")
_WRITE_MARKER = "<write>"
_SAFE_REDIRECT_TARGETS = {"/dev/null", "1", "2", "&1", "&2"}


@dataclass(frozen=True)
class ClassificationResult:
    """Safety tier of a command and the policy decision for it."""

    level: SafetyLevel
    decision: Decision
    policy: SafetyPolicy
    reason: str

    @property
    def requires_hitl(self) -> bool:
        """True unless the command may run without human confirmation."""
        return self.decision is not Decision.AUTO_EXECUTE

    @property
    def blocked(self) -> bool:
        return self.decision is Decision.BLOCK


class RemoteCommandClassifier:
    """Classifies shell text into READ_ONLY, SIDE_EFFECT or DESTRUCTIVE."""

    def __init__(
        self,
        guard: Optional[SafetyPolicyGuard] = None,
        dangerous_keywords: Optional[Iterable[str]] = None,
    ):
        """
        Initialize classifier.

        Args:
            guard: Policy guard used to turn a level into a decision
            dangerous_keywords: Extra substrings that force DESTRUCTIVE
        """
        self.guard = guard or SafetyPolicyGuard()
        self.dangerous_keywords = [k.lower() for k in (dangerous_keywords or []) if k and k.strip()]

    def classify(
        self, command: Optional[str], policy: Union[SafetyPolicy, str, None] = None
    ) -> ClassificationResult:
        """
        Classify a command and decide how it may proceed under a policy.

        Args:
            command: Raw command text
            policy: Node policy mode (guard default when None)

        Returns:
            ClassificationResult
        """
        level, reason = self.analyze(command)
        resolved = self.guard.resolve_policy(policy)
        decision = self.guard.decide(level, resolved)
        logger.debug(f"Classified command as {level.name} ({reason}), decision {decision.value}")
        return ClassificationResult(level=level, decision=decision, policy=resolved, reason=reason)

    def level_of(self, command: Optional[str]) -> SafetyLevel:
        """Safety tier only."""
        return self.analyze(command)[0]

    def analyze(self, command: Optional[str]) -> Tuple[SafetyLevel, str]:
        """
        Determine the safety tier of a command.

        Returns:
            Tuple of (level, reason)
        """
        text = (command or "").strip()
        if not text:
            return SafetyLevel.SIDE_EFFECT, "Empty command"

        lowered = text.lower()

        for rule in DESTRUCTIVE_RULES:
            if rule.pattern.search(lowered):
                return SafetyLevel.DESTRUCTIVE, rule.reason

        for keyword in self.dangerous_keywords:
            if keyword in lowered:
                return SafetyLevel.DESTRUCTIVE, "Matches configured dangerous keyword"

        if self._is_read_only(lowered):
            return SafetyLevel.READ_ONLY, "Read-only inspection command"

        return SafetyLevel.SIDE_EFFECT, "Command may modify state"

    def _is_read_only(self, lowered: str) -> bool:
        """Every segment must be a read-only command with no writes to files."""
        if "`" in lowered or "$(" in lowered or "<(" in lowered or ">(" in lowered:
            return False

        if _SQL_READ.match(lowered):
            return self._sql_is_read_only(lowered)

        segments = self._split_segments(lowered)
        if not segments:
            return False
        return all(self._segment_is_read_only(segment) for segment in segments)

    @staticmethod
    def _split_segments(lowered: str) -> List[List[str]]:
        lexer = shlex.shlex(lowered.replace("\n", " ; "), posix=True, punctuation_chars=True)
        lexer.whitespace_split = True
        try:
            tokens = list(lexer)
        except ValueError:
            # Unbalanced quotes
            return []

        segments: List[List[str]] = []
        current: List[str] = []
        skip_target = False
        for index, token in enumerate(tokens):
            if skip_target:
                skip_target = False
                continue
            if token and set(token) <= _SEPARATOR_CHARS:
                if current:
                    segments.append(current)
                current = []
                continue
            if ">" in token and set(token) <= set("<>&|"):
                target = tokens[index + 1] if index + 1 < len(tokens) else ""
                if not (token.endswith("&") or target in _SAFE_REDIRECT_TARGETS):
                    return [[_WRITE_MARKER]]
                # Drop the fd number, the operator and its target
                if current and current[-1].isdigit():
                    current.pop()
                skip_target = True
                continue
            current.append(token)
        if current:
            segments.append(current)
        return segments

    @staticmethod
    def _segment_is_read_only(tokens: List[str]) -> bool:
        words = list(tokens)
        # VAR=value prefixes
        while words and "=" in words[0] and not words[0].startswith("-"):
            words.pop(0)
        if not words or words[0] == _WRITE_MARKER:
            return False

        head, args = words[0], words[1:]

        mutating = _MUTATING_WORDS.get(head)
        if mutating and any(a in mutating or a.split("=", 1)[0] in mutating for a in args):
            return False

        if head in READ_ONLY_SUBCOMMANDS:
            allowed = READ_ONLY_SUBCOMMANDS[head]
            if allowed is None:
                # service <name> status
                return len(args) == 2 and args[1] == "status"
            sub = next((a for a in args if not a.startswith("-")), None)
            return sub in allowed

        if head not in READ_ONLY_COMMANDS:
            return False

        limit = _MAX_OPERANDS.get(head)
        if limit is not None:
            operands = [a for a in args if not a.startswith("-")]
            if len(operands) > limit:
                return False

        return True

    @staticmethod
    def _sql_is_read_only(lowered: str) -> bool:
        statements = [s.strip() for s in lowered.split(";") if s.strip()]
        return all(_SQL_READ.match(s) and not _SQL_WRITE.search(s) for s in statements)
