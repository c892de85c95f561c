"""
Bounded execution result model shared by all connectors.
"""

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    """Failure category of an execution attempt."""

    NONE = "NONE"
    TIMEOUT = "TIMEOUT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_MAX_OUTPUT_BYTES = 32000
DEFAULT_CONNECT_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class ExecOptions:
    """Caller-supplied execution limits."""

    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    connect_timeout_seconds: int = DEFAULT_CONNECT_TIMEOUT_SECONDS

    def __post_init__(self):
        for name in ("timeout_seconds", "max_output_bytes", "connect_timeout_seconds"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{name} must be a positive integer (got {value!r})")

    def bounded(
        self,
        max_timeout_seconds: int,
        max_output_bytes: int,
        connect_timeout_seconds: Optional[int] = None,
    ) -> "ExecOptions":
        """Clamp to gateway-side maxima."""
        return replace(
            self,
            timeout_seconds=min(self.timeout_seconds, max_timeout_seconds),
            max_output_bytes=min(self.max_output_bytes, max_output_bytes),
            connect_timeout_seconds=min(
                self.connect_timeout_seconds,
                connect_timeout_seconds or self.connect_timeout_seconds,
            ),
        )


@dataclass(frozen=True)
class ExecResult:
    """
    Outcome of one execution attempt.

    A timed-out result always has exit code -1 and error type TIMEOUT. When
    no error type is given it resolves to NONE.
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    truncated: bool = False
    original_length: int = 0
    timed_out: bool = False
    error_type: Optional[ErrorType] = None

    def __post_init__(self):
        if self.timed_out:
            object.__setattr__(self, "exit_code", -1)
            object.__setattr__(self, "error_type", ErrorType.TIMEOUT)
        elif self.error_type is None:
            object.__setattr__(self, "error_type", ErrorType.NONE)

    @classmethod
    def failure(cls, error_type: ErrorType, message: str, exit_code: int = -1) -> "ExecResult":
        """Result for an attempt that produced no command output."""
        return cls(stderr=message, exit_code=exit_code, error_type=error_type)

    @classmethod
    def validation_error(cls, message: str) -> "ExecResult":
        """Pre-dispatch rejection. Nothing reached the target."""
        return cls.failure(ErrorType.VALIDATION_ERROR, message)

    @property
    def success(self) -> bool:
        return self.error_type is ErrorType.NONE and self.exit_code == 0

    def format_output(self) -> str:
        """Human-readable rendering for the calling agent."""
        parts = []
        if self.stdout:
            parts.append(self.stdout)
        if self.stderr:
            parts.append("\n[stderr]\n" + self.stderr)
        if self.exit_code != 0:
            parts.append(f"\n[exit code: {self.exit_code}]")
        if self.truncated:
            captured = len(self.stdout) + len(self.stderr)
            parts.append(
                f"\n[Output truncated at {captured} chars, original was {self.original_length} bytes]"
            )
        if self.timed_out:
            parts.append("\n[Execution timed out]")
        if self.error_type is not ErrorType.NONE:
            parts.append(f"\n[Error type: {self.error_type.value}]")
        return "".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "truncated": self.truncated,
            "original_length": self.original_length,
            "timed_out": self.timed_out,
            "error_type": self.error_type.value,
        }


class LimitedByteArrayOutputStream:
    """
    Byte sink that stops storing past a capacity while counting every byte.

    Writes never fail; bytes beyond the limit are dropped and ``truncated``
    is set. ``original_length`` is the total number of bytes offered.
    """

    def __init__(self, max_bytes: int):
        if max_bytes <= 0:
            raise ValueError(f"max_bytes must be positive (got {max_bytes})")
        self.max_bytes = max_bytes
        self._buffer = bytearray()
        self._original_length = 0
        self._truncated = False
        self._lock = threading.Lock()

    def write(self, data: bytes) -> int:
        if not data:
            return 0
        with self._lock:
            self._original_length += len(data)
            room = self.max_bytes - len(self._buffer)
            if room >= len(data):
                self._buffer.extend(data)
            else:
                if room > 0:
                    self._buffer.extend(data[:room])
                self._truncated = True
        return len(data)

    @property
    def truncated(self) -> bool:
        return self._truncated

    @property
    def original_length(self) -> int:
        return self._original_length

    def size(self) -> int:
        return len(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def getvalue(self) -> bytes:
        with self._lock:
            return bytes(self._buffer)

    def decode(self, encoding: str = "utf-8") -> str:
        """Captured bytes as text; a multi-byte sequence cut at the limit is replaced."""
        return self.getvalue().decode(encoding, errors="replace")
