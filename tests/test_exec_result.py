#!/usr/bin/env python3
"""
Tests for execution options, results and bounded output buffers.
"""

import os
import socket
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from nodeconsole.modules.executor import (
    ErrorType,
    ExecOptions,
    ExecResult,
    LimitedByteArrayOutputStream,
)
from nodeconsole.modules.executor.base import build_result, map_exception


class TestLimitedByteArrayOutputStream:
    """Bounded capture buffer."""

    def test_under_limit(self):
        buf = LimitedByteArrayOutputStream(10)
        assert buf.write(b"hello") == 5
        assert buf.getvalue() == b"hello"
        assert not buf.truncated
        assert buf.original_length == 5
        assert len(buf) == buf.size() == 5

    def test_exact_limit_not_truncated(self):
        buf = LimitedByteArrayOutputStream(5)
        buf.write(b"hello")
        assert buf.getvalue() == b"hello"
        assert not buf.truncated

    def test_truncates_and_counts(self):
        buf = LimitedByteArrayOutputStream(8)
        buf.write(b"12345")
        buf.write(b"67890")
        buf.write(b"abc")
        assert buf.getvalue() == b"12345678"
        assert buf.truncated
        assert buf.original_length == 13
        assert buf.size() == 8

    def test_write_reports_full_length_when_dropping(self):
        buf = LimitedByteArrayOutputStream(2)
        assert buf.write(b"abcdef") == 6

    def test_empty_write(self):
        buf = LimitedByteArrayOutputStream(2)
        assert buf.write(b"") == 0
        assert buf.original_length == 0

    def test_decode_replaces_cut_multibyte(self):
        buf = LimitedByteArrayOutputStream(1)
        buf.write("é".encode("utf-8"))
        assert buf.decode() == "\ufffd"

    @pytest.mark.parametrize("size", [0, -1])
    def test_invalid_capacity(self, size):
        with pytest.raises(ValueError):
            LimitedByteArrayOutputStream(size)


class TestExecOptions:
    """Execution limit validation."""

    def test_defaults(self):
        options = ExecOptions()
        assert options.timeout_seconds == 60
        assert options.max_output_bytes == 32000
        assert options.connect_timeout_seconds == 30

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"timeout_seconds": 0},
            {"timeout_seconds": -5},
            {"max_output_bytes": 0},
            {"connect_timeout_seconds": 0},
            {"timeout_seconds": True},
            {"timeout_seconds": 1.5},
        ],
    )
    def test_rejects_non_positive(self, kwargs):
        with pytest.raises(ValueError):
            ExecOptions(**kwargs)

    def test_bounded(self):
        options = ExecOptions(timeout_seconds=9999, max_output_bytes=10, connect_timeout_seconds=50)
        bounded = options.bounded(600, 1048576, 30)
        assert bounded.timeout_seconds == 600
        assert bounded.max_output_bytes == 10
        assert bounded.connect_timeout_seconds == 30


class TestExecResult:
    """Result invariants and rendering."""

    def test_defaults(self):
        result = ExecResult(stdout="ok")
        assert result.error_type is ErrorType.NONE
        assert result.exit_code == 0
        assert result.success

    def test_timed_out_forces_exit_code_and_error(self):
        result = ExecResult(stdout="partial", exit_code=0, timed_out=True, error_type=ErrorType.NETWORK_ERROR)
        assert result.exit_code == -1
        assert result.error_type is ErrorType.TIMEOUT
        assert not result.success

    def test_nonzero_exit_not_success(self):
        assert not ExecResult(exit_code=2).success

    def test_validation_error(self):
        result = ExecResult.validation_error("Empty command")
        assert result.error_type is ErrorType.VALIDATION_ERROR
        assert result.exit_code == -1
        assert result.stderr == "Empty command"
        assert result.stdout == ""

    def test_format_output_success(self):
        assert ExecResult(stdout="line\n").format_output() == "line\n"

    def test_format_output_full(self):
        result = ExecResult(
            stdout="out",
            stderr="err",
            exit_code=1,
            truncated=True,
            original_length=100,
            error_type=ErrorType.PERMISSION_DENIED,
        )
        assert result.format_output() == (
            "out"
            "\n[stderr]\nerr"
            "\n[exit code: 1]"
            "\n[Output truncated at 6 chars, original was 100 bytes]"
            "\n[Error type: PERMISSION_DENIED]"
        )

    def test_format_output_timeout(self):
        text = ExecResult(timed_out=True).format_output()
        assert "[exit code: -1]" in text
        assert "[Execution timed out]" in text
        assert "[Error type: TIMEOUT]" in text

    def test_to_dict(self):
        data = ExecResult(stdout="x", error_type=ErrorType.NETWORK_ERROR, exit_code=-1).to_dict()
        assert data["error_type"] == "NETWORK_ERROR"
        assert data["exit_code"] == -1
        assert set(data) == {
            "stdout", "stderr", "exit_code", "truncated", "original_length", "timed_out", "error_type",
        }

    def test_error_type_values_match_names(self):
        assert {e.name for e in ErrorType} == {e.value for e in ErrorType}
        assert len(ErrorType) == 8


class TestResultHelpers:
    """Buffer-to-result assembly and exception mapping."""

    def test_build_result_combines_buffers(self):
        out = LimitedByteArrayOutputStream(4)
        err = LimitedByteArrayOutputStream(4)
        out.write(b"abcdefgh")
        err.write(b"xy")
        result = build_result(out, err, exit_code=0)
        assert result.stdout == "abcd"
        assert result.stderr == "xy"
        assert result.truncated
        assert result.original_length == 10

    @pytest.mark.parametrize(
        "exc,error_type",
        [
            (socket.timeout(), ErrorType.TIMEOUT),
            (TimeoutError(), ErrorType.TIMEOUT),
            (PermissionError(), ErrorType.PERMISSION_DENIED),
            (FileNotFoundError(), ErrorType.RESOURCE_NOT_FOUND),
            (ConnectionRefusedError(), ErrorType.NETWORK_ERROR),
            (OSError(), ErrorType.NETWORK_ERROR),
            (RuntimeError(), ErrorType.INTERNAL_ERROR),
        ],
    )
    def test_map_exception(self, exc, error_type):
        assert map_exception(exc) is error_type
