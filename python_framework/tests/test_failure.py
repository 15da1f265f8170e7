"""Tests for FailureDescription and ErrorCode."""

import pytest

from railway import ErrorCode, FailureDescription


class TestErrorCode:
    def test_all_9_error_codes_exist(self):
        assert len(list(ErrorCode)) == 9

    def test_client_error_codes(self):
        client_codes = {ErrorCode.VALIDATION_ERROR, ErrorCode.DECODE_ERROR}
        assert len(client_codes) == 2

    def test_remote_endpoint_error_codes(self):
        remote_codes = {
            ErrorCode.NETWORK_ERROR,
            ErrorCode.HANDSHAKE_ERROR,
            ErrorCode.CERTIFICATE_ABSENT,
            ErrorCode.TIMEOUT_ERROR,
        }
        assert len(remote_codes) == 4

    def test_error_code_values_match_names(self):
        for code in ErrorCode:
            assert code.value == code.name


class TestFailureDescription:
    def test_creation_with_code_and_message(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "Hostname must not be empty")
        assert desc.code == ErrorCode.VALIDATION_ERROR
        assert desc.message == "Hostname must not be empty"
        assert desc.exception is None
        assert desc.timestamp is not None

    def test_creation_with_exception(self):
        ex = OSError("reset by peer")
        desc = FailureDescription(ErrorCode.NETWORK_ERROR, "connection reset", ex)
        assert desc.exception is ex

    def test_immutability(self):
        desc = FailureDescription(ErrorCode.DECODE_ERROR, "test")
        with pytest.raises(AttributeError):
            desc.message = "changed"  # type: ignore

    def test_timestamp_is_utc(self):
        desc = FailureDescription(ErrorCode.DECODE_ERROR, "test")
        assert desc.timestamp.tzinfo is not None
        assert desc.timestamp.utcoffset().total_seconds() == 0

    def test_exception_hidden_from_repr(self):
        desc = FailureDescription(ErrorCode.NETWORK_ERROR, "x", OSError("secret detail"))
        assert "secret detail" not in repr(desc)

    def test_str_is_code_and_message(self):
        desc = FailureDescription(ErrorCode.TIMEOUT_ERROR, "timed out after 5s")
        assert str(desc) == "TIMEOUT_ERROR: timed out after 5s"

    def test_full_stack_trace_without_exception(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "just a message")
        assert desc.full_stack_trace() == "just a message"

    def test_full_stack_trace_with_exception(self):
        try:
            raise ValueError("boom")
        except ValueError as e:
            desc = FailureDescription(ErrorCode.DECODE_ERROR, "decode failed", e)
            trace = desc.full_stack_trace()
            assert trace.startswith("decode failed\n")
            assert "ValueError" in trace
            assert "boom" in trace
