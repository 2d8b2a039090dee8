"""Tests for FailureDescription and ErrorCode."""

import pytest

from railway import ErrorCode, FailureDescription


class TestErrorCode:
    def test_error_codes(self):
        assert {code.value for code in ErrorCode} == {
            "VALIDATION_ERROR",
            "NOT_FOUND",
            "BUSINESS_RULE_ERROR",
            "CONFIGURATION_ERROR",
            "TECHNICAL_ERROR",
            "EXTERNAL_SERVICE_ERROR",
        }

    def test_error_code_values_match_names(self):
        for code in ErrorCode:
            assert code.value == code.name


class TestFailureDescription:
    def test_creation_with_code_and_message(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "unsupported lineage name")
        assert desc.code == ErrorCode.VALIDATION_ERROR
        assert desc.message == "unsupported lineage name"
        assert desc.exception is None

    def test_immutability(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "test")
        with pytest.raises(AttributeError):
            desc.message = "changed"  # type: ignore

    def test_detail_without_exception_is_message(self):
        desc = FailureDescription(ErrorCode.BUSINESS_RULE_ERROR, "revoked")
        assert desc.detail() == "revoked"

    def test_detail_appends_exception_text(self):
        desc = FailureDescription(
            ErrorCode.EXTERNAL_SERVICE_ERROR, "OCSP request failed", ConnectionError("refused")
        )
        assert desc.detail() == "OCSP request failed: refused"

    def test_detail_uses_exception_type_when_text_is_empty(self):
        desc = FailureDescription(ErrorCode.EXTERNAL_SERVICE_ERROR, "OCSP request failed", TimeoutError())
        assert desc.detail() == "OCSP request failed: TimeoutError"
