"""Tests for session results, progress and failure messages."""

import json

import pytest

from ota_flasher.core.cancel import CancelToken
from ota_flasher.core.messages import FAILURE_HINTS, MessageLevel, result_to_message
from ota_flasher.core.results import FailureKind, OtaProgress, OtaResult
from ota_flasher.errors import (
    FirmwareNotFoundError,
    OtaCancelledError,
    OtaConnectionError,
    OtaIOError,
    OtaProtocolError,
    OtaTimeoutError,
    UnsupportedFirmwareError,
)


class TestOtaResult:

    def test_success(self):
        result = OtaResult.success(target="stm32", address="10.0.0.5", bytes_len=20000)
        assert result.ok
        assert result.error is None
        assert not result.cancelled
        assert "[SUCCESS] ota stm32" in result.to_summary()
        assert "20,000" in result.to_summary()

    def test_failure_summary(self):
        result = OtaResult.failure(FailureKind.TIMEOUT, "Device did not respond within 30s")
        assert "[FAILED]" in result.to_summary()
        assert "within 30s" in result.to_summary()

    def test_cancelled_summary(self):
        result = OtaResult.failure(FailureKind.CANCELLED, "OTA cancelled")
        assert result.cancelled
        assert "[CANCELLED]" in result.to_summary()

    def test_to_dict_is_json_serializable(self):
        result = OtaResult.failure(FailureKind.PROTOCOL_ERROR, "bad", logs=["line"])
        data = json.loads(json.dumps(result.to_dict()))
        assert data["kind"] == "protocol_error"
        assert data["cancelled"] is False
        assert data["logs"] == ["line"]


class TestOtaProgress:

    @pytest.mark.parametrize(
        "sent,total,percent", [(0, 100, 0), (8192, 20000, 40), (20000, 20000, 100), (0, 0, 0)]
    )
    def test_percent(self, sent, total, percent):
        assert OtaProgress(sent, total).percent == percent


class TestErrorKinds:
    """Each exception carries the failure kind it reports as."""

    @pytest.mark.parametrize(
        "exc,kind",
        [
            (FirmwareNotFoundError, FailureKind.FILE_NOT_FOUND),
            (UnsupportedFirmwareError, FailureKind.UNSUPPORTED_FORMAT),
            (OtaConnectionError, FailureKind.CONNECTION_ERROR),
            (OtaTimeoutError, FailureKind.TIMEOUT),
            (OtaProtocolError, FailureKind.PROTOCOL_ERROR),
            (OtaCancelledError, FailureKind.CANCELLED),
            (OtaIOError, FailureKind.IO_ERROR),
        ],
    )
    def test_kind(self, exc, kind):
        assert exc("x").kind is kind


class TestCancelToken:

    def test_raise_if_cancelled(self):
        token = CancelToken()
        token.raise_if_cancelled()
        token.cancel()
        assert token.cancelled
        with pytest.raises(OtaCancelledError):
            token.raise_if_cancelled()


class TestMessages:

    def test_success_has_no_message(self):
        assert result_to_message(OtaResult.success()) is None

    def test_every_kind_has_a_hint(self):
        assert set(FAILURE_HINTS) == set(FailureKind)

    def test_failure_message(self):
        msg = result_to_message(OtaResult.failure(FailureKind.PROTOCOL_ERROR, "Device returned FAIL (0xFF)"))
        assert msg.level == MessageLevel.ERROR
        assert msg.code == "protocol_error"
        assert msg.title == "Device returned FAIL (0xFF)"
        assert "--target" in msg.remediation
        assert msg.to_dict()["level"] == "error"

    def test_cancel_is_a_warning(self):
        msg = result_to_message(OtaResult.failure(FailureKind.CANCELLED, "OTA cancelled"))
        assert msg.level == MessageLevel.WARN
