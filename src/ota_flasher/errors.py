"""Exception hierarchy shared by the firmware loader and the protocol layer."""

from typing import Optional

from ota_flasher.core.results import FailureKind


class OtaError(Exception):
    """Base exception for OTA failures; `kind` maps it onto a result."""

    kind = FailureKind.IO_ERROR


class FirmwareNotFoundError(OtaError):
    """Firmware path does not reference an existing file"""

    kind = FailureKind.FILE_NOT_FOUND


class UnsupportedFirmwareError(OtaError):
    """Firmware file cannot be flashed (extension or size)"""

    kind = FailureKind.UNSUPPORTED_FORMAT


class OtaConnectionError(OtaError):
    """TCP connection to the bootloader could not be established"""

    kind = FailureKind.CONNECTION_ERROR


class OtaTimeoutError(OtaError):
    """No acknowledgment arrived before the phase deadline"""

    kind = FailureKind.TIMEOUT


class OtaProtocolError(OtaError):
    """Device answered with something other than OK."""

    kind = FailureKind.PROTOCOL_ERROR

    def __init__(self, message: str, received: Optional[int] = None):
        super().__init__(message)
        self.received = received


class OtaCancelledError(OtaError):
    """Session aborted through its cancel token"""

    kind = FailureKind.CANCELLED


class OtaIOError(OtaError):
    """Transport failure while reading or writing"""

    kind = FailureKind.IO_ERROR
