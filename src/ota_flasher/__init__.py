"""
OTA Flasher - network firmware updates for STM32 and ESP32 bootloaders

Validates a firmware image, streams it to the device bootloader over TCP
and tells the device to boot the new image.
"""

__version__ = "0.1.0"

from ota_flasher.core import (
    CancelToken,
    FailureKind,
    OtaProgress,
    OtaResult,
    run_ota,
)
from ota_flasher.protocol import OtaTarget

__all__ = [
    "CancelToken",
    "FailureKind",
    "OtaProgress",
    "OtaResult",
    "OtaTarget",
    "run_ota",
    "__version__",
]
