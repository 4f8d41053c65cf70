"""
Core workflow actions for the OTA flasher.

run_ota() is the single entry point both the CLI and library callers use.
It validates and loads the firmware, opens exactly one connection for the
selected target, hands it to that target's driver and always returns an
OtaResult; no exception escapes for session faults.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional, Union

from ota_flasher.core.cancel import CancelToken
from ota_flasher.core.firmware import FirmwareImage
from ota_flasher.core.parsing import parse_address, parse_target
from ota_flasher.core.results import FailureKind, OtaResult
from ota_flasher.errors import OtaError
from ota_flasher.protocol import get_driver
from ota_flasher.protocol.base import OtaTarget, ProgressCallback
from ota_flasher.protocol.transport import OtaConnection

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "ota_flasher"):
    """Capture logs for one session into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def run_ota(
    address: str,
    file_path: Union[str, Path],
    target: Union[OtaTarget, str],
    progress_cb: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancelToken] = None,
    *,
    connection_factory: Callable[..., OtaConnection] = OtaConnection,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
) -> OtaResult:
    """
    Flash a firmware file to a device and boot it.

    Args:
        address: Device IP address or hostname (no port)
        file_path: Path to the .bin firmware image
        target: OtaTarget or alias ("stm32", "esp32", ...)
        progress_cb: Optional callback receiving (bytes_sent, total_bytes)
        cancel_token: Optional token; cancel() aborts the session
        connection_factory: Builds the connection (host, port, **options)
        connect_timeout: Seconds allowed for the TCP handshake

    Returns:
        OtaResult describing the outcome; `result.cancelled` distinguishes
        a user abort from device or network faults

    Raises:
        ValueError: If `target` is not a known target
    """
    target = parse_target(target)
    token = cancel_token if cancel_token is not None else CancelToken()

    with _capture_logs() as logs:
        try:
            firmware = FirmwareImage.load(file_path)
        except OtaError as e:
            logger.error(f"Firmware rejected: {e}")
            return OtaResult.failure(
                e.kind, str(e), target=target.value, address=str(address), logs=logs
            )

        try:
            address = parse_address(address)
        except ValueError as e:
            return OtaResult.failure(
                FailureKind.CONNECTION_ERROR, str(e),
                target=target.value, address=str(address),
                bytes_len=firmware.size, logs=logs,
            )

        if token.cancelled:
            logger.warning("OTA cancelled before connecting")
            return OtaResult.failure(
                FailureKind.CANCELLED, "OTA cancelled",
                target=target.value, address=address,
                bytes_len=firmware.size, logs=logs,
            )

        driver = get_driver(target)
        conn = connection_factory(
            address,
            driver.port,
            connect_timeout=connect_timeout,
            no_delay=driver.no_delay,
            send_buffer_size=driver.send_buffer_size,
        )

        try:
            with conn:
                result = driver.run(conn, firmware, progress_cb, token)
        except OtaError as e:
            # Only open() raises here; driver faults come back as results
            logger.error(f"Connection failed: {e}")
            result = OtaResult.failure(
                e.kind, str(e), target=target.value, bytes_len=firmware.size
            )

        result.address = address
        result.logs = logs
        return result
