"""
ESP32 OTA Protocol (synchronous, one ack per chunk)

At most one chunk is in flight, so a failing write stops the session at the
first bad chunk instead of after the whole image.

Protocol sequence:
1. Connect to port 8081
2. CMD_INIT + <u32 total length> -> OK
3. Per chunk: CMD_WRITE + <u16 length> + bytes (<= 2048) -> OK
4. CMD_RUN -> OK
"""

import logging
from enum import Enum, auto
from typing import Optional

from ota_flasher.core.cancel import CancelToken
from ota_flasher.core.firmware import FirmwareImage
from ota_flasher.protocol.base import OtaDriver, OtaTarget, ProgressCallback
from ota_flasher.protocol.framing import (
    CMD_INIT,
    CMD_RUN,
    build_init_payload,
    build_write_header,
    expect_ack,
    send_command,
)

logger = logging.getLogger(__name__)

ESP32_PORT = 8081
ESP32_CHUNK_SIZE = 2048
ESP32_ACK_TIMEOUT = 30.0  # same deadline for every ack


class Esp32State(Enum):
    DISCONNECTED = auto()
    CONNECTED = auto()
    INITIALIZED = auto()
    CHUNK_SENT = auto()
    CHUNK_ACKED = auto()
    RUN_SENT = auto()
    COMPLETED = auto()
    FAILED = auto()


class Esp32ChunkedDriver(OtaDriver):
    """Per-chunk acknowledged ESP32 flasher."""

    target = OtaTarget.ESP32
    port = ESP32_PORT

    def initial_state(self) -> Esp32State:
        return Esp32State.DISCONNECTED

    def failed_state(self) -> Esp32State:
        return Esp32State.FAILED

    def _flash(
        self,
        conn,
        firmware: FirmwareImage,
        progress_cb: Optional[ProgressCallback],
        cancel_token: CancelToken,
    ) -> None:
        total = firmware.size
        logger.info(
            f"Starting ESP32 OTA update to {conn.host} "
            f"({total} bytes, {firmware.chunk_count(ESP32_CHUNK_SIZE)} chunks)"
        )
        self._enter(Esp32State.CONNECTED)

        cancel_token.raise_if_cancelled()
        send_command(conn, CMD_INIT)
        conn.send_raw(build_init_payload(total))
        expect_ack(conn, ESP32_ACK_TIMEOUT, cancel_token)
        self._enter(Esp32State.INITIALIZED)

        for offset, chunk in firmware.iter_chunks(ESP32_CHUNK_SIZE):
            cancel_token.raise_if_cancelled()
            conn.send_raw(build_write_header(len(chunk)) + chunk)
            self._enter(Esp32State.CHUNK_SENT)
            expect_ack(conn, ESP32_ACK_TIMEOUT, cancel_token)
            self._enter(Esp32State.CHUNK_ACKED)
            if progress_cb:
                progress_cb(offset + len(chunk), total)

        send_command(conn, CMD_RUN)
        self._enter(Esp32State.RUN_SENT)
        expect_ack(conn, ESP32_ACK_TIMEOUT, cancel_token)
        self._enter(Esp32State.COMPLETED)

        logger.info("ESP32 OTA update completed successfully")
