"""
STM32 OTA Protocol (pipelined stream)

The STM32 bootloader buffers the image internally, so the body is streamed
in large chunks without per-chunk acknowledgments. A flashing error is only
reported once the whole image has been sent.

Protocol sequence (ack deadline in parentheses):
1. Connect to port 8080 (TCP_NODELAY, 64 KiB send buffer)
2. CMD_INIT -> OK (5s)
3. CMD_ERASE -> OK (60s, device-side erase is slow)
4. CMD_WRITE_STREAM + <u32 base address> <u32 length> -> OK (5s)
5. Body in 8192-byte chunks, no acks
6. Completion OK (30s)
7. CMD_RUN -> OK (5s)
"""

import logging
from enum import Enum, auto
from typing import Optional

from ota_flasher.core.cancel import CancelToken
from ota_flasher.core.firmware import FirmwareImage
from ota_flasher.protocol.base import OtaDriver, OtaTarget, ProgressCallback
from ota_flasher.protocol.framing import (
    CMD_ERASE,
    CMD_INIT,
    CMD_RUN,
    CMD_WRITE_STREAM,
    build_stream_header,
    expect_ack,
    send_command,
)

logger = logging.getLogger(__name__)

STM32_PORT = 8080
STM32_BASE_ADDRESS = 0x08000000
STM32_STREAM_CHUNK_SIZE = 8192
STM32_SEND_BUFFER_SIZE = 64 * 1024

# Ack deadlines (seconds)
STM32_INIT_TIMEOUT = 5.0
STM32_ERASE_TIMEOUT = 60.0
STM32_HEADER_TIMEOUT = 5.0
STM32_COMPLETION_TIMEOUT = 30.0
STM32_RUN_TIMEOUT = 5.0


class Stm32State(Enum):
    DISCONNECTED = auto()
    CONNECTED = auto()
    INITIALIZED = auto()
    ERASED = auto()
    STREAM_HEADER_SENT = auto()
    STREAMING = auto()
    AWAITING_COMPLETION = auto()
    RUN_SENT = auto()
    COMPLETED = auto()
    FAILED = auto()


class Stm32StreamDriver(OtaDriver):
    """Pipelined STM32 flasher."""

    target = OtaTarget.STM32
    port = STM32_PORT
    no_delay = True
    send_buffer_size = STM32_SEND_BUFFER_SIZE

    def initial_state(self) -> Stm32State:
        return Stm32State.DISCONNECTED

    def failed_state(self) -> Stm32State:
        return Stm32State.FAILED

    def _flash(
        self,
        conn,
        firmware: FirmwareImage,
        progress_cb: Optional[ProgressCallback],
        cancel_token: CancelToken,
    ) -> None:
        total = firmware.size
        logger.info(f"Starting STM32 OTA update to {conn.host} ({total} bytes, stream)")
        self._enter(Stm32State.CONNECTED)

        cancel_token.raise_if_cancelled()
        send_command(conn, CMD_INIT)
        expect_ack(conn, STM32_INIT_TIMEOUT, cancel_token)
        self._enter(Stm32State.INITIALIZED)

        logger.debug(f"Erasing flash (waiting up to {STM32_ERASE_TIMEOUT:g}s)")
        send_command(conn, CMD_ERASE)
        expect_ack(conn, STM32_ERASE_TIMEOUT, cancel_token)
        self._enter(Stm32State.ERASED)

        cancel_token.raise_if_cancelled()
        send_command(conn, CMD_WRITE_STREAM)
        conn.send_raw(build_stream_header(STM32_BASE_ADDRESS, total))
        self._enter(Stm32State.STREAM_HEADER_SENT)
        expect_ack(conn, STM32_HEADER_TIMEOUT, cancel_token)

        self._enter(Stm32State.STREAMING)
        for offset, chunk in firmware.iter_chunks(STM32_STREAM_CHUNK_SIZE):
            cancel_token.raise_if_cancelled()
            conn.send_raw(chunk)
            if progress_cb:
                progress_cb(offset + len(chunk), total)

        # A failure past this point leaves the device flash in an undefined state
        self._enter(Stm32State.AWAITING_COMPLETION)
        logger.debug("Waiting for device processing...")
        expect_ack(conn, STM32_COMPLETION_TIMEOUT, cancel_token)

        send_command(conn, CMD_RUN)
        self._enter(Stm32State.RUN_SENT)
        expect_ack(conn, STM32_RUN_TIMEOUT, cancel_token)
        self._enter(Stm32State.COMPLETED)

        logger.info("STM32 OTA update completed successfully")
