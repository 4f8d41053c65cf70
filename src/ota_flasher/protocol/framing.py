"""
OTA bootloader command/ack framing.

Both device families share a one-byte command vocabulary and a one-byte
acknowledgment. Multi-byte fields are little-endian.

    host -> device:  [ opcode ] [ optional payload ]
    device -> host:  [ 0xAA ]   (OK; anything else aborts the session)
"""

import logging
import struct
from typing import Optional

from ota_flasher.core.cancel import CancelToken
from ota_flasher.errors import OtaProtocolError

logger = logging.getLogger(__name__)

# Commands
CMD_INIT = 0x01
CMD_ERASE = 0x02
CMD_WRITE = 0x03
CMD_RUN = 0x04
CMD_WRITE_STREAM = 0x05

# Acknowledgments
RESP_OK = 0xAA
RESP_FAIL = 0xFF

COMMAND_NAMES = {
    CMD_INIT: "INIT",
    CMD_ERASE: "ERASE",
    CMD_WRITE: "WRITE",
    CMD_RUN: "RUN",
    CMD_WRITE_STREAM: "WRITE_STREAM",
}

MAX_U16 = 0xFFFF
MAX_U32 = 0xFFFFFFFF


def send_command(conn, opcode: int) -> None:
    """
    Write a single command byte.

    Raises:
        OtaIOError: On transport failure
    """
    logger.debug(f"Sending CMD_{COMMAND_NAMES.get(opcode, f'0x{opcode:02X}')}")
    conn.send_raw(bytes([opcode]))


def expect_ack(
    conn,
    timeout: float,
    cancel_token: Optional[CancelToken] = None,
) -> None:
    """
    Read one acknowledgment byte and require it to be OK.

    Raises:
        OtaTimeoutError: If no byte arrives within `timeout` seconds
        OtaProtocolError: If the byte is not OK; `received` holds the byte
        OtaCancelledError: If cancelled while waiting
    """
    resp = conn.recv_raw(1, timeout, cancel_token)[0]
    if resp == RESP_OK:
        return
    if resp == RESP_FAIL:
        raise OtaProtocolError(f"Device returned FAIL (0x{resp:02X})", received=resp)
    raise OtaProtocolError(f"Unexpected response byte 0x{resp:02X}", received=resp)


def build_init_payload(total_length: int) -> bytes:
    """INIT payload for per-chunk targets: <u32 total length>."""
    if not 0 <= total_length <= MAX_U32:
        raise ValueError(f"Firmware length {total_length} does not fit in 32 bits")
    return struct.pack("<I", total_length)


def build_stream_header(base_address: int, total_length: int) -> bytes:
    """
    WRITE_STREAM header: <u32 flash base address> <u32 total length>.

    The opcode itself is sent separately with send_command().
    """
    if not 0 <= base_address <= MAX_U32:
        raise ValueError(f"Base address 0x{base_address:X} does not fit in 32 bits")
    if not 0 <= total_length <= MAX_U32:
        raise ValueError(f"Firmware length {total_length} does not fit in 32 bits")
    return struct.pack("<II", base_address, total_length)


def build_write_header(chunk_length: int) -> bytes:
    """Per-chunk WRITE header: opcode followed by <u16 chunk length>."""
    if not 0 < chunk_length <= MAX_U16:
        raise ValueError(f"Chunk length {chunk_length} must be 1..{MAX_U16}")
    return struct.pack("<BH", CMD_WRITE, chunk_length)
