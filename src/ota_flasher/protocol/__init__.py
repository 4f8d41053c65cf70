"""Bootloader protocol layer - framing, transport and per-target drivers."""

from typing import Dict, Type

from .transport import OtaConnection
from .framing import (
    CMD_INIT,
    CMD_ERASE,
    CMD_WRITE,
    CMD_RUN,
    CMD_WRITE_STREAM,
    RESP_OK,
    RESP_FAIL,
    send_command,
    expect_ack,
    build_stream_header,
    build_init_payload,
    build_write_header,
)
from .base import OtaDriver, OtaTarget, ProgressCallback
from .stm32_stream import Stm32StreamDriver, Stm32State
from .esp32_chunked import Esp32ChunkedDriver, Esp32State

DRIVERS: Dict[OtaTarget, Type[OtaDriver]] = {
    OtaTarget.STM32: Stm32StreamDriver,
    OtaTarget.ESP32: Esp32ChunkedDriver,
}


def get_driver(target: OtaTarget) -> OtaDriver:
    """Return a fresh driver instance for `target`."""
    try:
        return DRIVERS[target]()
    except KeyError:
        raise ValueError(f"No driver registered for {target!r}")


__all__ = [
    # Transport
    "OtaConnection",
    # Framing
    "CMD_INIT",
    "CMD_ERASE",
    "CMD_WRITE",
    "CMD_RUN",
    "CMD_WRITE_STREAM",
    "RESP_OK",
    "RESP_FAIL",
    "send_command",
    "expect_ack",
    "build_stream_header",
    "build_init_payload",
    "build_write_header",
    # Drivers
    "OtaDriver",
    "OtaTarget",
    "ProgressCallback",
    "Stm32StreamDriver",
    "Stm32State",
    "Esp32ChunkedDriver",
    "Esp32State",
    "DRIVERS",
    "get_driver",
]
