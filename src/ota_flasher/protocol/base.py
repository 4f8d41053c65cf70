"""
Shared driver capability for OTA target families.

Each driver owns one session: it is constructed per invocation, runs its
fixed phase sequence over an already-open connection and converts every
failure into an OtaResult at the run() boundary.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from ota_flasher.core.cancel import CancelToken
from ota_flasher.core.firmware import FirmwareImage
from ota_flasher.core.results import FailureKind, OtaResult
from ota_flasher.errors import OtaError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class OtaTarget(Enum):
    """Supported device families."""
    STM32 = "stm32"  # pipelined stream, acks at phase boundaries
    ESP32 = "esp32"  # one ack per chunk


class OtaDriver:
    """
    Base class for target drivers.

    Subclasses set the class-level connection parameters and implement
    _flash(); they track their position in the protocol via `self.state`.
    """

    target: OtaTarget
    port: int
    no_delay: bool = False
    send_buffer_size: Optional[int] = None

    def __init__(self) -> None:
        self.state: Enum = self.initial_state()

    def initial_state(self) -> Enum:
        raise NotImplementedError

    def failed_state(self) -> Enum:
        raise NotImplementedError

    def _enter(self, state: Enum) -> None:
        logger.debug(f"{self.target.value}: {self.state.name} -> {state.name}")
        self.state = state

    def run(
        self,
        conn,
        firmware: FirmwareImage,
        progress_cb: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> OtaResult:
        """
        Flash `firmware` over `conn` and tell the device to boot it.

        The caller owns opening and closing `conn`.

        Returns:
            OtaResult; failures carry the FailureKind of the fault
        """
        token = cancel_token if cancel_token is not None else CancelToken()
        try:
            self._flash(conn, firmware, progress_cb, token)
        except OtaError as e:
            failed_in = self.state.name
            self._enter(self.failed_state())
            if e.kind is FailureKind.CANCELLED:
                logger.warning(f"{self.target.value} OTA cancelled during {failed_in}")
            else:
                logger.error(f"{self.target.value} OTA failed during {failed_in}: {e}")
            return OtaResult.failure(
                e.kind, str(e),
                target=self.target.value,
                bytes_len=firmware.size,
                received=getattr(e, "received", None),
            )
        return OtaResult.success(target=self.target.value, bytes_len=firmware.size)

    def _flash(
        self,
        conn,
        firmware: FirmwareImage,
        progress_cb: Optional[ProgressCallback],
        cancel_token: CancelToken,
    ) -> None:
        raise NotImplementedError
