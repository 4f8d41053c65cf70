"""
OTA TCP Transport Layer

Handles the raw byte stream between the host and a device bootloader.

This module provides:
- Connection setup with per-target socket options
- Exact-length writes
- Deadline-bounded reads that poll a cancel token while waiting
"""

import logging
import socket
import time
from typing import Optional

from ota_flasher.core.cancel import CancelToken
from ota_flasher.errors import OtaConnectionError, OtaIOError, OtaTimeoutError

logger = logging.getLogger(__name__)

# Granularity of the cancel-token poll while blocked on a read
READ_POLL_INTERVAL = 0.25


class OtaConnection:
    """
    One TCP connection to a device bootloader.

    Example:
        with OtaConnection("192.168.4.1", 8080, no_delay=True) as conn:
            conn.send_raw(b"\\x01")
            ack = conn.recv_raw(1, timeout=5.0)
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        connect_timeout: float = 10.0,
        no_delay: bool = False,
        send_buffer_size: Optional[int] = None,
    ):
        """
        Initialize connection parameters (nothing is opened yet).

        Args:
            host: Device IP address or hostname
            port: Bootloader TCP port
            connect_timeout: Seconds allowed for the TCP handshake
            no_delay: Disable Nagle coalescing (TCP_NODELAY)
            send_buffer_size: SO_SNDBUF size in bytes, None for the OS default
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.no_delay = no_delay
        self.send_buffer_size = send_buffer_size
        self.sock: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self.sock is not None

    def open(self) -> None:
        """
        Connect to the bootloader.

        Raises:
            OtaConnectionError: If the device cannot be reached
        """
        try:
            sock = socket.create_connection(
                (self.host, self.port), timeout=self.connect_timeout
            )
        except OSError as e:
            raise OtaConnectionError(f"Cannot connect to {self.host}:{self.port}: {e}")

        try:
            if self.no_delay:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            if self.send_buffer_size:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, self.send_buffer_size)
        except OSError as e:
            sock.close()
            raise OtaConnectionError(f"Cannot configure socket for {self.host}:{self.port}: {e}")

        self.sock = sock
        logger.debug(
            f"Connected to {self.host}:{self.port} "
            f"(no_delay={self.no_delay}, sndbuf={self.send_buffer_size})"
        )

    def close(self) -> None:
        """Close the connection; safe to call more than once."""
        if self.sock is not None:
            try:
                self.sock.close()
            finally:
                self.sock = None
            logger.debug(f"Closed {self.host}:{self.port}")

    def __enter__(self) -> "OtaConnection":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def send_raw(self, data: bytes) -> None:
        """
        Send all of `data` to the device.

        Raises:
            OtaIOError: If the connection is closed or the write fails
        """
        if self.sock is None:
            raise OtaIOError("Connection not open")

        try:
            # Writes block until the kernel accepts every byte
            self.sock.settimeout(None)
            self.sock.sendall(data)
        except OSError as e:
            raise OtaIOError(f"Write error: {e}")

        if len(data) <= 16:
            logger.debug(f">>> {data.hex().upper()}")
        else:
            logger.debug(f">>> {len(data)} bytes")

    def recv_raw(
        self,
        length: int,
        timeout: float,
        cancel_token: Optional[CancelToken] = None,
    ) -> bytes:
        """
        Receive exactly `length` bytes before `timeout` seconds elapse.

        Args:
            length: Number of bytes to receive
            timeout: Deadline for the whole read, in seconds
            cancel_token: Polled while waiting; cancellation aborts the read

        Returns:
            Bytes received

        Raises:
            OtaTimeoutError: If the deadline passes first
            OtaCancelledError: If the token is cancelled while waiting
            OtaIOError: On transport errors or if the peer closes the stream
        """
        if self.sock is None:
            raise OtaIOError("Connection not open")

        deadline = time.monotonic() + timeout
        out = bytearray()
        while len(out) < length:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise OtaTimeoutError(
                    f"Device did not respond within {timeout:g}s "
                    f"(got {len(out)}/{length} bytes)"
                )
            try:
                self.sock.settimeout(min(remaining, READ_POLL_INTERVAL))
                chunk = self.sock.recv(length - len(out))
            except socket.timeout:
                continue
            except OSError as e:
                raise OtaIOError(f"Read error: {e}")
            if not chunk:
                raise OtaIOError("Connection closed by device")
            out.extend(chunk)

        logger.debug(f"<<< {bytes(out).hex().upper()}")
        return bytes(out)
