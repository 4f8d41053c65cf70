"""Shared fixtures: an in-memory connection and a loopback fake bootloader."""

import socket
import struct
import threading
from typing import List, Optional

import pytest

from ota_flasher.errors import OtaIOError, OtaTimeoutError
from ota_flasher.protocol.framing import (
    CMD_ERASE,
    CMD_INIT,
    CMD_RUN,
    CMD_WRITE,
    CMD_WRITE_STREAM,
    RESP_OK,
)

OK = bytes([RESP_OK])


class FakeConnection:
    """
    Scripted stand-in for OtaConnection.

    Acks are served from `responses` in order; running out of responses
    behaves like a read timeout.
    """

    def __init__(self, host="10.0.0.5", port=0, responses=b"", **options):
        self.host = host
        self.port = port
        self.options = options
        self.responses = bytearray(responses)
        self.writes: List[bytes] = []
        self.read_timeouts: List[float] = []
        self.opened = False
        self.closed = False
        self.fail_open: Optional[Exception] = None
        self.fail_write_at: Optional[int] = None

    def open(self):
        if self.fail_open is not None:
            raise self.fail_open
        self.opened = True

    def close(self):
        self.closed = True

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def send_raw(self, data):
        if self.fail_write_at is not None and len(self.writes) == self.fail_write_at:
            raise OtaIOError("Write error: [Errno 32] Broken pipe")
        self.writes.append(bytes(data))

    def recv_raw(self, length, timeout, cancel_token=None):
        self.read_timeouts.append(timeout)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        if len(self.responses) < length:
            raise OtaTimeoutError(f"Device did not respond within {timeout:g}s")
        out = bytes(self.responses[:length])
        del self.responses[:length]
        return out

    @property
    def sent(self) -> bytes:
        return b"".join(self.writes)


class ConnectionRecorder:
    """connection_factory for run_ota that records every connection built."""

    def __init__(self, responses=b""):
        self.responses = responses
        self.calls = []
        self.connections: List[FakeConnection] = []

    def __call__(self, host, port, **options):
        self.calls.append((host, port, options))
        conn = FakeConnection(host, port, self.responses, **options)
        self.connections.append(conn)
        return conn


def _recv_exact(sock: socket.socket, n: int) -> bytes:
    out = bytearray()
    while len(out) < n:
        chunk = sock.recv(n - len(out))
        if not chunk:
            raise ConnectionError("host closed connection")
        out.extend(chunk)
    return bytes(out)


class FakeBootloader:
    """
    Single-connection TCP bootloader speaking the `mode` target's protocol.

    Records the flashed image in `image` and the commands seen in `commands`.
    `fail_on` maps an opcode to the byte sent instead of OK.
    """

    def __init__(self, mode: str, fail_on=None):
        self.mode = mode
        self.init_length: Optional[int] = None
        self.server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server.bind(("127.0.0.1", 0))
        self.server.listen(1)
        self.port = self.server.getsockname()[1]
        self.fail_on = fail_on or {}
        self.commands: List[int] = []
        self.image = bytearray()
        self.chunk_lengths: List[int] = []
        self.stream_header: Optional[tuple] = None
        self.error: Optional[BaseException] = None
        self.thread = threading.Thread(target=self._serve, daemon=True)

    def start(self) -> "FakeBootloader":
        self.thread.start()
        return self

    def _reply(self, conn, opcode):
        conn.sendall(bytes([self.fail_on.get(opcode, RESP_OK)]))
        return opcode not in self.fail_on

    def _serve(self):
        conn, _ = self.server.accept()
        try:
            with conn:
                while True:
                    try:
                        opcode = _recv_exact(conn, 1)[0]
                    except ConnectionError:
                        return
                    self.commands.append(opcode)
                    if opcode == CMD_INIT:
                        if self.mode == "esp32":
                            (self.init_length,) = struct.unpack("<I", _recv_exact(conn, 4))
                        ok = self._reply(conn, opcode)
                    elif opcode == CMD_ERASE:
                        ok = self._reply(conn, opcode)
                    elif opcode == CMD_WRITE_STREAM:
                        base, length = struct.unpack("<II", _recv_exact(conn, 8))
                        self.stream_header = (base, length)
                        if not self._reply(conn, opcode):
                            return
                        self.image.extend(_recv_exact(conn, length))
                        ok = self._reply(conn, opcode)
                    elif opcode == CMD_WRITE:
                        (length,) = struct.unpack("<H", _recv_exact(conn, 2))
                        self.chunk_lengths.append(length)
                        self.image.extend(_recv_exact(conn, length))
                        ok = self._reply(conn, opcode)
                    elif opcode == CMD_RUN:
                        self._reply(conn, opcode)
                        return
                    else:
                        return
                    if not ok:
                        return
        except BaseException as e:
            self.error = e
        finally:
            self.server.close()

    def factory(self):
        """connection_factory redirecting any port to this server."""
        from ota_flasher.protocol.transport import OtaConnection

        def make(host, port, **options):
            return OtaConnection("127.0.0.1", self.port, **options)

        return make

    def join(self, timeout=5.0):
        self.thread.join(timeout)


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def firmware_file(tmp_path):
    """Write a .bin file of the requested size and return its path."""

    def make(size: int, name: str = "firmware.bin"):
        path = tmp_path / name
        path.write_bytes(bytes(i % 251 for i in range(size)))
        return path

    return make
