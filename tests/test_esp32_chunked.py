"""Tests for the per-chunk ESP32 driver."""

import struct
from pathlib import Path

from ota_flasher.core.cancel import CancelToken
from ota_flasher.core.firmware import FirmwareImage
from ota_flasher.core.results import FailureKind
from ota_flasher.protocol.esp32_chunked import (
    ESP32_ACK_TIMEOUT,
    ESP32_CHUNK_SIZE,
    ESP32_PORT,
    Esp32ChunkedDriver,
    Esp32State,
)

from conftest import OK, FakeConnection


def _image(size: int) -> FirmwareImage:
    return FirmwareImage(data=bytes((i * 7) % 256 for i in range(size)), path=Path("fw.bin"))


def _chunk_lengths(writes):
    """Length fields of every WRITE frame sent."""
    return [struct.unpack("<H", w[1:3])[0] for w in writes if w[:1] == b"\x03" and len(w) > 3]


def test_protocol_constants() -> None:
    assert ESP32_PORT == 8081
    assert ESP32_CHUNK_SIZE == 2048
    driver = Esp32ChunkedDriver()
    assert driver.port == 8081
    assert driver.no_delay is False
    assert driver.send_buffer_size is None


def test_5000_byte_image_three_round_trips() -> None:
    """Progress at 2048, 4096, 5000 then success."""
    image = _image(5000)
    conn = FakeConnection(responses=OK * 5)
    reports = []
    driver = Esp32ChunkedDriver()

    result = driver.run(conn, image, lambda s, t: reports.append((s, t)), CancelToken())

    assert result.ok
    assert reports == [(2048, 5000), (4096, 5000), (5000, 5000)]
    assert driver.state is Esp32State.COMPLETED
    assert conn.writes == [
        b"\x01",
        struct.pack("<I", 5000),
        b"\x03" + struct.pack("<H", 2048) + image.data[0:2048],
        b"\x03" + struct.pack("<H", 2048) + image.data[2048:4096],
        b"\x03" + struct.pack("<H", 904) + image.data[4096:5000],
        b"\x04",
    ]
    assert conn.read_timeouts == [ESP32_ACK_TIMEOUT] * 5


def test_chunk_length_field_never_exceeds_2048() -> None:
    image = _image(10 * 2048 + 17)
    conn = FakeConnection(responses=OK * 13)

    result = Esp32ChunkedDriver().run(conn, image)

    assert result.ok
    lengths = _chunk_lengths(conn.writes)
    assert max(lengths) <= 2048
    assert sum(lengths) == image.size


def test_fail_on_second_chunk_stops_immediately() -> None:
    image = _image(5000)
    conn = FakeConnection(responses=OK + OK + b"\xFF")
    reports = []
    driver = Esp32ChunkedDriver()

    result = driver.run(conn, image, lambda s, t: reports.append((s, t)))

    assert result.kind is FailureKind.PROTOCOL_ERROR
    assert "0xFF" in result.error
    assert reports == [(2048, 5000)]
    assert len(_chunk_lengths(conn.writes)) == 2
    assert b"\x04" not in conn.writes
    assert driver.state is Esp32State.FAILED


def test_init_rejected() -> None:
    conn = FakeConnection(responses=b"\x00")
    result = Esp32ChunkedDriver().run(conn, _image(10))
    assert result.kind is FailureKind.PROTOCOL_ERROR
    assert "0x00" in result.error
    assert conn.writes == [b"\x01", struct.pack("<I", 10)]


def test_missing_chunk_ack_times_out() -> None:
    conn = FakeConnection(responses=OK)
    result = Esp32ChunkedDriver().run(conn, _image(5000))
    assert result.kind is FailureKind.TIMEOUT
    assert len(_chunk_lengths(conn.writes)) == 1


def test_precancelled_token_writes_nothing() -> None:
    """Neither INIT nor the length payload goes out."""
    conn = FakeConnection(responses=OK * 5)
    token = CancelToken()
    token.cancel()

    result = Esp32ChunkedDriver().run(conn, _image(100), None, token)

    assert result.cancelled
    assert conn.writes == []


def test_rejected_chunk_byte_is_reported() -> None:
    conn = FakeConnection(responses=OK + b"\x42")
    result = Esp32ChunkedDriver().run(conn, _image(5000))
    assert result.kind is FailureKind.PROTOCOL_ERROR
    assert result.received == 0x42


def test_cancel_after_two_of_five_chunks() -> None:
    """Chunks 1..2 stay written; nothing else goes on the wire."""
    image = _image(5 * 2048)
    conn = FakeConnection(responses=OK * 7)
    token = CancelToken()

    def on_progress(sent, total):
        if sent == 2 * 2048:
            token.cancel()

    result = Esp32ChunkedDriver().run(conn, image, on_progress, token)

    assert result.cancelled
    assert result.error == "OTA cancelled"
    assert len(_chunk_lengths(conn.writes)) == 2
    assert len(conn.writes) == 4
    assert len(conn.read_timeouts) == 3
