"""
Firmware image loading and validation.

A FirmwareImage is read once from disk before any connection is opened and
stays immutable for the rest of the session.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Tuple, Union

from ota_flasher.errors import FirmwareNotFoundError, OtaIOError, UnsupportedFirmwareError

logger = logging.getLogger(__name__)

FIRMWARE_EXTENSION = ".bin"
MAX_FIRMWARE_SIZE = 0xFFFFFFFF  # carried in a u32 length field


def validate_firmware_path(file_path: Union[str, Path]) -> Path:
    """
    Check that `file_path` names an existing file with the firmware extension.

    Returns:
        The path as a Path object

    Raises:
        FirmwareNotFoundError: If the path is missing or not a regular file
        UnsupportedFirmwareError: If the extension is not .bin (any case)
    """
    path = Path(file_path)
    if not path.is_file():
        raise FirmwareNotFoundError(f"File not found {path}")
    if path.suffix.lower() != FIRMWARE_EXTENSION:
        raise UnsupportedFirmwareError(f"Only {FIRMWARE_EXTENSION} supported")
    return path


@dataclass(frozen=True)
class FirmwareImage:
    """Raw firmware bytes plus the path they were loaded from."""
    data: bytes
    path: Path

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def load(cls, file_path: Union[str, Path]) -> "FirmwareImage":
        """
        Validate and read a firmware file.

        Raises:
            FirmwareNotFoundError: Path missing
            UnsupportedFirmwareError: Wrong extension, empty, or over 4 GiB
            OtaIOError: File could not be read
        """
        path = validate_firmware_path(file_path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise OtaIOError(f"Cannot read {path}: {e}")

        if not data:
            raise UnsupportedFirmwareError(f"Firmware file is empty: {path}")
        if len(data) > MAX_FIRMWARE_SIZE:
            raise UnsupportedFirmwareError(
                f"Firmware too large: {len(data)} bytes (limit {MAX_FIRMWARE_SIZE})"
            )

        logger.debug(f"Loaded {path.name}: {len(data)} bytes")
        return cls(data=data, path=path)

    def iter_chunks(self, chunk_size: int) -> Iterator[Tuple[int, bytes]]:
        """Yield (offset, chunk) pairs in order; the last chunk may be short."""
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        for offset in range(0, len(self.data), chunk_size):
            yield offset, self.data[offset:offset + chunk_size]

    def chunk_count(self, chunk_size: int) -> int:
        return (len(self.data) + chunk_size - 1) // chunk_size
