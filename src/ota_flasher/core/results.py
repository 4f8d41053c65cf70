"""
Result objects for OTA sessions.

Provides a uniform outcome shape that both the library caller and the CLI
use to report a flashing session: success, or failure with a reason.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class FailureKind(Enum):
    """Why a session did not complete."""
    FILE_NOT_FOUND = "file_not_found"
    UNSUPPORTED_FORMAT = "unsupported_format"
    CONNECTION_ERROR = "connection_error"
    TIMEOUT = "timeout"
    PROTOCOL_ERROR = "protocol_error"
    CANCELLED = "cancelled"
    IO_ERROR = "io_error"


@dataclass(frozen=True)
class OtaProgress:
    """Bytes delivered so far out of the firmware total."""
    sent: int
    total: int

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return (self.sent * 100) // self.total


@dataclass
class OtaResult:
    """
    Terminal outcome of one OTA session.

    Attributes:
        ok: Whether the device acknowledged RUN
        error: Human-readable failure reason (None on success)
        kind: Failure category (None on success)
        target: Target family name (e.g. "stm32")
        address: Device address the session talked to
        bytes_len: Firmware length in bytes
        received: Offending ack byte for PROTOCOL_ERROR failures
        logs: Captured log lines from the session
    """
    ok: bool
    error: Optional[str] = None
    kind: Optional[FailureKind] = None
    target: str = ""
    address: str = ""
    bytes_len: int = 0
    received: Optional[int] = None
    logs: List[str] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        """True when the session was aborted through its cancel token."""
        return self.kind is FailureKind.CANCELLED

    def to_summary(self) -> str:
        """Human-readable summary for CLI output or logging."""
        if self.ok:
            status = "SUCCESS"
        elif self.cancelled:
            status = "CANCELLED"
        else:
            status = "FAILED"
        lines = [f"[{status}] ota {self.target}".rstrip()]

        if self.address:
            lines.append(f"  Address: {self.address}")
        if self.bytes_len:
            lines.append(f"  Bytes: {self.bytes_len:,}")
        if self.error:
            lines.append(f"  Error: {self.error}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "error": self.error,
            "kind": self.kind.value if self.kind else None,
            "cancelled": self.cancelled,
            "target": self.target,
            "address": self.address,
            "bytes_len": self.bytes_len,
            "received": self.received,
            "logs": self.logs,
        }

    @classmethod
    def success(cls, **kwargs) -> "OtaResult":
        """Create a successful result."""
        return cls(ok=True, **kwargs)

    @classmethod
    def failure(cls, kind: FailureKind, error: str, **kwargs) -> "OtaResult":
        """Create a failed result."""
        return cls(ok=False, error=error, kind=kind, **kwargs)
