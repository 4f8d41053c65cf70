"""
Standardized failure messages for OTA sessions.

Turns an OtaResult into a structured message with a stable code and a
remediation hint, so the CLI (and any other front end) display failures
consistently.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .results import FailureKind, OtaResult


class MessageLevel(Enum):
    """Severity level for messages."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


# Default remediation hints for each failure kind
FAILURE_HINTS: Dict[FailureKind, str] = {
    FailureKind.FILE_NOT_FOUND:
        "Check the firmware path. Nothing was sent to the device.",
    FailureKind.UNSUPPORTED_FORMAT:
        "Use a non-empty raw .bin image. Nothing was sent to the device.",
    FailureKind.CONNECTION_ERROR:
        "Check the device IP, that it is in bootloader mode and on the same network.",
    FailureKind.TIMEOUT:
        "The bootloader stopped answering. Power cycle the device and retry the full update.",
    FailureKind.PROTOCOL_ERROR:
        "The bootloader rejected a step. Check the --target matches the device family.",
    FailureKind.CANCELLED:
        "Update was cancelled. The device may hold a partial image; run the update again.",
    FailureKind.IO_ERROR:
        "The connection dropped. Check the network link and retry the full update.",
}


@dataclass
class FailureMessage:
    """
    Structured message for a finished session.

    Attributes:
        level: Severity (INFO, WARN, ERROR)
        code: Stable code (FailureKind value, or "ok")
        title: Short, user-facing title
        remediation: Suggested action
    """
    level: MessageLevel
    code: str
    title: str
    remediation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/display."""
        return {
            "level": self.level.value,
            "code": self.code,
            "title": self.title,
            "remediation": self.remediation,
        }


def result_to_message(result: OtaResult) -> Optional[FailureMessage]:
    """
    Build the message to show for `result`.

    Returns:
        None for successful results
    """
    if result.ok:
        return None

    kind = result.kind or FailureKind.IO_ERROR
    # Cancellation is user-initiated, not a device fault
    level = MessageLevel.WARN if kind is FailureKind.CANCELLED else MessageLevel.ERROR
    return FailureMessage(
        level=level,
        code=kind.value,
        title=result.error or kind.value.replace("_", " "),
        remediation=FAILURE_HINTS.get(kind, ""),
    )
