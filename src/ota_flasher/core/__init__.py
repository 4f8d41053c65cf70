"""
Core module for the OTA flasher.

This module provides the single source of truth for:
- Result objects (results.py)
- Cooperative cancellation (cancel.py)
- Firmware loading and validation (firmware.py)
- Target and address parsing (parsing.py)
- The OTA session workflow (actions.py)
- Remembered device addresses (session_store.py)
- Standardized failure messages (messages.py)

The CLI and library callers should call into this module rather than
driving the protocol layer themselves.
"""

# results/cancel/firmware first: the protocol layer imports them directly
from .results import FailureKind, OtaProgress, OtaResult
from .cancel import CancelToken
from .firmware import FirmwareImage, FIRMWARE_EXTENSION, validate_firmware_path
from .parsing import parse_target, parse_address, get_valid_targets
from .actions import run_ota
from .session_store import SessionStore, resolve_address
from .messages import MessageLevel, FailureMessage, FAILURE_HINTS, result_to_message

__all__ = [
    # Results
    "FailureKind",
    "OtaProgress",
    "OtaResult",
    # Cancellation
    "CancelToken",
    # Firmware
    "FirmwareImage",
    "FIRMWARE_EXTENSION",
    "validate_firmware_path",
    # Parsing
    "parse_target",
    "parse_address",
    "get_valid_targets",
    # Actions
    "run_ota",
    # Sessions
    "SessionStore",
    "resolve_address",
    # Messages
    "MessageLevel",
    "FailureMessage",
    "FAILURE_HINTS",
    "result_to_message",
]
