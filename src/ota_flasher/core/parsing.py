"""
Centralized parsing helpers for target and address values.

The CLI and library callers import these helpers rather than re-implement.
"""

import ipaddress
from typing import Union

from ota_flasher.protocol.base import OtaTarget
from ota_flasher.targets import TARGET_ALIASES, get_profile


def parse_target(value: Union[OtaTarget, str]) -> OtaTarget:
    """
    Parse a target from a user-friendly string.

    Accepts enum members and aliases (case-insensitive, '-' or '_'):
        - "stm32", "stm", "a", "target-a"
        - "esp32", "esp", "b", "target-b"

    Raises:
        ValueError: If the target is not recognized.
    """
    if isinstance(value, OtaTarget):
        return value
    if value is None or not str(value).strip():
        raise ValueError("Target must not be empty")
    return get_profile(value).target


def get_valid_targets() -> list:
    """Get list of valid target strings."""
    return sorted(TARGET_ALIASES.keys())


def parse_address(value: str) -> str:
    """
    Normalize a device address.

    Accepts IPv4/IPv6 literals and hostnames; strips surrounding whitespace
    and brackets around IPv6 literals.

    Raises:
        ValueError: If the address is empty or contains a port/scheme.
    """
    if value is None:
        raise ValueError("Address must not be empty")
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    if not value:
        raise ValueError("Address must not be empty")

    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        pass

    if "://" in value or ":" in value or "/" in value or " " in value:
        raise ValueError(
            f"Invalid address '{value}'. Use a bare IP or hostname; the port is chosen by target."
        )
    return value
